"""
Attendance Endpoints - face-recognition marking, proxy marking, review and history
"""
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date, datetime

from app.db.session import get_db
from app.services.attendance_service import AttendanceDecisionEngine
from app.services.verification_service import VerificationStateMachine
from app.services.report_service import AttendanceReportService, export_filename
from app.schemas import (
    Subject,
    TrustAssessment,
    AttendanceClaim,
    AttendanceDecision,
    AttendanceRecord,
    MarkAttendanceRequest,
    ProxyAttendanceRequest,
    ProxyAttendanceResponse,
    SubFieldRequest,
    CheckOutRequest,
    AttendanceUpdate,
    AttendanceStats,
    ProxyStatsEntry,
    DataResponse,
    PaginationResponse
)
from app.api.deps import (
    ADMIN_ROLE_LEVEL,
    FACULTY_ROLE_LEVEL,
    require_min_role_level,
    get_current_subject,
    get_trust_assessment
)
from app.core.config import settings
from atams.encryption import encrypt_response_data
from atams.exceptions import BadRequestException, ForbiddenException
from atams.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()
attendance_engine = AttendanceDecisionEngine()
verification = VerificationStateMachine()
report_service = AttendanceReportService()


@router.post(
    "/mark",
    response_model=DataResponse[AttendanceDecision],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_min_role_level(1))]
)
async def mark_attendance(
    request: MarkAttendanceRequest,
    db: Session = Depends(get_db),
    subject: Subject = Depends(get_current_subject),
    trust: TrustAssessment = Depends(get_trust_assessment)
):
    """
    Mark attendance via face recognition

    **Authentication:**
    - Requires valid user authentication (role level >= 1)

    **Process:**
    1. Client network must be allowed and free of proxy/VPN signals
    2. No other attendance within the duplicate window
    3. At least one class running now for the caller
    4. Location is compared with each class location (flag only)
    5. One record per running class, present or late

    **Errors:**
    - 403: Untrusted network or proxy/VPN detected
    - 400: Duplicate attempt or no active class
    """
    if request.device_name:
        logger.info(
            "Attendance claim received",
            extra={'extra_data': {
                'user_id': subject.user_id,
                'device_name': request.device_name,
                'user_agent': trust.client_fingerprint.user_agent
            }}
        )

    claim = AttendanceClaim(
        subject=subject,
        lat=request.lat,
        lon=request.lon,
        channel="face-recognition",
        confidence=request.confidence
    )
    decision = attendance_engine.decide(db, claim, trust)

    return DataResponse(
        success=True,
        message=decision.message,
        data=decision
    )


@router.post(
    "/proxy",
    response_model=DataResponse[ProxyAttendanceResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_min_role_level(FACULTY_ROLE_LEVEL))]
)
async def mark_proxy_attendance(
    request: ProxyAttendanceRequest,
    db: Session = Depends(get_db),
    subject: Subject = Depends(get_current_subject)
):
    """
    Mark attendance on behalf of several users

    **Authentication:**
    - Requires role level >= 20 (Faculty or above)
    """
    records = attendance_engine.mark_proxy(db, subject, request)

    return DataResponse(
        success=True,
        message=f"Proxy attendance marked for {len(records)} users",
        data=ProxyAttendanceResponse(count=len(records), records=records)
    )


@router.get(
    "/me",
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(1))]
)
async def get_my_attendance(
    date_from: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(None, description="End date (YYYY-MM-DD)"),
    limit: int = Query(20, ge=1, le=100, description="Maximum records to return"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    db: Session = Depends(get_db),
    subject: Subject = Depends(get_current_subject)
):
    """
    Get current user's attendance records, newest first

    **Authentication:**
    - Requires valid user authentication (role level >= 1)
    """
    parsed_date_from = _parse_date(date_from, "date_from")
    parsed_date_to = _parse_date(date_to, "date_to")

    records = attendance_engine.get_user_records(
        db, subject.user_id, parsed_date_from, parsed_date_to, offset, limit
    )
    total = attendance_engine.count_user_records(db, subject.user_id, parsed_date_from, parsed_date_to)

    response = PaginationResponse(
        success=True,
        message="Attendance records retrieved successfully",
        data=records,
        total=total,
        page=offset // limit + 1,
        size=limit,
        pages=(total + limit - 1) // limit
    )

    return encrypt_response_data(response, settings)


@router.get(
    "/stats",
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(1))]
)
async def get_attendance_stats(
    user_id: Optional[int] = Query(None, description="User to report on (staff only, default self)"),
    date_from: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(None, description="End date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
    subject: Subject = Depends(get_current_subject)
):
    """
    Attendance totals, percentages and current streak

    **Authentication:**
    - Students see their own statistics; faculty and admins may pass user_id
    """
    target_user_id = subject.user_id
    if user_id is not None and user_id != subject.user_id:
        if not subject.is_staff:
            raise ForbiddenException("You can only view your own statistics")
        target_user_id = user_id

    stats = attendance_engine.get_stats(
        db, target_user_id, _parse_date(date_from, "date_from"), _parse_date(date_to, "date_to")
    )

    response = DataResponse[AttendanceStats](
        success=True,
        message="Attendance statistics retrieved successfully",
        data=stats
    )

    return encrypt_response_data(response, settings)


@router.get(
    "/proxy/stats",
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(ADMIN_ROLE_LEVEL))]
)
async def get_proxy_stats(
    start_date: datetime = Query(..., description="Range start (ISO 8601)"),
    end_date: datetime = Query(..., description="Range end (ISO 8601)"),
    db: Session = Depends(get_db),
    subject: Subject = Depends(get_current_subject)
):
    """
    Proxy attendance counts per marking faculty member (Admin only)

    **Authentication:**
    - Requires role level >= 50 (Admin or above)
    """
    stats = attendance_engine.get_proxy_stats(db, subject, start_date, end_date)

    response = DataResponse[List[ProxyStatsEntry]](
        success=True,
        message="Proxy statistics retrieved successfully",
        data=stats
    )

    return encrypt_response_data(response, settings)


@router.get(
    "/",
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(FACULTY_ROLE_LEVEL))]
)
async def list_attendance(
    user_id: Optional[int] = Query(None, description="Only records of this user"),
    department_id: Optional[int] = Query(None, description="Only records of classes in this department"),
    date_from: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(None, description="End date (YYYY-MM-DD)"),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(20, ge=1, le=100, description="Maximum records to return"),
    db: Session = Depends(get_db),
    subject: Subject = Depends(get_current_subject)
):
    """
    List attendance records, newest first

    **Authentication:**
    - Requires role level >= 20 (Faculty or above)
    - Admins see every record, faculty see records of the classes they teach
    """
    filters = dict(
        user_id=user_id,
        date_from=_parse_date(date_from, "date_from"),
        date_to=_parse_date(date_to, "date_to"),
        department_id=department_id
    )
    records = report_service.list_records(db, subject, skip=skip, limit=limit, **filters)
    total = report_service.count_records(db, subject, **filters)

    response = PaginationResponse(
        success=True,
        message="Attendance records retrieved successfully",
        data=records,
        total=total,
        page=skip // limit + 1,
        size=limit,
        pages=(total + limit - 1) // limit
    )

    return encrypt_response_data(response, settings)


@router.get(
    "/export",
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(FACULTY_ROLE_LEVEL))]
)
async def export_attendance(
    user_id: Optional[int] = Query(None, description="Only records of this user"),
    department_id: Optional[int] = Query(None, description="Only records of classes in this department"),
    date_from: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(None, description="End date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
    subject: Subject = Depends(get_current_subject)
):
    """
    Download attendance records as CSV, oldest first

    **Authentication:**
    - Requires role level >= 20 (Faculty or above), same visibility as the listing
    """
    parsed_date_from = _parse_date(date_from, "date_from")
    parsed_date_to = _parse_date(date_to, "date_to")

    content = report_service.export_csv(
        db,
        subject,
        user_id=user_id,
        date_from=parsed_date_from,
        date_to=parsed_date_to,
        department_id=department_id
    )

    return Response(
        content=content,
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="{export_filename(parsed_date_from, parsed_date_to)}"'
        }
    )


@router.post(
    "/{ar_id}/check-out",
    response_model=DataResponse[AttendanceRecord],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(1))]
)
async def check_out(
    ar_id: int,
    request: Optional[CheckOutRequest] = None,
    db: Session = Depends(get_db),
    subject: Subject = Depends(get_current_subject)
):
    """
    Record check-out time on an attendance record (pending review)

    **Errors:**
    - 400: No check-in recorded
    - 409: Check-out already recorded
    """
    record = verification.mark_time(
        db, ar_id, "checkOut", subject, request.time if request else None
    )

    return DataResponse(
        success=True,
        message="Check-out recorded successfully",
        data=record
    )


@router.patch(
    "/{ar_id}/verify",
    response_model=DataResponse[AttendanceRecord],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(FACULTY_ROLE_LEVEL))]
)
async def verify_attendance(
    ar_id: int,
    request: SubFieldRequest,
    db: Session = Depends(get_db),
    subject: Subject = Depends(get_current_subject)
):
    """
    Verify check-in or check-out (Faculty or Admin)

    **Request body:**
    - type: checkIn or checkOut
    """
    record = verification.verify(db, ar_id, request.type, subject)

    return DataResponse(
        success=True,
        message="Attendance verified successfully",
        data=record
    )


@router.patch(
    "/{ar_id}/reject",
    response_model=DataResponse[AttendanceRecord],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(ADMIN_ROLE_LEVEL))]
)
async def reject_attendance(
    ar_id: int,
    request: SubFieldRequest,
    db: Session = Depends(get_db),
    subject: Subject = Depends(get_current_subject)
):
    """
    Reject check-in or check-out (Admin only)

    Rejecting check-in also clears check-out; a record left without
    any time is marked absent.
    """
    record = verification.reject(db, ar_id, request.type, subject)

    return DataResponse(
        success=True,
        message="Attendance rejected successfully",
        data=record
    )


@router.put(
    "/{ar_id}",
    response_model=DataResponse[AttendanceRecord],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(ADMIN_ROLE_LEVEL))]
)
async def update_attendance(
    ar_id: int,
    request: AttendanceUpdate,
    db: Session = Depends(get_db),
    subject: Subject = Depends(get_current_subject)
):
    """
    Edit an attendance record (Admin only)

    Hours worked are recomputed when both check-in and check-out are present.
    """
    record = verification.update_record(db, ar_id, request, subject)

    return DataResponse(
        success=True,
        message="Attendance updated successfully",
        data=record
    )


@router.delete(
    "/{ar_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_min_role_level(ADMIN_ROLE_LEVEL))]
)
async def delete_attendance(
    ar_id: int,
    db: Session = Depends(get_db),
    subject: Subject = Depends(get_current_subject)
):
    """
    Delete an attendance record (Admin only)

    **Errors:**
    - 404: Record not found
    """
    verification.delete_record(db, ar_id, subject)

    # 204 returns no content
    return None


def _parse_date(value: Optional[str], name: str) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise BadRequestException(f"Invalid {name} format. Use YYYY-MM-DD")
