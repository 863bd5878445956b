"""
Event Endpoints - QR issuance, token check-in, manual check-in and attendee listing
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from app.db.session import get_db
from app.services.checkin_token_service import CheckInTokenService
from app.schemas import (
    Subject,
    CheckInToken,
    EventAttendance,
    IssueTokenRequest,
    EventCheckInRequest,
    ManualCheckInRequest,
    DataResponse,
    PaginationResponse
)
from app.api.deps import require_min_role_level, get_current_subject
from app.core.config import settings
from atams.encryption import encrypt_response_data

router = APIRouter()
token_service = CheckInTokenService()


@router.post(
    "/{ev_id}/qr",
    response_model=DataResponse[CheckInToken],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(1))]
)
async def issue_event_qr(
    ev_id: int,
    request: Optional[IssueTokenRequest] = None,
    db: Session = Depends(get_db),
    subject: Subject = Depends(get_current_subject)
):
    """
    Issue (or regenerate) the event QR token

    **Authentication:**
    - Admin or the event organizer

    **Response:**
    - Signed token to render as QR code; earlier tokens stop working
    - Expiry defaults to the event end date
    """
    expires_at = request.expires_at if request else None
    token = token_service.issue(db, ev_id, expires_at, actor=subject)

    return DataResponse(
        success=True,
        message="QR code generated successfully",
        data=token
    )


@router.delete(
    "/{ev_id}/qr",
    response_model=DataResponse[None],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(1))]
)
async def deactivate_event_qr(
    ev_id: int,
    db: Session = Depends(get_db),
    subject: Subject = Depends(get_current_subject)
):
    """
    Deactivate the event QR token (Admin or event organizer)
    """
    token_service.deactivate(db, ev_id, actor=subject)

    return DataResponse(
        success=True,
        message="QR code deactivated successfully",
        data=None
    )


@router.post(
    "/check-in",
    response_model=DataResponse[EventAttendance],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_min_role_level(1))]
)
async def check_in_with_token(
    request: EventCheckInRequest,
    db: Session = Depends(get_db),
    subject: Subject = Depends(get_current_subject)
):
    """
    Check in to an event by scanning its QR code

    **Authentication:**
    - Requires valid user authentication (role level >= 1)

    **Errors:**
    - 400: Invalid QR code, event inactive/not started/ended, or already checked in
    - 403: Not eligible for the event
    """
    attendance = token_service.redeem(db, request.token, subject)

    return DataResponse(
        success=True,
        message="Successfully checked in to event",
        data=attendance
    )


@router.post(
    "/{ev_id}/manual-check-in",
    response_model=DataResponse[EventAttendance],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_min_role_level(1))]
)
async def manual_check_in(
    ev_id: int,
    request: ManualCheckInRequest,
    db: Session = Depends(get_db),
    subject: Subject = Depends(get_current_subject)
):
    """
    Check a user in without a QR code (Admin, Faculty or event organizer)
    """
    attendance = token_service.manual_check_in(db, ev_id, request.user_id, subject)

    return DataResponse(
        success=True,
        message="User checked in successfully",
        data=attendance
    )


@router.get(
    "/{ev_id}/attendees",
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(1))]
)
async def get_event_attendees(
    ev_id: int,
    limit: int = Query(100, ge=1, le=1000, description="Maximum records to return"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    db: Session = Depends(get_db),
    subject: Subject = Depends(get_current_subject)
):
    """
    List event attendees by check-in time (Admin, Faculty or event organizer)
    """
    attendees = token_service.get_attendees(db, ev_id, subject, offset, limit)
    total = token_service.count_attendees(db, ev_id)

    response = PaginationResponse(
        success=True,
        message="Event attendees retrieved successfully",
        data=attendees,
        total=total,
        page=offset // limit + 1,
        size=limit,
        pages=(total + limit - 1) // limit
    )

    return encrypt_response_data(response, settings)
