"""
Integrity Flag Endpoints - inbox of stored fraud/anomaly flags for staff
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from app.db.session import get_db
from app.services.integrity_flag_service import IntegrityFlagService
from app.schemas import (
    Subject,
    IntegrityFlagInDB,
    UnreadFlagCount,
    DataResponse,
    PaginationResponse
)
from app.schemas.integrity import IntegrityFlagKind
from app.api.deps import FACULTY_ROLE_LEVEL, require_min_role_level, get_current_subject
from app.core.config import settings
from atams.encryption import encrypt_response_data

router = APIRouter()
flag_service = IntegrityFlagService()


@router.get(
    "/",
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(FACULTY_ROLE_LEVEL))]
)
async def list_flags(
    user_id: Optional[int] = Query(None, description="Only flags raised for this user"),
    kind: Optional[IntegrityFlagKind] = Query(None, description="Only flags of this kind"),
    unread_only: bool = Query(False, description="Only unread flags"),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(50, ge=1, le=100, description="Maximum records to return"),
    db: Session = Depends(get_db),
    subject: Subject = Depends(get_current_subject)
):
    """
    Integrity flags, newest first

    **Authentication:**
    - Requires role level >= 20 (Faculty or above)
    - Faculty see flags addressed to them, admins see every flag
    """
    filters = dict(user_id=user_id, kind=kind, unread_only=unread_only)
    flags = flag_service.list_flags(db, subject, skip=skip, limit=limit, **filters)
    total = flag_service.count_flags(db, subject, **filters)

    response = PaginationResponse(
        success=True,
        message="Integrity flags retrieved successfully",
        data=flags,
        total=total,
        page=skip // limit + 1,
        size=limit,
        pages=(total + limit - 1) // limit
    )

    return encrypt_response_data(response, settings)


@router.get(
    "/unread-count",
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(FACULTY_ROLE_LEVEL))]
)
async def get_unread_count(
    db: Session = Depends(get_db),
    subject: Subject = Depends(get_current_subject)
):
    response = DataResponse[UnreadFlagCount](
        success=True,
        message="Unread count retrieved successfully",
        data=UnreadFlagCount(unread=flag_service.unread_count(db, subject))
    )

    return encrypt_response_data(response, settings)


@router.put(
    "/read-all",
    response_model=DataResponse[UnreadFlagCount],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(FACULTY_ROLE_LEVEL))]
)
async def mark_all_flags_read(
    db: Session = Depends(get_db),
    subject: Subject = Depends(get_current_subject)
):
    """Mark every visible flag read"""
    updated = flag_service.mark_all_read(db, subject)

    return DataResponse(
        success=True,
        message=f"{updated} flags marked as read",
        data=UnreadFlagCount(unread=0)
    )


@router.put(
    "/{if_id}/read",
    response_model=DataResponse[IntegrityFlagInDB],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(FACULTY_ROLE_LEVEL))]
)
async def mark_flag_read(
    if_id: int,
    db: Session = Depends(get_db),
    subject: Subject = Depends(get_current_subject)
):
    """
    Mark one flag read

    **Errors:**
    - 404: Flag not found or addressed to someone else
    """
    flag = flag_service.mark_read(db, if_id, subject)

    return DataResponse(
        success=True,
        message="Flag marked as read",
        data=flag
    )
