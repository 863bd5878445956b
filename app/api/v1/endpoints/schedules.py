"""
Schedule Endpoints - classes running now for the caller
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List

from app.db.session import get_db
from app.core.clock import system_clock
from app.services.schedule_service import ScheduleMatcher
from app.schemas import Subject, ClassSchedule, DataResponse
from app.api.deps import require_min_role_level, get_current_subject
from app.core.config import settings
from atams.encryption import encrypt_response_data

router = APIRouter()
schedule_matcher = ScheduleMatcher()
clock = system_clock


@router.get(
    "/current",
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(1))]
)
async def get_current_classes(
    db: Session = Depends(get_db),
    subject: Subject = Depends(get_current_subject)
):
    """
    Classes running right now that the caller is enrolled in (students) or teaches (faculty)

    Same matching as attendance marking: today's weekday, start and end inclusive.
    """
    schedules = schedule_matcher.active_schedules_for(db, subject, clock())

    response = DataResponse[List[ClassSchedule]](
        success=True,
        message="Current classes retrieved successfully",
        data=[ClassSchedule.model_validate(s) for s in schedules]
    )

    return encrypt_response_data(response, settings)
