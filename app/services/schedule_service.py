"""
Schedule Service - which classes a subject is attending right now
"""
from typing import List
from datetime import datetime
from sqlalchemy.orm import Session

from app.models.class_schedule import ClassSchedule
from app.repositories.class_schedule_repository import ClassScheduleRepository
from app.schemas.subject import Subject

WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def time_of_day(moment: datetime) -> str:
    """Minute-resolution "HH:MM" used for schedule comparisons"""
    return moment.strftime("%H:%M")


def weekday_name(moment: datetime) -> str:
    return WEEKDAYS[moment.weekday()]


class ScheduleMatcher:
    def __init__(self) -> None:
        self.schedule_repo = ClassScheduleRepository()

    def is_enrolled(self, schedule: ClassSchedule, subject: Subject) -> bool:
        """Students by roster membership, faculty by ownership"""
        if subject.role == "student":
            return subject.user_id in schedule.student_ids
        if subject.role == "faculty":
            return schedule.cs_faculty_id == subject.user_id
        return False

    def is_running(self, schedule: ClassSchedule, now: datetime) -> bool:
        if not schedule.cs_is_active:
            return False
        if weekday_name(now) not in (schedule.cs_days or []):
            return False
        current = time_of_day(now)
        return schedule.cs_start_time <= current <= schedule.cs_end_time

    def active_schedules_for(self, db: Session, subject: Subject, now: datetime) -> List[ClassSchedule]:
        """Schedules running at ``now`` (inclusive bounds) that the subject belongs to"""
        candidates = self.schedule_repo.get_running_at(db, time_of_day(now))
        return [
            schedule for schedule in candidates
            if self.is_running(schedule, now) and self.is_enrolled(schedule, subject)
        ]

    def is_late(self, schedule: ClassSchedule, now: datetime) -> bool:
        """Late means strictly after the scheduled start, at minute resolution"""
        return time_of_day(now) > schedule.cs_start_time
