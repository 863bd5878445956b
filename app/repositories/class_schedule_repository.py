"""
Class Schedule Repository - Data access layer for class schedules
"""
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import and_

from atams.db import BaseRepository
from app.models.class_schedule import ClassSchedule, ClassScheduleStudent


class ClassScheduleRepository(BaseRepository[ClassSchedule]):
    def __init__(self):
        super().__init__(ClassSchedule)

    def get_by_id(self, db: Session, schedule_id: int) -> Optional[ClassSchedule]:
        """Get schedule by ID using ORM"""
        return db.query(ClassSchedule).filter(ClassSchedule.cs_id == schedule_id).first()

    def get_running_at(self, db: Session, time_of_day: str) -> List[ClassSchedule]:
        """
        Active schedules whose [start, end] window contains ``time_of_day``

        Times are zero-padded "HH:MM" strings, so lexical comparison is
        chronological. Weekday and roster filtering happen in the service.
        """
        return db.query(ClassSchedule).filter(
            and_(
                ClassSchedule.cs_is_active.is_(True),
                ClassSchedule.cs_start_time <= time_of_day,
                ClassSchedule.cs_end_time >= time_of_day
            )
        ).order_by(ClassSchedule.cs_start_time.asc(), ClassSchedule.cs_id.asc()).all()

    def create_with_roster(self, db: Session, schedule_data: Dict[str, Any], student_ids: List[int]) -> ClassSchedule:
        """Create schedule together with its student roster"""
        db_schedule = ClassSchedule(**schedule_data)
        db_schedule.students = [ClassScheduleStudent(css_user_id=user_id) for user_id in set(student_ids)]
        db.add(db_schedule)
        db.commit()
        db.refresh(db_schedule)
        return db_schedule

    def get_ids_for_faculty(self, db: Session, faculty_id: int) -> List[int]:
        """IDs of every schedule taught by the faculty member, active or not"""
        rows = db.query(ClassSchedule.cs_id).filter(ClassSchedule.cs_faculty_id == faculty_id).all()
        return [row.cs_id for row in rows]
