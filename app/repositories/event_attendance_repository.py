"""
Event Attendance Repository - Redemption records with uniqueness per (event, user)
"""
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from atams.db import BaseRepository
from app.models.event_attendance import EventAttendance


class EventAttendanceRepository(BaseRepository[EventAttendance]):
    def __init__(self):
        super().__init__(EventAttendance)

    def create_once(self, db: Session, attendance_data: Dict[str, Any]) -> Optional[EventAttendance]:
        """
        Insert attendance for (event, user).
        Returns the created row, or None if the pair already exists.
        Any other integrity violation (e.g. unknown event) is re-raised.

        The unique constraint decides; there is no check-then-insert, so
        concurrent redemptions for the same pair yield exactly one row.
        """
        try:
            db_attendance = EventAttendance(**attendance_data)
            db.add(db_attendance)
            db.commit()
            db.refresh(db_attendance)
            return db_attendance
        except IntegrityError:
            db.rollback()
            if self.get_by_event_and_user(db, attendance_data["ea_event_id"], attendance_data["ea_user_id"]) is None:
                raise
            # Already checked in - duplicate redemption
            return None

    def get_by_event_and_user(self, db: Session, event_id: int, user_id: int) -> Optional[EventAttendance]:
        return db.query(EventAttendance).filter(
            EventAttendance.ea_event_id == event_id,
            EventAttendance.ea_user_id == user_id
        ).first()

    def get_event_attendees(self, db: Session, event_id: int, skip: int = 0, limit: int = 100) -> List[EventAttendance]:
        """Get attendees of an event ordered by check-in time using ORM"""
        return db.query(EventAttendance).filter(
            EventAttendance.ea_event_id == event_id
        ).order_by(EventAttendance.ea_checked_in_at.asc()).offset(skip).limit(limit).all()

    def count_event_attendees(self, db: Session, event_id: int) -> int:
        """Count attendees of an event using native SQL"""
        query = """
            SELECT COUNT(*)
            FROM event_attendances
            WHERE ea_event_id = :event_id
        """
        return self.execute_raw_sql_scalar(db, query, {"event_id": event_id})
