"""
Attendance Record Repository - Data access layer for attendance records
"""
from typing import Any, Dict, List, Optional
from datetime import date, datetime
from sqlalchemy.orm import Session
from sqlalchemy import and_, func, select

from atams.db import BaseRepository
from app.models.attendance_record import AttendanceRecord
from app.models.class_schedule import ClassSchedule


class AttendanceRecordRepository(BaseRepository[AttendanceRecord]):
    def __init__(self):
        super().__init__(AttendanceRecord)

    def get_by_id(self, db: Session, record_id: int) -> Optional[AttendanceRecord]:
        """Get attendance record by ID using ORM"""
        return db.query(AttendanceRecord).filter(AttendanceRecord.ar_id == record_id).first()

    def get_recent_for_user(self, db: Session, user_id: int, since: datetime) -> Optional[AttendanceRecord]:
        """Most recent record of the user with timestamp strictly after ``since``"""
        return db.query(AttendanceRecord).filter(
            and_(
                AttendanceRecord.ar_user_id == user_id,
                AttendanceRecord.ar_timestamp > since
            )
        ).order_by(AttendanceRecord.ar_timestamp.desc()).first()

    def create_many(self, db: Session, records_data: List[Dict[str, Any]]) -> List[AttendanceRecord]:
        """Insert several records in one transaction and return them refreshed"""
        db_records = [AttendanceRecord(**data) for data in records_data]
        db.add_all(db_records)
        db.commit()
        for db_record in db_records:
            db.refresh(db_record)
        return db_records

    def get_user_records(
        self,
        db: Session,
        user_id: int,
        date_from: date = None,
        date_to: date = None,
        skip: int = 0,
        limit: Optional[int] = 50
    ) -> List[AttendanceRecord]:
        """Get user's attendance records, newest first, using ORM"""
        query = db.query(AttendanceRecord).filter(AttendanceRecord.ar_user_id == user_id)

        if date_from:
            query = query.filter(AttendanceRecord.ar_date >= date_from)
        if date_to:
            query = query.filter(AttendanceRecord.ar_date <= date_to)

        query = query.order_by(AttendanceRecord.ar_timestamp.desc()).offset(skip)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def count_user_records(self, db: Session, user_id: int, date_from: date = None, date_to: date = None) -> int:
        """Count user's records using native SQL, with the same date filters as get_user_records"""
        query = """
            SELECT COUNT(*)
            FROM attendance_records
            WHERE ar_user_id = :user_id
        """
        params: Dict[str, Any] = {"user_id": user_id}

        if date_from:
            query += " AND ar_date >= :date_from"
            params["date_from"] = date_from
        if date_to:
            query += " AND ar_date <= :date_to"
            params["date_to"] = date_to

        return self.execute_raw_sql_scalar(db, query, params)

    def _filter_records(
        self,
        query,
        user_id: Optional[int] = None,
        date_from: date = None,
        date_to: date = None,
        schedule_ids: Optional[List[int]] = None,
        department_id: Optional[int] = None
    ):
        if user_id is not None:
            query = query.filter(AttendanceRecord.ar_user_id == user_id)
        if date_from:
            query = query.filter(AttendanceRecord.ar_date >= date_from)
        if date_to:
            query = query.filter(AttendanceRecord.ar_date <= date_to)
        if schedule_ids is not None:
            query = query.filter(AttendanceRecord.ar_schedule_id.in_(schedule_ids))
        if department_id is not None:
            query = query.filter(AttendanceRecord.ar_schedule_id.in_(
                select(ClassSchedule.cs_id).where(ClassSchedule.cs_department_id == department_id)
            ))
        return query

    def get_records(
        self,
        db: Session,
        user_id: Optional[int] = None,
        date_from: date = None,
        date_to: date = None,
        schedule_ids: Optional[List[int]] = None,
        department_id: Optional[int] = None,
        skip: int = 0,
        limit: Optional[int] = 50,
        newest_first: bool = True
    ) -> List[AttendanceRecord]:
        """
        Records across users with optional filters

        ``schedule_ids`` restricts to records of those classes (an empty list
        matches nothing); ``None`` leaves the class unrestricted.
        """
        query = self._filter_records(
            db.query(AttendanceRecord), user_id, date_from, date_to, schedule_ids, department_id
        )

        order = AttendanceRecord.ar_timestamp.desc() if newest_first else AttendanceRecord.ar_timestamp.asc()
        query = query.order_by(order, AttendanceRecord.ar_id.asc()).offset(skip)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def count_records(
        self,
        db: Session,
        user_id: Optional[int] = None,
        date_from: date = None,
        date_to: date = None,
        schedule_ids: Optional[List[int]] = None,
        department_id: Optional[int] = None
    ) -> int:
        """Count records with the same filters as get_records"""
        query = self._filter_records(
            db.query(func.count(AttendanceRecord.ar_id)), user_id, date_from, date_to, schedule_ids, department_id
        )
        return query.scalar()

    def delete_by_id(self, db: Session, record_id: int) -> bool:
        """Delete record by ID and return success status"""
        record = self.get_by_id(db, record_id)
        if record:
            db.delete(record)
            db.commit()
            return True
        return False

    def get_proxy_counts(self, db: Session, start: datetime, end: datetime) -> List[Dict[str, int]]:
        """Count proxy records per marking agent within [start, end]"""
        rows = db.query(
            AttendanceRecord.ar_marked_by,
            func.count(AttendanceRecord.ar_id)
        ).filter(
            and_(
                AttendanceRecord.ar_type == "proxy",
                AttendanceRecord.ar_timestamp >= start,
                AttendanceRecord.ar_timestamp <= end
            )
        ).group_by(AttendanceRecord.ar_marked_by).order_by(func.count(AttendanceRecord.ar_id).desc()).all()

        return [{"marked_by": marked_by, "count": count} for marked_by, count in rows]
