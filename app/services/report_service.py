"""
Report Service - staff listing and CSV export of attendance records

Admins see every record; faculty see the records of the classes they teach.
"""
import csv
import io
from typing import List, Optional
from datetime import date
from sqlalchemy.orm import Session

from atams.exceptions import BadRequestException, ForbiddenException
from atams.logging import get_logger
from app.models.attendance_record import AttendanceRecord as AttendanceRecordModel
from app.repositories.attendance_record_repository import AttendanceRecordRepository
from app.repositories.class_schedule_repository import ClassScheduleRepository
from app.schemas.attendance import AttendanceRecord
from app.schemas.subject import Subject
from app.utils.geo import is_unknown_location

logger = get_logger(__name__)

CSV_COLUMNS = [
    "Date",
    "Time",
    "User ID",
    "Class ID",
    "Type",
    "Status",
    "Face Confidence",
    "Location",
    "Check In",
    "Check Out",
    "Hours Worked",
]


def export_filename(date_from: Optional[date], date_to: Optional[date]) -> str:
    return f"attendance_{date_from or 'all'}_to_{date_to or 'all'}.csv"


def csv_row(record: AttendanceRecordModel) -> List[str]:
    if is_unknown_location(record.ar_lat, record.ar_lon):
        location = "N/A"
    else:
        location = f"{record.ar_lat}, {record.ar_lon}"

    return [
        record.ar_date.isoformat(),
        record.ar_timestamp.strftime("%H:%M:%S"),
        str(record.ar_user_id),
        str(record.ar_schedule_id) if record.ar_schedule_id is not None else "",
        record.ar_type,
        record.ar_status,
        f"{record.ar_face_confidence:.2f}%" if record.ar_face_confidence else "N/A",
        location,
        record.ar_check_in_time.isoformat(sep=" ") if record.ar_check_in_time else "",
        record.ar_check_out_time.isoformat(sep=" ") if record.ar_check_out_time else "",
        f"{record.ar_hours_worked:.2f}" if record.ar_hours_worked is not None else "",
    ]


class AttendanceReportService:
    def __init__(self) -> None:
        self.record_repo = AttendanceRecordRepository()
        self.schedule_repo = ClassScheduleRepository()

    def _visible_schedule_ids(self, db: Session, requester: Subject) -> Optional[List[int]]:
        """None means unrestricted"""
        if requester.is_admin:
            return None
        if requester.role == "faculty":
            return self.schedule_repo.get_ids_for_faculty(db, requester.user_id)
        raise ForbiddenException("Only admins or faculty can view attendance reports")

    @staticmethod
    def _check_range(date_from: Optional[date], date_to: Optional[date]) -> None:
        if date_from and date_to and date_from > date_to:
            raise BadRequestException("date_from must not be after date_to")

    def list_records(
        self,
        db: Session,
        requester: Subject,
        user_id: Optional[int] = None,
        date_from: date = None,
        date_to: date = None,
        department_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 20
    ) -> List[AttendanceRecord]:
        """
        Attendance records visible to a staff member, newest first

        Raises:
            ForbiddenException: If requester is a student
            BadRequestException: If the date range is inverted
        """
        self._check_range(date_from, date_to)
        records = self.record_repo.get_records(
            db,
            user_id=user_id,
            date_from=date_from,
            date_to=date_to,
            schedule_ids=self._visible_schedule_ids(db, requester),
            department_id=department_id,
            skip=skip,
            limit=limit
        )
        return [AttendanceRecord.model_validate(r) for r in records]

    def count_records(
        self,
        db: Session,
        requester: Subject,
        user_id: Optional[int] = None,
        date_from: date = None,
        date_to: date = None,
        department_id: Optional[int] = None
    ) -> int:
        return self.record_repo.count_records(
            db,
            user_id=user_id,
            date_from=date_from,
            date_to=date_to,
            schedule_ids=self._visible_schedule_ids(db, requester),
            department_id=department_id
        )

    def export_csv(
        self,
        db: Session,
        requester: Subject,
        user_id: Optional[int] = None,
        date_from: date = None,
        date_to: date = None,
        department_id: Optional[int] = None
    ) -> str:
        """Every visible record in the range as CSV, oldest first"""
        self._check_range(date_from, date_to)
        records = self.record_repo.get_records(
            db,
            user_id=user_id,
            date_from=date_from,
            date_to=date_to,
            schedule_ids=self._visible_schedule_ids(db, requester),
            department_id=department_id,
            limit=None,
            newest_first=False
        )

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(CSV_COLUMNS)
        writer.writerows(csv_row(record) for record in records)

        logger.info(
            f"Exported {len(records)} attendance records",
            extra={'extra_data': {'requested_by': requester.user_id, 'user_id': user_id}}
        )
        return buffer.getvalue()
