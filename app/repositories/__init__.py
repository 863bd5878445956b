from .attendance_record_repository import AttendanceRecordRepository
from .class_schedule_repository import ClassScheduleRepository
from .event_repository import EventRepository
from .event_attendance_repository import EventAttendanceRepository
from .integrity_flag_repository import IntegrityFlagRepository

__all__ = [
    "AttendanceRecordRepository",
    "ClassScheduleRepository",
    "EventRepository",
    "EventAttendanceRepository",
    "IntegrityFlagRepository"
]
