from .class_schedule import ClassSchedule, ClassScheduleStudent
from .attendance_record import AttendanceRecord
from .event import Event
from .event_attendance import EventAttendance
from .integrity_flag import IntegrityFlag

__all__ = [
    "ClassSchedule",
    "ClassScheduleStudent",
    "AttendanceRecord",
    "Event",
    "EventAttendance",
    "IntegrityFlag"
]
