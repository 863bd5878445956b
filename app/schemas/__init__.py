from .subject import Subject
from .network import RequestMeta, TrustAssessment, GeoLocation, ClientFingerprint
from .integrity import IntegrityFlag, IntegrityFlagInDB, UnreadFlagCount
from .class_schedule import ClassSchedule
from .attendance import (
    AttendanceClaim,
    SubState,
    AttendanceRecord,
    AttendanceDecision,
    MarkAttendanceRequest,
    ProxyAttendanceRequest,
    ProxyAttendanceResponse,
    SubFieldRequest,
    CheckOutRequest,
    AttendanceUpdate,
    AttendanceStats,
    ProxyStatsEntry
)
from .event import (
    EventAttendance,
    CheckInToken,
    IssueTokenRequest,
    EventCheckInRequest,
    ManualCheckInRequest
)
from .common import DataResponse, PaginationResponse

__all__ = [
    "Subject",
    # Network schemas
    "RequestMeta",
    "TrustAssessment",
    "GeoLocation",
    "ClientFingerprint",
    # Integrity schemas
    "IntegrityFlag",
    "IntegrityFlagInDB",
    "UnreadFlagCount",
    # Schedule schemas
    "ClassSchedule",
    # Attendance schemas
    "AttendanceClaim",
    "SubState",
    "AttendanceRecord",
    "AttendanceDecision",
    "MarkAttendanceRequest",
    "ProxyAttendanceRequest",
    "ProxyAttendanceResponse",
    "SubFieldRequest",
    "CheckOutRequest",
    "AttendanceUpdate",
    "AttendanceStats",
    "ProxyStatsEntry",
    # Event schemas
    "EventAttendance",
    "CheckInToken",
    "IssueTokenRequest",
    "EventCheckInRequest",
    "ManualCheckInRequest",
    # Common schemas
    "DataResponse",
    "PaginationResponse"
]
