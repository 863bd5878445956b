from .network_service import NetworkTrustAssessor, GeoLocator, MaxMindGeoLocator
from .schedule_service import ScheduleMatcher
from .notification_service import FlagDispatcher, FlagSink, LoggingFlagSink, DatabaseFlagSink
from .attendance_service import AttendanceDecisionEngine
from .verification_service import VerificationStateMachine
from .checkin_token_service import CheckInTokenService
from .report_service import AttendanceReportService
from .integrity_flag_service import IntegrityFlagService

__all__ = [
    "NetworkTrustAssessor",
    "GeoLocator",
    "MaxMindGeoLocator",
    "ScheduleMatcher",
    "FlagDispatcher",
    "FlagSink",
    "LoggingFlagSink",
    "DatabaseFlagSink",
    "AttendanceDecisionEngine",
    "VerificationStateMachine",
    "CheckInTokenService",
    "AttendanceReportService",
    "IntegrityFlagService"
]
