"""
Attendance rejection exceptions

Rejections are expected business outcomes. They extend the atams HTTP
exceptions so the global handlers render them with the right status code,
and carry a machine-readable reason in ``details``.
"""
from typing import Any, Dict, List, Optional

from atams.exceptions import BadRequestException, ForbiddenException


class NetworkUntrustedException(ForbiddenException):
    """403 - Claim submitted from outside the allowed network or through a proxy/VPN"""

    reason = "network_untrusted"

    def __init__(
        self,
        message: str = "Attendance can only be marked from authorized locations",
        factors: Optional[List[str]] = None,
    ):
        self.factors = list(factors or [])
        details: Dict[str, Any] = {"reason": self.reason}
        if self.factors:
            details["factors"] = self.factors
        super().__init__(message, details)


class DuplicateAttendanceException(BadRequestException):
    """400 - Subject already marked attendance inside the duplicate window"""

    reason = "duplicate"

    def __init__(self, message: str = "Attendance already marked in the last 5 minutes"):
        super().__init__(message, {"reason": self.reason})


class NoActiveScheduleException(BadRequestException):
    """400 - Subject has no class running at claim time"""

    reason = "no_active_schedule"

    def __init__(self, message: str = "No active classes found for current time"):
        super().__init__(message, {"reason": self.reason})


class InvalidCheckInTokenException(BadRequestException):
    """400 - Token signature, expiry or payload is invalid (deliberately indistinguishable)"""

    reason = "invalid_token"

    def __init__(self):
        super().__init__("Invalid QR code", {"reason": self.reason})


class AlreadyAttendedException(BadRequestException):
    """400 - Subject already has an attendance record for the event"""

    reason = "already_attended"

    def __init__(
        self,
        message: str = "You have already checked in to this event",
        attendance_id: Optional[int] = None,
    ):
        self.attendance_id = attendance_id
        details: Dict[str, Any] = {"reason": self.reason}
        if attendance_id is not None:
            details["attendance_id"] = attendance_id
        super().__init__(message, details)
