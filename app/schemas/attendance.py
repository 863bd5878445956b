"""
Attendance Schemas for claims, records and decisions
"""
from typing import List, Literal, Optional
from datetime import datetime, date
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from app.core.clock import to_local_naive
from app.schemas.subject import Subject
from app.schemas.integrity import IntegrityFlag

Channel = Literal["face-recognition", "proxy"]
AttendanceStatus = Literal["present", "late", "absent"]
SubStateName = Literal["unset", "pending", "verified"]


class AttendanceClaim(BaseModel):
    """Unvalidated attendance submission; never persisted as-is"""
    subject: Subject
    timestamp: Optional[datetime] = None  # defaults to the engine clock
    lat: Optional[float] = None
    lon: Optional[float] = None
    channel: Channel = "face-recognition"
    confidence: Optional[float] = None  # required iff face-recognition
    marked_by: Optional[int] = None  # required iff proxy
    notes: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def to_campus_time(cls, v):
        return to_local_naive(v)


class SubState(BaseModel):
    """Check-in or check-out sub-state of an attendance record"""
    time: Optional[datetime] = None
    verified: bool = False
    verified_by: Optional[int] = None
    verified_at: Optional[datetime] = None

    @computed_field
    @property
    def state(self) -> SubStateName:
        if self.time is None:
            return "unset"
        return "verified" if self.verified else "pending"


class AttendanceRecordBase(BaseModel):
    ar_user_id: int
    ar_date: date
    ar_type: Channel
    ar_status: AttendanceStatus
    ar_schedule_id: Optional[int] = None
    ar_face_confidence: Optional[float] = None
    ar_marked_by: Optional[int] = None
    ar_lat: float = 0
    ar_lon: float = 0
    ar_timestamp: datetime
    ar_notes: Optional[str] = None


class AttendanceRecordInDB(AttendanceRecordBase):
    model_config = ConfigDict(from_attributes=True)

    ar_id: int
    ar_check_in_time: Optional[datetime] = None
    ar_check_in_verified: bool = False
    ar_check_in_verified_by: Optional[int] = None
    ar_check_in_verified_at: Optional[datetime] = None
    ar_check_out_time: Optional[datetime] = None
    ar_check_out_verified: bool = False
    ar_check_out_verified_by: Optional[int] = None
    ar_check_out_verified_at: Optional[datetime] = None
    ar_reviewed_by: Optional[int] = None
    ar_hours_worked: Optional[float] = None
    ar_created_at: Optional[datetime] = None
    ar_updated_at: Optional[datetime] = None

    @field_validator('ar_created_at', 'ar_updated_at', mode='before')
    @classmethod
    def fix_datetime_timezone(cls, v):
        """Fix datetime timezone format from PostgreSQL (+07 -> +07:00)"""
        if v == '' or v is None:
            return None

        if isinstance(v, str):
            import re
            pattern = r'([+-]\d{2})$'
            match = re.search(pattern, v)
            if match:
                v = v + ':00'

        return v


class AttendanceRecord(AttendanceRecordInDB):

    @computed_field
    @property
    def check_in(self) -> SubState:
        return SubState(
            time=self.ar_check_in_time,
            verified=self.ar_check_in_verified,
            verified_by=self.ar_check_in_verified_by,
            verified_at=self.ar_check_in_verified_at,
        )

    @computed_field
    @property
    def check_out(self) -> SubState:
        return SubState(
            time=self.ar_check_out_time,
            verified=self.ar_check_out_verified,
            verified_by=self.ar_check_out_verified_by,
            verified_at=self.ar_check_out_verified_at,
        )


class AttendanceDecision(BaseModel):
    """Accepted outcome of the decision engine (rejections are raised)"""
    status_code: int = 201
    message: str
    records: List[AttendanceRecord]
    flags: List[IntegrityFlag] = Field(default_factory=list)


# Request/Response schemas for API endpoints
class MarkAttendanceRequest(BaseModel):
    """Face-recognition attendance claim; the similarity score is computed client-side"""
    confidence: float = Field(..., ge=0, le=1)
    lat: Optional[float] = None
    lon: Optional[float] = None
    device_name: Optional[str] = None


class ProxyAttendanceRequest(BaseModel):
    users: List[int] = Field(..., min_length=1)
    date: datetime
    status: AttendanceStatus = "present"
    lat: Optional[float] = None
    lon: Optional[float] = None
    notes: Optional[str] = None

    @field_validator("date")
    @classmethod
    def to_campus_time(cls, v):
        return to_local_naive(v)


class ProxyAttendanceResponse(BaseModel):
    count: int
    records: List[AttendanceRecord]


class SubFieldRequest(BaseModel):
    """Target sub-field; validated by the service so bad names are a 400"""
    type: str


class CheckOutRequest(BaseModel):
    time: Optional[datetime] = None

    @field_validator("time")
    @classmethod
    def to_campus_time(cls, v):
        return to_local_naive(v)


class AttendanceUpdate(BaseModel):
    status: Optional[AttendanceStatus] = None
    notes: Optional[str] = None
    check_in_verified: Optional[bool] = None
    check_out_verified: Optional[bool] = None
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None

    @field_validator("check_in_time", "check_out_time")
    @classmethod
    def to_campus_time(cls, v):
        """Offset timestamps are stored as campus-local time"""
        return to_local_naive(v)


class AttendanceStats(BaseModel):
    total: int
    present: int
    late: int
    absent: int
    present_percentage: float
    late_percentage: float
    absent_percentage: float
    current_streak: int


class ProxyStatsEntry(BaseModel):
    marked_by: int
    count: int
