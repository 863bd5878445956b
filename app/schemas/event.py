"""
Event check-in schemas
"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, field_validator

from app.core.clock import to_local_naive


class EventAttendanceInDB(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ea_id: int
    ea_event_id: int
    ea_user_id: int
    ea_checked_in_at: datetime
    ea_checked_in_by: Optional[int] = None
    ea_verified: bool
    ea_notes: Optional[str] = None


class EventAttendance(EventAttendanceInDB):
    pass


class CheckInToken(BaseModel):
    """Signed QR payload for an event; only the event's current token redeems"""
    token: str
    ev_id: int
    issued_at: datetime
    expires_at: datetime


class IssueTokenRequest(BaseModel):
    expires_at: Optional[datetime] = None  # defaults to event end

    @field_validator("expires_at")
    @classmethod
    def to_campus_time(cls, v):
        return to_local_naive(v)


class EventCheckInRequest(BaseModel):
    token: str  # JWT from QR code


class ManualCheckInRequest(BaseModel):
    user_id: int
