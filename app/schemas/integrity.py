"""
Integrity Flag schemas
"""
from typing import Any, Dict, Literal, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field

IntegrityFlagKind = Literal["rapid_attempt", "proxy_attempt", "location_mismatch", "late_attendance"]


class IntegrityFlag(BaseModel):
    """Advisory signal forwarded to the notification sink; never authoritative"""
    kind: IntegrityFlagKind
    title: str
    user_id: int
    schedule_id: Optional[int] = None
    recipient_id: Optional[int] = None
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime


class IntegrityFlagInDB(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    if_id: int
    if_kind: IntegrityFlagKind
    if_title: str
    if_user_id: int
    if_schedule_id: Optional[int] = None
    if_recipient_id: Optional[int] = None
    if_message: str
    if_details: Optional[Dict[str, Any]] = None
    if_occurred_at: datetime
    if_read: bool = False
    if_created_at: Optional[datetime] = None


class UnreadFlagCount(BaseModel):
    unread: int
