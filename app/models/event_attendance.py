"""
Event Attendance Model - At most one check-in per user per event
"""
from sqlalchemy import Column, BigInteger, Integer, DateTime, Boolean, Text, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from atams.db import Base


class EventAttendance(Base):
    """Event attendance - Table: event_attendances"""
    __tablename__ = "event_attendances"
    __table_args__ = (
        UniqueConstraint("ea_event_id", "ea_user_id", name="uq_event_attendance_event_user"),
    )

    ea_id = Column(BigInteger().with_variant(Integer(), "sqlite"), primary_key=True, index=True, autoincrement=True)
    ea_event_id = Column(BigInteger, ForeignKey("events.ev_id", ondelete="CASCADE"), nullable=False, index=True)
    ea_user_id = Column(BigInteger, nullable=False, index=True)
    ea_checked_in_at = Column(DateTime, nullable=False)
    ea_checked_in_by = Column(BigInteger, nullable=True)  # Set for manual check-ins
    ea_verified = Column(Boolean, nullable=False, default=False)
    ea_notes = Column(Text, nullable=True)
    ea_created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
