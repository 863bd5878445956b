"""
Event Model - Campus events with QR check-in
"""
from sqlalchemy import Column, BigInteger, Integer, String, DateTime, Boolean, Text, JSON
from sqlalchemy.sql import func
from atams.db import Base


class Event(Base):
    """Event - Table: events"""
    __tablename__ = "events"

    ev_id = Column(BigInteger().with_variant(Integer(), "sqlite"), primary_key=True, index=True, autoincrement=True)
    ev_name = Column(String(255), nullable=False)
    ev_description = Column(Text, nullable=True)
    ev_start_date = Column(DateTime, nullable=False)
    ev_end_date = Column(DateTime, nullable=False)
    ev_location = Column(String(255), nullable=True)
    ev_department_id = Column(BigInteger, nullable=True)
    ev_organizer_id = Column(BigInteger, nullable=False, index=True)
    ev_attendee_type = Column(String(20), nullable=False, default="all")  # 'all', 'department' or 'specific'
    ev_eligible_departments = Column(JSON, nullable=False, default=list)
    ev_eligible_users = Column(JSON, nullable=False, default=list)

    # Current QR token only: older tokens fail the nonce/expiry/active comparison
    ev_qr_nonce = Column(String(64), nullable=True)
    ev_qr_expires_at = Column(DateTime, nullable=True)
    ev_qr_active = Column(Boolean, nullable=False, default=False)

    ev_is_active = Column(Boolean, nullable=False, default=True)
    ev_created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    ev_updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)
