"""
Integrity Flag Model - Audit trail of advisory fraud/anomaly signals
"""
from sqlalchemy import Column, BigInteger, Integer, String, Boolean, DateTime, Text, JSON
from sqlalchemy.sql import func
from atams.db import Base


class IntegrityFlag(Base):
    """Integrity flag - Table: integrity_flags"""
    __tablename__ = "integrity_flags"

    if_id = Column(BigInteger().with_variant(Integer(), "sqlite"), primary_key=True, index=True, autoincrement=True)
    if_kind = Column(String(30), nullable=False, index=True)  # rapid_attempt, proxy_attempt, location_mismatch, late_attendance
    if_title = Column(String(255), nullable=False)
    if_user_id = Column(BigInteger, nullable=False, index=True)
    if_schedule_id = Column(BigInteger, nullable=True)
    if_recipient_id = Column(BigInteger, nullable=True)
    if_message = Column(Text, nullable=False)
    if_details = Column(JSON, nullable=True)
    if_occurred_at = Column(DateTime, nullable=False)
    if_read = Column(Boolean, nullable=False, default=False)
    if_created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
