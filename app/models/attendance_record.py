"""
Attendance Record Model - One row per subject per matched class
"""
from sqlalchemy import Column, BigInteger, Integer, String, Date, DateTime, Float, Boolean, Text, ForeignKey
from sqlalchemy.sql import func
from atams.db import Base


class AttendanceRecord(Base):
    """Attendance record - Table: attendance_records"""
    __tablename__ = "attendance_records"

    ar_id = Column(BigInteger().with_variant(Integer(), "sqlite"), primary_key=True, index=True, autoincrement=True)
    ar_user_id = Column(BigInteger, nullable=False, index=True)
    ar_date = Column(Date, nullable=False)
    ar_type = Column(String(20), nullable=False, default="face-recognition")  # 'face-recognition' or 'proxy'
    ar_status = Column(String(10), nullable=False)  # 'present', 'late' or 'absent'
    ar_schedule_id = Column(BigInteger, ForeignKey("class_schedules.cs_id"), nullable=True, index=True)
    ar_face_confidence = Column(Float, nullable=True)
    ar_marked_by = Column(BigInteger, nullable=True)  # Faculty/admin for proxy records
    ar_lat = Column(Float, nullable=False, default=0)  # (0, 0) when unknown
    ar_lon = Column(Float, nullable=False, default=0)
    ar_timestamp = Column(DateTime, nullable=False, index=True)
    ar_notes = Column(Text, nullable=True)

    # Check-in sub-state
    ar_check_in_time = Column(DateTime, nullable=True)
    ar_check_in_verified = Column(Boolean, nullable=False, default=False)
    ar_check_in_verified_by = Column(BigInteger, nullable=True)
    ar_check_in_verified_at = Column(DateTime, nullable=True)

    # Check-out sub-state
    ar_check_out_time = Column(DateTime, nullable=True)
    ar_check_out_verified = Column(Boolean, nullable=False, default=False)
    ar_check_out_verified_by = Column(BigInteger, nullable=True)
    ar_check_out_verified_at = Column(DateTime, nullable=True)

    ar_reviewed_by = Column(BigInteger, nullable=True)  # Last admin who verified/rejected/edited
    ar_hours_worked = Column(Float, nullable=True)
    ar_created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    ar_updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)
