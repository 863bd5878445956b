"""
Class Schedule Model - Recurring class slots with student roster
"""
from sqlalchemy import Column, BigInteger, Integer, String, DateTime, Float, Boolean, JSON, ForeignKey
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import func
from atams.db import Base
from app.utils.schedule_time import normalize_time_of_day


class ClassSchedule(Base):
    """Class schedule - Table: class_schedules"""
    __tablename__ = "class_schedules"

    cs_id = Column(BigInteger().with_variant(Integer(), "sqlite"), primary_key=True, index=True, autoincrement=True)
    cs_name = Column(String(255), nullable=False)
    cs_start_time = Column(String(5), nullable=False)  # "HH:MM" 24-hour
    cs_end_time = Column(String(5), nullable=False)  # "HH:MM" 24-hour
    cs_days = Column(JSON, nullable=False, default=list)  # ["Monday", "Wednesday"]
    cs_department_id = Column(BigInteger, nullable=True, index=True)
    cs_faculty_id = Column(BigInteger, nullable=False, index=True)
    cs_lat = Column(Float, nullable=True)  # Authoritative classroom location
    cs_lon = Column(Float, nullable=True)
    cs_is_active = Column(Boolean, nullable=False, default=True)
    cs_created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    cs_updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    students = relationship(
        "ClassScheduleStudent",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @validates("cs_start_time", "cs_end_time")
    def validate_time_of_day(self, key, value):
        return normalize_time_of_day(value)

    @property
    def student_ids(self):
        return [s.css_user_id for s in self.students]

    @property
    def has_location(self) -> bool:
        return self.cs_lat is not None and self.cs_lon is not None


class ClassScheduleStudent(Base):
    """Class roster - Table: class_schedule_students"""
    __tablename__ = "class_schedule_students"

    css_schedule_id = Column(BigInteger, ForeignKey("class_schedules.cs_id", ondelete="CASCADE"), primary_key=True)
    css_user_id = Column(BigInteger, primary_key=True, index=True)
