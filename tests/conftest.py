import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ATLAS_APP_CODE", "CAMPUS_ATTENDANCE")
os.environ.setdefault("QR_JWT_SECRET", "campus-attendance-test-qr-signing-secret")
os.environ.setdefault("FLAG_SINKS", "log")
os.environ.setdefault("LOGGING_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ENCRYPTION_ENABLED", "false")

from datetime import datetime, timedelta
from typing import List

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from atams.db import Base
from app import models  # noqa: F401  registers tables on Base.metadata
from app.repositories.attendance_record_repository import AttendanceRecordRepository
from app.repositories.class_schedule_repository import ClassScheduleRepository
from app.repositories.event_repository import EventRepository
from app.schemas.integrity import IntegrityFlag
from app.schemas.network import TrustAssessment
from app.schemas.subject import Subject
from app.services.attendance_service import AttendanceDecisionEngine
from app.services.notification_service import FlagDispatcher, FlagSink

# Monday
MONDAY_0930 = datetime(2024, 1, 15, 9, 30)

CLASS_LAT = -6.2000
CLASS_LON = 106.8000
METERS_PER_DEGREE_LAT = 111195.0

STUDENT_ID = 1001
OTHER_STUDENT_ID = 1002
FACULTY_ID = 2001
ADMIN_ID = 1


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class CollectingSink(FlagSink):
    def __init__(self) -> None:
        self.flags: List[IntegrityFlag] = []

    def emit(self, flag: IntegrityFlag) -> None:
        self.flags.append(flag)

    @property
    def kinds(self) -> List[str]:
        return [flag.kind for flag in self.flags]


class FailingSink(FlagSink):
    def emit(self, flag: IntegrityFlag) -> None:
        raise RuntimeError("notification backend unavailable")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FixedClock(MONDAY_0930)


@pytest.fixture
def sink():
    return CollectingSink()


@pytest.fixture
def dispatcher(sink):
    return FlagDispatcher([sink])


@pytest.fixture
def decision_engine(clock, dispatcher):
    return AttendanceDecisionEngine(clock=clock, dispatcher=dispatcher)


@pytest.fixture
def student():
    return Subject(user_id=STUDENT_ID, role="student", department_id=10, name="Rina Student")


@pytest.fixture
def other_student():
    return Subject(user_id=OTHER_STUDENT_ID, role="student", department_id=20, name="Budi Student")


@pytest.fixture
def faculty():
    return Subject(user_id=FACULTY_ID, role="faculty", department_id=10, name="Dr. Sari")


@pytest.fixture
def admin():
    return Subject(user_id=ADMIN_ID, role="admin", name="Campus Admin")


@pytest.fixture
def trusted():
    return TrustAssessment(
        client_ip="192.168.1.20",
        is_allowed_network=True,
        is_proxy_suspected=False,
    )


@pytest.fixture
def make_schedule(db):
    repo = ClassScheduleRepository()

    def _make(student_ids=(STUDENT_ID,), **overrides):
        data = {
            "cs_name": "Algorithms",
            "cs_start_time": "09:00",
            "cs_end_time": "10:30",
            "cs_days": ["Monday", "Wednesday"],
            "cs_department_id": 10,
            "cs_faculty_id": FACULTY_ID,
            "cs_lat": CLASS_LAT,
            "cs_lon": CLASS_LON,
            "cs_is_active": True,
        }
        data.update(overrides)
        return repo.create_with_roster(db, data, list(student_ids))

    return _make


@pytest.fixture
def make_record(db):
    repo = AttendanceRecordRepository()

    def _make(**overrides):
        data = {
            "ar_user_id": STUDENT_ID,
            "ar_date": MONDAY_0930.date(),
            "ar_type": "face-recognition",
            "ar_status": "present",
            "ar_face_confidence": 91.0,
            "ar_lat": CLASS_LAT,
            "ar_lon": CLASS_LON,
            "ar_timestamp": MONDAY_0930,
            "ar_check_in_time": MONDAY_0930,
            "ar_check_in_verified": False,
        }
        data.update(overrides)
        return repo.create(db, data)

    return _make


@pytest.fixture
def make_event(db):
    repo = EventRepository()

    def _make(**overrides):
        data = {
            "ev_name": "Research Week Keynote",
            "ev_start_date": datetime(2024, 1, 15, 9, 0),
            "ev_end_date": datetime(2024, 1, 15, 12, 0),
            "ev_location": "Main Hall",
            "ev_organizer_id": FACULTY_ID,
            "ev_attendee_type": "all",
            "ev_eligible_departments": [],
            "ev_eligible_users": [],
            "ev_is_active": True,
        }
        data.update(overrides)
        return repo.create(db, data)

    return _make
