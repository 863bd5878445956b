import pytest

from atams.exceptions import NotFoundException
from app.schemas.integrity import IntegrityFlag
from app.services.integrity_flag_service import IntegrityFlagService
from app.services.notification_service import DatabaseFlagSink
from tests.conftest import FACULTY_ID, MONDAY_0930, OTHER_STUDENT_ID, STUDENT_ID


@pytest.fixture
def flags(session_factory):
    sink = DatabaseFlagSink(session_factory=session_factory)
    for user_id, recipient_id, kind in (
        (STUDENT_ID, FACULTY_ID, "location_mismatch"),
        (OTHER_STUDENT_ID, FACULTY_ID, "late_attendance"),
        (STUDENT_ID, 2002, "rapid_attempt"),
    ):
        sink.emit(IntegrityFlag(
            kind=kind,
            title=kind.replace("_", " ").title(),
            user_id=user_id,
            recipient_id=recipient_id,
            message=f"Flag for user {user_id}",
            occurred_at=MONDAY_0930,
        ))
    return IntegrityFlagService()


def test_faculty_read_flags_addressed_to_them(db, flags, faculty):
    inbox = flags.list_flags(db, faculty)

    assert len(inbox) == 2
    assert {f.if_recipient_id for f in inbox} == {FACULTY_ID}
    assert flags.count_flags(db, faculty, user_id=STUDENT_ID) == 1
    assert flags.unread_count(db, faculty) == 2


def test_mark_read(db, flags, faculty, admin):
    flag = flags.list_flags(db, faculty, kind="late_attendance")[0]

    read = flags.mark_read(db, flag.if_id, faculty)

    assert read.if_read is True
    assert flags.unread_count(db, faculty) == 1
    assert flags.unread_count(db, admin) == 2


def test_cannot_mark_someone_elses_flag(db, flags, faculty, admin):
    foreign = flags.list_flags(db, admin, kind="rapid_attempt")[0]

    with pytest.raises(NotFoundException):
        flags.mark_read(db, foreign.if_id, faculty)
    with pytest.raises(NotFoundException):
        flags.mark_read(db, 999, admin)


def test_mark_all_read_is_scoped(db, flags, faculty, admin):
    assert flags.mark_all_read(db, faculty) == 2

    assert flags.unread_count(db, faculty) == 0
    assert flags.unread_count(db, admin) == 1
    assert flags.mark_all_read(db, admin) == 1
