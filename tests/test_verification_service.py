from datetime import datetime

import pytest

from atams.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException
)
from app.schemas.attendance import AttendanceUpdate
from app.services.verification_service import VerificationStateMachine
from tests.conftest import ADMIN_ID, FACULTY_ID, MONDAY_0930, STUDENT_ID


@pytest.fixture
def machine(clock):
    return VerificationStateMachine(clock=clock)


def test_verify_pending_check_in(db, machine, make_record, faculty, clock):
    record = make_record()

    verified = machine.verify(db, record.ar_id, "checkIn", faculty)

    assert verified.check_in.state == "verified"
    assert verified.ar_check_in_verified_by == FACULTY_ID
    assert verified.ar_check_in_verified_at == clock.now


def test_verify_is_idempotent(db, machine, make_record, faculty, admin, clock):
    record = make_record()
    machine.verify(db, record.ar_id, "checkIn", faculty)
    first_verified_at = clock.now

    clock.advance(hours=1)
    again = machine.verify(db, record.ar_id, "checkIn", admin)

    assert again.check_in.state == "verified"
    assert again.ar_check_in_verified_by == FACULTY_ID
    assert again.ar_check_in_verified_at == first_verified_at


def test_verify_unset_sub_field_is_rejected(db, machine, make_record, admin):
    record = make_record()

    with pytest.raises(BadRequestException):
        machine.verify(db, record.ar_id, "checkOut", admin)


def test_students_cannot_verify(db, machine, make_record, student):
    record = make_record()

    with pytest.raises(ForbiddenException):
        machine.verify(db, record.ar_id, "checkIn", student)


def test_invalid_sub_field_name(db, machine, make_record, admin):
    record = make_record()

    with pytest.raises(BadRequestException) as exc_info:
        machine.verify(db, record.ar_id, "lunchBreak", admin)

    assert exc_info.value.details["reason"] == "invalid_argument"


def test_missing_record(db, machine, admin):
    with pytest.raises(NotFoundException):
        machine.verify(db, 999, "checkIn", admin)


def test_reject_check_in_clears_check_out_and_marks_absent(db, machine, make_record, admin):
    record = make_record(
        ar_check_out_time=datetime(2024, 1, 15, 11, 0),
        ar_check_out_verified=True,
        ar_check_out_verified_by=FACULTY_ID,
        ar_hours_worked=1.5,
    )

    rejected = machine.reject(db, record.ar_id, "checkIn", admin)

    assert rejected.check_in.state == "unset"
    assert rejected.check_out.state == "unset"
    assert rejected.ar_check_out_verified_by is None
    assert rejected.ar_status == "absent"
    assert rejected.ar_reviewed_by == ADMIN_ID
    assert rejected.ar_hours_worked is None


def test_reject_verified_check_in(db, machine, make_record, faculty, admin):
    record = make_record()
    machine.verify(db, record.ar_id, "checkIn", faculty)

    rejected = machine.reject(db, record.ar_id, "check_in", admin)

    assert rejected.check_in.state == "unset"
    assert rejected.ar_check_in_verified_by is None


def test_reject_check_out_keeps_check_in_and_status(db, machine, make_record, admin):
    record = make_record(ar_status="late", ar_check_out_time=datetime(2024, 1, 15, 11, 0))

    rejected = machine.reject(db, record.ar_id, "checkOut", admin)

    assert rejected.check_in.state == "pending"
    assert rejected.check_out.state == "unset"
    assert rejected.ar_status == "late"


def test_reject_unset_sub_field(db, machine, make_record, admin):
    record = make_record()

    with pytest.raises(BadRequestException):
        machine.reject(db, record.ar_id, "checkOut", admin)


def test_only_admins_reject(db, machine, make_record, faculty):
    record = make_record()

    with pytest.raises(ForbiddenException):
        machine.reject(db, record.ar_id, "checkIn", faculty)


def test_mark_check_out(db, machine, make_record, student, clock):
    record = make_record()
    clock.set(datetime(2024, 1, 15, 10, 30))

    marked = machine.mark_time(db, record.ar_id, "checkOut", student)

    assert marked.check_out.state == "pending"
    assert marked.ar_check_out_time == datetime(2024, 1, 15, 10, 30)


def test_mark_time_twice_conflicts(db, machine, make_record, student):
    record = make_record(ar_check_out_time=datetime(2024, 1, 15, 10, 30))

    with pytest.raises(ConflictException):
        machine.mark_time(db, record.ar_id, "checkOut", student)
    with pytest.raises(ConflictException):
        machine.mark_time(db, record.ar_id, "checkIn", student)


def test_check_out_requires_check_in(db, machine, make_record, student):
    record = make_record(ar_check_in_time=None)

    with pytest.raises(BadRequestException):
        machine.mark_time(db, record.ar_id, "checkOut", student)


def test_check_out_before_check_in_rejected(db, machine, make_record, student):
    record = make_record()

    with pytest.raises(BadRequestException):
        machine.mark_time(db, record.ar_id, "checkOut", student, time=datetime(2024, 1, 15, 8, 0))


def test_cannot_mark_someone_elses_record(db, machine, make_record, other_student):
    record = make_record()

    with pytest.raises(ForbiddenException):
        machine.mark_time(db, record.ar_id, "checkOut", other_student)


def test_update_record_recomputes_hours(db, machine, make_record, admin, clock):
    record = make_record()

    updated = machine.update_record(db, record.ar_id, AttendanceUpdate(
        check_out_time=datetime(2024, 1, 15, 12, 0),
        check_in_verified=True,
        notes="Confirmed with lecturer",
    ), admin)

    assert updated.ar_hours_worked == 2.5
    assert updated.check_in.state == "verified"
    assert updated.ar_check_in_verified_by == ADMIN_ID
    assert updated.ar_check_in_verified_at == clock.now
    assert updated.ar_notes == "Confirmed with lecturer"
    assert updated.ar_reviewed_by == ADMIN_ID
    assert updated.ar_user_id == STUDENT_ID


def test_update_record_status_and_unverify(db, machine, make_record, faculty, admin):
    record = make_record()
    machine.verify(db, record.ar_id, "checkIn", faculty)

    updated = machine.update_record(
        db, record.ar_id, AttendanceUpdate(status="present", check_in_verified=False), admin
    )

    assert updated.ar_status == "present"
    assert updated.check_in.state == "pending"
    assert updated.ar_check_in_verified_by is None


def test_update_record_cannot_verify_without_time(db, machine, make_record, admin):
    record = make_record()

    with pytest.raises(BadRequestException):
        machine.update_record(db, record.ar_id, AttendanceUpdate(check_out_verified=True), admin)


def test_update_record_rejects_inverted_times(db, machine, make_record, admin):
    record = make_record()

    with pytest.raises(BadRequestException):
        machine.update_record(
            db, record.ar_id, AttendanceUpdate(check_out_time=MONDAY_0930.replace(hour=8)), admin
        )


def test_update_record_admin_only(db, machine, make_record, faculty):
    record = make_record()

    with pytest.raises(ForbiddenException):
        machine.update_record(db, record.ar_id, AttendanceUpdate(status="absent"), faculty)


def test_delete_record(db, machine, make_record, admin):
    record = make_record()

    machine.delete_record(db, record.ar_id, admin)

    with pytest.raises(NotFoundException):
        machine.delete_record(db, record.ar_id, admin)


def test_delete_record_admin_only(db, machine, make_record, faculty):
    record = make_record()

    with pytest.raises(ForbiddenException):
        machine.delete_record(db, record.ar_id, faculty)
