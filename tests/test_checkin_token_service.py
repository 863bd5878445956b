from datetime import datetime, timedelta

import jwt
import pytest
from sqlalchemy.exc import IntegrityError

from atams.exceptions import (
    BadRequestException,
    ForbiddenException,
    InternalServerException,
    NotFoundException
)
from app.core.exceptions import AlreadyAttendedException, InvalidCheckInTokenException
from app.repositories.event_attendance_repository import EventAttendanceRepository
from app.repositories.event_repository import EventRepository
from app.services.checkin_token_service import CheckInTokenService
from app.schemas.subject import Subject
from tests.conftest import FACULTY_ID, OTHER_STUDENT_ID, STUDENT_ID

SECRET = "event-check-in-signing-secret-for-tests"


@pytest.fixture
def service(clock):
    return CheckInTokenService(secret=SECRET, clock=clock)


def test_issue_binds_token_to_event(db, service, make_event, clock):
    event = make_event()

    issued = service.issue(db, event.ev_id)

    assert issued.ev_id == event.ev_id
    assert issued.issued_at == clock.now
    assert issued.expires_at == event.ev_end_date

    payload = jwt.decode(issued.token, SECRET, algorithms=["HS256"], options={"verify_exp": False})
    assert payload["ev_id"] == event.ev_id
    assert payload["iss"] == "campus-attendance"
    assert len(payload["nonce"]) == 32

    stored = EventRepository().get_by_id(db, event.ev_id)
    assert stored.ev_qr_active is True
    assert stored.ev_qr_nonce == payload["nonce"]
    assert stored.ev_qr_expires_at == event.ev_end_date


def test_validate_returns_event_id(db, service, make_event):
    event = make_event()
    issued = service.issue(db, event.ev_id)

    assert service.validate(issued.token) == event.ev_id


def forge_payload(token):
    header, _, signature = token.split(".")
    forged = jwt.encode({"ev_id": 999}, "attacker-guessed-signing-secret-value", algorithm="HS256").split(".")[1]
    return ".".join([header, forged, signature])


@pytest.mark.parametrize("mangle", [
    forge_payload,
    lambda token: "not-a-token",
    lambda token: jwt.encode({"ev_id": 1}, SECRET, algorithm="HS256"),
])
def test_malformed_or_tampered_tokens_are_invalid(db, service, make_event, mangle):
    event = make_event()
    issued = service.issue(db, event.ev_id)

    with pytest.raises(InvalidCheckInTokenException) as exc_info:
        service.validate(mangle(issued.token))

    assert exc_info.value.message == "Invalid QR code"


def test_token_signed_with_other_secret_is_invalid(db, service, make_event, clock):
    event = make_event()
    foreign = CheckInTokenService(secret="another-deployment-signing-secret-value", clock=clock).issue(db, event.ev_id)

    with pytest.raises(InvalidCheckInTokenException):
        service.validate(foreign.token)


def test_token_is_invalid_after_expiry(db, service, make_event, clock):
    event = make_event()
    issued = service.issue(db, event.ev_id, expires_at=clock.now + timedelta(minutes=10))

    clock.advance(minutes=11)

    with pytest.raises(InvalidCheckInTokenException):
        service.validate(issued.token)


def test_issue_requires_future_expiry(db, service, make_event, clock):
    event = make_event()

    with pytest.raises(BadRequestException):
        service.issue(db, event.ev_id, expires_at=clock.now - timedelta(minutes=1))


def test_issue_without_secret_is_a_fault(db, make_event, clock):
    event = make_event()

    with pytest.raises(InternalServerException):
        CheckInTokenService(secret="", clock=clock).issue(db, event.ev_id)


def test_issue_unknown_event(db, service):
    with pytest.raises(NotFoundException):
        service.issue(db, 404)


def test_only_admin_or_organizer_manage_qr(db, service, make_event, faculty, admin, student):
    event = make_event()

    assert service.issue(db, event.ev_id, actor=faculty).ev_id == event.ev_id
    assert service.issue(db, event.ev_id, actor=admin).ev_id == event.ev_id
    with pytest.raises(ForbiddenException):
        service.issue(db, event.ev_id, actor=student)
    with pytest.raises(ForbiddenException):
        service.deactivate(db, event.ev_id, actor=student)


def test_redeem_once_per_subject(db, service, make_event, student, other_student):
    event = make_event()
    token = service.issue(db, event.ev_id).token

    first = service.redeem(db, token, student)
    assert first.ea_user_id == STUDENT_ID
    assert first.ea_verified is True
    assert first.ea_notes == "Checked in via QR code"
    assert first.ea_checked_in_by is None

    with pytest.raises(AlreadyAttendedException) as exc_info:
        service.redeem(db, token, student)
    assert exc_info.value.details["attendance_id"] == first.ea_id

    second = service.redeem(db, token, other_student)
    assert second.ea_user_id == OTHER_STUDENT_ID


def test_regenerated_token_supersedes_previous(db, service, make_event, student, clock):
    event = make_event()
    old = service.issue(db, event.ev_id).token
    clock.advance(seconds=5)
    new = service.regenerate(db, event.ev_id).token

    with pytest.raises(InvalidCheckInTokenException):
        service.redeem(db, old, student)

    assert service.redeem(db, new, student).ea_event_id == event.ev_id


def test_deactivated_token_is_invalid(db, service, make_event, student):
    event = make_event()
    token = service.issue(db, event.ev_id).token
    service.deactivate(db, event.ev_id)

    with pytest.raises(InvalidCheckInTokenException):
        service.redeem(db, token, student)


def test_redeem_past_recorded_expiry_is_invalid(db, service, make_event, student, clock):
    event = make_event()
    token = service.issue(db, event.ev_id).token
    EventRepository().update(db, event, {"ev_qr_expires_at": clock.now - timedelta(minutes=1)})

    with pytest.raises(InvalidCheckInTokenException):
        service.redeem(db, token, student)


def test_redeem_before_event_starts(db, service, make_event, student, clock):
    event = make_event(ev_start_date=datetime(2024, 1, 15, 10, 0))
    token = service.issue(db, event.ev_id).token

    with pytest.raises(BadRequestException) as exc_info:
        service.redeem(db, token, student)

    assert exc_info.value.message == "Event has not started yet"


def test_redeem_after_event_ends(db, service, make_event, student, clock):
    event = make_event(ev_end_date=datetime(2024, 1, 15, 10, 0))
    token = service.issue(db, event.ev_id, expires_at=datetime(2024, 1, 15, 18, 0)).token
    clock.set(datetime(2024, 1, 15, 10, 30))

    with pytest.raises(BadRequestException) as exc_info:
        service.redeem(db, token, student)

    assert exc_info.value.message == "Event has ended"


def test_redeem_inactive_event(db, service, make_event, student):
    event = make_event()
    token = service.issue(db, event.ev_id).token
    EventRepository().update(db, event, {"ev_is_active": False})

    with pytest.raises(BadRequestException):
        service.redeem(db, token, student)


def test_department_eligibility(db, service, make_event, student, other_student):
    event = make_event(ev_attendee_type="department", ev_eligible_departments=[10])
    token = service.issue(db, event.ev_id).token

    assert service.redeem(db, token, student).ea_user_id == STUDENT_ID
    with pytest.raises(ForbiddenException):
        service.redeem(db, token, other_student)


def test_specific_user_eligibility(db, service, make_event, student, other_student):
    event = make_event(ev_attendee_type="specific", ev_eligible_users=[OTHER_STUDENT_ID])
    token = service.issue(db, event.ev_id).token

    with pytest.raises(ForbiddenException):
        service.redeem(db, token, student)
    assert service.redeem(db, token, other_student).ea_user_id == OTHER_STUDENT_ID


def test_subject_without_department_not_eligible_for_department_event(db, service, make_event):
    event = make_event(ev_attendee_type="department", ev_eligible_departments=[10])
    token = service.issue(db, event.ev_id).token

    with pytest.raises(ForbiddenException):
        service.redeem(db, token, Subject(user_id=3003))


def test_redeem_with_agent_is_attributed(db, service, make_event, student, faculty):
    event = make_event()
    token = service.issue(db, event.ev_id).token

    attendance = service.redeem(db, token, student, agent=faculty)

    assert attendance.ea_checked_in_by == FACULTY_ID
    assert attendance.ea_notes == "Manually checked in by Dr. Sari"


def test_manual_check_in(db, service, make_event, faculty, clock):
    event = make_event()

    attendance = service.manual_check_in(db, event.ev_id, STUDENT_ID, faculty)

    assert attendance.ea_user_id == STUDENT_ID
    assert attendance.ea_checked_in_by == FACULTY_ID
    assert attendance.ea_checked_in_at == clock.now
    assert attendance.ea_verified is True

    with pytest.raises(AlreadyAttendedException):
        service.manual_check_in(db, event.ev_id, STUDENT_ID, faculty)


def test_manual_check_in_by_organizing_student(db, service, make_event, student):
    event = make_event(ev_organizer_id=STUDENT_ID)

    attendance = service.manual_check_in(db, event.ev_id, OTHER_STUDENT_ID, student)

    assert attendance.ea_checked_in_by == STUDENT_ID


def test_manual_check_in_requires_staff_or_organizer(db, service, make_event, student):
    event = make_event()

    with pytest.raises(ForbiddenException):
        service.manual_check_in(db, event.ev_id, OTHER_STUDENT_ID, student)


def test_attendees_listing(db, service, make_event, faculty, student, clock):
    event = make_event()
    service.manual_check_in(db, event.ev_id, OTHER_STUDENT_ID, faculty)
    clock.advance(minutes=3)
    service.manual_check_in(db, event.ev_id, STUDENT_ID, faculty)

    attendees = service.get_attendees(db, event.ev_id, faculty)

    assert [a.ea_user_id for a in attendees] == [OTHER_STUDENT_ID, STUDENT_ID]
    assert service.count_attendees(db, event.ev_id) == 2

    with pytest.raises(ForbiddenException):
        service.get_attendees(db, event.ev_id, student)


def test_create_once_returns_none_for_existing_pair(db, make_event, clock):
    event = make_event()
    repo = EventAttendanceRepository()
    data = {"ea_event_id": event.ev_id, "ea_user_id": STUDENT_ID, "ea_checked_in_at": clock.now}

    assert repo.create_once(db, data) is not None
    assert repo.create_once(db, dict(data)) is None


def test_create_once_reraises_other_integrity_errors(db, make_event):
    event = make_event()

    # missing check-in time violates NOT NULL, not the (event, user) uniqueness
    with pytest.raises(IntegrityError):
        EventAttendanceRepository().create_once(db, {"ea_event_id": event.ev_id, "ea_user_id": STUDENT_ID})

    assert EventAttendanceRepository().get_by_event_and_user(db, event.ev_id, STUDENT_ID) is None
