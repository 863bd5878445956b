"""
Check-in Token Service - signed QR tokens for unattended event check-in
"""
import jwt
import secrets
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session

from atams.exceptions import (
    BadRequestException,
    ForbiddenException,
    NotFoundException,
    InternalServerException
)
from atams.logging import get_logger
from app.core.clock import Clock, system_clock, to_local_naive
from app.core.config import settings
from app.core.exceptions import InvalidCheckInTokenException, AlreadyAttendedException
from app.models.event import Event
from app.repositories.event_repository import EventRepository
from app.repositories.event_attendance_repository import EventAttendanceRepository
from app.schemas.event import CheckInToken, EventAttendance
from app.schemas.subject import Subject

logger = get_logger(__name__)

REQUIRED_CLAIMS = ["iss", "ev_id", "iat", "nonce", "exp"]


class CheckInTokenService:
    def __init__(
        self,
        secret: Optional[str] = None,
        algorithm: Optional[str] = None,
        issuer: Optional[str] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.secret = secret if secret is not None else settings.QR_JWT_SECRET
        self.algorithm = algorithm or settings.QR_JWT_ALG
        self.issuer = issuer or settings.QR_TOKEN_ISSUER
        self.clock = clock or system_clock
        self.event_repo = EventRepository()
        self.attendance_repo = EventAttendanceRepository()

    def _get_event(self, db: Session, event_id: int) -> Event:
        event = self.event_repo.get_by_id(db, event_id)
        if not event:
            raise NotFoundException(f"Event {event_id} not found")
        return event

    def _require_organizer(self, event: Event, actor: Optional[Subject]) -> None:
        if actor is not None and not (actor.is_admin or actor.user_id == event.ev_organizer_id):
            raise ForbiddenException("Only admins or the event organizer can manage the event QR code")

    def issue(
        self,
        db: Session,
        event_id: int,
        expires_at: Optional[datetime] = None,
        actor: Optional[Subject] = None
    ) -> CheckInToken:
        """
        Sign a new token for the event and make it the only redeemable one

        The event's nonce, expiry and active flag are overwritten, so tokens
        from earlier issuances stop validating against the event.

        Raises:
            NotFoundException: Unknown event
            ForbiddenException: Actor is neither admin nor organizer
            BadRequestException: Expiry is not in the future
            InternalServerException: Signing secret is not configured
        """
        if not self.secret:
            raise InternalServerException("QR token signing is not configured")

        event = self._get_event(db, event_id)
        self._require_organizer(event, actor)

        now = self.clock()
        expires_at = to_local_naive(expires_at) or event.ev_end_date
        if expires_at <= now:
            raise BadRequestException("QR code expiry must be in the future")

        nonce = secrets.token_hex(16)
        payload = {
            "iss": self.issuer,
            "ev_id": event.ev_id,
            "iat": int(now.timestamp()),
            "nonce": nonce,
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(payload, self.secret, algorithm=self.algorithm)

        self.event_repo.update(db, event, {
            "ev_qr_nonce": nonce,
            "ev_qr_expires_at": expires_at,
            "ev_qr_active": True,
        })

        logger.info(
            "Event QR code issued",
            extra={'extra_data': {
                'event_id': event.ev_id,
                'expires_at': expires_at.isoformat(),
                'issued_by': actor.user_id if actor else None
            }}
        )

        return CheckInToken(token=token, ev_id=event.ev_id, issued_at=now, expires_at=expires_at)

    def regenerate(self, db: Session, event_id: int, actor: Optional[Subject] = None) -> CheckInToken:
        """Issue a fresh token bound to the event end date"""
        return self.issue(db, event_id, actor=actor)

    def decode(self, token: str) -> Dict[str, Any]:
        """
        Verify signature, issuer, required claims and expiry

        Expiry is compared against the service clock rather than wall time.

        Raises:
            InvalidCheckInTokenException: On any failure
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"verify_exp": False, "verify_iat": False, "require": REQUIRED_CLAIMS}
            )
        except jwt.InvalidTokenError as e:
            logger.warning("QR token rejected", extra={'extra_data': {'error': str(e)}})
            raise InvalidCheckInTokenException()

        if not isinstance(payload["ev_id"], int) or not isinstance(payload["exp"], (int, float)):
            raise InvalidCheckInTokenException()

        if payload["exp"] <= self.clock().timestamp():
            logger.warning("Expired QR token rejected", extra={'extra_data': {'event_id': payload["ev_id"]}})
            raise InvalidCheckInTokenException()

        return payload

    def validate(self, token: str) -> int:
        """Stateless check; returns the event id the token is bound to"""
        return self.decode(token)["ev_id"]

    def is_eligible(self, event: Event, subject: Subject) -> bool:
        if event.ev_attendee_type == "department":
            return subject.department_id is not None and subject.department_id in (event.ev_eligible_departments or [])
        if event.ev_attendee_type == "specific":
            return subject.user_id in (event.ev_eligible_users or [])
        return True

    def _record_attendance(
        self,
        db: Session,
        event: Event,
        user_id: int,
        now: datetime,
        checked_in_by: Optional[int],
        notes: str
    ) -> EventAttendance:
        attendance = self.attendance_repo.create_once(db, {
            "ea_event_id": event.ev_id,
            "ea_user_id": user_id,
            "ea_checked_in_at": now,
            "ea_checked_in_by": checked_in_by,
            "ea_verified": True,
            "ea_notes": notes,
        })

        if attendance is None:
            existing = self.attendance_repo.get_by_event_and_user(db, event.ev_id, user_id)
            raise AlreadyAttendedException(attendance_id=existing.ea_id)

        logger.info(
            "Event check-in recorded",
            extra={'extra_data': {'event_id': event.ev_id, 'user_id': user_id, 'checked_in_by': checked_in_by}}
        )
        return EventAttendance.model_validate(attendance)

    def redeem(self, db: Session, token: str, subject: Subject, agent: Optional[Subject] = None) -> EventAttendance:
        """
        Check a subject into the event a token is bound to

        Checks, in order:
        1. Token signature, issuer and expiry
        2. Event exists and the token is its current, active, unexpired one
        3. Event is active and now is within [start, end]
        4. Subject eligibility
        5. At most one attendance per (event, subject), enforced by the unique constraint

        Raises:
            InvalidCheckInTokenException: Steps 1-2
            BadRequestException: Step 3
            ForbiddenException: Step 4
            AlreadyAttendedException: Step 5
        """
        payload = self.decode(token)
        now = self.clock()

        event = self.event_repo.get_by_id(db, payload["ev_id"])
        if (
            not event
            or not event.ev_qr_active
            or not event.ev_qr_nonce
            or not secrets.compare_digest(str(payload["nonce"]), event.ev_qr_nonce)
            or (event.ev_qr_expires_at is not None and now > event.ev_qr_expires_at)
        ):
            logger.warning(
                "Stale or inactive QR token rejected",
                extra={'extra_data': {'event_id': payload["ev_id"], 'user_id': subject.user_id}}
            )
            raise InvalidCheckInTokenException()

        if not event.ev_is_active:
            raise BadRequestException("Event is not active")
        if now < event.ev_start_date:
            raise BadRequestException("Event has not started yet")
        if now > event.ev_end_date:
            raise BadRequestException("Event has ended")

        if not self.is_eligible(event, subject):
            raise ForbiddenException("You are not eligible to attend this event")

        if agent is not None:
            notes = f"Manually checked in by {agent.display_name}"
        else:
            notes = "Checked in via QR code"

        return self._record_attendance(
            db, event, subject.user_id, now,
            checked_in_by=agent.user_id if agent else None,
            notes=notes
        )

    def manual_check_in(self, db: Session, event_id: int, user_id: int, agent: Subject) -> EventAttendance:
        """
        Agent-driven check-in without a token

        Raises:
            NotFoundException: Unknown event
            ForbiddenException: Agent is not admin, faculty or the organizer
            BadRequestException: Event is not active
            AlreadyAttendedException: User already checked in
        """
        event = self._get_event(db, event_id)
        if not (agent.is_staff or agent.user_id == event.ev_organizer_id):
            raise ForbiddenException("Only admins, faculty or the event organizer can check in attendees")
        if not event.ev_is_active:
            raise BadRequestException("Event is not active")

        return self._record_attendance(
            db, event, user_id, self.clock(),
            checked_in_by=agent.user_id,
            notes=f"Manually checked in by {agent.display_name}"
        )

    def deactivate(self, db: Session, event_id: int, actor: Optional[Subject] = None) -> None:
        """Stop accepting the current token; issuing again reactivates"""
        event = self._get_event(db, event_id)
        self._require_organizer(event, actor)
        self.event_repo.update(db, event, {"ev_qr_active": False})
        logger.info("Event QR code deactivated", extra={'extra_data': {'event_id': event_id}})

    def get_attendees(
        self,
        db: Session,
        event_id: int,
        requester: Subject,
        skip: int = 0,
        limit: int = 100
    ) -> List[EventAttendance]:
        event = self._get_event(db, event_id)
        if not (requester.is_staff or requester.user_id == event.ev_organizer_id):
            raise ForbiddenException("Only admins, faculty or the event organizer can view attendees")
        attendees = self.attendance_repo.get_event_attendees(db, event_id, skip, limit)
        return [EventAttendance.model_validate(a) for a in attendees]

    def count_attendees(self, db: Session, event_id: int) -> int:
        return self.attendance_repo.count_event_attendees(db, event_id)
