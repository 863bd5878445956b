"""
Attendance Service - Main business logic for attendance decisions
"""
from typing import List, Optional, Tuple
from datetime import datetime, date, timedelta
from sqlalchemy import text
from sqlalchemy.orm import Session

from atams.exceptions import BadRequestException, ForbiddenException
from atams.logging import get_logger
from app.core.clock import Clock, system_clock, to_local_naive
from app.core.config import settings
from app.core.exceptions import (
    NetworkUntrustedException,
    DuplicateAttendanceException,
    NoActiveScheduleException
)
from app.models.class_schedule import ClassSchedule
from app.repositories.attendance_record_repository import AttendanceRecordRepository
from app.schemas.attendance import (
    AttendanceClaim,
    AttendanceDecision,
    AttendanceRecord,
    AttendanceStats,
    ProxyAttendanceRequest,
    ProxyStatsEntry
)
from app.schemas.integrity import IntegrityFlag
from app.schemas.network import TrustAssessment
from app.schemas.subject import Subject
from app.services.notification_service import FlagDispatcher
from app.services.schedule_service import ScheduleMatcher
from app.utils.geo import distance_meters, is_unknown_location

logger = get_logger(__name__)


class AttendanceDecisionEngine:
    def __init__(
        self,
        clock: Optional[Clock] = None,
        dispatcher: Optional[FlagDispatcher] = None,
        duplicate_window_minutes: Optional[int] = None,
        geofence_radius_m: Optional[float] = None,
        low_confidence_threshold: Optional[float] = None,
    ) -> None:
        self.record_repo = AttendanceRecordRepository()
        self.matcher = ScheduleMatcher()
        self.clock = clock or system_clock
        self.dispatcher = dispatcher or FlagDispatcher()
        self.duplicate_window = timedelta(minutes=(
            duplicate_window_minutes if duplicate_window_minutes is not None
            else settings.DUPLICATE_WINDOW_MINUTES
        ))
        self.geofence_radius_m = (
            geofence_radius_m if geofence_radius_m is not None else settings.GEOFENCE_RADIUS_M
        )
        self.low_confidence_threshold = (
            low_confidence_threshold if low_confidence_threshold is not None
            else settings.LOW_CONFIDENCE_THRESHOLD
        )

    def _flag(
        self,
        kind: str,
        title: str,
        subject: Subject,
        message: str,
        now: datetime,
        schedule: Optional[ClassSchedule] = None,
        **details
    ) -> IntegrityFlag:
        return IntegrityFlag(
            kind=kind,
            title=title,
            user_id=subject.user_id,
            schedule_id=schedule.cs_id if schedule else None,
            recipient_id=schedule.cs_faculty_id if schedule else None,
            message=message,
            details=details,
            occurred_at=now,
        )

    def _validate_claim(self, claim: AttendanceClaim) -> None:
        if claim.channel == "face-recognition" and claim.confidence is None:
            raise BadRequestException("Face confidence is required for face-recognition attendance")
        if claim.channel == "proxy" and claim.marked_by is None:
            raise BadRequestException("Marking agent is required for proxy attendance")

    def _lock_subject(self, db: Session, user_id: int) -> None:
        """
        Serialize concurrent claims of one subject where the store supports it.
        The PostgreSQL advisory lock is released when the transaction ends.
        """
        bind = db.get_bind()
        if bind is not None and bind.dialect.name == "postgresql":
            db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": user_id})

    def _resolve_location(self, claim: AttendanceClaim, trust: TrustAssessment) -> Tuple[float, float]:
        """Claimed position, else geolocated client position, else the (0, 0) placeholder"""
        if not is_unknown_location(claim.lat, claim.lon):
            return claim.lat, claim.lon
        if trust.geo and not is_unknown_location(trust.geo.lat, trust.geo.lon):
            return trust.geo.lat, trust.geo.lon
        return 0.0, 0.0

    def decide(self, db: Session, claim: AttendanceClaim, trust: TrustAssessment) -> AttendanceDecision:
        """
        Accept, classify or reject an attendance claim

        Order (first failure short-circuits):
        1. Network membership
        2. Proxy/VPN suspicion
        3. Duplicate within the trailing window
        4. Active schedule match
        5. Geofence check (flag only)
        6. Late/present classification, one record per active schedule
        7. Persist and dispatch flags

        Raises:
            BadRequestException: Claim is missing channel-specific fields
            NetworkUntrustedException: Steps 1-2 (403)
            DuplicateAttendanceException: Step 3 (400)
            NoActiveScheduleException: Step 4 (400)
        """
        self._validate_claim(claim)

        subject = claim.subject
        now = claim.timestamp or self.clock()
        log_context = {'user_id': subject.user_id, 'client_ip': trust.client_ip, 'channel': claim.channel}

        # 1. Allowed network
        if not trust.is_allowed_network:
            logger.warning(
                "Attendance marking attempt from unauthorized network",
                extra={'extra_data': log_context}
            )
            raise NetworkUntrustedException(factors=trust.factors)

        # 2. Proxy / VPN
        if trust.is_proxy_suspected:
            logger.warning(
                "Proxy/VPN detected during attendance marking",
                extra={'extra_data': {**log_context, 'factors': trust.factors}}
            )
            self.dispatcher.dispatch([self._flag(
                "proxy_attempt",
                "Proxy/VPN Attendance Attempt",
                subject,
                f"{subject.display_name} attempted to mark attendance through a proxy or VPN",
                now,
                factors=trust.factors,
                client_ip=trust.client_ip,
            )])
            raise NetworkUntrustedException(
                "Attendance cannot be marked while using a proxy or VPN",
                factors=trust.factors
            )

        # 3. Duplicate guard
        self._lock_subject(db, subject.user_id)
        window_minutes = int(self.duplicate_window.total_seconds() // 60)
        if self.record_repo.get_recent_for_user(db, subject.user_id, now - self.duplicate_window):
            logger.warning("Rapid attendance attempt rejected", extra={'extra_data': log_context})
            self.dispatcher.dispatch([self._flag(
                "rapid_attempt",
                "Suspicious Rapid Attendance",
                subject,
                f"{subject.display_name} attempted to mark attendance multiple times within {window_minutes} minutes",
                now,
            )])
            raise DuplicateAttendanceException(
                f"Attendance already marked in the last {window_minutes} minutes"
            )

        # 4. Active schedules
        schedules = self.matcher.active_schedules_for(db, subject, now)
        if not schedules:
            logger.warning("Attendance attempt without active class", extra={'extra_data': log_context})
            self.dispatcher.dispatch([self._flag(
                "proxy_attempt",
                "Proxy Attendance Attempt",
                subject,
                f"{subject.display_name} attempted to mark attendance without any active classes",
                now,
                department_id=subject.department_id,
            )])
            raise NoActiveScheduleException()

        flags: List[IntegrityFlag] = []
        lat, lon = self._resolve_location(claim, trust)

        # 5. Geofence (advisory)
        if not is_unknown_location(lat, lon):
            for schedule in schedules:
                if not schedule.has_location:
                    continue
                distance = distance_meters(lat, lon, schedule.cs_lat, schedule.cs_lon)
                if distance > self.geofence_radius_m:
                    flags.append(self._flag(
                        "location_mismatch",
                        "Location Mismatch Alert",
                        subject,
                        f"{subject.display_name} attempted to mark attendance {round(distance)}m away from class location",
                        now,
                        schedule,
                        distance_m=round(distance, 1),
                    ))

        if (
            claim.channel == "face-recognition"
            and self.low_confidence_threshold > 0
            and claim.confidence < self.low_confidence_threshold
        ):
            flags.append(self._flag(
                "proxy_attempt",
                "Low Face Confidence",
                subject,
                f"{subject.display_name} marked attendance with face confidence {claim.confidence:.2f}",
                now,
                confidence=claim.confidence,
            ))

        # 6. Classification
        records_data = []
        for schedule in schedules:
            is_late = self.matcher.is_late(schedule, now)
            if is_late:
                flags.append(self._flag(
                    "late_attendance",
                    "Late Attendance",
                    subject,
                    f"{subject.display_name} marked late attendance for {schedule.cs_name}",
                    now,
                    schedule,
                ))

            records_data.append({
                "ar_user_id": subject.user_id,
                "ar_date": now.date(),
                "ar_type": claim.channel,
                "ar_status": "late" if is_late else "present",
                "ar_schedule_id": schedule.cs_id,
                "ar_face_confidence": claim.confidence * 100 if claim.confidence is not None else None,
                "ar_marked_by": claim.marked_by,
                "ar_lat": lat,
                "ar_lon": lon,
                "ar_timestamp": now,
                "ar_notes": claim.notes,
                "ar_check_in_time": now,
                "ar_check_in_verified": False,
            })

        # 7. Persist, then notify
        db_records = self.record_repo.create_many(db, records_data)
        self.dispatcher.dispatch(flags)

        logger.info(
            f"Attendance accepted for {len(db_records)} classes",
            extra={'extra_data': {**log_context, 'flags': [f.kind for f in flags]}}
        )

        return AttendanceDecision(
            message=f"Attendance marked successfully for {len(db_records)} classes",
            records=[AttendanceRecord.model_validate(r) for r in db_records],
            flags=flags,
        )

    def mark_proxy(self, db: Session, agent: Subject, request: ProxyAttendanceRequest) -> List[AttendanceRecord]:
        """
        Faculty-marked attendance for several users at once

        The marking agent is trusted: no network, duplicate or schedule checks.

        Raises:
            ForbiddenException: If agent is not faculty or admin
        """
        if not agent.is_staff:
            raise ForbiddenException("Only faculty members can mark proxy attendance")

        now = self.clock()
        lat, lon = (request.lat, request.lon) if not is_unknown_location(request.lat, request.lon) else (0.0, 0.0)
        notes = request.notes or f"Proxy attendance marked by {agent.display_name}"

        records_data = []
        for user_id in dict.fromkeys(request.users):
            records_data.append({
                "ar_user_id": user_id,
                "ar_date": request.date.date(),
                "ar_type": "proxy",
                "ar_status": request.status,
                "ar_marked_by": agent.user_id,
                "ar_lat": lat,
                "ar_lon": lon,
                "ar_timestamp": now,
                "ar_notes": notes,
                "ar_check_in_time": request.date,
                "ar_check_in_verified": False,
            })

        db_records = self.record_repo.create_many(db, records_data)
        logger.info(
            f"Proxy attendance marked for {len(db_records)} users",
            extra={'extra_data': {'marked_by': agent.user_id}}
        )
        return [AttendanceRecord.model_validate(r) for r in db_records]

    def get_user_records(
        self,
        db: Session,
        user_id: int,
        date_from: date = None,
        date_to: date = None,
        skip: int = 0,
        limit: int = 20
    ) -> List[AttendanceRecord]:
        """Get user's attendance records"""
        records = self.record_repo.get_user_records(db, user_id, date_from, date_to, skip, limit)
        return [AttendanceRecord.model_validate(r) for r in records]

    def count_user_records(self, db: Session, user_id: int, date_from: date = None, date_to: date = None) -> int:
        return self.record_repo.count_user_records(db, user_id, date_from, date_to)

    def get_stats(self, db: Session, user_id: int, date_from: date = None, date_to: date = None) -> AttendanceStats:
        """Status counts, percentages and the current streak of consecutive attended days"""
        records = self.record_repo.get_user_records(db, user_id, date_from, date_to, limit=None)

        total = len(records)
        present = sum(1 for r in records if r.ar_status == "present")
        late = sum(1 for r in records if r.ar_status == "late")
        absent = sum(1 for r in records if r.ar_status == "absent")

        def percentage(count: int) -> float:
            return round(count / total * 100, 2) if total else 0.0

        return AttendanceStats(
            total=total,
            present=present,
            late=late,
            absent=absent,
            present_percentage=percentage(present),
            late_percentage=percentage(late),
            absent_percentage=percentage(absent),
            current_streak=self._current_streak(sorted({r.ar_date for r in records})),
        )

    @staticmethod
    def _current_streak(days: List[date]) -> int:
        """Length of the run of consecutive days ending at the latest day"""
        if not days:
            return 0
        streak = 1
        for previous, current in zip(reversed(days[:-1]), reversed(days[1:])):
            if (current - previous).days != 1:
                break
            streak += 1
        return streak

    def get_proxy_stats(self, db: Session, requester: Subject, start: datetime, end: datetime) -> List[ProxyStatsEntry]:
        """
        Proxy records per marking agent

        Raises:
            ForbiddenException: If requester is not admin
            BadRequestException: If the range is inverted
        """
        if not requester.is_admin:
            raise ForbiddenException("Only admins can view proxy attendance statistics")
        start, end = to_local_naive(start), to_local_naive(end)
        if start > end:
            raise BadRequestException("Start date must be before end date")

        rows = self.record_repo.get_proxy_counts(db, start, end)
        return [ProxyStatsEntry(**row) for row in rows if row["marked_by"] is not None]
