"""
Verification Service - check-in/check-out review lifecycle of attendance records

Each sub-field moves unset -> pending (time recorded) -> verified, and an
admin rejection returns it to unset.
"""
from typing import Any, Dict, Optional
from datetime import datetime
from sqlalchemy.orm import Session

from atams.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException
)
from atams.logging import get_logger
from app.core.clock import Clock, system_clock, to_local_naive
from app.models.attendance_record import AttendanceRecord as AttendanceRecordModel
from app.repositories.attendance_record_repository import AttendanceRecordRepository
from app.schemas.attendance import AttendanceRecord, AttendanceUpdate
from app.schemas.subject import Subject

logger = get_logger(__name__)

SUBFIELDS = {
    "checkIn": "check_in",
    "check_in": "check_in",
    "checkOut": "check_out",
    "check_out": "check_out",
}


def resolve_subfield(name: str) -> str:
    try:
        return SUBFIELDS[name]
    except KeyError:
        raise BadRequestException(
            "Invalid type. Must be checkIn or checkOut",
            {"reason": "invalid_argument", "type": name}
        )


def hours_between(start: datetime, end: datetime) -> float:
    return round((end - start).total_seconds() / 3600, 2)


class VerificationStateMachine:
    def __init__(self, clock: Optional[Clock] = None) -> None:
        self.record_repo = AttendanceRecordRepository()
        self.clock = clock or system_clock

    def _get_record(self, db: Session, record_id: int) -> AttendanceRecordModel:
        record = self.record_repo.get_by_id(db, record_id)
        if not record:
            raise NotFoundException(f"Attendance record {record_id} not found")
        return record

    @staticmethod
    def _state(record: AttendanceRecordModel, field: str) -> str:
        if getattr(record, f"ar_{field}_time") is None:
            return "unset"
        return "verified" if getattr(record, f"ar_{field}_verified") else "pending"

    @staticmethod
    def _cleared(field: str) -> Dict[str, Any]:
        return {
            f"ar_{field}_time": None,
            f"ar_{field}_verified": False,
            f"ar_{field}_verified_by": None,
            f"ar_{field}_verified_at": None,
        }

    def mark_time(
        self,
        db: Session,
        record_id: int,
        subfield: str,
        actor: Subject,
        time: Optional[datetime] = None
    ) -> AttendanceRecord:
        """
        Record a check-in or check-out time (unset -> pending)

        Raises:
            NotFoundException: Record does not exist
            BadRequestException: Invalid sub-field, check-out before check-in
            ForbiddenException: Actor is neither the record owner nor staff
            ConflictException: Sub-field already has a time
        """
        field = resolve_subfield(subfield)
        record = self._get_record(db, record_id)

        if not (actor.is_staff or actor.user_id == record.ar_user_id):
            raise ForbiddenException("You can only update your own attendance")

        if self._state(record, field) != "unset":
            raise ConflictException(f"{subfield} time already recorded")

        time = to_local_naive(time) or self.clock()
        if field == "check_out":
            if record.ar_check_in_time is None:
                raise BadRequestException("Cannot check out before checking in")
            if time < record.ar_check_in_time:
                raise BadRequestException("Check-out time must be after check-in time")

        record = self.record_repo.update(db, record, {f"ar_{field}_time": time})
        logger.info(
            f"Attendance {field} recorded",
            extra={'extra_data': {'record_id': record_id, 'user_id': record.ar_user_id}}
        )
        return AttendanceRecord.model_validate(record)

    def verify(self, db: Session, record_id: int, subfield: str, reviewer: Subject) -> AttendanceRecord:
        """
        Confirm a pending sub-field (pending -> verified)

        Verifying an already verified sub-field changes nothing and keeps
        the original reviewer and timestamp.

        Raises:
            ForbiddenException: Reviewer is not admin or faculty
            NotFoundException: Record does not exist
            BadRequestException: Invalid sub-field, or nothing recorded to verify
        """
        if not reviewer.is_staff:
            raise ForbiddenException("Only admins or faculty can verify attendance")

        field = resolve_subfield(subfield)
        record = self._get_record(db, record_id)
        state = self._state(record, field)

        if state == "unset":
            raise BadRequestException(f"No {subfield} time recorded to verify")
        if state == "verified":
            return AttendanceRecord.model_validate(record)

        record = self.record_repo.update(db, record, {
            f"ar_{field}_verified": True,
            f"ar_{field}_verified_by": reviewer.user_id,
            f"ar_{field}_verified_at": self.clock(),
        })
        logger.info(
            f"Attendance {field} verified",
            extra={'extra_data': {'record_id': record_id, 'verified_by': reviewer.user_id}}
        )
        return AttendanceRecord.model_validate(record)

    def reject(self, db: Session, record_id: int, subfield: str, reviewer: Subject) -> AttendanceRecord:
        """
        Discard a recorded sub-field (pending|verified -> unset)

        Rejecting check-in also clears check-out. A record left with
        neither time becomes absent.

        Raises:
            ForbiddenException: Reviewer is not admin
            NotFoundException: Record does not exist
            BadRequestException: Invalid sub-field, or nothing recorded to reject
        """
        if not reviewer.is_admin:
            raise ForbiddenException("Only admins can reject attendance")

        field = resolve_subfield(subfield)
        record = self._get_record(db, record_id)

        if self._state(record, field) == "unset":
            raise BadRequestException(f"No {subfield} time recorded to reject")

        changes = self._cleared(field)
        if field == "check_in":
            changes.update(self._cleared("check_out"))
            remaining_time = None
        else:
            remaining_time = record.ar_check_in_time

        if remaining_time is None:
            changes["ar_status"] = "absent"
        changes["ar_hours_worked"] = None
        changes["ar_reviewed_by"] = reviewer.user_id

        record = self.record_repo.update(db, record, changes)
        logger.warning(
            f"Attendance {field} rejected",
            extra={'extra_data': {
                'record_id': record_id,
                'user_id': record.ar_user_id,
                'rejected_by': reviewer.user_id
            }}
        )
        return AttendanceRecord.model_validate(record)

    def update_record(
        self,
        db: Session,
        record_id: int,
        update: AttendanceUpdate,
        admin: Subject
    ) -> AttendanceRecord:
        """
        Admin edit of status, notes, sub-field times and verification flags

        Hours worked are recomputed when both times are present.

        Raises:
            ForbiddenException: Not an admin
            NotFoundException: Record does not exist
            BadRequestException: Verified without a time, or check-out before check-in
        """
        if not admin.is_admin:
            raise ForbiddenException("Only admins can edit attendance records")

        record = self._get_record(db, record_id)
        update_data = update.model_dump(exclude_unset=True)
        now = self.clock()

        changes: Dict[str, Any] = {}
        if "status" in update_data:
            changes["ar_status"] = update_data["status"]
        if "notes" in update_data:
            changes["ar_notes"] = update_data["notes"]

        for field in ("check_in", "check_out"):
            time = update_data.get(f"{field}_time")
            if time is not None:
                changes[f"ar_{field}_time"] = time

            verified = update_data.get(f"{field}_verified")
            if verified is None:
                continue
            if verified:
                if changes.get(f"ar_{field}_time", getattr(record, f"ar_{field}_time")) is None:
                    raise BadRequestException(f"Cannot verify {field} without a recorded time")
                if not getattr(record, f"ar_{field}_verified"):
                    changes[f"ar_{field}_verified"] = True
                    changes[f"ar_{field}_verified_by"] = admin.user_id
                    changes[f"ar_{field}_verified_at"] = now
            else:
                changes[f"ar_{field}_verified"] = False
                changes[f"ar_{field}_verified_by"] = None
                changes[f"ar_{field}_verified_at"] = None

        check_in = changes.get("ar_check_in_time", record.ar_check_in_time)
        check_out = changes.get("ar_check_out_time", record.ar_check_out_time)
        if check_out is not None and check_in is None:
            raise BadRequestException("Cannot set check-out without a check-in time")
        if check_in is not None and check_out is not None:
            if check_out < check_in:
                raise BadRequestException("Check-out time must be after check-in time")
            changes["ar_hours_worked"] = hours_between(check_in, check_out)

        changes["ar_reviewed_by"] = admin.user_id

        record = self.record_repo.update(db, record, changes)
        logger.info(
            "Attendance record updated",
            extra={'extra_data': {'record_id': record_id, 'updated_by': admin.user_id, 'fields': sorted(update_data)}}
        )
        return AttendanceRecord.model_validate(record)

    def delete_record(self, db: Session, record_id: int, admin: Subject) -> None:
        """
        Permanently delete an attendance record

        Raises:
            ForbiddenException: If the caller is not an admin
            NotFoundException: If the record does not exist
        """
        if not admin.is_admin:
            raise ForbiddenException("Only admins can delete attendance records")

        if not self.record_repo.delete_by_id(db, record_id):
            raise NotFoundException(f"Attendance record {record_id} not found")

        logger.info(
            "Attendance record deleted",
            extra={'extra_data': {'record_id': record_id, 'deleted_by': admin.user_id}}
        )
