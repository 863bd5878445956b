"""
Integrity Flag Service - inbox of stored integrity flags

Faculty read the flags addressed to them (their classes); admins read every
flag and may narrow by the flagged user.
"""
from typing import List, Optional
from sqlalchemy.orm import Session

from atams.exceptions import NotFoundException
from atams.logging import get_logger
from app.repositories.integrity_flag_repository import IntegrityFlagRepository
from app.schemas.integrity import IntegrityFlagInDB
from app.schemas.subject import Subject

logger = get_logger(__name__)


class IntegrityFlagService:
    def __init__(self) -> None:
        self.repo = IntegrityFlagRepository()

    @staticmethod
    def _recipient_scope(requester: Subject) -> Optional[int]:
        return None if requester.is_admin else requester.user_id

    def list_flags(
        self,
        db: Session,
        requester: Subject,
        user_id: Optional[int] = None,
        kind: str = None,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 50
    ) -> List[IntegrityFlagInDB]:
        """Flags visible to the requester, newest first"""
        flags = self.repo.get_flags(
            db,
            recipient_id=self._recipient_scope(requester),
            user_id=user_id,
            kind=kind,
            unread_only=unread_only,
            skip=skip,
            limit=limit
        )
        return [IntegrityFlagInDB.model_validate(f) for f in flags]

    def count_flags(
        self,
        db: Session,
        requester: Subject,
        user_id: Optional[int] = None,
        kind: str = None,
        unread_only: bool = False
    ) -> int:
        return self.repo.count_flags(
            db,
            recipient_id=self._recipient_scope(requester),
            user_id=user_id,
            kind=kind,
            unread_only=unread_only
        )

    def unread_count(self, db: Session, requester: Subject) -> int:
        return self.count_flags(db, requester, unread_only=True)

    def mark_read(self, db: Session, flag_id: int, requester: Subject) -> IntegrityFlagInDB:
        """
        Mark one flag read

        Raises:
            NotFoundException: If the flag does not exist or is addressed to someone else
        """
        flag = self.repo.get_by_id(db, flag_id)
        if not flag or (not requester.is_admin and flag.if_recipient_id != requester.user_id):
            raise NotFoundException(f"Integrity flag {flag_id} not found")

        if not flag.if_read:
            flag = self.repo.update(db, flag, {"if_read": True})
        return IntegrityFlagInDB.model_validate(flag)

    def mark_all_read(self, db: Session, requester: Subject) -> int:
        updated = self.repo.mark_all_read(db, self._recipient_scope(requester))
        logger.info(
            f"Marked {updated} integrity flags read",
            extra={'extra_data': {'user_id': requester.user_id}}
        )
        return updated
