"""
Integrity Flag Repository - Persistence and inbox queries for integrity flags
"""
from typing import List, Optional
from sqlalchemy.orm import Session

from atams.db import BaseRepository
from app.models.integrity_flag import IntegrityFlag


class IntegrityFlagRepository(BaseRepository[IntegrityFlag]):
    def __init__(self):
        super().__init__(IntegrityFlag)

    def get_by_id(self, db: Session, flag_id: int) -> Optional[IntegrityFlag]:
        """Get flag by ID using ORM"""
        return db.query(IntegrityFlag).filter(IntegrityFlag.if_id == flag_id).first()

    def _filter_flags(
        self,
        query,
        recipient_id: Optional[int] = None,
        user_id: Optional[int] = None,
        kind: str = None,
        unread_only: bool = False
    ):
        if recipient_id is not None:
            query = query.filter(IntegrityFlag.if_recipient_id == recipient_id)
        if user_id is not None:
            query = query.filter(IntegrityFlag.if_user_id == user_id)
        if kind:
            query = query.filter(IntegrityFlag.if_kind == kind)
        if unread_only:
            query = query.filter(IntegrityFlag.if_read.is_(False))
        return query

    def get_flags(
        self,
        db: Session,
        recipient_id: Optional[int] = None,
        user_id: Optional[int] = None,
        kind: str = None,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 50
    ) -> List[IntegrityFlag]:
        """Get flags, newest first"""
        query = self._filter_flags(db.query(IntegrityFlag), recipient_id, user_id, kind, unread_only)
        return query.order_by(
            IntegrityFlag.if_occurred_at.desc(), IntegrityFlag.if_id.desc()
        ).offset(skip).limit(limit).all()

    def count_flags(
        self,
        db: Session,
        recipient_id: Optional[int] = None,
        user_id: Optional[int] = None,
        kind: str = None,
        unread_only: bool = False
    ) -> int:
        query = self._filter_flags(db.query(IntegrityFlag), recipient_id, user_id, kind, unread_only)
        return query.count()

    def mark_all_read(self, db: Session, recipient_id: Optional[int] = None) -> int:
        """Mark unread flags read (all of them when recipient_id is None) and return how many changed"""
        query = self._filter_flags(db.query(IntegrityFlag), recipient_id=recipient_id, unread_only=True)
        updated = query.update({IntegrityFlag.if_read: True}, synchronize_session=False)
        db.commit()
        return updated
