"""
Event Repository - Data access layer for events
"""
from typing import Optional
from sqlalchemy.orm import Session

from atams.db import BaseRepository
from app.models.event import Event


class EventRepository(BaseRepository[Event]):
    def __init__(self):
        super().__init__(Event)

    def get_by_id(self, db: Session, event_id: int) -> Optional[Event]:
        """Get event by ID using ORM"""
        return db.query(Event).filter(Event.ev_id == event_id).first()
