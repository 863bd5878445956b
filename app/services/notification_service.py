"""
Notification Service - fire-and-forget delivery of integrity flags
"""
from typing import Callable, Iterable, List, Optional
from sqlalchemy.orm import Session

from atams.logging import get_logger
from app.core.config import settings
from app.repositories.integrity_flag_repository import IntegrityFlagRepository
from app.schemas.integrity import IntegrityFlag

logger = get_logger(__name__)


class FlagSink:
    """Receives integrity flags. Implementations may raise; the dispatcher contains it."""

    def emit(self, flag: IntegrityFlag) -> None:
        raise NotImplementedError


class LoggingFlagSink(FlagSink):
    def emit(self, flag: IntegrityFlag) -> None:
        logger.warning(
            f"Integrity flag: {flag.title}",
            extra={'extra_data': {
                'kind': flag.kind,
                'user_id': flag.user_id,
                'schedule_id': flag.schedule_id,
                'recipient_id': flag.recipient_id,
                'flag_message': flag.message,
            }}
        )


class DatabaseFlagSink(FlagSink):
    """Persists flags with a dedicated session so the caller's transaction is never touched"""

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None) -> None:
        self._session_factory = session_factory
        self.repo = IntegrityFlagRepository()

    @property
    def session_factory(self) -> Callable[[], Session]:
        if self._session_factory is None:
            from app.db.session import SessionLocal
            self._session_factory = SessionLocal
        return self._session_factory

    def emit(self, flag: IntegrityFlag) -> None:
        db = self.session_factory()
        try:
            self.repo.create(db, {
                "if_kind": flag.kind,
                "if_title": flag.title,
                "if_user_id": flag.user_id,
                "if_schedule_id": flag.schedule_id,
                "if_recipient_id": flag.recipient_id,
                "if_message": flag.message,
                "if_details": flag.details or None,
                "if_occurred_at": flag.occurred_at,
            })
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


class FlagDispatcher:
    def __init__(self, sinks: Optional[List[FlagSink]] = None) -> None:
        self.sinks = sinks if sinks is not None else default_sinks()

    def dispatch(self, flags: Iterable[IntegrityFlag]) -> None:
        """
        Deliver each flag to every sink.
        Failures are logged and swallowed; they never affect the attendance outcome.
        """
        for flag in flags:
            for sink in self.sinks:
                try:
                    sink.emit(flag)
                except Exception:
                    logger.exception(
                        f"Failed to deliver integrity flag via {type(sink).__name__}",
                        extra={'extra_data': {'kind': flag.kind, 'user_id': flag.user_id}}
                    )


def default_sinks() -> List[FlagSink]:
    sinks: List[FlagSink] = []
    for name in settings.flag_sinks_list:
        if name == "log":
            sinks.append(LoggingFlagSink())
        elif name == "db":
            sinks.append(DatabaseFlagSink())
        else:
            logger.warning(f"Unknown integrity flag sink ignored: {name}")
    return sinks
