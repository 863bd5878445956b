"""
Clock - injectable source of the current time
"""
from datetime import datetime
from typing import Callable, Optional

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    """Campus-local wall clock time (naive)"""
    return datetime.now()


def to_local_naive(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to campus-local naive time

    Stored columns and the clock are naive local time; an offset-aware
    value (e.g. parsed from "...Z" or "+07:00") is converted to local time
    and its tzinfo dropped. Naive values are taken as already local.
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)
