"""
Time-of-day strings for class schedules

Schedules store "HH:MM" (24-hour, zero-padded) so that string comparison in
queries is chronological.
"""
import re

TIME_OF_DAY_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


def normalize_time_of_day(value: str) -> str:
    """
    Zero-pad a "H:MM" / "HH:MM" time to "HH:MM"

    Raises:
        ValueError: If the value is not a valid 24-hour time
    """
    match = TIME_OF_DAY_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"Invalid time of day {value!r}, expected HH:MM")

    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f"Invalid time of day {value!r}, expected HH:MM")

    return f"{hour:02d}:{minute:02d}"
