"""Shared date and time helpers used across the booking engine."""

import re
from datetime import datetime

DATE_FORMAT = "%Y-%m-%d"

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2}(?:\.\d+)?)?$")


def normalize_time(value: str) -> str:
    """Normalize a clock time to ``HH:MM``.

    Accepts the ``HH:MM:SS`` form Postgres returns for ``time`` columns.

    Examples:
        >>> normalize_time("9:30")
        '09:30'
        >>> normalize_time("10:00:00")
        '10:00'
    """
    match = _TIME_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")
    return f"{hours:02d}:{minutes:02d}"


def time_to_minutes(value: str) -> int:
    """Convert ``HH:MM`` to minutes since midnight."""
    hours, minutes = normalize_time(value).split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(minutes: int) -> str:
    """Format minutes since midnight as ``HH:MM``.

    Values past midnight are not wrapped, so an interval ending after
    the day stays ordered after every same-day time.
    """
    if minutes < 0:
        raise ValueError(f"Minutes must be >= 0, got {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def add_minutes(value: str, minutes: int) -> str:
    return minutes_to_time(time_to_minutes(value) + minutes)


def is_valid_time(value: str) -> bool:
    try:
        normalize_time(value)
        return True
    except (ValueError, AttributeError):
        return False


def normalize_date(value: str) -> str:
    """Validate a ``YYYY-MM-DD`` calendar date and return it stripped."""
    value = value.strip()
    datetime.strptime(value, DATE_FORMAT)
    return value


def is_valid_date(value: str) -> bool:
    try:
        normalize_date(value)
        return True
    except (ValueError, AttributeError):
        return False


def normalize_email(value: str) -> str:
    """Lower-case and strip an email so duplicate submissions compare equal."""
    return value.strip().lower()
