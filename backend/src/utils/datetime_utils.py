"""
Datetime utilities for consistent timezone handling across the application.

Templates, slots and appointments are stored as naive civil times interpreted
in the provider's timezone (falling back to PRACTICE_TIMEZONE). These helpers
convert between that representation and timezone-aware datetimes.
"""

import logging
from datetime import datetime, date, time, timedelta
from typing import Iterator, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from core.config import PRACTICE_TIMEZONE

logger = logging.getLogger(__name__)

PRACTICE_TZ = ZoneInfo(PRACTICE_TIMEZONE)

MINUTES_PER_DAY = 24 * 60


def get_timezone(name: Optional[str]) -> ZoneInfo:
    """
    Resolve an IANA timezone name, falling back to the practice timezone.

    Args:
        name: IANA timezone name (e.g. "America/Denver") or None

    Returns:
        ZoneInfo for the name, or the practice timezone if unset or unknown
    """
    if not name:
        return PRACTICE_TZ
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone '{name}', using {PRACTICE_TIMEZONE}")
        return PRACTICE_TZ


def practice_now() -> datetime:
    """Get the current datetime in the practice timezone."""
    return datetime.now(PRACTICE_TZ)


def ensure_local(dt: Optional[datetime], tz: Optional[ZoneInfo] = None) -> Optional[datetime]:
    """
    Ensure a datetime is timezone-aware in the given civil timezone.

    Args:
        dt: Datetime to localize
        tz: Target timezone (defaults to the practice timezone)

    Returns:
        Timezone-aware datetime, or None if input is None
    """
    if dt is None:
        return None

    target = tz or PRACTICE_TZ
    if dt.tzinfo is None:
        # If naive, assume it's already civil time in the target zone
        return dt.replace(tzinfo=target)
    return dt.astimezone(target)


def to_civil(dt: datetime, tz: Optional[ZoneInfo] = None) -> datetime:
    """Convert a datetime to a naive civil datetime in the given timezone."""
    localized = ensure_local(dt, tz)
    assert localized is not None
    return localized.replace(tzinfo=None)


def parse_date_string(date_str: str) -> date:
    """
    Parse a date string in YYYY-MM-DD or YYYY/MM/DD format.

    Automatically normalizes single-digit months/days.

    Args:
        date_str: Date string in YYYY-MM-DD or YYYY/MM/DD format

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    if not date_str or not date_str.strip():
        raise ValueError("Date string cannot be empty")

    date_str = date_str.strip()

    if '/' in date_str:
        parts = date_str.split('/')
    elif '-' in date_str:
        parts = date_str.split('-')
    else:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}")

    if len(parts) != 3:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}")

    normalized = f"{parts[0].zfill(4)}-{parts[1].zfill(2)}-{parts[2].zfill(2)}"

    try:
        return datetime.strptime(normalized, '%Y-%m-%d').date()
    except ValueError as e:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}") from e


def iter_dates(start_date: date, end_date: date) -> Iterator[date]:
    """Yield every date from start_date to end_date inclusive."""
    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)


def time_to_minutes(value: time) -> int:
    """Minutes since midnight."""
    return value.hour * 60 + value.minute


def minutes_to_time(minutes: int) -> time:
    """
    Convert minutes since midnight to a time.

    Raises:
        ValueError: If the value falls outside the civil day
    """
    if minutes < 0 or minutes >= MINUTES_PER_DAY:
        raise ValueError(f"Minutes out of range for a single day: {minutes}")
    return time(minutes // 60, minutes % 60)


def format_time(value: time) -> str:
    """Format time object to HH:MM string."""
    return value.strftime('%H:%M')


def parse_time_string(value: str) -> time:
    """Parse HH:MM or HH:MM:SS into a time object."""
    parts = value.strip().split(':')
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid time format (expected HH:MM): {value}")
    return time(int(parts[0]), int(parts[1]))
