"""
Datetime utilities for consistent timezone handling across the engine.

Every "today" comparison in the system goes through this module so that the
whole clinic agrees on one calendar. The zone is read once from
CLINIC_TIMEZONE (UTC by default); it is never chosen per call.
"""

import logging
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from clinic_workflow.core.config import CLINIC_TIMEZONE

logger = logging.getLogger(__name__)


def _resolve_zone(name: str) -> tzinfo:
    if name.upper() in ("UTC", "Z"):
        return timezone.utc
    zone = ZoneInfo(name)
    logger.debug(f"Clinic time zone: {name}")
    return zone


CLINIC_TZ: tzinfo = _resolve_zone(CLINIC_TIMEZONE)

# Injectable source of the current instant
Clock = Callable[[], datetime]


def clinic_now() -> datetime:
    """
    Get the current datetime in the clinic time zone.

    This is the default clock for the workflow services. Core functions never
    call it; they receive `now` from their caller.

    Returns:
        Current timezone-aware datetime in CLINIC_TZ
    """
    return datetime.now(CLINIC_TZ)


def ensure_clinic_tz(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure a datetime is timezone-aware and expressed in the clinic time zone.

    Naive datetimes are assumed to already be clinic-local wall time.

    Args:
        dt: Datetime to normalize

    Returns:
        Timezone-aware datetime in CLINIC_TZ, or None if input is None
    """
    if dt is None:
        return None
    return _to_clinic(dt)


def _to_clinic(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=CLINIC_TZ)
    return dt.astimezone(CLINIC_TZ)


def clinic_today(now: datetime) -> date:
    """
    Truncate an instant to the clinic calendar date.

    Args:
        now: Instant to truncate (naive values are read as clinic-local)

    Returns:
        Calendar date of `now` in the clinic time zone
    """
    return _to_clinic(now).date()


def parse_datetime_to_clinic(value: str | datetime) -> datetime:
    """
    Parse an ISO-8601 string (or pass a datetime through) into the clinic zone.

    Handles:
    - ISO format with offset (e.g., "2024-01-01T09:00:00+02:00")
    - ISO format with Z (e.g., "2024-01-01T10:00:00Z")
    - ISO format without offset (read as clinic-local)

    Raises:
        ValueError: If the string cannot be parsed
    """
    if isinstance(value, datetime):
        return _to_clinic(value)
    try:
        parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
    except ValueError as e:
        raise ValueError(f"Invalid datetime string format: {value}") from e
    return _to_clinic(parsed)


def parse_date_string(date_str: str) -> date:
    """
    Parse a date string in YYYY-MM-DD or YYYY/MM/DD format.

    Single-digit months/days are accepted ("2024-1-5"). A full ISO datetime
    is also accepted and truncated in the clinic time zone.

    Raises:
        ValueError: If date string cannot be parsed
    """
    if not date_str or not date_str.strip():
        raise ValueError("Date string cannot be empty")

    date_str = date_str.strip()

    if 'T' in date_str:
        return clinic_today(parse_datetime_to_clinic(date_str))

    separator = '/' if '/' in date_str else '-'
    parts = date_str.split(separator)
    if len(parts) != 3:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}")

    normalized = f"{parts[0].zfill(4)}-{parts[1].zfill(2)}-{parts[2].zfill(2)}"
    try:
        return datetime.strptime(normalized, '%Y-%m-%d').date()
    except ValueError as e:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}") from e


def coerce_date(value: date | datetime | str) -> date:
    """Accept a date, a datetime (truncated in the clinic zone) or a date string."""
    if isinstance(value, datetime):
        return clinic_today(value)
    if isinstance(value, date):
        return value
    return parse_date_string(value)


def to_iso8601(dt: datetime) -> str:
    """Serialize an instant as ISO-8601 with offset, in the clinic zone."""
    return _to_clinic(dt).isoformat()


def elapsed_ms(start: datetime, end: datetime) -> int:
    """Whole milliseconds from start to end (negative if end precedes start)."""
    delta: timedelta = _to_clinic(end) - _to_clinic(start)
    return (delta.days * 86_400_000) + (delta.seconds * 1000) + (delta.microseconds // 1000)
