"""Timestamp helpers shared by the store and the pipeline.

All timestamps are timezone-aware UTC. The store keeps them as fixed-width
strings so that SQL comparisons order correctly.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

DB_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_db(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return ensure_utc(value).strftime(DB_FORMAT)


def from_db(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.strptime(value, DB_FORMAT).replace(tzinfo=timezone.utc)


def day_range(now: datetime, tz_offset_minutes: Optional[int] = None) -> tuple:
    """Start and end of the local day containing ``now``, in UTC.

    ``tz_offset_minutes`` follows the browser convention
    (``Date.getTimezoneOffset()``): minutes to add to local time to get UTC.
    """
    offset = timedelta(minutes=tz_offset_minutes or 0)
    local_now = ensure_utc(now) - offset
    local_start = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    local_end = local_start + timedelta(days=1) - timedelta(microseconds=1)
    return local_start + offset, local_end + offset
