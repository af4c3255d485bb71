"""
Timezone-safe datetime utilities.

All timestamps written to state and report files are UTC.
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """
    Return current UTC datetime with timezone info attached.

    Returns:
        datetime: Current UTC datetime (timezone-aware)
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Convert any datetime to UTC.

    If the datetime is naive (no timezone info), it's assumed to be UTC.
    None passes through so optional upload dates stay optional.

    Example:
        >>> naive_dt = datetime(2024, 1, 1, 12, 0, 0)
        >>> ensure_utc(naive_dt).tzinfo
        datetime.timezone.utc
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        # Naive datetime - assume UTC
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def elapsed_seconds(started_at: datetime) -> float:
    """Seconds since ``started_at``, rounded to one decimal."""
    return round((utc_now() - ensure_utc(started_at)).total_seconds(), 1)
