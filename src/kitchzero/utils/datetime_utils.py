"""Datetime utilities for timezone-aware UTC timestamps and date parsing.

Usage:
    from kitchzero.utils.datetime_utils import utc_now, to_date

    # For SQLAlchemy Column defaults
    created_at = Column(DateTime, default=utc_now)

    # Normalize user-supplied dates ("2024-01-05", datetime, date)
    expiry = to_date("2024-01-05")
"""

from datetime import date, datetime, time, timezone
from typing import Any, Optional


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime.

    Returns:
        Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)


def to_date(value: Any) -> Optional[date]:
    """Normalize a date-like value to a ``date``.

    Accepts ``date``, ``datetime`` and ISO-8601 strings (date or datetime,
    with an optional trailing ``Z``). ``None`` passes through.

    Raises:
        ValueError: If the value cannot be interpreted as a date
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text).date()
    raise ValueError(f"Cannot interpret {value!r} as a date")


def day_bound(value: Any, end: bool = False) -> Optional[datetime]:
    """Widen a ``date`` to the first (or last) instant of that day.

    Datetimes pass through unchanged so callers may filter either by day or
    by exact timestamp.
    """
    if value is None or isinstance(value, datetime):
        return value
    return datetime.combine(to_date(value), time.max if end else time.min)
