"""Utilities package for the KitchZero core."""

from .datetime_utils import utc_now, to_date, day_bound

__all__ = [
    "utc_now",
    "to_date",
    "day_bound",
]
