"""Timezone helpers – a single UTC source for the whole package.

Database columns are naive ``DateTime`` values holding UTC, so the helpers
below also normalise aware datetimes into that representation before any
comparison.
"""

from datetime import datetime
from datetime import timezone


def utc_now_naive() -> datetime:  # noqa: D401 – simple utility
    """Return *naive* current time in UTC for database compatibility."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    """Convert *value* to naive UTC; naive inputs are assumed to be UTC already."""

    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


__all__ = ["utc_now_naive", "as_naive_utc"]
