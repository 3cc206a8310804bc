# cronq/core/utils/clock.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Convert to tz-aware UTC; naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime read back from the store to tz-aware UTC.

    SQLite returns naive values for DateTime(timezone=True) columns; every
    value the engine writes is UTC, so naive means UTC.
    """
    if value is None:
        return None
    return to_utc(value)
