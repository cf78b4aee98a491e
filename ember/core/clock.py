"""
Injectable wall clock.

Cooldowns, salary windows, daily streaks and mission epochs are all evaluated
lazily against `Clock.now()`. Timestamps are always timezone-aware UTC.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Clock:
    """System clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime as an ISO-8601 UTC string."""
    if value is None:
        return None
    return ensure_utc(value).isoformat()


def from_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string produced by `to_iso`."""
    if not value:
        return None
    return ensure_utc(datetime.fromisoformat(value))
