"""
Time sources.

Every "now" comparison in the services goes through a ``Clock`` so grace
windows can be exercised deterministically in tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol


def _now_utc() -> datetime:
    """Return timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


class Clock(Protocol):
    def now(self) -> datetime:
        """Current instant, timezone-aware UTC."""


class SystemClock:
    """Wall clock."""

    def now(self) -> datetime:
        return _now_utc()


class FixedClock:
    """Clock frozen at a given instant; can be moved forward explicitly."""

    def __init__(self, at: datetime):
        if at.tzinfo is None:
            raise ValueError("FixedClock requires a timezone-aware datetime")
        self._at = at.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self._at

    def set(self, at: datetime) -> None:
        if at.tzinfo is None:
            raise ValueError("FixedClock requires a timezone-aware datetime")
        self._at = at.astimezone(timezone.utc)

    def advance(self, **kwargs: float) -> datetime:
        self._at = self._at + timedelta(**kwargs)
        return self._at


system_clock = SystemClock()
