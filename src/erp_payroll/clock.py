"""Injectable time source.

Generation and suggestion logic never call ``date.today()`` directly; the
service receives a ``Clock`` so tests can pin "now" to a fixed instant.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime, timezone


class Clock(ABC):
    """Abstract clock interface."""

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time (timezone-aware, UTC)."""
        ...

    def today(self) -> date:
        """Get the current calendar date."""
        return self.now().date()


class SystemClock(Clock):
    """Production clock that returns actual system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def _as_utc(value: datetime | date) -> datetime:
    if not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class FixedClock(Clock):
    """Test clock pinned to a single instant."""

    def __init__(self, fixed: datetime | date):
        self._now = _as_utc(fixed)

    def now(self) -> datetime:
        return self._now

    def set(self, fixed: datetime | date) -> None:
        """Move the clock to another instant."""
        self._now = _as_utc(fixed)
