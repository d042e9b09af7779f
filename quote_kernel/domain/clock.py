"""
Injectable time source.

Services take a Clock instead of calling ``datetime.now()``: approval
decision times, request times, procurement log times and the "today"
fallback for unusable order dates all come from it.  Tests pin it with
``DeterministicClock``.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone

DEFAULT_TEST_TIME = datetime(2025, 1, 6, 9, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of the current instant, always timezone-aware UTC."""

    @abstractmethod
    def now_utc(self) -> datetime:
        ...

    def today(self) -> date:
        """Current UTC calendar date, the fallback for order dates."""
        return self.now_utc().date()


class SystemClock(Clock):
    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self._current = (start or DEFAULT_TEST_TIME).astimezone(timezone.utc)

    def now_utc(self) -> datetime:
        return self._current

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)
