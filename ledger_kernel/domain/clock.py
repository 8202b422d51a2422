"""
Injectable time source.

Services ask their ``Clock`` for the current instant instead of calling
``datetime.now()``; audit timestamps, default report dates and period
lock times all come from here, which is what makes tests repeatable.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone

DEFAULT_TEST_INSTANT = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of timezone-aware "now"; ``today()`` is its calendar date."""

    @abstractmethod
    def now(self) -> datetime: ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.

    ``now()`` stays put until moved with ``advance()`` (any number of
    seconds) or ``tick()`` (one second, returning the new instant).
    Naive datetimes are taken as UTC.
    """

    def __init__(self, start: datetime | None = None):
        start = start or DEFAULT_TEST_INSTANT
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        self._current = start

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: int | float = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        self.advance(1)
        return self._current

    def __repr__(self) -> str:
        return f"DeterministicClock({self._current.isoformat()})"
