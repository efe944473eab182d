"""
Injectable time source.

Services read "now" and "today" through a Clock: invoice dates, default
ledger entry dates and the month in ``BILL-YYYYMM-NNN`` numbers.  Tests pin
time with DeterministicClock.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """``now()`` is timezone-aware; ``today()`` is its calendar date."""

    @abstractmethod
    def now(self) -> datetime: ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """Frozen at ``fixed_time`` until moved with ``advance_days()``."""

    def __init__(self, fixed_time: datetime | None = None):
        self._now = fixed_time or datetime(2024, 1, 1, 12, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance_days(self, days: int = 1) -> None:
        self._now += timedelta(days=days)
