"""
Clock -- injectable "today" for plugins.

Plugins that fall back to the current day (a payment without a cleared
date, an attendance record without a registration date) ask the clock
rather than calling ``date.today()``, so charge runs are reproducible in
tests.  Days are UTC calendar days.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timezone


class Clock(ABC):

    @abstractmethod
    def now(self) -> datetime:
        """Timezone-aware current time."""

    def today(self) -> date:
        return self.now().astimezone(timezone.utc).date()


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """Always reports ``fixed_time``; naive values are taken as UTC."""

    def __init__(self, fixed_time: datetime | None = None):
        fixed_time = fixed_time or datetime(2025, 1, 1, 12, tzinfo=timezone.utc)
        if fixed_time.tzinfo is None:
            fixed_time = fixed_time.replace(tzinfo=timezone.utc)
        self._fixed_time = fixed_time

    def now(self) -> datetime:
        return self._fixed_time
