"""
Clock -- injectable source of the current time.

Services stamp return confirmations, date commission expenses and resolve
report periods from ``Clock.now()``; nothing else in the package reads the
system time.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone


class Clock(ABC):
    """Current time as a timezone-aware UTC ``datetime``."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """Clock frozen at one instant, for tests and replays."""

    def __init__(self, fixed_time: datetime):
        if fixed_time.tzinfo is None:
            fixed_time = fixed_time.replace(tzinfo=timezone.utc)
        self._fixed_time = fixed_time

    def now(self) -> datetime:
        return self._fixed_time
