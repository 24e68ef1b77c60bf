"""
Core Module - Clock.

============================================================
RESPONSIBILITY
============================================================
One swappable UTC clock for the whole tracker.

- Market data freshness and the sync cache TTL
- Queue backoff schedules and stale-job recovery
- Sales windows, rollup day/month boundaries, retention
- Days held for repricing

Tests freeze "now" with ClockFactory.use_mock().

============================================================
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from typing import Generator, Optional
import threading


# ============================================================
# CLOCKS
# ============================================================

class ClockProtocol(ABC):
    """Source of the current UTC time."""

    @abstractmethod
    def now(self) -> datetime:
        pass

    def today(self) -> date:
        return self.now().date()


class SystemClock(ClockProtocol):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class MockClock(ClockProtocol):
    """Frozen clock; moves only through set_time() or advance()."""

    def __init__(self, initial_time: Optional[datetime] = None):
        self._time = ensure_utc(initial_time) if initial_time else datetime.now(timezone.utc)
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._time

    def set_time(self, new_time: datetime) -> None:
        with self._lock:
            self._time = ensure_utc(new_time)

    def advance(self, **kwargs) -> None:
        """Move forward by a timedelta (days=, hours=, minutes=...)."""
        with self._lock:
            self._time = self._time + timedelta(**kwargs)


class ClockFactory:
    """Holder of the process-wide clock."""

    _instance: Optional[ClockProtocol] = None
    _lock = threading.Lock()

    @classmethod
    def get_clock(cls) -> ClockProtocol:
        with cls._lock:
            if cls._instance is None:
                cls._instance = SystemClock()
            return cls._instance

    @classmethod
    def set_clock(cls, clock: ClockProtocol) -> None:
        with cls._lock:
            cls._instance = clock

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._instance = SystemClock()

    @classmethod
    @contextmanager
    def use_mock(
        cls,
        initial_time: Optional[datetime] = None,
    ) -> Generator[MockClock, None, None]:
        """Swap in a MockClock for the duration of the block."""
        original = cls._instance
        mock = MockClock(initial_time)
        cls.set_clock(mock)
        try:
            yield mock
        finally:
            cls._instance = original


def now_utc() -> datetime:
    return ClockFactory.get_clock().now()


def today_utc() -> date:
    return ClockFactory.get_clock().today()


# ============================================================
# CONVERSIONS
# ============================================================

def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso8601(dt: datetime) -> str:
    return ensure_utc(dt).isoformat()


def from_iso8601(iso_string: str) -> datetime:
    """Parse provider timestamps, including a trailing "Z"."""
    if iso_string.endswith("Z"):
        iso_string = iso_string[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(iso_string))


# ============================================================
# AGES AND BOUNDARIES
# ============================================================

def age_of(timestamp: datetime, now: Optional[datetime] = None) -> timedelta:
    """
    Time elapsed since a snapshot or attempt.

    Future timestamps (provider clock skew) count as zero age.
    """
    return max(timedelta(0), (now or now_utc()) - ensure_utc(timestamp))


def days_since(day: date, today: Optional[date] = None) -> int:
    """Whole days from a purchase date to today."""
    return ((today or today_utc()) - day).days


def start_of_day(day: date) -> datetime:
    """Midnight UTC of the given date."""
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


def start_of_month(day: date) -> date:
    return day.replace(day=1)


__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "ClockFactory",
    "now_utc",
    "today_utc",
    "ensure_utc",
    "to_iso8601",
    "from_iso8601",
    "age_of",
    "days_since",
    "start_of_day",
    "start_of_month",
]
