"""
Core Module Package.

This package contains the infrastructure shared by every
other module.

Components:
- clock: Unified UTC time abstraction (swappable for tests)
"""

from .clock import (
    ClockFactory,
    ClockProtocol,
    MockClock,
    SystemClock,
    age_of,
    days_since,
    ensure_utc,
    from_iso8601,
    now_utc,
    start_of_day,
    start_of_month,
    to_iso8601,
    today_utc,
)


__all__ = [
    "ClockFactory",
    "ClockProtocol",
    "MockClock",
    "SystemClock",
    "age_of",
    "days_since",
    "ensure_utc",
    "from_iso8601",
    "now_utc",
    "start_of_day",
    "start_of_month",
    "to_iso8601",
    "today_utc",
]
