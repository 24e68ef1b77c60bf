"""
Tests for the shared clock.
"""

from datetime import date, datetime, timedelta, timezone

from core.clock import (
    ClockFactory,
    age_of,
    days_since,
    ensure_utc,
    from_iso8601,
    now_utc,
    start_of_month,
    today_utc,
)


NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


class TestMockClock:

    def test_use_mock_freezes_and_restores(self):
        original = ClockFactory.get_clock()
        with ClockFactory.use_mock(NOW) as clock:
            assert now_utc() == NOW
            clock.advance(days=1)
            assert today_utc() == date(2024, 6, 16)
        assert ClockFactory.get_clock() is original

    def test_naive_initial_time_is_utc(self):
        with ClockFactory.use_mock(datetime(2024, 6, 15, 12, 0)):
            assert now_utc() == NOW


class TestConversions:

    def test_zulu_suffix(self):
        assert from_iso8601("2024-06-15T12:00:00Z") == NOW

    def test_offset_converted(self):
        plus_one = timezone(timedelta(hours=1))
        assert ensure_utc(datetime(2024, 6, 15, 13, 0, tzinfo=plus_one)) == NOW


class TestAges:

    def test_age_of(self):
        assert age_of(NOW - timedelta(hours=3), NOW) == timedelta(hours=3)

    def test_future_timestamp_has_zero_age(self):
        assert age_of(NOW + timedelta(minutes=5), NOW) == timedelta(0)

    def test_age_of_uses_clock(self, clock):
        assert age_of(clock.now() - timedelta(minutes=10)) == timedelta(minutes=10)

    def test_naive_timestamp(self):
        assert age_of(datetime(2024, 6, 15, 11, 0), NOW) == timedelta(hours=1)

    def test_days_since(self):
        assert days_since(date(2024, 1, 1), date(2024, 6, 15)) == 166

    def test_start_of_month(self):
        assert start_of_month(date(2024, 2, 29)) == date(2024, 2, 1)
