"""Tests for the injectable clock."""

from datetime import date, datetime, timezone

from mfg_kernel.domain.clock import DeterministicClock, SystemClock


class TestDeterministicClock:
    def test_fixed_until_advanced(self):
        clock = DeterministicClock.on(date(2024, 1, 1))
        assert clock.now() == clock.now()
        assert clock.today() == date(2024, 1, 1)

    def test_advance_days(self):
        clock = DeterministicClock.on(date(2024, 1, 1))
        clock.advance_days(3)
        assert clock.today() == date(2024, 1, 4)

    def test_set_time_resets_advance(self):
        clock = DeterministicClock()
        clock.advance(120)
        target = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
        clock.set_time(target)
        assert clock.now() == target


class TestSystemClock:
    def test_now_is_timezone_aware(self):
        assert SystemClock().now().tzinfo is not None
