"""Unit tests for the clock abstraction."""

from datetime import UTC, datetime, timedelta

import pytest

from inventory_ledger.domain.clock import DeterministicClock, SystemClock


class TestDeterministicClock:
    def test_default_time_is_fixed(self):
        clock = DeterministicClock()
        assert clock.now() == datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)
        assert clock.now() == clock.now()

    def test_advance_and_tick(self):
        start = datetime(2025, 3, 1, tzinfo=UTC)
        clock = DeterministicClock(start)
        clock.advance(30)
        assert clock.now() == start + timedelta(seconds=30)
        assert clock.tick() == start + timedelta(seconds=31)

    def test_set_time_resets_advance(self):
        clock = DeterministicClock()
        clock.advance(100)
        target = datetime(2030, 1, 1, tzinfo=UTC)
        clock.set_time(target)
        assert clock.now() == target

    def test_naive_datetime_rejected(self):
        with pytest.raises(ValueError):
            DeterministicClock(datetime(2024, 1, 1))
        with pytest.raises(ValueError):
            DeterministicClock().set_time(datetime(2024, 1, 1))


def test_system_clock_is_aware_utc():
    now = SystemClock().now()
    assert now.tzinfo is not None
    assert now.utcoffset() == timedelta(0)
