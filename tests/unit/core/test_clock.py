# tests/unit/core/test_clock.py
from datetime import datetime, timedelta, timezone

import pytest

from tutorhub.core.clock import FixedClock, system_clock


def test_fixed_clock_moves_only_when_told():
    start = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
    clock = FixedClock(start)
    assert clock.now() == start
    assert clock.advance(hours=25) == start + timedelta(hours=25)
    clock.set(start)
    assert clock.now() == start


def test_fixed_clock_normalizes_to_utc():
    clock = FixedClock(datetime(2024, 7, 1, 12, 0, tzinfo=timezone(timedelta(hours=2))))
    assert clock.now().utcoffset() == timedelta(0)
    assert clock.now().hour == 10


def test_fixed_clock_rejects_naive():
    with pytest.raises(ValueError):
        FixedClock(datetime(2024, 3, 1))


def test_system_clock_is_aware():
    assert system_clock.now().tzinfo is not None
