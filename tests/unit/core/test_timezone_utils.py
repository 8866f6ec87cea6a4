# tests/unit/core/test_timezone_utils.py
from datetime import date, datetime, time, timedelta, timezone

import pytest

from tutorhub.core.timezone_utils import business_today, ensure_utc, local_to_utc, parse_wall_time

UTC = timezone.utc


class TestLocalToUtc:
    def test_winter_time_matches_utc(self):
        assert local_to_utc(date(2024, 1, 14), time(16, 0)) == datetime(
            2024, 1, 14, 16, 0, tzinfo=UTC
        )

    def test_summer_time_is_one_hour_ahead(self):
        assert local_to_utc(date(2024, 7, 14), time(16, 0)) == datetime(
            2024, 7, 14, 15, 0, tzinfo=UTC
        )

    def test_spring_forward_gap_shifts_forward(self):
        # 01:30 does not exist on 2024-03-31 in London
        assert local_to_utc(date(2024, 3, 31), time(1, 30)) == datetime(
            2024, 3, 31, 1, 30, tzinfo=UTC
        )

    def test_fall_back_overlap_uses_standard_time(self):
        assert local_to_utc(date(2024, 10, 27), time(1, 30)) == datetime(
            2024, 10, 27, 1, 30, tzinfo=UTC
        )


def test_business_today_uses_local_date():
    late_summer_evening = datetime(2024, 7, 14, 23, 30, tzinfo=UTC)
    assert business_today(late_summer_evening) == date(2024, 7, 15)


def test_ensure_utc_converts_offsets():
    paris = timezone(timedelta(hours=1))
    assert ensure_utc(datetime(2024, 3, 1, 11, 0, tzinfo=paris)) == datetime(
        2024, 3, 1, 10, 0, tzinfo=UTC
    )


def test_ensure_utc_rejects_naive():
    with pytest.raises(ValueError):
        ensure_utc(datetime(2024, 3, 1, 10, 0))


@pytest.mark.parametrize("value", ["25:00", "abc", "10-30"])
def test_parse_wall_time_rejects_garbage(value):
    with pytest.raises(ValueError):
        parse_wall_time(value)


def test_parse_wall_time():
    assert parse_wall_time("07:45") == time(7, 45)
