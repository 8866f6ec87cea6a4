"""
Timezone utilities for TutorHub.

Templates carry a wall-clock start time in the business timezone; sessions
are stored as absolute UTC instants. These helpers do the conversion with
pytz so daylight-saving transitions resolve the same way everywhere.
"""

from datetime import date, datetime, time, timezone

import pytz

from .config import settings


def get_business_timezone() -> pytz.BaseTzInfo:
    """Return the configured business timezone as a pytz timezone object."""
    return pytz.timezone(settings.business_timezone)


def business_today(now: datetime) -> date:
    """Return the calendar date of ``now`` in the business timezone."""
    return ensure_utc(now).astimezone(get_business_timezone()).date()


def local_to_utc(day: date, wall_time: time) -> datetime:
    """
    Resolve a local wall-clock date/time to an aware UTC instant.

    Non-existent times (spring-forward gap) are shifted forward by pytz
    normalization; ambiguous times (fall-back overlap) resolve to the
    standard-time reading.
    """
    tz = get_business_timezone()
    naive = datetime.combine(day, wall_time)
    try:
        local = tz.localize(naive, is_dst=None)
    except pytz.exceptions.NonExistentTimeError:
        local = tz.normalize(tz.localize(naive, is_dst=False))
    except pytz.exceptions.AmbiguousTimeError:
        local = tz.localize(naive, is_dst=False)
    return local.astimezone(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    Naive values are rejected: instants crossing service boundaries must
    carry their zone.
    """
    if value.tzinfo is None:
        raise ValueError("Expected a timezone-aware datetime")
    return value.astimezone(timezone.utc)


def parse_wall_time(value: str) -> time:
    """Parse an ``HH:MM`` string into a ``time``."""
    try:
        hours, minutes = value.split(":")
        return time(int(hours), int(minutes))
    except (ValueError, AttributeError) as exc:
        raise ValueError(f"Invalid time '{value}', expected HH:MM") from exc
