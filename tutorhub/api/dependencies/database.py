"""Database session and time source dependencies."""

from ...core.clock import Clock, system_clock
from ...database import get_db

__all__ = ["get_clock", "get_db"]


def get_clock() -> Clock:
    """Time source for request handling; overridden in tests."""
    return system_clock
