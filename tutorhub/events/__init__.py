from .bus import EventBus
from .occurrence_events import (
    OccurrenceCancelled,
    OccurrenceCompleted,
    OccurrenceNoShow,
    OccurrenceRescheduled,
    SchedulingEvent,
    SessionBalanceChanged,
)

__all__ = [
    "EventBus",
    "OccurrenceCancelled",
    "OccurrenceCompleted",
    "OccurrenceNoShow",
    "OccurrenceRescheduled",
    "SchedulingEvent",
    "SessionBalanceChanged",
]
