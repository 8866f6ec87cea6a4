# tutorhub/events/bus.py
"""
In-process event bus.

Handlers run after the publishing service has committed its transaction.
Each handler is isolated: an exception is logged and the remaining
handlers still run. Nothing a handler does can roll back the change that
produced the event.
"""

import logging
from collections import defaultdict
from typing import Callable, DefaultDict, List, Sequence, Type

from ..monitoring.prometheus_metrics import prometheus_metrics
from .occurrence_events import SchedulingEvent

logger = logging.getLogger("tutorhub.events")

EventHandler = Callable[[SchedulingEvent], None]


class EventBus:
    """Registry of handlers keyed by event class."""

    def __init__(self) -> None:
        self._handlers: DefaultDict[Type[SchedulingEvent], List[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: Type[SchedulingEvent], handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: Type[SchedulingEvent], handler: EventHandler) -> None:
        self._handlers[event_type] = [
            existing for existing in self._handlers[event_type] if existing != handler
        ]

    def handlers_for(self, event_type: Type[SchedulingEvent]) -> Sequence[EventHandler]:
        return tuple(self._handlers.get(event_type, ()))

    def publish(self, event: SchedulingEvent) -> int:
        """Dispatch ``event``; returns how many handlers failed."""
        failures = 0
        logger.info("scheduling_event=%s payload=%s", event.__class__.__name__, event.model_dump())
        for handler in list(self._handlers.get(type(event), ())):
            try:
                handler(event)
            except Exception:
                failures += 1
                prometheus_metrics.record_side_effect_failure(event.__class__.__name__)
                logger.exception(
                    "Event handler %s failed for %s",
                    getattr(handler, "__name__", repr(handler)),
                    event.__class__.__name__,
                )
        return failures
