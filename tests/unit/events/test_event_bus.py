# tests/unit/events/test_event_bus.py
from datetime import datetime, timezone

from pydantic import ValidationError
import pytest

from tutorhub.events.bus import EventBus
from tutorhub.events.occurrence_events import (
    OccurrenceCancelled,
    OccurrenceCompleted,
    SessionBalanceChanged,
)

NOW = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)


def _completed():
    return OccurrenceCompleted(occurred_at=NOW, occurrence_id="occ", tutor_id="tutor")


def test_handlers_receive_only_their_event_type():
    bus = EventBus()
    completed, cancelled = [], []
    bus.subscribe(OccurrenceCompleted, completed.append)
    bus.subscribe(OccurrenceCancelled, cancelled.append)

    bus.publish(_completed())

    assert len(completed) == 1
    assert cancelled == []


def test_failing_handler_does_not_stop_the_rest():
    bus = EventBus()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe(OccurrenceCompleted, broken)
    bus.subscribe(OccurrenceCompleted, seen.append)

    assert bus.publish(_completed()) == 1
    assert len(seen) == 1


def test_unsubscribe():
    bus = EventBus()
    seen = []
    bus.subscribe(OccurrenceCompleted, seen.append)
    bus.unsubscribe(OccurrenceCompleted, seen.append)
    bus.publish(_completed())
    assert bus.handlers_for(OccurrenceCompleted) == ()
    assert seen == []


def test_unsubscribe_keeps_other_handlers():
    class Recorder:
        def __init__(self):
            self.events = []

        def handle(self, event):
            self.events.append(event)

    bus = EventBus()
    kept, dropped = Recorder(), Recorder()
    bus.subscribe(OccurrenceCompleted, kept.handle)
    bus.subscribe(OccurrenceCompleted, dropped.handle)
    bus.unsubscribe(OccurrenceCompleted, dropped.handle)

    bus.publish(_completed())
    assert len(kept.events) == 1
    assert dropped.events == []


@pytest.mark.parametrize(
    "previous,new,expected",
    [(2, 0, True), (1, -1, True), (0, 0, False), (0, -1, False), (3, 1, False)],
)
def test_depletion_is_a_crossing(previous, new, expected):
    event = SessionBalanceChanged(
        occurred_at=NOW, student_id="s", previous_balance=previous, new_balance=new
    )
    assert event.is_depletion is expected


def test_events_are_immutable():
    event = _completed()
    with pytest.raises(ValidationError):
        event.occurrence_id = "other"
