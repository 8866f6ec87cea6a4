"""
Default subscribers for scheduling events.

Wires the side effects of the occurrence lifecycle:

- completion creates the session's timesheet entry
- cancellation or no-show dismisses a pending logging alert
- balance depletion generates an auto-invoice

Each handler rolls the session back if it fails so the bus can carry on
with a clean session; the bus logs and counts the failure.
"""

from functools import wraps
import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..services.compliance_alert_service import ComplianceAlertService
from ..services.invoice_trigger_service import InvoiceTriggerService
from ..services.notification_service import NotificationService, NotificationSink
from ..services.timesheet_service import TimesheetService
from .bus import EventBus
from .occurrence_events import (
    OccurrenceCancelled,
    OccurrenceCompleted,
    OccurrenceNoShow,
    SessionBalanceChanged,
    SchedulingEvent,
)

logger = logging.getLogger(__name__)


def _rollback_on_error(db: Session, handler: Callable[[SchedulingEvent], object]):
    @wraps(handler)
    def wrapper(event: SchedulingEvent) -> None:
        try:
            handler(event)
        except Exception:
            db.rollback()
            raise

    return wrapper


def register_default_handlers(
    bus: EventBus,
    db: Session,
    clock: Optional[Clock] = None,
    notifications: Optional[NotificationSink] = None,
) -> EventBus:
    notifications = notifications or NotificationService(db, clock)
    timesheets = TimesheetService(db, clock, event_bus=bus)
    alerts = ComplianceAlertService(db, clock, notifications=notifications)
    invoices = InvoiceTriggerService(db, clock, notifications=notifications)

    def on_completed(event: OccurrenceCompleted) -> None:
        timesheets.handle_occurrence_completed(event)

    def on_closed(event: SchedulingEvent) -> None:
        status = "cancelled" if isinstance(event, OccurrenceCancelled) else "no-show"
        role = getattr(event, "actor_role", None) or "system"
        alerts.dismiss_for_occurrence(
            event.occurrence_id,
            reason=f"Session marked as {status} by {role}",
            dismissed_by=event.actor_id,
        )

    def on_balance_changed(event: SessionBalanceChanged) -> None:
        invoices.handle_balance_change(event)

    bus.subscribe(OccurrenceCompleted, _rollback_on_error(db, on_completed))
    bus.subscribe(OccurrenceCancelled, _rollback_on_error(db, on_closed))
    bus.subscribe(OccurrenceNoShow, _rollback_on_error(db, on_closed))
    bus.subscribe(SessionBalanceChanged, _rollback_on_error(db, on_balance_changed))
    return bus


def build_event_bus(
    db: Session,
    clock: Optional[Clock] = None,
    notifications: Optional[NotificationSink] = None,
) -> EventBus:
    """A bus with the standard side effects bound to ``db``."""
    return register_default_handlers(EventBus(), db, clock, notifications)
