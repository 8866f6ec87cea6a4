"""
Service layer dependencies for dependency injection.

Every request gets one event bus bound to its database session, so the
side effects of a transition (timesheets, alert dismissal, invoicing)
run on the same session after the primary commit.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.clock import Clock
from ...events.bus import EventBus
from ...events.handlers import build_event_bus
from ...services.audit_service import AuditService
from ...services.change_request_service import ChangeRequestService
from ...services.compliance_alert_service import ComplianceAlertService
from ...services.invoice_trigger_service import InvoiceTriggerService
from ...services.notification_service import NotificationService
from ...services.occurrence_generator import OccurrenceGeneratorService
from ...services.occurrence_lifecycle import OccurrenceLifecycleService
from ...services.student_balance_service import StudentBalanceService
from ...services.template_service import TemplateService
from ...services.timesheet_service import TimesheetService
from .database import get_clock, get_db


def get_notification_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> NotificationService:
    return NotificationService(db, clock)


def get_audit_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> AuditService:
    return AuditService(db, clock)


def get_event_bus(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifications: NotificationService = Depends(get_notification_service),
) -> EventBus:
    return build_event_bus(db, clock, notifications)


def get_generator_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> OccurrenceGeneratorService:
    return OccurrenceGeneratorService(db, clock)


def get_template_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    audit: AuditService = Depends(get_audit_service),
) -> TemplateService:
    return TemplateService(db, clock, audit=audit)


def get_lifecycle_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    bus: EventBus = Depends(get_event_bus),
    notifications: NotificationService = Depends(get_notification_service),
    audit: AuditService = Depends(get_audit_service),
) -> OccurrenceLifecycleService:
    return OccurrenceLifecycleService(
        db, clock, event_bus=bus, notifications=notifications, audit=audit
    )


def get_change_request_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    bus: EventBus = Depends(get_event_bus),
    notifications: NotificationService = Depends(get_notification_service),
    audit: AuditService = Depends(get_audit_service),
) -> ChangeRequestService:
    return ChangeRequestService(
        db, clock, event_bus=bus, notifications=notifications, audit=audit
    )


def get_compliance_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifications: NotificationService = Depends(get_notification_service),
) -> ComplianceAlertService:
    return ComplianceAlertService(db, clock, notifications=notifications)


def get_student_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    bus: EventBus = Depends(get_event_bus),
    audit: AuditService = Depends(get_audit_service),
) -> StudentBalanceService:
    return StudentBalanceService(db, clock, event_bus=bus, audit=audit)


def get_timesheet_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    bus: EventBus = Depends(get_event_bus),
) -> TimesheetService:
    return TimesheetService(db, clock, event_bus=bus)


def get_invoice_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifications: NotificationService = Depends(get_notification_service),
    audit: AuditService = Depends(get_audit_service),
) -> InvoiceTriggerService:
    return InvoiceTriggerService(db, clock, notifications=notifications, audit=audit)
