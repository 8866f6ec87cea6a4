# tutorhub/services/compliance_alert_service.py
"""
Compliance Alert Service for TutorHub

Two alert kinds share one pattern: detect -> create-if-not-exists ->
resolve or dismiss.

* Session logging alerts: a scheduled session ended more than the grace
  window ago and nobody logged a timesheet for it.
* Invoice payment alerts: an invoice was sent more than the grace window
  ago and is still unpaid.

Scans may run as often as anyone likes, concurrently or after a crash.
Each alert is created in its own transaction after re-checking that none
exists, and the unique key on the watched entity turns a lost race into
a skipped row instead of a duplicate.
"""

from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Callable, Dict, List, Optional, TypeVar

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import settings
from ..core.enums import AlertStatus, NotificationType
from ..core.exceptions import (
    ConflictException,
    NotFoundException,
    RepositoryException,
    ValidationException,
)
from ..models.alerts import InvoicePaymentAlert, SessionLoggingAlert
from ..models.invoice import Invoice
from ..models.user import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.alerts import TutorComplianceMetrics
from .base import BaseService
from .notification_service import NotificationService, NotificationSink, notify_all

logger = logging.getLogger(__name__)

A = TypeVar("A")


def apply_logging_resolution(
    alert: SessionLoggingAlert, timesheet_entry_id: str, now: datetime
) -> None:
    """Mark a pending logging alert resolved by a timesheet."""
    hours_late = (now - alert.alert_created_at).total_seconds() / 3600
    alert.status = AlertStatus.RESOLVED.value
    alert.resolved_at = now
    alert.resolved_by_timesheet_entry_id = timesheet_entry_id
    alert.hours_late = Decimal(str(max(hours_late, 0))).quantize(
        Decimal("0.01"), rounding=ROUND_HALF_UP
    )


def apply_payment_resolution(alert: InvoicePaymentAlert, now: datetime) -> None:
    """Mark a pending payment alert resolved by a payment."""
    alert.status = AlertStatus.RESOLVED.value
    alert.resolved_at = now
    alert.days_overdue = max((now - alert.due_date).days, 0)


class ComplianceAlertService(BaseService):
    """Detection, resolution and dismissal of compliance alerts."""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        notifications: Optional[NotificationSink] = None,
    ):
        super().__init__(db, clock)
        self.notifications = notifications or NotificationService(db, self.clock)
        self.occurrence_repository = RepositoryFactory.create_occurrence_repository(db)
        self.logging_alert_repository = RepositoryFactory.create_logging_alert_repository(db)
        self.payment_alert_repository = RepositoryFactory.create_payment_alert_repository(db)
        self.invoice_repository = RepositoryFactory.create_invoice_repository(db)
        self.student_repository = RepositoryFactory.create_student_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)

    def _create_once(self, exists: Callable[[], bool], create: Callable[[], A]) -> Optional[A]:
        """Create one alert in its own transaction unless it already exists."""
        try:
            with self.transaction():
                if exists():
                    return None
                return create()
        except RepositoryException:
            # Another scan inserted the same alert first
            self.logger.info("Alert already created by a concurrent scan; skipping")
            return None

    # Session logging alerts

    @BaseService.measure_operation("scan_logging_alerts")
    def scan_logging_alerts(self) -> List[SessionLoggingAlert]:
        """Create alerts for sessions that ended past the grace window without a timesheet."""
        now = self.now()
        cutoff = now - timedelta(hours=settings.session_logging_grace_hours)
        created: List[SessionLoggingAlert] = []
        for occurrence in self.occurrence_repository.find_unlogged_ended_before(cutoff):
            alert = self._create_once(
                lambda: self.logging_alert_repository.get_for_occurrence(occurrence.id)
                is not None,
                lambda: self.logging_alert_repository.create(
                    session_occurrence_id=occurrence.id,
                    tutor_id=occurrence.tutor_id,
                    student_id=occurrence.student_id,
                    session_end_at=occurrence.end_at,
                    alert_created_at=now,
                    status=AlertStatus.PENDING.value,
                ),
            )
            if alert is not None:
                created.append(alert)
        prometheus_metrics.record_alerts_created("session_logging", len(created))
        if created:
            self.logger.info("Created %d session logging alerts", len(created))
        return created

    def list_logging_alerts(
        self, tutor_id: Optional[str] = None, status: Optional[str] = None
    ) -> List[SessionLoggingAlert]:
        return self.logging_alert_repository.list_filtered(
            tutor_id=tutor_id, status=self._check_status(status)
        )

    @BaseService.measure_operation("dismiss_logging_alert")
    def dismiss_logging_alert(self, alert_id: str, admin: User, reason: str) -> SessionLoggingAlert:
        reason = self._check_reason(reason)
        alert = self.logging_alert_repository.get_by_id(alert_id)
        if not alert:
            raise NotFoundException(f"Alert {alert_id} not found")
        self._check_pending(alert.status)
        with self.transaction():
            self._dismiss(alert, admin.id, reason)
        return alert

    def dismiss_for_occurrence(
        self, occurrence_id: str, reason: str, dismissed_by: Optional[str] = None
    ) -> Optional[SessionLoggingAlert]:
        """Dismiss the pending logging alert of an occurrence, if any."""
        with self.transaction():
            alert = self.logging_alert_repository.get_pending_for_occurrence(occurrence_id)
            if alert is None:
                return None
            self._dismiss(alert, dismissed_by, reason)
        self.logger.info("Logging alert %s dismissed: %s", alert.id, reason)
        return alert

    def _dismiss(self, alert, dismissed_by: Optional[str], reason: str) -> None:
        alert.status = AlertStatus.DISMISSED.value
        alert.dismissed_by = dismissed_by
        alert.dismissed_at = self.now()
        alert.dismiss_reason = reason

    # Invoice payment alerts

    @BaseService.measure_operation("scan_invoice_alerts")
    def scan_invoice_alerts(self) -> List[InvoicePaymentAlert]:
        """Create alerts for invoices still unpaid past the grace window."""
        now = self.now()
        cutoff = now - timedelta(days=settings.invoice_alert_grace_days)
        created: List[InvoicePaymentAlert] = []
        for invoice in self.invoice_repository.find_unpaid_sent_before(cutoff):
            alert = self._create_once(
                lambda: self.payment_alert_repository.get_for_invoice(invoice.id) is not None,
                lambda: self.payment_alert_repository.create(
                    invoice_id=invoice.id,
                    parent_id=self._parent_for_invoice(invoice),
                    student_id=invoice.student_id,
                    invoice_sent_at=invoice.sent_at,
                    due_date=invoice.due_date
                    or invoice.sent_at + timedelta(days=settings.invoice_payment_terms_days),
                    alert_created_at=now,
                    status=AlertStatus.PENDING.value,
                ),
            )
            if alert is not None:
                created.append(alert)
        prometheus_metrics.record_alerts_created("invoice_payment", len(created))
        if created:
            self.logger.info("Created %d invoice payment alerts", len(created))
        return created

    def _parent_for_invoice(self, invoice: Invoice) -> Optional[str]:
        if invoice.parent_id:
            return invoice.parent_id
        student = self.student_repository.get_by_id(invoice.student_id)
        return student.parent_user_id if student else None

    def list_invoice_alerts(
        self, parent_id: Optional[str] = None, status: Optional[str] = None
    ) -> List[InvoicePaymentAlert]:
        return self.payment_alert_repository.list_filtered(
            parent_id=parent_id, status=self._check_status(status)
        )

    @BaseService.measure_operation("dismiss_invoice_alert")
    def dismiss_invoice_alert(self, alert_id: str, admin: User, reason: str) -> InvoicePaymentAlert:
        reason = self._check_reason(reason)
        alert = self.payment_alert_repository.get_by_id(alert_id)
        if not alert:
            raise NotFoundException(f"Alert {alert_id} not found")
        self._check_pending(alert.status)
        with self.transaction():
            self._dismiss(alert, admin.id, reason)
        return alert

    @BaseService.measure_operation("send_invoice_reminders")
    def send_invoice_reminders(self) -> int:
        """
        Remind parents about unpaid invoices at each configured threshold.

        A threshold is recorded before the notification goes out, so each
        (invoice, threshold) pair is reminded at most once. When a run finds
        several thresholds already passed, all are recorded and a single
        reminder is sent for the latest one.
        """
        now = self.now()
        thresholds = settings.invoice_reminder_thresholds_days
        sent = 0
        for invoice in self.invoice_repository.find_reminder_candidates():
            days_since_sent = (now - invoice.sent_at).days
            try:
                with self.transaction():
                    already = self.invoice_repository.reminded_thresholds(invoice.id)
                    due = [t for t in thresholds if t <= days_since_sent and t not in already]
                    for threshold in due:
                        self.invoice_repository.record_reminder(invoice.id, threshold, now)
            except RepositoryException:
                self.logger.info("Reminder for invoice %s recorded concurrently", invoice.id)
                continue
            if not due:
                continue
            parent_id = self._parent_for_invoice(invoice)
            if not parent_id:
                self.logger.warning("Invoice %s has no parent to remind", invoice.id)
                continue
            sent += notify_all(
                self.notifications,
                self.db,
                [parent_id],
                NotificationType.INVOICE_REMINDER.value,
                {
                    "invoice_id": invoice.id,
                    "invoice_number": invoice.invoice_number,
                    "amount": str(invoice.amount),
                    "days_since_sent": days_since_sent,
                    "threshold_days": max(due),
                    "message": f"Invoice {invoice.invoice_number} is still awaiting payment",
                },
            )
        return sent

    # Reporting

    def get_tutor_compliance_metrics(
        self, tutor_id: Optional[str] = None
    ) -> List[TutorComplianceMetrics]:
        """Per-tutor late-logging statistics over completed sessions."""
        completed = self.occurrence_repository.count_completed_by_tutor(tutor_id)
        pending = self.logging_alert_repository.count_pending_by_tutor(tutor_id)
        late: Dict[str, List[Decimal]] = {}
        for alert in self.logging_alert_repository.list_resolved(tutor_id):
            late.setdefault(alert.tutor_id, []).append(Decimal(alert.hours_late or 0))

        metrics = []
        for tid, total in completed.items():
            tutor = self.user_repository.get_by_id(tid)
            hours = late.get(tid, [])
            metrics.append(
                TutorComplianceMetrics(
                    tutor_id=tid,
                    tutor_name=tutor.full_name if tutor else "Unknown",
                    total_sessions=total,
                    late_logged=len(hours),
                    late_percentage=(len(hours) / total * 100) if total else 0.0,
                    avg_hours_late=float(sum(hours) / len(hours)) if hours else 0.0,
                    pending_alerts=pending.get(tid, 0),
                )
            )
        return metrics

    @staticmethod
    def _check_reason(reason: Optional[str]) -> str:
        if not reason or not reason.strip():
            raise ValidationException("A dismissal reason is required", code="REASON_REQUIRED")
        return reason.strip()

    @staticmethod
    def _check_pending(status: str) -> None:
        if status != AlertStatus.PENDING.value:
            raise ConflictException(
                f"Alert is already {status}", code="ALERT_CLOSED", details={"status": status}
            )

    @staticmethod
    def _check_status(status: Optional[str]) -> Optional[str]:
        if status is None:
            return None
        try:
            return AlertStatus(status).value
        except ValueError:
            raise ValidationException(f"Unknown alert status '{status}'")
