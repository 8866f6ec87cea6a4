# tutorhub/services/invoice_trigger_service.py
"""
Invoice Trigger Service for TutorHub

Generates a session-pack invoice when a student's prepaid balance crosses
from positive to zero-or-below, whether by admin edit or by logging a
session. Only the crossing fires: an edit that leaves an already-empty
balance empty does nothing.

Failures here are isolated from the balance update that caused them. The
balance is already committed when the trigger runs; a failed invoice is
logged and rolled back.
"""

from datetime import datetime, time, timedelta
from decimal import Decimal
import logging
import re
import secrets
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import settings
from ..core.enums import InvoiceStatus, InvoiceType, NotificationType
from ..core.exceptions import NotFoundException
from ..core.timezone_utils import business_today, local_to_utc
from ..events.occurrence_events import SessionBalanceChanged
from ..models.invoice import Invoice
from ..models.student import Student
from ..models.user import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .audit_service import AuditService
from .base import BaseService
from .compliance_alert_service import apply_payment_resolution
from .notification_service import NotificationService, NotificationSink, notify_all

logger = logging.getLogger(__name__)

_SUFFIX_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def build_invoice_number(student_name: str, on: datetime) -> str:
    """``INV-<NAME>-<YYYYMMDD>-<XXXX>``; name upper-cased, dashed, cut to 10 chars."""
    slug = re.sub(r"\s+", "-", student_name.strip()).upper()[:10] or "STUDENT"
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(4))
    return f"INV-{slug}-{on:%Y%m%d}-{suffix}"


class InvoiceTriggerService(BaseService):
    """Auto-invoicing on balance depletion, scheduled sending and payment."""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        notifications: Optional[NotificationSink] = None,
        audit: Optional[AuditService] = None,
    ):
        super().__init__(db, clock)
        self.notifications = notifications or NotificationService(db, self.clock)
        self.audit = audit or AuditService(db, self.clock)
        self.repository = RepositoryFactory.create_invoice_repository(db)
        self.student_repository = RepositoryFactory.create_student_repository(db)
        self.payment_alert_repository = RepositoryFactory.create_payment_alert_repository(db)

    def handle_balance_change(self, event: SessionBalanceChanged) -> Optional[Invoice]:
        """
        Event handler entry point. Never raises: a failed invoice is logged
        and the session rolled back.
        """
        if not event.is_depletion:
            return None
        invoice = None
        with self.best_effort("auto_invoice"):
            invoice = self.generate_for_depletion(event.student_id)
        return invoice

    @BaseService.measure_operation("generate_for_depletion")
    def generate_for_depletion(self, student_id: str) -> Optional[Invoice]:
        """Create the session-pack invoice if the student's settings call for one."""
        student = self.student_repository.get_for_update(student_id)
        if not student:
            raise NotFoundException(f"Student {student_id} not found")
        if not student.auto_invoice_enabled:
            self.logger.info("Auto-invoice disabled for student %s; skipping", student_id)
            return None
        pack = student.default_session_pack or 0
        if pack <= 0:
            self.logger.info("Student %s has no session pack configured; skipping", student_id)
            return None

        with self.transaction():
            invoice = self._create_pack_invoice(student, pack)

        prometheus_metrics.record_invoice_generated(invoice.status)
        self.logger.info(
            "Auto-invoice %s (%s) created for student %s",
            invoice.invoice_number,
            invoice.status,
            student_id,
        )
        self.audit.record(
            "invoice",
            invoice.id,
            "auto_invoice_created",
            None,
            after={
                "student_id": student.id,
                "sessions_included": pack,
                "amount": str(invoice.amount),
                "status": invoice.status,
            },
        )
        if invoice.status == InvoiceStatus.SENT.value:
            self._notify_sent(invoice)
        return invoice

    def _create_pack_invoice(self, student: Student, pack: int) -> Invoice:
        now = self.now()
        rate = Decimal(student.parent_rate or 0)
        amount = (rate * pack).quantize(Decimal("0.01"))
        terms = timedelta(days=settings.invoice_payment_terms_days)

        invoice_number = build_invoice_number(student.full_name, now)
        while self.repository.number_exists(invoice_number):
            invoice_number = build_invoice_number(student.full_name, now)

        send_date = student.recurring_invoice_send_date
        scheduled = send_date is not None and send_date > business_today(now)
        if scheduled:
            send_at = local_to_utc(send_date, time(0, 0))
            invoice = self.repository.create(
                invoice_number=invoice_number,
                student_id=student.id,
                parent_id=student.parent_user_id,
                invoice_type=InvoiceType.AUTO_SESSIONS.value,
                sessions_included=pack,
                amount=amount,
                status=InvoiceStatus.SCHEDULED.value,
                scheduled_send_date=send_date,
                due_date=send_at + terms,
                notes=f"{pack} session package for {student.full_name}, scheduled for {send_date}",
                created_at=now,
            )
            # One-shot: later depletions send immediately
            student.recurring_invoice_send_date = None
        else:
            invoice = self.repository.create(
                invoice_number=invoice_number,
                student_id=student.id,
                parent_id=student.parent_user_id,
                invoice_type=InvoiceType.AUTO_SESSIONS.value,
                sessions_included=pack,
                amount=amount,
                status=InvoiceStatus.SENT.value,
                sent_at=now,
                due_date=now + terms,
                notes=f"{pack} session package for {student.full_name}",
                created_at=now,
            )
        return invoice

    @BaseService.measure_operation("process_scheduled_invoices")
    def process_scheduled_invoices(self) -> List[Invoice]:
        """Send scheduled invoices whose send date has arrived."""
        now = self.now()
        sent: List[Invoice] = []
        for invoice in self.repository.find_scheduled_due(business_today(now)):
            with self.transaction():
                invoice.status = InvoiceStatus.SENT.value
                invoice.sent_at = now
            sent.append(invoice)
            self._notify_sent(invoice)
        if sent:
            self.logger.info("Sent %d scheduled invoices", len(sent))
        return sent

    @BaseService.measure_operation("mark_invoice_paid")
    def mark_invoice_paid(self, invoice_id: str, actor: Optional[User] = None) -> Invoice:
        """Record payment and resolve the invoice's pending payment alert."""
        invoice = self.repository.get_by_id(invoice_id)
        if not invoice:
            raise NotFoundException(f"Invoice {invoice_id} not found")
        if invoice.is_paid:
            return invoice

        now = self.now()
        before = {"status": invoice.status}
        with self.transaction():
            invoice.status = InvoiceStatus.PAID.value
            invoice.paid_at = now
            alert = self.payment_alert_repository.get_pending_for_invoice(invoice.id)
            if alert is not None:
                apply_payment_resolution(alert, now)
        self.audit.record(
            "invoice", invoice.id, "invoice_paid", actor, before=before, after={"status": "paid"}
        )
        return invoice

    def _notify_sent(self, invoice: Invoice) -> None:
        if not invoice.parent_id:
            return
        notify_all(
            self.notifications,
            self.db,
            [invoice.parent_id],
            NotificationType.INVOICE_GENERATED.value,
            {
                "invoice_id": invoice.id,
                "invoice_number": invoice.invoice_number,
                "amount": str(invoice.amount),
                "due_date": invoice.due_date.isoformat() if invoice.due_date else None,
                "message": f"Invoice {invoice.invoice_number} for "
                f"{invoice.sessions_included} sessions is ready",
            },
        )
