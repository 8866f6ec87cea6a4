"""Data access for invoices and reminder markers."""

from datetime import date, datetime
from typing import List, Set

from sqlalchemy import exists
from sqlalchemy.orm import Session

from ..core.enums import InvoiceStatus
from ..models.alerts import InvoicePaymentAlert
from ..models.invoice import Invoice, InvoiceReminder
from .base_repository import BaseRepository


class InvoiceRepository(BaseRepository[Invoice]):
    def __init__(self, db: Session):
        super().__init__(db, Invoice)

    def number_exists(self, invoice_number: str) -> bool:
        return self.exists(invoice_number=invoice_number)

    def find_unpaid_sent_before(self, cutoff: datetime) -> List[Invoice]:
        """Sent, unpaid invoices sent strictly before ``cutoff`` with no payment alert."""
        has_alert = exists().where(InvoicePaymentAlert.invoice_id == Invoice.id)
        query = (
            self._build_query()
            .filter(
                Invoice.status == InvoiceStatus.SENT.value,
                Invoice.sent_at.isnot(None),
                Invoice.sent_at < cutoff,
                Invoice.paid_at.is_(None),
                ~has_alert,
            )
            .order_by(Invoice.sent_at)
        )
        return self._execute_query(query)

    def find_reminder_candidates(self) -> List[Invoice]:
        """Sent invoices that are unpaid and not claimed paid by the parent."""
        query = self._build_query().filter(
            Invoice.status == InvoiceStatus.SENT.value,
            Invoice.sent_at.isnot(None),
            Invoice.paid_at.is_(None),
            Invoice.parent_claimed_paid.is_(False),
        )
        return self._execute_query(query)

    def find_scheduled_due(self, on_or_before: date) -> List[Invoice]:
        query = self._build_query().filter(
            Invoice.status == InvoiceStatus.SCHEDULED.value,
            Invoice.scheduled_send_date.isnot(None),
            Invoice.scheduled_send_date <= on_or_before,
        )
        return self._execute_query(query)

    def reminded_thresholds(self, invoice_id: str) -> Set[int]:
        query = self.db.query(InvoiceReminder.threshold_days).filter(
            InvoiceReminder.invoice_id == invoice_id
        )
        return {row[0] for row in self._execute_query(query)}

    def record_reminder(self, invoice_id: str, threshold_days: int, sent_at: datetime) -> InvoiceReminder:
        reminder = InvoiceReminder(
            invoice_id=invoice_id, threshold_days=threshold_days, sent_at=sent_at
        )
        self.db.add(reminder)
        self.db.flush()
        return reminder
