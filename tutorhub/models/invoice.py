# tutorhub/models/invoice.py
"""
Invoice models.

Only the parts of invoicing the scheduling engine touches are modelled:
auto-generated session-pack invoices, their send/payment timestamps and
the reminder ledger used by the payment escalation scan.
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import InvoiceStatus, InvoiceType
from ..database import Base
from .types import UTCDateTime


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    invoice_number = Column(String(64), nullable=False, unique=True)
    student_id = Column(String(26), ForeignKey("students.id"), nullable=False, index=True)
    parent_id = Column(String(26), ForeignKey("users.id"), nullable=True, index=True)

    invoice_type = Column(String(20), nullable=False, default=InvoiceType.MANUAL.value)
    sessions_included = Column(Integer, nullable=True)
    amount = Column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    status = Column(String(20), nullable=False, default=InvoiceStatus.DRAFT.value, index=True)

    scheduled_send_date = Column(Date, nullable=True)
    sent_at = Column(UTCDateTime(), nullable=True)
    due_date = Column(UTCDateTime(), nullable=True)
    paid_at = Column(UTCDateTime(), nullable=True)
    parent_claimed_paid = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)

    created_at = Column(UTCDateTime(), nullable=False, default=_now_utc)
    updated_at = Column(UTCDateTime(), nullable=True, onupdate=_now_utc)

    reminders = relationship(
        "InvoiceReminder", back_populates="invoice", cascade="all, delete-orphan"
    )

    @property
    def is_paid(self) -> bool:
        return self.status == InvoiceStatus.PAID.value or self.paid_at is not None

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number} {self.status}>"


class InvoiceReminder(Base):
    """One row per (invoice, threshold) reminder that has been sent."""

    __tablename__ = "invoice_reminders"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    invoice_id = Column(
        String(26), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    threshold_days = Column(Integer, nullable=False)
    sent_at = Column(UTCDateTime(), nullable=False, default=_now_utc)

    invoice = relationship("Invoice", back_populates="reminders")

    __table_args__ = (
        UniqueConstraint("invoice_id", "threshold_days", name="uq_invoice_reminder_threshold"),
    )
