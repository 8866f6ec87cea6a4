# tutorhub/models/alerts.py
"""
Compliance alert models.

Both alert kinds follow the same shape: created once by a periodic scan,
then either resolved automatically or dismissed by an admin with a reason.
The unique key on the watched entity backs the create-if-not-exists rule.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, Integer, Numeric, String, Text
import ulid

from ..core.enums import AlertStatus
from ..database import Base
from .types import UTCDateTime


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class SessionLoggingAlert(Base):
    """A finished session nobody logged a timesheet for."""

    __tablename__ = "session_logging_alerts"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    session_occurrence_id = Column(
        String(26),
        ForeignKey("session_occurrences.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    tutor_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    student_id = Column(String(26), ForeignKey("students.id"), nullable=True)
    session_end_at = Column(UTCDateTime(), nullable=False)
    alert_created_at = Column(UTCDateTime(), nullable=False, default=_now_utc)

    status = Column(String(20), nullable=False, default=AlertStatus.PENDING.value, index=True)
    resolved_at = Column(UTCDateTime(), nullable=True)
    resolved_by_timesheet_entry_id = Column(
        String(26), ForeignKey("timesheet_entries.id", ondelete="SET NULL"), nullable=True
    )
    hours_late = Column(Numeric(8, 2), nullable=True)
    dismissed_by = Column(String(26), ForeignKey("users.id"), nullable=True)
    dismissed_at = Column(UTCDateTime(), nullable=True)
    dismiss_reason = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<SessionLoggingAlert {self.id} {self.status}>"


class InvoicePaymentAlert(Base):
    """An invoice that stayed unpaid past the grace window."""

    __tablename__ = "invoice_payment_alerts"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    invoice_id = Column(
        String(26),
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    parent_id = Column(String(26), ForeignKey("users.id"), nullable=True, index=True)
    student_id = Column(String(26), ForeignKey("students.id"), nullable=True)
    invoice_sent_at = Column(UTCDateTime(), nullable=False)
    due_date = Column(UTCDateTime(), nullable=False)
    alert_created_at = Column(UTCDateTime(), nullable=False, default=_now_utc)

    status = Column(String(20), nullable=False, default=AlertStatus.PENDING.value, index=True)
    resolved_at = Column(UTCDateTime(), nullable=True)
    days_overdue = Column(Integer, nullable=True)
    dismissed_by = Column(String(26), ForeignKey("users.id"), nullable=True)
    dismissed_at = Column(UTCDateTime(), nullable=True)
    dismiss_reason = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<InvoicePaymentAlert {self.id} {self.status}>"
