"""Compliance alert schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field, field_validator

from ._strict_base import ORMResponseModel, StrictModel, StrictRequestModel


class AlertDismiss(StrictRequestModel):
    reason: str = Field(..., min_length=1, max_length=2000)

    @field_validator("reason")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("A dismissal reason is required")
        return v.strip()


class SessionLoggingAlertResponse(ORMResponseModel):
    id: str
    session_occurrence_id: str
    tutor_id: str
    student_id: Optional[str] = None
    session_end_at: datetime
    alert_created_at: datetime
    status: str
    resolved_at: Optional[datetime] = None
    resolved_by_timesheet_entry_id: Optional[str] = None
    hours_late: Optional[Decimal] = None
    dismissed_by: Optional[str] = None
    dismissed_at: Optional[datetime] = None
    dismiss_reason: Optional[str] = None


class InvoicePaymentAlertResponse(ORMResponseModel):
    id: str
    invoice_id: str
    parent_id: Optional[str] = None
    student_id: Optional[str] = None
    invoice_sent_at: datetime
    due_date: datetime
    alert_created_at: datetime
    status: str
    resolved_at: Optional[datetime] = None
    days_overdue: Optional[int] = None
    dismissed_by: Optional[str] = None
    dismissed_at: Optional[datetime] = None
    dismiss_reason: Optional[str] = None


class TutorComplianceMetrics(StrictModel):
    tutor_id: str
    tutor_name: str
    total_sessions: int
    late_logged: int
    late_percentage: float
    avg_hours_late: float
    pending_alerts: int


class ScanResult(StrictModel):
    created: int
