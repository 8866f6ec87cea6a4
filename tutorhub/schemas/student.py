"""Student balance, timesheet and invoice schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field, model_validator

from ._strict_base import ORMResponseModel, StrictRequestModel, reject_explicit_nulls


class StudentBillingUpdate(StrictRequestModel):
    sessions_remaining: Optional[int] = None
    auto_invoice_enabled: Optional[bool] = None
    default_session_pack: Optional[int] = Field(default=None, ge=0)
    recurring_invoice_send_date: Optional[date] = None
    parent_rate: Optional[Decimal] = Field(default=None, ge=0)
    tutor_rate: Optional[Decimal] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _not_null(self) -> "StudentBillingUpdate":
        reject_explicit_nulls(
            self,
            (
                "sessions_remaining",
                "auto_invoice_enabled",
                "default_session_pack",
                "parent_rate",
                "tutor_rate",
            ),
        )
        return self


class StudentResponse(ORMResponseModel):
    id: str
    full_name: str
    parent_user_id: Optional[str] = None
    sessions_remaining: int
    auto_invoice_enabled: bool
    default_session_pack: int
    recurring_invoice_send_date: Optional[date] = None
    parent_rate: Decimal
    tutor_rate: Decimal


class TimesheetCreate(StrictRequestModel):
    session_occurrence_id: Optional[str] = None
    student_id: Optional[str] = None
    work_date: Optional[date] = None
    hours: Optional[Decimal] = Field(default=None, gt=0, le=24)
    description: Optional[str] = None


class TimesheetResponse(ORMResponseModel):
    id: str
    tutor_id: str
    student_id: Optional[str] = None
    session_occurrence_id: Optional[str] = None
    work_date: date
    hours: Decimal
    tutor_earnings: Decimal
    description: Optional[str] = None


class InvoiceResponse(ORMResponseModel):
    id: str
    invoice_number: str
    student_id: str
    parent_id: Optional[str] = None
    invoice_type: str
    sessions_included: Optional[int] = None
    amount: Decimal
    status: str
    scheduled_send_date: Optional[date] = None
    sent_at: Optional[datetime] = None
    due_date: Optional[datetime] = None
    paid_at: Optional[datetime] = None
