"""Session occurrence schemas."""

from datetime import date, datetime
from typing import Optional

from pydantic import Field, ValidationInfo, field_validator, model_validator

from ..core.enums import OccurrenceStatus
from ._strict_base import ORMResponseModel, StrictRequestModel, require_aware


class OccurrenceStatusUpdate(StrictRequestModel):
    status: OccurrenceStatus
    correction: bool = False
    reason: Optional[str] = Field(default=None, max_length=2000)


class OccurrenceUpdate(StrictRequestModel):
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    notes: Optional[str] = None

    @field_validator("start_at", "end_at")
    @classmethod
    def _aware(cls, v: Optional[datetime], info: ValidationInfo) -> Optional[datetime]:
        return require_aware(v, info.field_name)

    @model_validator(mode="after")
    def _check_range(self) -> "OccurrenceUpdate":
        if self.start_at and self.end_at and self.end_at <= self.start_at:
            raise ValueError("end_at must be after start_at")
        return self


class AdhocOccurrenceCreate(StrictRequestModel):
    tutor_id: str
    student_id: Optional[str] = None
    group_id: Optional[str] = None
    start_at: datetime
    end_at: datetime
    subject: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = None

    @field_validator("start_at", "end_at")
    @classmethod
    def _aware(cls, v: datetime, info: ValidationInfo) -> datetime:
        return require_aware(v, info.field_name)

    @model_validator(mode="after")
    def _check(self) -> "AdhocOccurrenceCreate":
        if self.end_at <= self.start_at:
            raise ValueError("end_at must be after start_at")
        if bool(self.student_id) == bool(self.group_id):
            raise ValueError("Exactly one of student_id or group_id is required")
        return self


class OccurrenceFlag(StrictRequestModel):
    comment: Optional[str] = Field(default=None, max_length=2000)


class OccurrenceResponse(ORMResponseModel):
    id: str
    template_id: Optional[str] = None
    tutor_id: str
    student_id: Optional[str] = None
    group_id: Optional[str] = None
    occurrence_date: date
    start_at: datetime
    end_at: datetime
    subject: Optional[str] = None
    class_type: str
    duration_minutes: int
    status: str
    source: str
    original_date: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    notes: Optional[str] = None
    parent_flagged: bool = False
    parent_flag_comment: Optional[str] = None
    parent_flagged_at: Optional[datetime] = None
