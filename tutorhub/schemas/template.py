"""Recurring template schemas."""

from datetime import date, datetime, time
from typing import List, Optional

from pydantic import Field, field_validator, model_validator

from ..core.enums import ClassType
from ..core.timezone_utils import parse_wall_time
from ._strict_base import ORMResponseModel, StrictRequestModel, reject_explicit_nulls


class TemplateBase(StrictRequestModel):
    tutor_id: str
    student_id: Optional[str] = None
    group_id: Optional[str] = None
    day_of_week: int = Field(..., ge=0, le=6, description="0=Sunday .. 6=Saturday")
    start_time: time
    duration_minutes: int = Field(default=60, ge=15, le=720)
    subject: Optional[str] = Field(default=None, max_length=255)
    class_type: ClassType = ClassType.INDIVIDUAL
    start_date: date
    end_date: Optional[date] = None
    notes: Optional[str] = None

    @field_validator("start_time", mode="before")
    @classmethod
    def parse_time_string(cls, v: object) -> object:
        """Convert HH:MM strings to time objects."""
        if isinstance(v, str) and len(v) == 5:
            return parse_wall_time(v)
        return v

    @model_validator(mode="after")
    def _check_parties_and_dates(self) -> "TemplateBase":
        if bool(self.student_id) == bool(self.group_id):
            raise ValueError("Exactly one of student_id or group_id is required")
        if self.group_id and self.class_type != ClassType.GROUP:
            raise ValueError("Group templates must use class_type 'group'")
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        return self


class TemplateCreate(TemplateBase):
    generate: bool = True


class TemplateUpdate(StrictRequestModel):
    tutor_id: Optional[str] = None
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    start_time: Optional[time] = None
    duration_minutes: Optional[int] = Field(default=None, ge=15, le=720)
    subject: Optional[str] = Field(default=None, max_length=255)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: Optional[str] = None

    @field_validator("start_time", mode="before")
    @classmethod
    def parse_time_string(cls, v: object) -> object:
        if isinstance(v, str) and len(v) == 5:
            return parse_wall_time(v)
        return v

    @model_validator(mode="after")
    def _not_null(self) -> "TemplateUpdate":
        reject_explicit_nulls(
            self, ("tutor_id", "day_of_week", "start_time", "duration_minutes", "start_date")
        )
        return self


class StudentScheduleReplace(StrictRequestModel):
    templates: List[TemplateCreate] = Field(..., min_length=1)


class GenerateRequest(StrictRequestModel):
    horizon_end: Optional[date] = None


class TemplateResponse(ORMResponseModel):
    id: str
    tutor_id: str
    student_id: Optional[str] = None
    group_id: Optional[str] = None
    day_of_week: int
    start_time: time
    duration_minutes: int
    subject: Optional[str] = None
    class_type: str
    start_date: date
    end_date: Optional[date] = None
    is_active: bool
    notes: Optional[str] = None
    created_at: datetime
