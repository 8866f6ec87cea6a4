"""Typed domain events emitted by the scheduling engine."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class SchedulingEvent(BaseModel):
    """Base class for scheduling domain events."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    occurred_at: datetime
    actor_id: Optional[str] = None


class OccurrenceCompleted(SchedulingEvent):
    occurrence_id: str
    tutor_id: str
    student_id: Optional[str] = None


class OccurrenceCancelled(SchedulingEvent):
    occurrence_id: str
    actor_role: Optional[str] = None


class OccurrenceNoShow(SchedulingEvent):
    occurrence_id: str
    actor_role: Optional[str] = None


class OccurrenceRescheduled(SchedulingEvent):
    occurrence_id: str
    previous_start_at: datetime
    new_start_at: datetime
    new_end_at: datetime


class SessionBalanceChanged(SchedulingEvent):
    student_id: str
    previous_balance: int
    new_balance: int

    @property
    def is_depletion(self) -> bool:
        """Balance crossed from positive to zero-or-below."""
        return self.previous_balance > 0 and self.new_balance <= 0
