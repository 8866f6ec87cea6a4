# tutorhub/schemas/change_request.py
"""
Change request schemas.

A proposal is a tagged union on ``request_type``:

    {"request_type": "cancel", "reason": ...}
    {"request_type": "reschedule", "proposed_start_at": ..., "proposed_end_at": ...,
     "message": ..., "reason": ...}

Structural checks (both-or-neither instants, end after start, zone-aware
values, something for the admin to act on) run before any service code.
"""

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import Field, ValidationInfo, field_validator, model_validator

from ..core.enums import ChangeRequestDecision, RequesterType
from ._strict_base import ORMResponseModel, StrictRequestModel, require_aware


class CancelProposal(StrictRequestModel):
    request_type: Literal["cancel"] = "cancel"
    reason: Optional[str] = Field(default=None, max_length=2000)


class RescheduleProposal(StrictRequestModel):
    request_type: Literal["reschedule"] = "reschedule"
    proposed_start_at: Optional[datetime] = None
    proposed_end_at: Optional[datetime] = None
    message: Optional[str] = Field(default=None, max_length=2000)
    reason: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("proposed_start_at", "proposed_end_at")
    @classmethod
    def _aware(cls, v: Optional[datetime], info: ValidationInfo) -> Optional[datetime]:
        return require_aware(v, info.field_name)

    @model_validator(mode="after")
    def _check_proposal(self) -> "RescheduleProposal":
        has_start = self.proposed_start_at is not None
        has_end = self.proposed_end_at is not None
        if has_start != has_end:
            raise ValueError("proposed_start_at and proposed_end_at must be given together")
        if has_start and self.proposed_end_at <= self.proposed_start_at:
            raise ValueError("proposed_end_at must be after proposed_start_at")
        if not has_start and not (self.message and self.message.strip()):
            raise ValueError("A reschedule needs proposed times or a message")
        return self


ChangeProposal = Annotated[
    Union[CancelProposal, RescheduleProposal], Field(discriminator="request_type")
]


class ChangeRequestSubmit(StrictRequestModel):
    session_occurrence_id: str
    requester_type: RequesterType
    proposal: ChangeProposal


class ChangeRequestDecisionRequest(StrictRequestModel):
    decision: ChangeRequestDecision
    admin_notes: Optional[str] = Field(default=None, max_length=2000)
    override_start_at: Optional[datetime] = None
    override_end_at: Optional[datetime] = None

    @field_validator("override_start_at", "override_end_at")
    @classmethod
    def _aware(cls, v: Optional[datetime], info: ValidationInfo) -> Optional[datetime]:
        return require_aware(v, info.field_name)


class ChangeRequestAcknowledge(StrictRequestModel):
    admin_notes: Optional[str] = Field(default=None, max_length=2000)


class ChangeRequestResponse(ORMResponseModel):
    id: str
    session_occurrence_id: Optional[str] = None
    requester_type: str
    requester_id: str
    parent_id: Optional[str] = None
    tutor_id: str
    student_id: Optional[str] = None
    group_id: Optional[str] = None
    request_type: str
    original_date: datetime
    proposed_start_at: Optional[datetime] = None
    proposed_end_at: Optional[datetime] = None
    proposed_message: Optional[str] = None
    reason: Optional[str] = None
    status: str
    decision: Optional[str] = None
    is_acknowledged: bool = False
    admin_notes: Optional[str] = None
    processed_at: Optional[datetime] = None
    processed_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    created_at: datetime
