# tutorhub/routes/v1/occurrences.py
"""
Session occurrence routes - API v1

Endpoints:
    GET /                        → Sessions in a time range, scoped to the caller
    POST /                       → Create an ad hoc session (admin or tutor)
    GET /{occurrence_id}         → Get one session
    PATCH /{occurrence_id}       → Edit notes or move the session (admin)
    DELETE /{occurrence_id}      → Delete a session (admin)
    POST /{occurrence_id}/status → Complete, cancel, mark no-show or correct
    POST /{occurrence_id}/flag   → Parent flags a session for review
    POST /{occurrence_id}/log    → Tutor logs the session's timesheet
"""

from datetime import datetime
import logging
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ...api.dependencies import (
    get_current_user,
    get_lifecycle_service,
    get_timesheet_service,
    require_admin,
    require_parent,
    require_tutor_or_admin,
)
from ...core.exceptions import DomainException, ForbiddenException
from ...models.user import User
from ...schemas.occurrence import (
    AdhocOccurrenceCreate,
    OccurrenceFlag,
    OccurrenceResponse,
    OccurrenceStatusUpdate,
    OccurrenceUpdate,
)
from ...schemas.student import TimesheetCreate, TimesheetResponse
from ...services.occurrence_lifecycle import OccurrenceLifecycleService
from ...services.ownership import parent_owns_occurrence, tutor_assigned_to_occurrence
from ...services.timesheet_service import TimesheetService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["occurrences-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("", response_model=List[OccurrenceResponse])
def list_occurrences(
    start: datetime = Query(...),
    end: datetime = Query(...),
    tutor_id: Optional[str] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    current_user: User = Depends(get_current_user),
    service: OccurrenceLifecycleService = Depends(get_lifecycle_service),
) -> List[OccurrenceResponse]:
    parent = None
    if current_user.is_tutor:
        tutor_id = current_user.id
    elif current_user.is_parent:
        parent = current_user
    try:
        occurrences = service.list_occurrences(
            start, end, tutor_id=tutor_id, parent=parent, status=status_filter
        )
    except DomainException as e:
        handle_domain_exception(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return [OccurrenceResponse.model_validate(o) for o in occurrences]


@router.post("", response_model=OccurrenceResponse, status_code=status.HTTP_201_CREATED)
def create_adhoc_occurrence(
    payload: AdhocOccurrenceCreate = Body(...),
    current_user: User = Depends(require_tutor_or_admin),
    service: OccurrenceLifecycleService = Depends(get_lifecycle_service),
) -> OccurrenceResponse:
    try:
        occurrence = service.create_adhoc_occurrence(
            tutor_id=payload.tutor_id,
            start_at=payload.start_at,
            end_at=payload.end_at,
            student_id=payload.student_id,
            group_id=payload.group_id,
            subject=payload.subject,
            notes=payload.notes,
            actor=current_user,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return OccurrenceResponse.model_validate(occurrence)


@router.get("/{occurrence_id}", response_model=OccurrenceResponse)
def get_occurrence(
    occurrence_id: str,
    current_user: User = Depends(get_current_user),
    service: OccurrenceLifecycleService = Depends(get_lifecycle_service),
) -> OccurrenceResponse:
    try:
        occurrence = service.get_occurrence(occurrence_id)
    except DomainException as e:
        handle_domain_exception(e)
    visible = (
        current_user.is_admin
        or (current_user.is_tutor and tutor_assigned_to_occurrence(current_user, occurrence))
        or (
            current_user.is_parent
            and parent_owns_occurrence(service.student_repository, current_user, occurrence)
        )
    )
    if not visible:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return OccurrenceResponse.model_validate(occurrence)


@router.patch("/{occurrence_id}", response_model=OccurrenceResponse)
def update_occurrence(
    occurrence_id: str,
    payload: OccurrenceUpdate = Body(...),
    current_user: User = Depends(require_admin),
    service: OccurrenceLifecycleService = Depends(get_lifecycle_service),
) -> OccurrenceResponse:
    try:
        occurrence = service.update_occurrence(
            occurrence_id,
            start_at=payload.start_at,
            end_at=payload.end_at,
            notes=payload.notes,
            actor=current_user,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return OccurrenceResponse.model_validate(occurrence)


@router.delete("/{occurrence_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_occurrence(
    occurrence_id: str,
    current_user: User = Depends(require_admin),
    service: OccurrenceLifecycleService = Depends(get_lifecycle_service),
) -> None:
    try:
        service.delete_occurrence(occurrence_id, current_user)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{occurrence_id}/status", response_model=OccurrenceResponse)
def update_occurrence_status(
    occurrence_id: str,
    payload: OccurrenceStatusUpdate = Body(...),
    current_user: User = Depends(require_tutor_or_admin),
    service: OccurrenceLifecycleService = Depends(get_lifecycle_service),
) -> OccurrenceResponse:
    try:
        if current_user.is_tutor:
            occurrence = service.get_occurrence(occurrence_id)
            if not tutor_assigned_to_occurrence(current_user, occurrence):
                raise ForbiddenException("You can only update your own sessions")
        occurrence = service.transition_occurrence(
            occurrence_id,
            payload.status.value,
            current_user,
            correction=payload.correction,
            reason=payload.reason,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return OccurrenceResponse.model_validate(occurrence)


@router.post("/{occurrence_id}/flag", response_model=OccurrenceResponse)
def flag_occurrence(
    occurrence_id: str,
    payload: OccurrenceFlag = Body(...),
    current_user: User = Depends(require_parent),
    service: OccurrenceLifecycleService = Depends(get_lifecycle_service),
) -> OccurrenceResponse:
    try:
        occurrence = service.flag_occurrence(occurrence_id, current_user, payload.comment)
    except DomainException as e:
        handle_domain_exception(e)
    return OccurrenceResponse.model_validate(occurrence)


@router.post(
    "/{occurrence_id}/log", response_model=TimesheetResponse, status_code=status.HTTP_201_CREATED
)
def log_session(
    occurrence_id: str,
    payload: TimesheetCreate = Body(default_factory=TimesheetCreate),
    current_user: User = Depends(require_tutor_or_admin),
    service: TimesheetService = Depends(get_timesheet_service),
) -> TimesheetResponse:
    try:
        entry = service.log_session(
            current_user,
            session_occurrence_id=occurrence_id,
            student_id=payload.student_id,
            work_date=payload.work_date,
            hours=payload.hours,
            description=payload.description,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return TimesheetResponse.model_validate(entry)
