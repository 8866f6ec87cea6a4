# tutorhub/routes/v1/change_requests.py
"""
Change request routes - API v1

Endpoints:
    POST /                          → Parent or tutor asks to cancel/move a session
    GET /                           → List requests (admin: all; others: their own)
    GET /{request_id}               → Get one request
    POST /{request_id}/acknowledge  → Admin marks the request as seen
    POST /{request_id}/resolve      → Admin approves or rejects
"""

import logging
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ...api.dependencies import get_change_request_service, get_current_user, require_admin
from ...core.exceptions import DomainException
from ...models.user import User
from ...schemas.change_request import (
    ChangeRequestAcknowledge,
    ChangeRequestDecisionRequest,
    ChangeRequestResponse,
    ChangeRequestSubmit,
)
from ...services.change_request_service import ChangeRequestService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["change-requests-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post("", response_model=ChangeRequestResponse, status_code=status.HTTP_201_CREATED)
def submit_change_request(
    payload: ChangeRequestSubmit = Body(...),
    current_user: User = Depends(get_current_user),
    service: ChangeRequestService = Depends(get_change_request_service),
) -> ChangeRequestResponse:
    try:
        request = service.submit_change_request(
            payload.session_occurrence_id,
            current_user,
            payload.requester_type.value,
            payload.proposal,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return ChangeRequestResponse.model_validate(request)


@router.get("", response_model=List[ChangeRequestResponse])
def list_change_requests(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    parent_id: Optional[str] = Query(default=None),
    tutor_id: Optional[str] = Query(default=None),
    current_user: User = Depends(get_current_user),
    service: ChangeRequestService = Depends(get_change_request_service),
) -> List[ChangeRequestResponse]:
    if current_user.is_parent:
        parent_id, tutor_id = current_user.id, None
    elif current_user.is_tutor:
        parent_id, tutor_id = None, current_user.id
    try:
        requests = service.list_change_requests(
            status=status_filter, parent_id=parent_id, tutor_id=tutor_id
        )
    except DomainException as e:
        handle_domain_exception(e)
    return [ChangeRequestResponse.model_validate(r) for r in requests]


@router.get("/{request_id}", response_model=ChangeRequestResponse)
def get_change_request(
    request_id: str,
    current_user: User = Depends(get_current_user),
    service: ChangeRequestService = Depends(get_change_request_service),
) -> ChangeRequestResponse:
    try:
        request = service.get_change_request(request_id)
    except DomainException as e:
        handle_domain_exception(e)
    visible = (
        current_user.is_admin
        or request.requester_id == current_user.id
        or request.parent_id == current_user.id
        or request.tutor_id == current_user.id
    )
    if not visible:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Change request not found")
    return ChangeRequestResponse.model_validate(request)


@router.post("/{request_id}/acknowledge", response_model=ChangeRequestResponse)
def acknowledge_change_request(
    request_id: str,
    payload: ChangeRequestAcknowledge = Body(default_factory=ChangeRequestAcknowledge),
    current_user: User = Depends(require_admin),
    service: ChangeRequestService = Depends(get_change_request_service),
) -> ChangeRequestResponse:
    try:
        request = service.acknowledge_change_request(request_id, current_user, payload.admin_notes)
    except DomainException as e:
        handle_domain_exception(e)
    return ChangeRequestResponse.model_validate(request)


@router.post("/{request_id}/resolve", response_model=ChangeRequestResponse)
def resolve_change_request(
    request_id: str,
    payload: ChangeRequestDecisionRequest = Body(...),
    current_user: User = Depends(require_admin),
    service: ChangeRequestService = Depends(get_change_request_service),
) -> ChangeRequestResponse:
    try:
        request = service.resolve_change_request(
            request_id,
            payload.decision.value,
            current_user,
            payload.admin_notes,
            override_start_at=payload.override_start_at,
            override_end_at=payload.override_end_at,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return ChangeRequestResponse.model_validate(request)
