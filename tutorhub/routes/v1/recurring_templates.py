# tutorhub/routes/v1/recurring_templates.py
"""
Recurring template routes - API v1

Endpoints:
    GET /                           → List templates (admin; tutors see their own)
    POST /                          → Create a template, optionally expanding it (admin)
    GET /{template_id}              → Get one template
    PATCH /{template_id}            → Edit; schedule changes regenerate occurrences (admin)
    DELETE /{template_id}           → Deactivate (admin)
    POST /{template_id}/generate    → Expand up to a horizon (admin)
    POST /{template_id}/regenerate  → Rebuild future occurrences (admin)
    PUT /students/{student_id}      → Replace a student's weekly schedule (admin)
"""

import logging
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ...api.dependencies import (
    get_generator_service,
    get_template_service,
    require_admin,
    require_tutor_or_admin,
)
from ...core.exceptions import DomainException
from ...models.user import User
from ...schemas.alerts import ScanResult
from ...schemas.template import (
    GenerateRequest,
    StudentScheduleReplace,
    TemplateCreate,
    TemplateResponse,
    TemplateUpdate,
)
from ...services.occurrence_generator import OccurrenceGeneratorService
from ...services.template_service import TemplateService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["recurring-templates-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("", response_model=List[TemplateResponse])
def list_templates(
    tutor_id: Optional[str] = Query(default=None),
    include_inactive: bool = Query(default=False),
    current_user: User = Depends(require_tutor_or_admin),
    service: TemplateService = Depends(get_template_service),
) -> List[TemplateResponse]:
    if current_user.is_tutor:
        tutor_id = current_user.id
    templates = service.list_templates(tutor_id=tutor_id, active_only=not include_inactive)
    return [TemplateResponse.model_validate(t) for t in templates]


@router.post("", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
def create_template(
    payload: TemplateCreate = Body(...),
    current_user: User = Depends(require_admin),
    service: TemplateService = Depends(get_template_service),
) -> TemplateResponse:
    try:
        return TemplateResponse.model_validate(service.create_template(payload, current_user))
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/students/{student_id}", response_model=List[TemplateResponse])
def replace_student_schedule(
    student_id: str,
    payload: StudentScheduleReplace = Body(...),
    current_user: User = Depends(require_admin),
    service: TemplateService = Depends(get_template_service),
) -> List[TemplateResponse]:
    try:
        created = service.replace_student_schedule(student_id, payload.templates, current_user)
    except DomainException as e:
        handle_domain_exception(e)
    return [TemplateResponse.model_validate(t) for t in created]


@router.get("/{template_id}", response_model=TemplateResponse)
def get_template(
    template_id: str,
    current_user: User = Depends(require_tutor_or_admin),
    service: TemplateService = Depends(get_template_service),
) -> TemplateResponse:
    try:
        template = service.get_template(template_id)
    except DomainException as e:
        handle_domain_exception(e)
    if current_user.is_tutor and template.tutor_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")
    return TemplateResponse.model_validate(template)


@router.patch("/{template_id}", response_model=TemplateResponse)
def update_template(
    template_id: str,
    payload: TemplateUpdate = Body(...),
    current_user: User = Depends(require_admin),
    service: TemplateService = Depends(get_template_service),
) -> TemplateResponse:
    try:
        return TemplateResponse.model_validate(
            service.update_template(template_id, payload, current_user)
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.delete("/{template_id}", response_model=TemplateResponse)
def deactivate_template(
    template_id: str,
    current_user: User = Depends(require_admin),
    service: TemplateService = Depends(get_template_service),
) -> TemplateResponse:
    try:
        return TemplateResponse.model_validate(
            service.deactivate_template(template_id, current_user)
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{template_id}/generate", response_model=ScanResult)
def generate_occurrences(
    template_id: str,
    payload: GenerateRequest = Body(default_factory=GenerateRequest),
    current_user: User = Depends(require_admin),
    service: OccurrenceGeneratorService = Depends(get_generator_service),
) -> ScanResult:
    try:
        created = service.generate_occurrences(template_id, payload.horizon_end)
    except DomainException as e:
        handle_domain_exception(e)
    return ScanResult(created=len(created))


@router.post("/{template_id}/regenerate", response_model=ScanResult)
def regenerate_occurrences(
    template_id: str,
    payload: GenerateRequest = Body(default_factory=GenerateRequest),
    current_user: User = Depends(require_admin),
    service: OccurrenceGeneratorService = Depends(get_generator_service),
) -> ScanResult:
    try:
        created = service.regenerate_occurrences(template_id, payload.horizon_end)
    except DomainException as e:
        handle_domain_exception(e)
    return ScanResult(created=len(created))
