# tutorhub/routes/v1/students.py
"""
Student balance routes - API v1

Endpoints:
    GET /{student_id}          → Balance and invoicing settings (admin or own parent)
    PATCH /{student_id}/billing → Edit balance and invoicing settings (admin)
"""

import logging
from typing import NoReturn

from fastapi import APIRouter, Body, Depends, HTTPException, status

from ...api.dependencies import get_current_user, get_student_service, require_admin
from ...core.exceptions import DomainException
from ...models.user import User
from ...schemas.student import StudentBillingUpdate, StudentResponse
from ...services.student_balance_service import StudentBalanceService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["students-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("/{student_id}", response_model=StudentResponse)
def get_student(
    student_id: str,
    current_user: User = Depends(get_current_user),
    service: StudentBalanceService = Depends(get_student_service),
) -> StudentResponse:
    try:
        student = service.get_student(student_id)
    except DomainException as e:
        handle_domain_exception(e)
    if not current_user.is_admin and student.parent_user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    return StudentResponse.model_validate(student)


@router.patch("/{student_id}/billing", response_model=StudentResponse)
def update_student_billing(
    student_id: str,
    payload: StudentBillingUpdate = Body(...),
    current_user: User = Depends(require_admin),
    service: StudentBalanceService = Depends(get_student_service),
) -> StudentResponse:
    try:
        student = service.update_student_billing(student_id, payload, current_user)
    except DomainException as e:
        handle_domain_exception(e)
    return StudentResponse.model_validate(student)
