# tutorhub/routes/v1/invoices.py
"""
Invoice routes - API v1

Endpoints:
    POST /process-scheduled  → Send scheduled invoices that are due (admin)
    POST /{invoice_id}/paid  → Mark an invoice paid and resolve its alert (admin)
"""

import logging
from typing import List, NoReturn

from fastapi import APIRouter, Depends, HTTPException, status

from ...api.dependencies import get_invoice_service, require_admin
from ...core.exceptions import DomainException
from ...models.user import User
from ...schemas.student import InvoiceResponse
from ...services.invoice_trigger_service import InvoiceTriggerService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["invoices-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post("/process-scheduled", response_model=List[InvoiceResponse])
def process_scheduled_invoices(
    current_user: User = Depends(require_admin),
    service: InvoiceTriggerService = Depends(get_invoice_service),
) -> List[InvoiceResponse]:
    try:
        sent = service.process_scheduled_invoices()
    except DomainException as e:
        handle_domain_exception(e)
    return [InvoiceResponse.model_validate(i) for i in sent]


@router.post("/{invoice_id}/paid", response_model=InvoiceResponse)
def mark_invoice_paid(
    invoice_id: str,
    current_user: User = Depends(require_admin),
    service: InvoiceTriggerService = Depends(get_invoice_service),
) -> InvoiceResponse:
    try:
        invoice = service.mark_invoice_paid(invoice_id, current_user)
    except DomainException as e:
        handle_domain_exception(e)
    return InvoiceResponse.model_validate(invoice)
