# tutorhub/routes/v1/alerts.py
"""
Compliance alert routes - API v1

Endpoints:
    GET /session-logging                    → Logging alerts (admin; tutors see their own)
    POST /session-logging/scan              → Run the logging scan now (admin)
    POST /session-logging/{alert_id}/dismiss → Dismiss with a reason (admin)
    GET /invoice-payment                    → Payment alerts (admin; parents see their own)
    POST /invoice-payment/scan              → Run the payment scan now (admin)
    POST /invoice-payment/{alert_id}/dismiss → Dismiss with a reason (admin)
    POST /invoice-payment/reminders         → Send due invoice reminders now (admin)
    GET /tutor-metrics                      → Per-tutor logging compliance (admin)
"""

import logging
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ...api.dependencies import get_compliance_service, get_current_user, require_admin
from ...core.exceptions import DomainException, ForbiddenException
from ...models.user import User
from ...schemas.alerts import (
    AlertDismiss,
    InvoicePaymentAlertResponse,
    ScanResult,
    SessionLoggingAlertResponse,
    TutorComplianceMetrics,
)
from ...services.compliance_alert_service import ComplianceAlertService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["alerts-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("/session-logging", response_model=List[SessionLoggingAlertResponse])
def list_logging_alerts(
    tutor_id: Optional[str] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    current_user: User = Depends(get_current_user),
    service: ComplianceAlertService = Depends(get_compliance_service),
) -> List[SessionLoggingAlertResponse]:
    try:
        if current_user.is_tutor:
            tutor_id = current_user.id
        elif not current_user.is_admin:
            raise ForbiddenException("Tutor or admin access required")
        alerts = service.list_logging_alerts(tutor_id=tutor_id, status=status_filter)
    except DomainException as e:
        handle_domain_exception(e)
    return [SessionLoggingAlertResponse.model_validate(a) for a in alerts]


@router.post("/session-logging/scan", response_model=ScanResult)
def scan_logging_alerts(
    current_user: User = Depends(require_admin),
    service: ComplianceAlertService = Depends(get_compliance_service),
) -> ScanResult:
    try:
        return ScanResult(created=len(service.scan_logging_alerts()))
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/session-logging/{alert_id}/dismiss", response_model=SessionLoggingAlertResponse)
def dismiss_logging_alert(
    alert_id: str,
    payload: AlertDismiss = Body(...),
    current_user: User = Depends(require_admin),
    service: ComplianceAlertService = Depends(get_compliance_service),
) -> SessionLoggingAlertResponse:
    try:
        alert = service.dismiss_logging_alert(alert_id, current_user, payload.reason)
    except DomainException as e:
        handle_domain_exception(e)
    return SessionLoggingAlertResponse.model_validate(alert)


@router.get("/invoice-payment", response_model=List[InvoicePaymentAlertResponse])
def list_invoice_alerts(
    parent_id: Optional[str] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    current_user: User = Depends(get_current_user),
    service: ComplianceAlertService = Depends(get_compliance_service),
) -> List[InvoicePaymentAlertResponse]:
    try:
        if current_user.is_parent:
            parent_id = current_user.id
        elif not current_user.is_admin:
            raise ForbiddenException("Parent or admin access required")
        alerts = service.list_invoice_alerts(parent_id=parent_id, status=status_filter)
    except DomainException as e:
        handle_domain_exception(e)
    return [InvoicePaymentAlertResponse.model_validate(a) for a in alerts]


@router.post("/invoice-payment/scan", response_model=ScanResult)
def scan_invoice_alerts(
    current_user: User = Depends(require_admin),
    service: ComplianceAlertService = Depends(get_compliance_service),
) -> ScanResult:
    try:
        return ScanResult(created=len(service.scan_invoice_alerts()))
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/invoice-payment/reminders", response_model=ScanResult)
def send_invoice_reminders(
    current_user: User = Depends(require_admin),
    service: ComplianceAlertService = Depends(get_compliance_service),
) -> ScanResult:
    try:
        return ScanResult(created=service.send_invoice_reminders())
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/invoice-payment/{alert_id}/dismiss", response_model=InvoicePaymentAlertResponse)
def dismiss_invoice_alert(
    alert_id: str,
    payload: AlertDismiss = Body(...),
    current_user: User = Depends(require_admin),
    service: ComplianceAlertService = Depends(get_compliance_service),
) -> InvoicePaymentAlertResponse:
    try:
        alert = service.dismiss_invoice_alert(alert_id, current_user, payload.reason)
    except DomainException as e:
        handle_domain_exception(e)
    return InvoicePaymentAlertResponse.model_validate(alert)


@router.get("/tutor-metrics", response_model=List[TutorComplianceMetrics])
def get_tutor_metrics(
    tutor_id: Optional[str] = Query(default=None),
    current_user: User = Depends(require_admin),
    service: ComplianceAlertService = Depends(get_compliance_service),
) -> List[TutorComplianceMetrics]:
    return service.get_tutor_compliance_metrics(tutor_id)
