# tutorhub/tasks/compliance_tasks.py
"""Periodic compliance scans and invoice reminders."""

from typing import Optional

from ..core.config import settings
from ..services.compliance_alert_service import ComplianceAlertService
from . import job_runs
from .celery_app import celery_app

SCAN_LOGGING_JOB = "compliance.scan_logging_alerts"
SCAN_INVOICES_JOB = "compliance.scan_invoice_alerts"
REMINDERS_JOB = "compliance.send_invoice_reminders"


@celery_app.task(name=SCAN_LOGGING_JOB, max_retries=0)
def scan_logging_alerts(force: bool = False) -> Optional[int]:
    """Create alerts for sessions that ended without a timesheet."""
    with job_runs._session_scope() as session:
        return job_runs.run_with_watermark(
            session,
            SCAN_LOGGING_JOB,
            job_runs.min_interval_for(settings.compliance_scan_interval_minutes),
            lambda db: len(ComplianceAlertService(db).scan_logging_alerts()),
            force=force,
        )


@celery_app.task(name=SCAN_INVOICES_JOB, max_retries=0)
def scan_invoice_alerts(force: bool = False) -> Optional[int]:
    """Create alerts for sent invoices unpaid past the grace window."""
    with job_runs._session_scope() as session:
        return job_runs.run_with_watermark(
            session,
            SCAN_INVOICES_JOB,
            job_runs.min_interval_for(settings.compliance_scan_interval_minutes),
            lambda db: len(ComplianceAlertService(db).scan_invoice_alerts()),
            force=force,
        )


@celery_app.task(name=REMINDERS_JOB, max_retries=0)
def send_invoice_reminders(force: bool = False) -> Optional[int]:
    """Send threshold reminders for unpaid invoices; runs at most twice a day."""
    with job_runs._session_scope() as session:
        return job_runs.run_with_watermark(
            session,
            REMINDERS_JOB,
            job_runs.min_interval_for(24 * 60),
            lambda db: ComplianceAlertService(db).send_invoice_reminders(),
            force=force,
        )
