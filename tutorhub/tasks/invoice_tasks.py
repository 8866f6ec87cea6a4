# tutorhub/tasks/invoice_tasks.py
"""Sending of scheduled auto-invoices."""

from typing import Optional

from ..core.config import settings
from ..services.invoice_trigger_service import InvoiceTriggerService
from . import job_runs
from .celery_app import celery_app

PROCESS_SCHEDULED_JOB = "invoices.process_scheduled"


@celery_app.task(name=PROCESS_SCHEDULED_JOB, max_retries=0)
def process_scheduled_invoices(force: bool = False) -> Optional[int]:
    with job_runs._session_scope() as session:
        return job_runs.run_with_watermark(
            session,
            PROCESS_SCHEDULED_JOB,
            job_runs.min_interval_for(settings.scheduled_invoice_interval_minutes),
            lambda db: len(InvoiceTriggerService(db).process_scheduled_invoices()),
            force=force,
        )
