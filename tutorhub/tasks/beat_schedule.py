# tutorhub/tasks/beat_schedule.py
"""
Celery Beat schedule for TutorHub.

Intervals come from settings so the compliance scans and scheduled
invoice sending can be tuned per environment.
"""

from datetime import timedelta
from typing import Any, Dict

from celery.schedules import crontab

from ..core.config import settings


def get_beat_schedule(environment: str = "production") -> Dict[str, Dict[str, Any]]:
    """
    Get the beat schedule for the specified environment.

    Args:
        environment: The environment name (production, development, testing)

    Returns:
        Mapping of schedule entry name to Celery beat configuration dict
    """
    scan_every = timedelta(minutes=settings.compliance_scan_interval_minutes)
    schedule: Dict[str, Dict[str, Any]] = {
        "scan-session-logging-alerts": {
            "task": "compliance.scan_logging_alerts",
            "schedule": scan_every,
            "options": {"queue": "compliance", "priority": 5},
        },
        "scan-invoice-payment-alerts": {
            "task": "compliance.scan_invoice_alerts",
            "schedule": scan_every,
            "options": {"queue": "compliance", "priority": 5},
        },
        "send-invoice-reminders": {
            "task": "compliance.send_invoice_reminders",
            "schedule": crontab(hour=9, minute=0),
            "options": {"queue": "compliance", "priority": 4},
        },
        "process-scheduled-invoices": {
            "task": "invoices.process_scheduled",
            "schedule": timedelta(minutes=settings.scheduled_invoice_interval_minutes),
            "options": {"queue": "invoices", "priority": 5},
        },
        "extend-occurrence-horizon": {
            "task": "occurrences.extend_horizon",
            "schedule": crontab(hour=2, minute=15),
            "options": {"queue": "scheduling", "priority": 3},
        },
    }
    if environment in ("development", "testing"):
        # Route everything to the default queue so a single local worker runs it all
        for entry in schedule.values():
            entry["options"] = {**entry["options"], "queue": "celery"}
    return schedule
