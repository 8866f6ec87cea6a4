# tests/tasks/test_periodic_tasks.py
"""Celery tasks run eagerly against the test database."""

from datetime import datetime, timedelta, timezone

import pytest

from tutorhub.core.config import settings
from tutorhub.models.alerts import SessionLoggingAlert
from tutorhub.models.scan_watermark import ScanWatermark
from tutorhub.models.session_occurrence import SessionOccurrence
from tutorhub.tasks import job_runs
from tutorhub.tasks.beat_schedule import get_beat_schedule
from tutorhub.tasks.compliance_tasks import (
    SCAN_LOGGING_JOB,
    scan_invoice_alerts,
    scan_logging_alerts,
    send_invoice_reminders,
)
from tutorhub.tasks.invoice_tasks import process_scheduled_invoices
from tutorhub.tasks.occurrence_tasks import extend_horizon


@pytest.fixture(autouse=True)
def task_sessions(monkeypatch, session_factory):
    monkeypatch.setattr(job_runs, "SessionLocal", session_factory)


def test_logging_scan_task_creates_alert_once(db, make_occurrence):
    make_occurrence(start_at=datetime(2024, 2, 27, 16, 0, tzinfo=timezone.utc))

    assert scan_logging_alerts(force=True) == 1
    assert scan_logging_alerts() is None
    assert scan_logging_alerts(force=True) == 0

    db.expire_all()
    assert db.query(SessionLoggingAlert).count() == 1
    assert db.get(ScanWatermark, SCAN_LOGGING_JOB).last_result_count == 0


def test_invoice_tasks_run_with_nothing_to_do():
    assert scan_invoice_alerts(force=True) == 0
    assert send_invoice_reminders(force=True) == 0
    assert process_scheduled_invoices(force=True) == 0


def test_extend_horizon_task(db, make_template):
    # Templates start in the past; generation begins at the real current date
    template = make_template()
    created = extend_horizon(force=True)
    assert created >= 52

    db.expire_all()
    count = db.query(SessionOccurrence).filter_by(template_id=template.id).count()
    assert count == created


class TestBeatSchedule:
    def test_production_queues(self):
        schedule = get_beat_schedule("production")
        assert schedule["scan-session-logging-alerts"]["options"]["queue"] == "compliance"
        assert schedule["extend-occurrence-horizon"]["task"] == "occurrences.extend_horizon"

    def test_local_environments_use_default_queue(self):
        schedule = get_beat_schedule("development")
        assert {entry["options"]["queue"] for entry in schedule.values()} == {"celery"}

    def test_intervals_that_do_not_divide_an_hour(self, monkeypatch):
        monkeypatch.setattr(settings, "compliance_scan_interval_minutes", 90)
        monkeypatch.setattr(settings, "scheduled_invoice_interval_minutes", 45)
        schedule = get_beat_schedule("production")
        assert schedule["scan-session-logging-alerts"]["schedule"] == timedelta(minutes=90)
        assert schedule["scan-invoice-payment-alerts"]["schedule"] == timedelta(minutes=90)
        assert schedule["process-scheduled-invoices"]["schedule"] == timedelta(minutes=45)
