# tests/tasks/test_job_runs.py
from datetime import timedelta
import logging
from unittest.mock import MagicMock

import pytest

from tutorhub.models.scan_watermark import ScanWatermark
from tutorhub.tasks.job_runs import min_interval_for, run_with_watermark

JOB = "test.job"


def _mark(db):
    db.expire_all()
    return db.get(ScanWatermark, JOB)


def test_min_interval_is_half_the_beat():
    assert min_interval_for(60) == timedelta(minutes=30)
    assert min_interval_for(0) == timedelta(seconds=30)


def test_first_run_records_watermark(db, clock):
    job = MagicMock(return_value=3)
    assert run_with_watermark(db, JOB, timedelta(minutes=30), job, clock=clock) == 3

    job.assert_called_once_with(db)
    mark = _mark(db)
    assert mark.last_started_at == clock.now()
    assert mark.last_completed_at == clock.now()
    assert mark.last_result_count == 3
    assert mark.last_error is None


def test_recent_run_is_skipped(db, clock):
    job = MagicMock(return_value=1)
    run_with_watermark(db, JOB, timedelta(minutes=30), job, clock=clock)
    clock.advance(minutes=10)

    assert run_with_watermark(db, JOB, timedelta(minutes=30), job, clock=clock) is None
    assert job.call_count == 1


def test_force_ignores_watermark(db, clock):
    job = MagicMock(return_value=1)
    run_with_watermark(db, JOB, timedelta(minutes=30), job, clock=clock)
    assert run_with_watermark(db, JOB, timedelta(minutes=30), job, clock=clock, force=True) == 1
    assert job.call_count == 2


def test_runs_again_after_interval(db, clock):
    job = MagicMock(return_value=0)
    run_with_watermark(db, JOB, timedelta(minutes=30), job, clock=clock)
    clock.advance(minutes=31)
    assert run_with_watermark(db, JOB, timedelta(minutes=30), job, clock=clock) == 0
    assert _mark(db).last_completed_at == clock.now()


def test_failure_is_recorded_and_raised(db, clock):
    run_with_watermark(db, JOB, timedelta(minutes=30), MagicMock(return_value=2), clock=clock)
    completed_at = _mark(db).last_completed_at
    clock.advance(hours=1)

    with pytest.raises(RuntimeError):
        run_with_watermark(
            db, JOB, timedelta(minutes=30), MagicMock(side_effect=RuntimeError("boom")), clock=clock
        )

    mark = _mark(db)
    assert mark.last_error == "boom"
    assert mark.last_started_at == clock.now()
    assert mark.last_completed_at == completed_at


def test_run_outcome_is_logged(db, clock, caplog):
    job = MagicMock(return_value=2)
    with caplog.at_level(logging.INFO, logger="tutorhub.tasks.job_runs"):
        run_with_watermark(db, JOB, timedelta(minutes=30), job, clock=clock)
        run_with_watermark(db, JOB, timedelta(minutes=30), job, clock=clock)

    messages = [record.getMessage() for record in caplog.records]
    assert f"{JOB} completed with 2 results" in messages
    assert any(message.startswith(f"Skipping {JOB}") for message in messages)
