# tutorhub/tasks/occurrence_tasks.py
"""Daily roll-forward of template occurrences to the generation horizon."""

from typing import Optional

from ..services.occurrence_generator import OccurrenceGeneratorService
from . import job_runs
from .celery_app import celery_app

EXTEND_HORIZON_JOB = "occurrences.extend_horizon"


@celery_app.task(name=EXTEND_HORIZON_JOB, max_retries=0)
def extend_horizon(force: bool = False) -> Optional[int]:
    with job_runs._session_scope() as session:
        return job_runs.run_with_watermark(
            session,
            EXTEND_HORIZON_JOB,
            job_runs.min_interval_for(24 * 60),
            lambda db: OccurrenceGeneratorService(db).extend_all_active(),
            force=force,
        )
