"""
Shared plumbing for periodic jobs: a session scope and the persisted
run watermark.

A job whose last completed run is newer than its minimum interval is
skipped. The jobs themselves are idempotent, so the watermark only saves
work; it is never what prevents duplicates.
"""

from contextlib import contextmanager
from datetime import timedelta
from typing import Callable, Iterator, Optional

from celery.utils.log import get_task_logger
from sqlalchemy.orm import Session

from ..core.clock import Clock, system_clock
from ..database import SessionLocal
from ..repositories.factory import RepositoryFactory

logger = get_task_logger(__name__)


@contextmanager
def _session_scope() -> Iterator[Session]:
    """Provide transactional scope for use in tasks."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def min_interval_for(every_minutes: int) -> timedelta:
    """Half the beat interval, so a slightly early beat still runs."""
    return timedelta(minutes=max(every_minutes, 1) / 2)


def run_with_watermark(
    session: Session,
    job_name: str,
    min_interval: timedelta,
    job: Callable[[Session], int],
    clock: Optional[Clock] = None,
    force: bool = False,
) -> Optional[int]:
    """
    Run ``job`` unless it completed less than ``min_interval`` ago.

    Returns the job's result count, or None when the run was skipped.
    """
    clock = clock or system_clock
    repository = RepositoryFactory.create_scan_watermark_repository(session)
    mark = repository.get_or_create(job_name)
    now = clock.now()
    if not force and mark.last_completed_at and now - mark.last_completed_at < min_interval:
        logger.info(
            "Skipping %s; last completed at %s", job_name, mark.last_completed_at.isoformat()
        )
        session.commit()
        return None

    mark.last_started_at = now
    session.commit()
    try:
        count = job(session)
    except Exception as exc:
        session.rollback()
        mark = repository.get_or_create(job_name)
        mark.last_error = str(exc)[:2000]
        session.commit()
        raise

    mark = repository.get_or_create(job_name)
    mark.last_completed_at = clock.now()
    mark.last_result_count = count
    mark.last_error = None
    session.commit()
    logger.info("%s completed with %d results", job_name, count)
    return count
