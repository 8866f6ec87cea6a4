# tutorhub/services/occurrence_generator.py
"""
Occurrence Generator for TutorHub

Expands a recurring template into dated session occurrences up to a
horizon. Expansion is idempotent: the natural key (template, slot date)
is checked before insert and backed by a unique constraint, so retries
and overlapping runs never create duplicates.

Regeneration throws away future, not-yet-started, unlogged occurrences of
a template and rebuilds them from the current rule inside one
transaction. Anything that already happened, or was closed, is kept.
"""

from datetime import date, datetime, timedelta
import logging
from typing import Any, Dict, Iterator, List, Optional, Union

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import settings
from ..core.enums import OccurrenceSource, OccurrenceStatus
from ..core.exceptions import NotFoundException, ValidationException
from ..core.timezone_utils import business_today, ensure_utc, local_to_utc
from ..models.recurring_template import RecurringSessionTemplate
from ..models.session_occurrence import SessionOccurrence
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

HorizonEnd = Union[date, datetime]


def python_weekday_to_template(day: date) -> int:
    """Map ``date.weekday()`` (Monday=0) onto the template convention (Sunday=0)."""
    return (day.weekday() + 1) % 7


def iter_weekly_dates(day_of_week: int, first: date, stop: date) -> Iterator[date]:
    """Yield every date in ``[first, stop)`` falling on ``day_of_week`` (Sunday=0)."""
    if not 0 <= day_of_week <= 6:
        raise ValueError(f"day_of_week must be 0..6, got {day_of_week}")
    offset = (day_of_week - python_weekday_to_template(first)) % 7
    current = first + timedelta(days=offset)
    while current < stop:
        yield current
        current += timedelta(days=7)


def build_occurrence_drafts(
    template: RecurringSessionTemplate,
    today: date,
    horizon_end: HorizonEnd,
) -> List[Dict[str, Any]]:
    """
    Occurrence rows a template calls for, ordered by date.

    Dates start at max(template start, today), stop strictly before the
    horizon and never pass the template's end date. Template subject,
    class type and duration are copied into each draft.
    """
    horizon_instant: Optional[datetime] = None
    if isinstance(horizon_end, datetime):
        horizon_instant = ensure_utc(horizon_end)
        # Dates up to and including the horizon's business date; instants filtered below
        stop = business_today(horizon_instant) + timedelta(days=1)
    else:
        stop = horizon_end
    if template.end_date is not None:
        stop = min(stop, template.end_date + timedelta(days=1))

    first = max(template.start_date, today)
    duration = timedelta(minutes=template.duration_minutes)
    drafts: List[Dict[str, Any]] = []
    for slot_date in iter_weekly_dates(template.day_of_week, first, stop):
        start_at = local_to_utc(slot_date, template.start_time)
        if horizon_instant is not None and start_at >= horizon_instant:
            continue
        drafts.append(
            {
                "template_id": template.id,
                "template_slot_date": slot_date,
                "tutor_id": template.tutor_id,
                "student_id": template.student_id,
                "group_id": template.group_id,
                "occurrence_date": slot_date,
                "start_at": start_at,
                "end_at": start_at + duration,
                "subject": template.subject,
                "class_type": template.class_type,
                "duration_minutes": template.duration_minutes,
                "status": OccurrenceStatus.SCHEDULED.value,
                "source": OccurrenceSource.GENERATED.value,
                "created_by": template.created_by,
            }
        )
    return drafts


class OccurrenceGeneratorService(BaseService):
    """Template expansion and regeneration."""

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        super().__init__(db, clock)
        self.template_repository = RepositoryFactory.create_template_repository(db)
        self.occurrence_repository = RepositoryFactory.create_occurrence_repository(db)
        self.change_request_repository = RepositoryFactory.create_change_request_repository(db)

    def default_horizon(self) -> date:
        return business_today(self.now()) + timedelta(days=settings.generation_horizon_days)

    def _validate_horizon(self, horizon_end: Optional[HorizonEnd]) -> HorizonEnd:
        if horizon_end is None:
            return self.default_horizon()
        if isinstance(horizon_end, datetime) and horizon_end.tzinfo is None:
            raise ValidationException(
                "Horizon must be a timezone-aware instant", code="NAIVE_HORIZON"
            )
        horizon_date = (
            business_today(horizon_end) if isinstance(horizon_end, datetime) else horizon_end
        )
        span = (horizon_date - business_today(self.now())).days
        if span > settings.max_generation_horizon_days:
            raise ValidationException(
                f"Horizon may be at most {settings.max_generation_horizon_days} days ahead",
                code="HORIZON_TOO_FAR",
                details={"requested_days": span},
            )
        return horizon_end

    @BaseService.measure_operation("generate_occurrences")
    def generate_occurrences(
        self, template_id: str, horizon_end: Optional[HorizonEnd] = None
    ) -> List[SessionOccurrence]:
        """
        Create the missing occurrences of a template up to ``horizon_end``.

        Returns only the occurrences created by this call; re-running with
        the same horizon returns an empty list.
        """
        horizon = self._validate_horizon(horizon_end)
        template = self.template_repository.get_by_id(template_id)
        if not template:
            raise NotFoundException(f"Template {template_id} not found")
        if not template.is_active:
            self.logger.info("Skipping generation for inactive template %s", template_id)
            return []

        with self.transaction():
            created = self.expand(template, horizon)
        prometheus_metrics.record_occurrences_generated(len(created))
        self.logger.info(
            "Generated %d occurrences for template %s up to %s", len(created), template_id, horizon
        )
        return created

    @BaseService.measure_operation("regenerate_occurrences")
    def regenerate_occurrences(
        self, template_id: str, horizon_end: Optional[HorizonEnd] = None
    ) -> List[SessionOccurrence]:
        """Drop future unlogged occurrences of a template and rebuild them."""
        horizon = self._validate_horizon(horizon_end)
        template = self.template_repository.get_by_id(template_id)
        if not template:
            raise NotFoundException(f"Template {template_id} not found")

        with self.transaction():
            removed = self.purge_future(template)
            created = self.expand(template, horizon) if template.is_active else []
        prometheus_metrics.record_occurrences_generated(len(created))
        self.logger.info(
            "Regenerated template %s: removed %d, created %d", template_id, removed, len(created)
        )
        return created

    def extend_all_active(self, horizon_end: Optional[HorizonEnd] = None) -> int:
        """
        Roll every active template forward to the horizon.

        Each template is its own transaction; one failing template is logged
        and does not stop the rest.
        """
        horizon = self._validate_horizon(horizon_end)
        total = 0
        for template in self.template_repository.list_active():
            try:
                with self.transaction():
                    total += len(self.expand(template, horizon))
            except Exception:
                self.logger.exception("Failed to extend template %s", template.id)
        prometheus_metrics.record_occurrences_generated(total)
        return total

    # Building blocks used inside a caller's transaction

    def expand(
        self, template: RecurringSessionTemplate, horizon_end: HorizonEnd
    ) -> List[SessionOccurrence]:
        """Insert missing drafts for ``template``. Does not commit."""
        drafts = build_occurrence_drafts(template, business_today(self.now()), horizon_end)
        if not drafts:
            return []
        existing = self.occurrence_repository.existing_slot_dates(
            template.id, (draft["template_slot_date"] for draft in drafts)
        )
        missing = [draft for draft in drafts if draft["template_slot_date"] not in existing]
        if not missing:
            return []
        return self.occurrence_repository.bulk_create(missing)

    def purge_future(self, template: RecurringSessionTemplate) -> int:
        """
        Delete future, scheduled, unlogged occurrences of ``template`` along
        with their open change requests. Does not commit.
        """
        doomed = self.occurrence_repository.find_regenerable_for_template(template.id, self.now())
        ids = [occurrence.id for occurrence in doomed]
        if not ids:
            return 0
        self.change_request_repository.delete_open_for_occurrences(ids)
        return self.occurrence_repository.delete_many(ids)
