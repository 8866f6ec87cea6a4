"""
Recurring Template Service for TutorHub

CRUD for weekly session rules. Any change to the schedule-defining
fields of a template (day, time, duration, dates, tutor) regenerates its
future occurrences in the same transaction as the edit, so a reader never
sees the new rule next to occurrences of the old one.
"""

from datetime import date
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.enums import ClassType
from ..core.exceptions import ForbiddenException, NotFoundException, ValidationException
from ..models.recurring_template import RecurringSessionTemplate
from ..models.user import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.template import TemplateCreate, TemplateUpdate
from .audit_service import AuditService
from .base import BaseService
from .occurrence_generator import OccurrenceGeneratorService

logger = logging.getLogger(__name__)

SCHEDULE_FIELDS = frozenset(
    {"tutor_id", "day_of_week", "start_time", "duration_minutes", "start_date", "end_date"}
)


def _template_audit(template: RecurringSessionTemplate) -> dict:
    return {
        "tutor_id": template.tutor_id,
        "day_of_week": template.day_of_week,
        "start_time": template.start_time.strftime("%H:%M") if template.start_time else None,
        "duration_minutes": template.duration_minutes,
        "start_date": template.start_date.isoformat() if template.start_date else None,
        "end_date": template.end_date.isoformat() if template.end_date else None,
        "is_active": template.is_active,
    }


class TemplateService(BaseService):
    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        audit: Optional[AuditService] = None,
    ):
        super().__init__(db, clock)
        self.audit = audit or AuditService(db, self.clock)
        self.generator = OccurrenceGeneratorService(db, self.clock)
        self.repository = RepositoryFactory.create_template_repository(db)
        self.student_repository = RepositoryFactory.create_student_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)

    def get_template(self, template_id: str) -> RecurringSessionTemplate:
        template = self.repository.get_by_id(template_id)
        if not template:
            raise NotFoundException(f"Template {template_id} not found")
        return template

    def list_templates(
        self, tutor_id: Optional[str] = None, active_only: bool = True
    ) -> List[RecurringSessionTemplate]:
        if tutor_id:
            return self.repository.list_for_tutor(tutor_id, active_only=active_only)
        if active_only:
            return self.repository.list_active()
        return self.repository.find_by()

    def _check_tutor(self, tutor_id: str) -> None:
        tutor = self.user_repository.get_by_id(tutor_id)
        if not tutor or not tutor.is_tutor:
            raise NotFoundException(f"Tutor {tutor_id} not found")

    def _check_parties(self, data: TemplateCreate) -> None:
        if data.student_id and not self.student_repository.get_by_id(data.student_id):
            raise NotFoundException(f"Student {data.student_id} not found")
        if data.group_id and not self.student_repository.get_group(data.group_id):
            raise NotFoundException(f"Group {data.group_id} not found")

    def _new_template(self, data: TemplateCreate, actor: Optional[User]) -> RecurringSessionTemplate:
        return self.repository.create(
            tutor_id=data.tutor_id,
            student_id=data.student_id,
            group_id=data.group_id,
            day_of_week=data.day_of_week,
            start_time=data.start_time,
            duration_minutes=data.duration_minutes,
            subject=data.subject,
            class_type=ClassType(data.class_type).value,
            start_date=data.start_date,
            end_date=data.end_date,
            notes=data.notes,
            is_active=True,
            created_by=actor.id if actor else None,
            created_at=self.now(),
        )

    @BaseService.measure_operation("create_template")
    def create_template(
        self, data: TemplateCreate, actor: Optional[User] = None
    ) -> RecurringSessionTemplate:
        """Create a template and, unless told otherwise, its occurrences up to the default horizon."""
        if actor is not None and actor.is_tutor and actor.id != data.tutor_id:
            raise ForbiddenException("Tutors can only create their own schedules")
        self._check_tutor(data.tutor_id)
        self._check_parties(data)

        created = []
        with self.transaction():
            template = self._new_template(data, actor)
            if data.generate:
                created = self.generator.expand(template, self.generator.default_horizon())

        prometheus_metrics.record_occurrences_generated(len(created))
        self.logger.info(
            "Template %s created with %d occurrences", template.id, len(created)
        )
        self.audit.record(
            "recurring_template", template.id, "template_created", actor, after=_template_audit(template)
        )
        return template

    @BaseService.measure_operation("update_template")
    def update_template(
        self, template_id: str, changes: TemplateUpdate, actor: Optional[User] = None
    ) -> RecurringSessionTemplate:
        template = self.get_template(template_id)
        fields = changes.model_dump(exclude_unset=True)
        if "tutor_id" in fields and fields["tutor_id"] != template.tutor_id:
            self._check_tutor(fields["tutor_id"])
        start_date = fields.get("start_date", template.start_date)
        end_date = fields.get("end_date", template.end_date)
        if end_date is not None and end_date < start_date:
            raise ValidationException("end_date cannot be before start_date", code="INVALID_RANGE")

        before = _template_audit(template)
        schedule_changed = any(
            key in SCHEDULE_FIELDS and getattr(template, key) != value
            for key, value in fields.items()
        )
        with self.transaction():
            for key, value in fields.items():
                setattr(template, key, value)
            template.updated_at = self.now()
            self.repository.flush()
            if schedule_changed:
                removed = self.generator.purge_future(template)
                created = (
                    self.generator.expand(template, self.generator.default_horizon())
                    if template.is_active
                    else []
                )
                self.logger.info(
                    "Template %s schedule changed: removed %d, created %d",
                    template.id,
                    removed,
                    len(created),
                )

        self.audit.record(
            "recurring_template",
            template.id,
            "template_updated",
            actor,
            before=before,
            after=_template_audit(template),
        )
        return template

    @BaseService.measure_operation("deactivate_template")
    def deactivate_template(
        self, template_id: str, actor: Optional[User] = None
    ) -> RecurringSessionTemplate:
        """Stop a template; its future unlogged occurrences are removed, history is kept."""
        template = self.get_template(template_id)
        if not template.is_active:
            return template
        before = _template_audit(template)
        with self.transaction():
            template.is_active = False
            template.updated_at = self.now()
            removed = self.generator.purge_future(template)
        self.logger.info("Template %s deactivated; %d future sessions removed", template.id, removed)
        self.audit.record(
            "recurring_template",
            template.id,
            "template_deactivated",
            actor,
            before=before,
            after=_template_audit(template),
        )
        return template

    @BaseService.measure_operation("replace_student_schedule")
    def replace_student_schedule(
        self,
        student_id: str,
        templates: List[TemplateCreate],
        actor: Optional[User] = None,
        effective_from: Optional[date] = None,
    ) -> List[RecurringSessionTemplate]:
        """
        Swap a student's weekly schedule for a new set of templates.

        The old individual templates are deactivated and their future
        sessions removed; the new ones are created and expanded. All in
        one transaction.
        """
        if not self.student_repository.get_by_id(student_id):
            raise NotFoundException(f"Student {student_id} not found")
        for data in templates:
            if data.student_id != student_id:
                raise ValidationException(
                    "Every template must belong to the student being rescheduled",
                    code="STUDENT_MISMATCH",
                )
            self._check_tutor(data.tutor_id)

        horizon = self.generator.default_horizon()
        created: List[RecurringSessionTemplate] = []
        with self.transaction():
            for old in self.repository.list_active_individual_for_student(student_id):
                old.is_active = False
                old.updated_at = self.now()
                self.generator.purge_future(old)
            for data in templates:
                if effective_from is not None and data.start_date < effective_from:
                    data = data.model_copy(update={"start_date": effective_from})
                template = self._new_template(data, actor)
                if data.generate:
                    self.generator.expand(template, horizon)
                created.append(template)

        self.audit.record(
            "student",
            student_id,
            "schedule_replaced",
            actor,
            after={"template_ids": [template.id for template in created]},
        )
        return created
