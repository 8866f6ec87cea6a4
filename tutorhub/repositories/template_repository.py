"""Data access for recurring session templates."""

from typing import List

from sqlalchemy.orm import Session

from ..core.enums import ClassType
from ..models.recurring_template import RecurringSessionTemplate
from .base_repository import BaseRepository


class RecurringTemplateRepository(BaseRepository[RecurringSessionTemplate]):
    def __init__(self, db: Session):
        super().__init__(db, RecurringSessionTemplate)

    def list_active(self) -> List[RecurringSessionTemplate]:
        query = (
            self._build_query()
            .filter(RecurringSessionTemplate.is_active.is_(True))
            .order_by(RecurringSessionTemplate.day_of_week, RecurringSessionTemplate.start_time)
        )
        return self._execute_query(query)

    def list_for_tutor(self, tutor_id: str, active_only: bool = True) -> List[RecurringSessionTemplate]:
        query = self._build_query().filter(RecurringSessionTemplate.tutor_id == tutor_id)
        if active_only:
            query = query.filter(RecurringSessionTemplate.is_active.is_(True))
        return self._execute_query(query.order_by(RecurringSessionTemplate.day_of_week))

    def list_active_individual_for_student(self, student_id: str) -> List[RecurringSessionTemplate]:
        query = self._build_query().filter(
            RecurringSessionTemplate.student_id == student_id,
            RecurringSessionTemplate.class_type == ClassType.INDIVIDUAL.value,
            RecurringSessionTemplate.is_active.is_(True),
        )
        return self._execute_query(query)
