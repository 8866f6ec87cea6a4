# tutorhub/repositories/occurrence_repository.py
"""
Occurrence Repository for TutorHub

Queries the generator, the lifecycle service and the logging-alert scan
need over session occurrences.
"""

from datetime import date, datetime
from typing import Iterable, List, Optional, Set

from sqlalchemy import and_, exists, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import OccurrenceStatus
from ..core.exceptions import RepositoryException
from ..models.alerts import SessionLoggingAlert
from ..models.session_occurrence import SessionOccurrence
from ..models.timesheet import TimesheetEntry
from .base_repository import BaseRepository


class OccurrenceRepository(BaseRepository[SessionOccurrence]):
    def __init__(self, db: Session):
        super().__init__(db, SessionOccurrence)

    def get_for_update(self, occurrence_id: str) -> Optional[SessionOccurrence]:
        """Fetch with a row lock where the backend supports it."""
        query = self._build_query().filter(SessionOccurrence.id == occurrence_id)
        if self.db.bind is not None and self.db.bind.dialect.name == "postgresql":
            query = query.with_for_update()
        try:
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking occurrence {occurrence_id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve occurrence: {str(e)}")

    def existing_slot_dates(self, template_id: str, slot_dates: Iterable[date]) -> Set[date]:
        """Return the subset of ``slot_dates`` already generated for the template."""
        wanted = list(slot_dates)
        if not wanted:
            return set()
        query = self.db.query(SessionOccurrence.template_slot_date).filter(
            SessionOccurrence.template_id == template_id,
            SessionOccurrence.template_slot_date.in_(wanted),
        )
        return {row[0] for row in self._execute_query(query)}

    def find_regenerable_for_template(
        self, template_id: str, now: datetime
    ) -> List[SessionOccurrence]:
        """
        Future occurrences of a template that can be thrown away and rebuilt.

        Only scheduled rows that have not started and carry no timesheet.
        """
        has_timesheet = exists().where(
            TimesheetEntry.session_occurrence_id == SessionOccurrence.id
        )
        query = self._build_query().filter(
            SessionOccurrence.template_id == template_id,
            SessionOccurrence.status == OccurrenceStatus.SCHEDULED.value,
            SessionOccurrence.start_at > now,
            ~has_timesheet,
        )
        return self._execute_query(query)

    def delete_many(self, occurrence_ids: List[str]) -> int:
        if not occurrence_ids:
            return 0
        try:
            deleted = (
                self.db.query(SessionOccurrence)
                .filter(SessionOccurrence.id.in_(occurrence_ids))
                .delete(synchronize_session="fetch")
            )
            self.db.flush()
            return deleted
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting occurrences: {str(e)}")
            raise RepositoryException(f"Failed to delete occurrences: {str(e)}")

    def find_unlogged_ended_before(self, cutoff: datetime) -> List[SessionOccurrence]:
        """
        Scheduled sessions that ended at or before ``cutoff`` with no
        timesheet and no logging alert yet.
        """
        has_timesheet = exists().where(
            TimesheetEntry.session_occurrence_id == SessionOccurrence.id
        )
        has_alert = exists().where(
            SessionLoggingAlert.session_occurrence_id == SessionOccurrence.id
        )
        query = (
            self._build_query()
            .filter(
                and_(
                    SessionOccurrence.status == OccurrenceStatus.SCHEDULED.value,
                    SessionOccurrence.end_at <= cutoff,
                    ~has_timesheet,
                    ~has_alert,
                )
            )
            .order_by(SessionOccurrence.end_at)
        )
        return self._execute_query(query)

    def list_in_range(
        self,
        start: datetime,
        end: datetime,
        tutor_id: Optional[str] = None,
        student_ids: Optional[List[str]] = None,
        status: Optional[str] = None,
    ) -> List[SessionOccurrence]:
        query = self._build_query().filter(
            SessionOccurrence.start_at >= start, SessionOccurrence.start_at < end
        )
        if tutor_id:
            query = query.filter(SessionOccurrence.tutor_id == tutor_id)
        if student_ids is not None:
            query = query.filter(SessionOccurrence.student_id.in_(student_ids))
        if status:
            query = query.filter(SessionOccurrence.status == status)
        return self._execute_query(query.order_by(SessionOccurrence.start_at))

    def count_completed_by_tutor(self, tutor_id: Optional[str] = None) -> dict:
        query = self.db.query(SessionOccurrence.tutor_id, func.count(SessionOccurrence.id)).filter(
            SessionOccurrence.status == OccurrenceStatus.COMPLETED.value
        )
        if tutor_id:
            query = query.filter(SessionOccurrence.tutor_id == tutor_id)
        rows = self._execute_query(query.group_by(SessionOccurrence.tutor_id))
        return {row[0]: int(row[1]) for row in rows}
