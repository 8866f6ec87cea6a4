"""
Timesheet Service for TutorHub

Logging a session creates one timesheet entry, resolves the session's
pending logging alert and consumes one prepaid session from the student,
all in one transaction. The balance change is published afterwards so
the invoice trigger runs outside it.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    RepositoryException,
    ValidationException,
)
from ..events.bus import EventBus
from ..events.occurrence_events import OccurrenceCompleted
from ..models.session_occurrence import SessionOccurrence
from ..models.student import Student
from ..models.timesheet import TimesheetEntry
from ..models.user import User
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .compliance_alert_service import apply_logging_resolution
from .student_balance_service import StudentBalanceService


def _session_hours(occurrence: SessionOccurrence) -> Decimal:
    seconds = (occurrence.end_at - occurrence.start_at).total_seconds()
    return (Decimal(str(seconds)) / Decimal(3600)).quantize(Decimal("0.01"))


class TimesheetService(BaseService):
    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        event_bus: Optional[EventBus] = None,
    ):
        super().__init__(db, clock)
        self.event_bus = event_bus or EventBus()
        self.balance_service = StudentBalanceService(db, self.clock, self.event_bus)
        self.repository = RepositoryFactory.create_timesheet_repository(db)
        self.occurrence_repository = RepositoryFactory.create_occurrence_repository(db)
        self.student_repository = RepositoryFactory.create_student_repository(db)
        self.logging_alert_repository = RepositoryFactory.create_logging_alert_repository(db)

    def handle_occurrence_completed(self, event: OccurrenceCompleted) -> Optional[TimesheetEntry]:
        """Completion hook: make sure the session has exactly one timesheet."""
        return self.ensure_for_completed_occurrence(event.occurrence_id, created_by=event.actor_id)

    @BaseService.measure_operation("ensure_for_completed_occurrence")
    def ensure_for_completed_occurrence(
        self, occurrence_id: str, created_by: Optional[str] = None
    ) -> Optional[TimesheetEntry]:
        """
        Create the timesheet for a completed occurrence if it has a student
        and none exists yet. Safe to call repeatedly.
        """
        occurrence = self.occurrence_repository.get_by_id(occurrence_id)
        if not occurrence or not occurrence.student_id:
            return None
        existing = self.repository.get_for_occurrence(occurrence.id)
        if existing:
            return existing
        student = self.student_repository.get_for_update(occurrence.student_id)
        if not student:
            return None
        try:
            return self._log(occurrence, student, occurrence.tutor_id, created_by=created_by)
        except RepositoryException:
            # A concurrent completion logged it first
            existing = self.repository.get_for_occurrence(occurrence.id)
            if existing:
                return existing
            raise

    @BaseService.measure_operation("log_session")
    def log_session(
        self,
        tutor: User,
        *,
        session_occurrence_id: Optional[str] = None,
        student_id: Optional[str] = None,
        work_date: Optional[date] = None,
        hours: Optional[Decimal] = None,
        description: Optional[str] = None,
    ) -> TimesheetEntry:
        """Tutor logs hours, optionally against a specific session."""
        if not (tutor.is_tutor or tutor.is_admin):
            raise ForbiddenException("Only tutors can log sessions")

        occurrence = None
        if session_occurrence_id:
            occurrence = self.occurrence_repository.get_by_id(session_occurrence_id)
            if not occurrence:
                raise NotFoundException(f"Session {session_occurrence_id} not found")
            if tutor.is_tutor and occurrence.tutor_id != tutor.id:
                raise ForbiddenException("You can only log your own sessions")
            if self.repository.get_for_occurrence(occurrence.id):
                raise ConflictException(
                    "This session already has a timesheet entry", code="ALREADY_LOGGED"
                )
            student_id = student_id or occurrence.student_id

        if not student_id:
            raise ValidationException("A student is required to log a session")
        student = self.student_repository.get_for_update(student_id)
        if not student:
            raise NotFoundException(f"Student {student_id} not found")

        if hours is None:
            if occurrence is None:
                raise ValidationException("Hours are required when no session is given")
            hours = _session_hours(occurrence)
        tutor_id = occurrence.tutor_id if occurrence else tutor.id
        try:
            return self._log(
                occurrence,
                student,
                tutor_id,
                created_by=tutor.id,
                work_date=work_date,
                hours=hours,
                description=description,
            )
        except RepositoryException as exc:
            raise ConflictException(
                "This session already has a timesheet entry", code="ALREADY_LOGGED"
            ) from exc

    def _log(
        self,
        occurrence: Optional[SessionOccurrence],
        student: Student,
        tutor_id: str,
        *,
        created_by: Optional[str] = None,
        work_date: Optional[date] = None,
        hours: Optional[Decimal] = None,
        description: Optional[str] = None,
    ) -> TimesheetEntry:
        if hours is None:
            hours = _session_hours(occurrence)
        tutor_rate = Decimal(student.tutor_rate or 0)
        now = self.now()
        with self.transaction():
            entry = self.repository.create(
                tutor_id=tutor_id,
                student_id=student.id,
                session_occurrence_id=occurrence.id if occurrence else None,
                work_date=work_date or (occurrence.occurrence_date if occurrence else now.date()),
                hours=hours,
                tutor_rate=tutor_rate,
                parent_rate=Decimal(student.parent_rate or 0),
                tutor_earnings=(tutor_rate * hours).quantize(Decimal("0.01")),
                description=description,
                created_by=created_by,
                created_at=now,
            )
            if occurrence is not None:
                alert = self.logging_alert_repository.get_pending_for_occurrence(occurrence.id)
                if alert is not None:
                    apply_logging_resolution(alert, entry.id, now)
            previous, _ = self.balance_service.consume_session(student)

        self.logger.info(
            "Timesheet %s logged for student %s (balance %s -> %s)",
            entry.id,
            student.id,
            previous,
            student.sessions_remaining,
        )
        self.balance_service.publish_balance_change(student, previous)
        return entry
