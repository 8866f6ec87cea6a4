# tutorhub/services/occurrence_lifecycle.py
"""
Occurrence Lifecycle Service for TutorHub

Drives a session occurrence through its statuses:

    scheduled -> completed | cancelled | no_show

The three right-hand states are terminal for automated processes. An
admin may still correct a terminal status by passing ``correction=True``.
Rescheduling is not a status: it moves the instants of a scheduled
occurrence, marks it ``rescheduled`` and keeps the previous start in
``original_date``.

Side effects (timesheet creation on completion, alert dismissal on
cancellation or no-show) are published as domain events after the status
change commits, so a failing side effect never undoes the transition.
"""

from datetime import datetime, timedelta
import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.enums import (
    ClassType,
    NotificationType,
    OccurrenceSource,
    OccurrenceStatus,
)
from ..core.exceptions import (
    BusinessRuleException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import business_today, ensure_utc
from ..events.bus import EventBus
from ..events.occurrence_events import (
    OccurrenceCancelled,
    OccurrenceCompleted,
    OccurrenceNoShow,
    OccurrenceRescheduled,
)
from ..models.session_occurrence import SessionOccurrence
from ..models.user import User
from ..repositories.factory import RepositoryFactory
from .audit_service import AuditService
from .base import BaseService
from .notification_service import NotificationService, NotificationSink, notify_all
from .ownership import parent_owns_occurrence

logger = logging.getLogger(__name__)


def reschedule_in_place(
    occurrence: SessionOccurrence, start_at: datetime, end_at: datetime
) -> datetime:
    """
    Move ``occurrence`` to new instants.

    Captures the pre-update start into ``original_date`` and tags the row
    as rescheduled. Returns the previous start instant.
    """
    start_at = ensure_utc(start_at)
    end_at = ensure_utc(end_at)
    if end_at <= start_at:
        raise ValidationException("Session end must be after its start", code="INVALID_RANGE")
    previous_start = occurrence.start_at
    occurrence.original_date = previous_start
    occurrence.start_at = start_at
    occurrence.end_at = end_at
    occurrence.occurrence_date = business_today(start_at)
    occurrence.duration_minutes = int((end_at - start_at).total_seconds() // 60)
    occurrence.source = OccurrenceSource.RESCHEDULED.value
    return previous_start


class OccurrenceLifecycleService(BaseService):
    """Status transitions, in-place edits and ad hoc sessions."""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        event_bus: Optional[EventBus] = None,
        notifications: Optional[NotificationSink] = None,
        audit: Optional[AuditService] = None,
    ):
        super().__init__(db, clock)
        self.event_bus = event_bus or EventBus()
        self.notifications = notifications or NotificationService(db, self.clock)
        self.audit = audit or AuditService(db, self.clock)
        self.occurrence_repository = RepositoryFactory.create_occurrence_repository(db)
        self.student_repository = RepositoryFactory.create_student_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.change_request_repository = RepositoryFactory.create_change_request_repository(db)

    def get_occurrence(self, occurrence_id: str) -> SessionOccurrence:
        occurrence = self.occurrence_repository.get_by_id(occurrence_id)
        if not occurrence:
            raise NotFoundException(f"Session {occurrence_id} not found")
        return occurrence

    @BaseService.measure_operation("transition_occurrence")
    def transition_occurrence(
        self,
        occurrence_id: str,
        new_status: str,
        actor: Optional[User] = None,
        *,
        correction: bool = False,
        reason: Optional[str] = None,
    ) -> SessionOccurrence:
        """
        Move an occurrence to ``new_status``.

        Repeating ``completed`` on a completed occurrence re-publishes the
        completion event; its handler is idempotent, so this is the retry
        path for a failed timesheet side effect.
        """
        try:
            target = OccurrenceStatus(new_status)
        except ValueError:
            raise ValidationException(
                f"Unknown session status '{new_status}'",
                code="INVALID_STATUS",
                details={"allowed": [status.value for status in OccurrenceStatus]},
            )
        if correction and (actor is None or not actor.is_admin):
            raise ForbiddenException("Only admins can correct a closed session")

        occurrence = self.occurrence_repository.get_for_update(occurrence_id)
        if not occurrence:
            raise NotFoundException(f"Session {occurrence_id} not found")
        current = occurrence.status_enum

        if current == target:
            self.db.rollback()
            if target == OccurrenceStatus.COMPLETED:
                self._publish_status_event(occurrence, target, actor)
            return occurrence

        if current.is_terminal and not correction:
            raise InvalidTransitionException(current.value, target.value)
        if target == OccurrenceStatus.SCHEDULED and not correction:
            raise InvalidTransitionException(current.value, target.value)

        before = occurrence.to_audit_dict()
        with self.transaction():
            occurrence.status = target.value
            if target == OccurrenceStatus.CANCELLED:
                occurrence.cancellation_reason = reason
            elif target == OccurrenceStatus.SCHEDULED:
                occurrence.cancellation_reason = None

        self.logger.info(
            "Session %s moved %s -> %s%s",
            occurrence.id,
            current.value,
            target.value,
            " (admin correction)" if correction else "",
        )
        self.audit.record(
            "session_occurrence",
            occurrence.id,
            "status_corrected" if correction else "status_changed",
            actor,
            before=before,
            after=occurrence.to_audit_dict(),
        )
        self._publish_status_event(occurrence, target, actor)
        return occurrence

    def _publish_status_event(
        self, occurrence: SessionOccurrence, status: OccurrenceStatus, actor: Optional[User]
    ) -> None:
        actor_id = actor.id if actor else None
        actor_role = actor.role if actor else "system"
        if status == OccurrenceStatus.COMPLETED:
            event = OccurrenceCompleted(
                occurred_at=self.now(),
                actor_id=actor_id,
                occurrence_id=occurrence.id,
                tutor_id=occurrence.tutor_id,
                student_id=occurrence.student_id,
            )
        elif status == OccurrenceStatus.CANCELLED:
            event = OccurrenceCancelled(
                occurred_at=self.now(),
                actor_id=actor_id,
                actor_role=actor_role,
                occurrence_id=occurrence.id,
            )
        elif status == OccurrenceStatus.NO_SHOW:
            event = OccurrenceNoShow(
                occurred_at=self.now(),
                actor_id=actor_id,
                actor_role=actor_role,
                occurrence_id=occurrence.id,
            )
        else:
            return
        self.event_bus.publish(event)

    @BaseService.measure_operation("update_occurrence")
    def update_occurrence(
        self,
        occurrence_id: str,
        *,
        start_at: Optional[datetime] = None,
        end_at: Optional[datetime] = None,
        notes: Optional[str] = None,
        actor: Optional[User] = None,
    ) -> SessionOccurrence:
        """
        Edit notes and/or move a scheduled occurrence in place.

        Moving the session counts as a manual reschedule. When only the start
        is given the current duration is kept.
        """
        occurrence = self.occurrence_repository.get_for_update(occurrence_id)
        if not occurrence:
            raise NotFoundException(f"Session {occurrence_id} not found")

        moving = start_at is not None or end_at is not None
        if moving and occurrence.status_enum != OccurrenceStatus.SCHEDULED:
            raise BusinessRuleException(
                "Only scheduled sessions can be moved",
                code="SESSION_CLOSED",
                details={"status": occurrence.status},
            )
        new_start = ensure_utc(start_at) if start_at is not None else occurrence.start_at
        if end_at is not None:
            new_end = ensure_utc(end_at)
        else:
            new_end = new_start + (occurrence.end_at - occurrence.start_at)
        if moving and new_end <= new_start:
            raise ValidationException("Session end must be after its start", code="INVALID_RANGE")

        before = occurrence.to_audit_dict()
        moved = moving and (new_start != occurrence.start_at or new_end != occurrence.end_at)
        previous_start = occurrence.start_at
        with self.transaction():
            if notes is not None:
                occurrence.notes = notes
            if moved:
                reschedule_in_place(occurrence, new_start, new_end)

        if moved:
            self.audit.record(
                "session_occurrence",
                occurrence.id,
                "session_rescheduled",
                actor,
                before=before,
                after=occurrence.to_audit_dict(),
            )
            self.event_bus.publish(
                OccurrenceRescheduled(
                    occurred_at=self.now(),
                    actor_id=actor.id if actor else None,
                    occurrence_id=occurrence.id,
                    previous_start_at=previous_start,
                    new_start_at=occurrence.start_at,
                    new_end_at=occurrence.end_at,
                )
            )
        return occurrence

    @BaseService.measure_operation("create_adhoc_occurrence")
    def create_adhoc_occurrence(
        self,
        *,
        tutor_id: str,
        start_at: datetime,
        end_at: datetime,
        student_id: Optional[str] = None,
        group_id: Optional[str] = None,
        subject: Optional[str] = None,
        notes: Optional[str] = None,
        actor: Optional[User] = None,
    ) -> SessionOccurrence:
        """Create a one-off session outside any template."""
        if bool(student_id) == bool(group_id):
            raise ValidationException(
                "A session needs exactly one of student or group", code="INVALID_PARTICIPANTS"
            )
        start_at = ensure_utc(start_at)
        end_at = ensure_utc(end_at)
        if end_at <= start_at:
            raise ValidationException("Session end must be after its start", code="INVALID_RANGE")
        if actor is not None and actor.is_tutor and actor.id != tutor_id:
            raise ForbiddenException("Tutors can only create their own sessions")

        with self.transaction():
            occurrence = self.occurrence_repository.create(
                tutor_id=tutor_id,
                student_id=student_id,
                group_id=group_id,
                occurrence_date=business_today(start_at),
                start_at=start_at,
                end_at=end_at,
                subject=subject,
                class_type=(ClassType.GROUP if group_id else ClassType.INDIVIDUAL).value,
                duration_minutes=int((end_at - start_at).total_seconds() // 60),
                status=OccurrenceStatus.SCHEDULED.value,
                source=OccurrenceSource.MANUAL.value,
                notes=notes,
                created_by=actor.id if actor else None,
                created_at=self.now(),
            )
        self.logger.info("Ad hoc session %s created for tutor %s", occurrence.id, tutor_id)
        return occurrence

    @BaseService.measure_operation("delete_occurrence")
    def delete_occurrence(self, occurrence_id: str, actor: Optional[User] = None) -> None:
        occurrence = self.get_occurrence(occurrence_id)
        before = occurrence.to_audit_dict()
        with self.transaction():
            self.change_request_repository.delete_open_for_occurrences([occurrence.id])
            self.occurrence_repository.delete(occurrence.id)
        self.audit.record(
            "session_occurrence", occurrence_id, "session_deleted", actor, before=before
        )

    @BaseService.measure_operation("flag_occurrence")
    def flag_occurrence(
        self, occurrence_id: str, parent: User, comment: Optional[str]
    ) -> SessionOccurrence:
        """Parent marks a session as needing admin attention; admins are notified."""
        occurrence = self.get_occurrence(occurrence_id)
        if not parent_owns_occurrence(self.student_repository, parent, occurrence):
            raise ForbiddenException("You can only flag your own child's sessions")

        with self.transaction():
            occurrence.parent_flagged = True
            occurrence.parent_flag_comment = comment
            occurrence.parent_flagged_at = self.now()

        notify_all(
            self.notifications,
            self.db,
            self.user_repository.list_active_admin_ids(),
            NotificationType.SESSION_FLAGGED.value,
            {
                "session_occurrence_id": occurrence.id,
                "parent_id": parent.id,
                "comment": comment,
                "message": f"A parent flagged the session on {occurrence.occurrence_date}",
            },
        )
        return occurrence

    def list_occurrences(
        self,
        start: datetime,
        end: datetime,
        *,
        tutor_id: Optional[str] = None,
        parent: Optional[User] = None,
        status: Optional[str] = None,
    ) -> list[SessionOccurrence]:
        start = ensure_utc(start)
        end = ensure_utc(end)
        if end <= start:
            raise ValidationException("Range end must be after its start", code="INVALID_RANGE")
        if end - start > timedelta(days=366):
            raise ValidationException("Range may span at most one year", code="RANGE_TOO_LARGE")
        student_ids = None
        if parent is not None:
            student_ids = [s.id for s in self.student_repository.list_for_parent(parent.id)]
        return self.occurrence_repository.list_in_range(
            start, end, tutor_id=tutor_id, student_ids=student_ids, status=status
        )
