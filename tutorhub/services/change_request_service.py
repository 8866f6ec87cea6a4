# tutorhub/services/change_request_service.py
"""
Change Request Service for TutorHub

Parents and tutors propose cancelling or moving a session; an admin
decides. The workflow:

    pending --acknowledge--> acknowledged   (soft marker, still open)
    pending | acknowledged --approve--> approved  (terminal)
    pending | acknowledged --reject-->  rejected  (terminal)

Only one open request may exist per session. Deciding a request whose
session was deleted or already closed fails with a conflict and changes
nothing. Notifications and audit entries are written after the decision
commits and can never undo it.
"""

from datetime import datetime
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.enums import (
    ChangeRequestDecision,
    ChangeRequestStatus,
    ChangeRequestType,
    NotificationType,
    OccurrenceStatus,
    RequesterType,
)
from ..core.exceptions import (
    ChangeRequestConflictException,
    ForbiddenException,
    NotFoundException,
    OccurrenceGoneException,
    RepositoryException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc
from ..events.bus import EventBus
from ..events.occurrence_events import OccurrenceCancelled, OccurrenceRescheduled
from ..models.change_request import ChangeRequest
from ..models.session_occurrence import SessionOccurrence
from ..models.user import User
from ..repositories.factory import RepositoryFactory
from ..schemas.change_request import CancelProposal, ChangeProposal, RescheduleProposal
from .audit_service import AuditService
from .base import BaseService
from .notification_service import NotificationService, NotificationSink, notify_all
from .occurrence_lifecycle import reschedule_in_place
from .ownership import parent_id_for_occurrence, parent_owns_occurrence, tutor_assigned_to_occurrence

logger = logging.getLogger(__name__)

_AUDIT_ACTIONS = {
    (ChangeRequestDecision.APPROVE, ChangeRequestType.CANCEL): "session_cancelled",
    (ChangeRequestDecision.APPROVE, ChangeRequestType.RESCHEDULE): "session_rescheduled",
    (ChangeRequestDecision.REJECT, ChangeRequestType.CANCEL): "session_change_rejected",
    (ChangeRequestDecision.REJECT, ChangeRequestType.RESCHEDULE): "session_change_rejected",
}


class ChangeRequestService(BaseService):
    """Submission, acknowledgement and resolution of change requests."""

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
        self.repository = RepositoryFactory.create_change_request_repository(db)
        self.occurrence_repository = RepositoryFactory.create_occurrence_repository(db)
        self.student_repository = RepositoryFactory.create_student_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)

    def get_change_request(self, request_id: str) -> ChangeRequest:
        request = self.repository.get_by_id(request_id)
        if not request:
            raise NotFoundException(f"Change request {request_id} not found")
        return request

    def list_change_requests(
        self,
        *,
        status: Optional[str] = None,
        parent_id: Optional[str] = None,
        tutor_id: Optional[str] = None,
    ) -> List[ChangeRequest]:
        if status is not None:
            try:
                ChangeRequestStatus(status)
            except ValueError:
                raise ValidationException(f"Unknown request status '{status}'")
        return self.repository.list_filtered(status=status, parent_id=parent_id, tutor_id=tutor_id)

    # Submission

    @BaseService.measure_operation("submit_change_request")
    def submit_change_request(
        self,
        occurrence_id: str,
        requester: User,
        requester_type: str,
        proposal: ChangeProposal,
    ) -> ChangeRequest:
        """
        Record a parent's or tutor's request to cancel or move a session.

        The request type comes from the proposal variant.
        """
        try:
            kind = RequesterType(requester_type)
        except ValueError:
            raise ValidationException(f"Unknown requester type '{requester_type}'")

        occurrence = self.occurrence_repository.get_by_id(occurrence_id)
        if not occurrence:
            raise NotFoundException(f"Session {occurrence_id} not found")
        self._check_requester(kind, requester, occurrence)
        if occurrence.status_enum != OccurrenceStatus.SCHEDULED:
            raise OccurrenceGoneException(occurrence.id, reason=f"is already {occurrence.status}")
        if self.repository.find_open_for_occurrence(occurrence.id):
            raise ChangeRequestConflictException(
                "This session already has an open change request",
                details={"session_occurrence_id": occurrence.id},
            )

        fields = self._proposal_fields(proposal)
        parent_id = (
            requester.id
            if kind == RequesterType.PARENT
            else parent_id_for_occurrence(self.student_repository, occurrence)
        )
        try:
            with self.transaction():
                request = self.repository.create(
                    session_occurrence_id=occurrence.id,
                    requester_type=kind.value,
                    requester_id=requester.id,
                    parent_id=parent_id,
                    tutor_id=occurrence.tutor_id,
                    student_id=occurrence.student_id,
                    group_id=occurrence.group_id,
                    original_date=occurrence.start_at,
                    status=ChangeRequestStatus.PENDING.value,
                    created_at=self.now(),
                    **fields,
                )
        except RepositoryException as exc:
            # Lost a race against another submission for the same session
            raise ChangeRequestConflictException(
                "This session already has an open change request",
                details={"session_occurrence_id": occurrence.id},
            ) from exc

        self.logger.info(
            "%s %s submitted %s request %s for session %s",
            kind.value,
            requester.id,
            request.request_type,
            request.id,
            occurrence.id,
        )
        self._notify_submission(request, occurrence, kind)
        return request

    def _check_requester(
        self, kind: RequesterType, requester: User, occurrence: SessionOccurrence
    ) -> None:
        if kind == RequesterType.PARENT:
            if not parent_owns_occurrence(self.student_repository, requester, occurrence):
                raise ForbiddenException("You can only request changes to your child's sessions")
        else:
            if not tutor_assigned_to_occurrence(requester, occurrence):
                raise ForbiddenException("You can only request changes to your own sessions")
            if not occurrence.student_id and not occurrence.group_id:
                raise ValidationException("Session has no student or group assigned")

    @staticmethod
    def _proposal_fields(proposal: ChangeProposal) -> Dict[str, Any]:
        if isinstance(proposal, CancelProposal):
            return {"request_type": ChangeRequestType.CANCEL.value, "reason": proposal.reason}
        if isinstance(proposal, RescheduleProposal):
            return {
                "request_type": ChangeRequestType.RESCHEDULE.value,
                "proposed_start_at": proposal.proposed_start_at,
                "proposed_end_at": proposal.proposed_end_at,
                "proposed_message": proposal.message,
                "reason": proposal.reason,
            }
        raise ValidationException("Unsupported change proposal")

    def _notify_submission(
        self, request: ChangeRequest, occurrence: SessionOccurrence, kind: RequesterType
    ) -> None:
        payload = {
            "change_request_id": request.id,
            "session_occurrence_id": occurrence.id,
            "request_type": request.request_type,
            "requester_type": kind.value,
            "session_start_at": occurrence.start_at.isoformat(),
            "message": f"New {request.request_type} request for the session on "
            f"{occurrence.occurrence_date}",
        }
        recipients = list(self.user_repository.list_active_admin_ids())
        if kind == RequesterType.PARENT:
            recipients.append(occurrence.tutor_id)
        notify_all(
            self.notifications,
            self.db,
            recipients,
            NotificationType.NEW_CHANGE_REQUEST.value,
            payload,
        )

    # Admin actions

    @BaseService.measure_operation("acknowledge_change_request")
    def acknowledge_change_request(
        self, request_id: str, admin: User, admin_notes: Optional[str] = None
    ) -> ChangeRequest:
        """Soft acknowledgement: records that an admin has seen the request."""
        self._require_admin(admin)
        request = self.get_change_request(request_id)
        if not request.status_enum.is_open:
            raise ChangeRequestConflictException(
                f"Change request is already {request.status}",
                details={"status": request.status},
            )
        with self.transaction():
            request.status = ChangeRequestStatus.ACKNOWLEDGED.value
            request.acknowledged_at = self.now()
            request.acknowledged_by = admin.id
            if admin_notes is not None:
                request.admin_notes = admin_notes
        return request

    @BaseService.measure_operation("resolve_change_request")
    def resolve_change_request(
        self,
        request_id: str,
        decision: str,
        admin: User,
        admin_notes: Optional[str] = None,
        *,
        override_start_at: Optional[datetime] = None,
        override_end_at: Optional[datetime] = None,
    ) -> ChangeRequest:
        """
        Approve or reject an open change request.

        For a reschedule without proposed instants the admin must supply
        ``override_start_at``; ``override_end_at`` defaults to keeping the
        session's current length.
        """
        try:
            verdict = ChangeRequestDecision(decision)
        except ValueError:
            raise ValidationException(
                f"Unknown decision '{decision}'",
                details={"allowed": [d.value for d in ChangeRequestDecision]},
            )
        self._require_admin(admin)

        request = self.get_change_request(request_id)
        if request.status_enum.is_decided:
            raise ChangeRequestConflictException(
                f"Change request is already {request.status}",
                details={"status": request.status},
            )
        occurrence = (
            self.occurrence_repository.get_for_update(request.session_occurrence_id)
            if request.session_occurrence_id
            else None
        )
        if occurrence is None:
            raise OccurrenceGoneException(request.session_occurrence_id)
        if occurrence.status_enum != OccurrenceStatus.SCHEDULED:
            raise OccurrenceGoneException(occurrence.id, reason=f"is already {occurrence.status}")

        request_type = ChangeRequestType(request.request_type)
        new_range: Optional[Tuple[datetime, datetime]] = None
        if verdict == ChangeRequestDecision.APPROVE and request_type == ChangeRequestType.RESCHEDULE:
            new_range = self._resolve_new_range(
                request, occurrence, override_start_at, override_end_at
            )

        before = {
            **occurrence.to_audit_dict(),
            "requester_type": request.requester_type,
            "request_status": request.status,
        }
        previous_start = occurrence.start_at
        with self.transaction():
            if verdict == ChangeRequestDecision.APPROVE:
                if request_type == ChangeRequestType.CANCEL:
                    occurrence.status = OccurrenceStatus.CANCELLED.value
                    occurrence.cancellation_reason = request.reason
                elif new_range is not None:
                    reschedule_in_place(occurrence, *new_range)
            request.status = verdict.resulting_status.value
            request.processed_at = self.now()
            request.processed_by = admin.id
            request.admin_notes = admin_notes

        self.logger.info(
            "Change request %s %s by admin %s", request.id, request.status, admin.id
        )
        self.audit.record(
            "session_occurrence",
            occurrence.id,
            _AUDIT_ACTIONS[(verdict, request_type)],
            admin,
            before=before,
            after={
                **occurrence.to_audit_dict(),
                "change_request_id": request.id,
                "requester_type": request.requester_type,
                "admin_notes": admin_notes,
            },
        )
        self._notify_decision(request, occurrence, verdict)
        if verdict == ChangeRequestDecision.APPROVE:
            self._publish_approval(request_type, occurrence, previous_start, admin)
        return request

    def _resolve_new_range(
        self,
        request: ChangeRequest,
        occurrence: SessionOccurrence,
        override_start_at: Optional[datetime],
        override_end_at: Optional[datetime],
    ) -> Tuple[datetime, datetime]:
        if request.proposed_start_at is not None and request.proposed_end_at is not None:
            start, end = request.proposed_start_at, request.proposed_end_at
        elif override_start_at is not None:
            start = ensure_utc(override_start_at)
            end = (
                ensure_utc(override_end_at)
                if override_end_at is not None
                else start + (occurrence.end_at - occurrence.start_at)
            )
        else:
            raise ValidationException(
                "Reschedule has no proposed time; supply a new start time",
                code="RESCHEDULE_TIME_REQUIRED",
            )
        if end <= start:
            raise ValidationException("Session end must be after its start", code="INVALID_RANGE")
        return start, end

    def _notify_decision(
        self, request: ChangeRequest, occurrence: SessionOccurrence, verdict: ChangeRequestDecision
    ) -> None:
        approved = verdict == ChangeRequestDecision.APPROVE
        payload = {
            "change_request_id": request.id,
            "session_occurrence_id": occurrence.id,
            "request_type": request.request_type,
            "status": request.status,
            "admin_notes": request.admin_notes,
            "session_start_at": occurrence.start_at.isoformat(),
            "message": (
                f"Your {request.request_type} request was approved"
                if approved
                else f"Your {request.request_type} request was rejected"
                + (f": {request.admin_notes}" if request.admin_notes else "")
            ),
        }
        notify_all(
            self.notifications,
            self.db,
            [request.requester_id],
            (
                NotificationType.SESSION_CHANGE_APPROVED
                if approved
                else NotificationType.SESSION_CHANGE_REJECTED
            ).value,
            payload,
        )
        if approved and request.requester_type == RequesterType.PARENT.value:
            notify_all(
                self.notifications,
                self.db,
                [occurrence.tutor_id],
                NotificationType.SCHEDULE_CHANGED.value,
                {**payload, "message": "A parent's change request for your session was approved"},
            )

    def _publish_approval(
        self,
        request_type: ChangeRequestType,
        occurrence: SessionOccurrence,
        previous_start: datetime,
        admin: User,
    ) -> None:
        if request_type == ChangeRequestType.CANCEL:
            self.event_bus.publish(
                OccurrenceCancelled(
                    occurred_at=self.now(),
                    actor_id=admin.id,
                    actor_role=admin.role,
                    occurrence_id=occurrence.id,
                )
            )
        else:
            self.event_bus.publish(
                OccurrenceRescheduled(
                    occurred_at=self.now(),
                    actor_id=admin.id,
                    occurrence_id=occurrence.id,
                    previous_start_at=previous_start,
                    new_start_at=occurrence.start_at,
                    new_end_at=occurrence.end_at,
                )
            )

    @staticmethod
    def _require_admin(user: User) -> None:
        if not user.is_admin:
            raise ForbiddenException("Only admins can act on change requests")
