# tests/unit/services/test_change_request_service.py
"""Change request submission and admin decisions."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from tutorhub.core.enums import (
    ChangeRequestStatus,
    NotificationType,
    OccurrenceSource,
    OccurrenceStatus,
)
from tutorhub.core.exceptions import (
    ChangeRequestConflictException,
    ForbiddenException,
    NotFoundException,
    OccurrenceGoneException,
    ValidationException,
)
from tutorhub.events.bus import EventBus
from tutorhub.events.occurrence_events import OccurrenceCancelled, OccurrenceRescheduled
from tutorhub.models.audit_log import AuditLog
from tutorhub.models.change_request import ChangeRequest
from tutorhub.schemas.change_request import CancelProposal, RescheduleProposal
from tutorhub.services.change_request_service import ChangeRequestService

UTC = timezone.utc
ORIGINAL_START = datetime(2024, 3, 3, 16, 0, tzinfo=UTC)
NEW_START = datetime(2024, 3, 10, 16, 0, tzinfo=UTC)
NEW_END = datetime(2024, 3, 10, 17, 0, tzinfo=UTC)


@pytest.fixture
def service(db, clock, bus, sink):
    return ChangeRequestService(db, clock, event_bus=bus, notifications=sink)


@pytest.fixture
def occurrence(make_occurrence):
    return make_occurrence(start_at=ORIGINAL_START)


def _reschedule():
    return RescheduleProposal(proposed_start_at=NEW_START, proposed_end_at=NEW_END)


class TestSubmit:
    def test_parent_submits_cancel(self, service, sink, occurrence, parent, tutor, admin):
        request = service.submit_change_request(
            occurrence.id, parent, "parent", CancelProposal(reason="Holiday")
        )
        assert request.request_type == "cancel"
        assert request.status == ChangeRequestStatus.PENDING.value
        assert request.original_date == ORIGINAL_START
        assert request.parent_id == parent.id
        assert request.tutor_id == tutor.id

        recipients = {n["recipient_id"] for n in sink.of_type("new_change_request")}
        assert recipients == {admin.id, tutor.id}

    def test_tutor_submission_records_parent(self, service, sink, occurrence, parent, tutor, admin):
        request = service.submit_change_request(occurrence.id, tutor, "tutor", _reschedule())
        assert request.request_type == "reschedule"
        assert request.parent_id == parent.id
        assert request.proposed_start_at == NEW_START
        recipients = {n["recipient_id"] for n in sink.of_type("new_change_request")}
        assert recipients == {admin.id}

    def test_other_parent_forbidden(self, service, occurrence, other_parent):
        with pytest.raises(ForbiddenException):
            service.submit_change_request(occurrence.id, other_parent, "parent", CancelProposal())

    def test_unassigned_tutor_forbidden(self, service, occurrence, other_tutor):
        with pytest.raises(ForbiddenException):
            service.submit_change_request(occurrence.id, other_tutor, "tutor", CancelProposal())

    def test_only_one_open_request_per_session(self, service, occurrence, parent, tutor):
        service.submit_change_request(occurrence.id, parent, "parent", CancelProposal())
        with pytest.raises(ChangeRequestConflictException):
            service.submit_change_request(occurrence.id, tutor, "tutor", _reschedule())

    def test_closed_session_rejected(self, service, make_occurrence, parent):
        occurrence = make_occurrence(status=OccurrenceStatus.COMPLETED.value)
        with pytest.raises(OccurrenceGoneException):
            service.submit_change_request(occurrence.id, parent, "parent", CancelProposal())

    def test_unknown_session(self, service, parent):
        with pytest.raises(NotFoundException):
            service.submit_change_request("missing", parent, "parent", CancelProposal())

    def test_unknown_requester_type(self, service, occurrence, parent):
        with pytest.raises(ValidationException):
            service.submit_change_request(occurrence.id, parent, "student", CancelProposal())


class TestResolve:
    def test_approving_cancel_closes_the_session(
        self, db, service, sink, occurrence, parent, tutor, admin
    ):
        request = service.submit_change_request(
            occurrence.id, parent, "parent", CancelProposal(reason="Holiday")
        )
        resolved = service.resolve_change_request(request.id, "approve", admin, "OK")

        db.refresh(occurrence)
        assert resolved.status == ChangeRequestStatus.APPROVED.value
        assert resolved.processed_by == admin.id
        assert resolved.processed_at is not None
        assert occurrence.status == OccurrenceStatus.CANCELLED.value
        assert occurrence.cancellation_reason == "Holiday"
        assert [n["recipient_id"] for n in sink.of_type("session_change_approved")] == [parent.id]
        assert [n["recipient_id"] for n in sink.of_type("schedule_changed")] == [tutor.id]

    def test_rejecting_leaves_the_session_untouched(self, db, service, sink, occurrence, parent, admin):
        request = service.submit_change_request(occurrence.id, parent, "parent", _reschedule())
        resolved = service.resolve_change_request(request.id, "reject", admin, "No slots")

        db.refresh(occurrence)
        assert resolved.status == ChangeRequestStatus.REJECTED.value
        assert occurrence.status == OccurrenceStatus.SCHEDULED.value
        assert occurrence.start_at == ORIGINAL_START
        assert occurrence.source == OccurrenceSource.MANUAL.value
        assert occurrence.original_date is None
        (rejection,) = sink.of_type(NotificationType.SESSION_CHANGE_REJECTED.value)
        assert rejection["payload"]["message"].endswith(": No slots")

    def test_approving_reschedule_moves_session_in_place(self, db, service, occurrence, parent, admin):
        request = service.submit_change_request(occurrence.id, parent, "parent", _reschedule())
        service.resolve_change_request(request.id, "approve", admin)

        db.refresh(occurrence)
        assert occurrence.start_at == NEW_START
        assert occurrence.end_at == NEW_END
        assert occurrence.occurrence_date == NEW_START.date()
        assert occurrence.source == OccurrenceSource.RESCHEDULED.value
        assert occurrence.original_date == ORIGINAL_START
        assert occurrence.status == OccurrenceStatus.SCHEDULED.value

    def test_message_only_reschedule_needs_admin_time(self, db, service, occurrence, parent, admin):
        proposal = RescheduleProposal(message="Any weekday evening")
        request = service.submit_change_request(occurrence.id, parent, "parent", proposal)

        with pytest.raises(ValidationException) as exc:
            service.resolve_change_request(request.id, "approve", admin)
        assert exc.value.code == "RESCHEDULE_TIME_REQUIRED"

        service.resolve_change_request(
            request.id, "approve", admin, override_start_at=datetime(2024, 3, 6, 18, 0, tzinfo=UTC)
        )
        db.refresh(occurrence)
        assert occurrence.start_at == datetime(2024, 3, 6, 18, 0, tzinfo=UTC)
        assert occurrence.end_at == datetime(2024, 3, 6, 19, 0, tzinfo=UTC)

    def test_acknowledged_request_can_still_be_decided(self, service, occurrence, parent, admin):
        request = service.submit_change_request(occurrence.id, parent, "parent", CancelProposal())
        acknowledged = service.acknowledge_change_request(request.id, admin, "Looking")
        assert acknowledged.status == ChangeRequestStatus.ACKNOWLEDGED.value
        assert acknowledged.is_acknowledged
        assert acknowledged.decision is None

        resolved = service.resolve_change_request(request.id, "reject", admin)
        assert resolved.decision == "rejected"

    def test_decided_request_cannot_be_decided_again(self, service, occurrence, parent, admin):
        request = service.submit_change_request(occurrence.id, parent, "parent", CancelProposal())
        service.resolve_change_request(request.id, "reject", admin)
        with pytest.raises(ChangeRequestConflictException):
            service.resolve_change_request(request.id, "approve", admin)
        with pytest.raises(ChangeRequestConflictException):
            service.acknowledge_change_request(request.id, admin)

    def test_closed_session_cannot_be_decided(self, db, service, occurrence, parent, admin):
        request = service.submit_change_request(occurrence.id, parent, "parent", CancelProposal())
        occurrence.status = OccurrenceStatus.COMPLETED.value
        db.commit()

        with pytest.raises(OccurrenceGoneException):
            service.resolve_change_request(request.id, "approve", admin)
        db.refresh(request)
        assert request.status == ChangeRequestStatus.PENDING.value

    def test_deleted_session_cannot_be_decided(self, db, service, occurrence, parent, admin):
        request = service.submit_change_request(occurrence.id, parent, "parent", CancelProposal())
        request.session_occurrence_id = None
        db.commit()

        with pytest.raises(OccurrenceGoneException):
            service.resolve_change_request(request.id, "approve", admin)

    def test_only_admins_decide(self, service, occurrence, parent, tutor):
        request = service.submit_change_request(occurrence.id, parent, "parent", CancelProposal())
        with pytest.raises(ForbiddenException):
            service.resolve_change_request(request.id, "approve", tutor)

    def test_unknown_decision(self, service, admin):
        with pytest.raises(ValidationException):
            service.resolve_change_request("anything", "maybe", admin)

    def test_decision_is_audited(self, db, service, occurrence, parent, admin):
        request = service.submit_change_request(occurrence.id, parent, "parent", _reschedule())
        service.resolve_change_request(request.id, "approve", admin, "Moved")
        entry = db.query(AuditLog).filter(AuditLog.action == "session_rescheduled").one()
        assert entry.entity_id == occurrence.id
        assert entry.actor_id == admin.id
        assert entry.after["change_request_id"] == request.id


class TestSideEffects:
    def test_approval_publishes_event(self, db, clock, occurrence, parent, admin):
        bus = EventBus()
        seen = []
        bus.subscribe(OccurrenceCancelled, seen.append)
        bus.subscribe(OccurrenceRescheduled, seen.append)
        service = ChangeRequestService(db, clock, event_bus=bus, notifications=MagicMock())

        request = service.submit_change_request(occurrence.id, parent, "parent", CancelProposal())
        service.resolve_change_request(request.id, "approve", admin)

        assert [type(e) for e in seen] == [OccurrenceCancelled]
        assert seen[0].actor_role == "admin"

    def test_failing_notification_does_not_undo_decision(self, db, clock, occurrence, parent, admin):
        sink = MagicMock()
        sink.create_notification.side_effect = RuntimeError("smtp down")
        service = ChangeRequestService(db, clock, event_bus=EventBus(), notifications=sink)

        request = service.submit_change_request(occurrence.id, parent, "parent", CancelProposal())
        service.resolve_change_request(request.id, "approve", admin)

        stored = db.query(ChangeRequest).one()
        assert stored.status == ChangeRequestStatus.APPROVED.value
