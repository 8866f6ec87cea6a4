# tests/unit/services/test_occurrence_lifecycle.py
"""Status transitions, in-place edits and ad hoc sessions."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from tutorhub.core.enums import AlertStatus, NotificationType, OccurrenceSource, OccurrenceStatus
from tutorhub.core.exceptions import (
    BusinessRuleException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from tutorhub.events.bus import EventBus
from tutorhub.events.occurrence_events import OccurrenceCompleted, OccurrenceRescheduled
from tutorhub.models.alerts import SessionLoggingAlert
from tutorhub.models.audit_log import AuditLog
from tutorhub.models.timesheet import TimesheetEntry
from tutorhub.services.compliance_alert_service import ComplianceAlertService
from tutorhub.services.occurrence_lifecycle import OccurrenceLifecycleService

UTC = timezone.utc


@pytest.fixture
def lifecycle(db, clock, bus, sink):
    return OccurrenceLifecycleService(db, clock, event_bus=bus, notifications=sink)


def _timesheets(db, occurrence_id):
    return (
        db.query(TimesheetEntry).filter(TimesheetEntry.session_occurrence_id == occurrence_id).all()
    )


class TestTransitions:
    def test_completion_creates_exactly_one_timesheet(self, db, lifecycle, make_occurrence, tutor):
        occurrence = make_occurrence()
        lifecycle.transition_occurrence(occurrence.id, "completed", tutor)
        lifecycle.transition_occurrence(occurrence.id, "completed", tutor)

        entries = _timesheets(db, occurrence.id)
        assert len(entries) == 1
        assert entries[0].hours == 1
        assert entries[0].tutor_earnings == 25

    def test_completion_consumes_a_prepaid_session(
        self, db, lifecycle, make_occurrence, tutor, student
    ):
        occurrence = make_occurrence()
        lifecycle.transition_occurrence(occurrence.id, "completed", tutor)
        db.refresh(student)
        assert student.sessions_remaining == 9

    def test_completion_without_student_creates_no_timesheet(
        self, db, lifecycle, make_occurrence, tutor
    ):
        occurrence = make_occurrence(student_id=None, group_id=None)
        lifecycle.transition_occurrence(occurrence.id, "completed", tutor)
        assert _timesheets(db, occurrence.id) == []

    def test_completion_resolves_pending_logging_alert(
        self, db, clock, lifecycle, make_occurrence, tutor
    ):
        occurrence = make_occurrence(start_at=datetime(2024, 2, 27, 16, 0, tzinfo=UTC))
        ComplianceAlertService(db, clock).scan_logging_alerts()
        clock.advance(hours=6)

        lifecycle.transition_occurrence(occurrence.id, "completed", tutor)

        alert = db.query(SessionLoggingAlert).one()
        assert alert.status == AlertStatus.RESOLVED.value
        assert alert.resolved_by_timesheet_entry_id == _timesheets(db, occurrence.id)[0].id
        assert float(alert.hours_late) == 6.0

    @pytest.mark.parametrize("status", ["cancelled", "no_show"])
    def test_terminal_states_are_not_left_without_correction(
        self, lifecycle, make_occurrence, tutor, status
    ):
        occurrence = make_occurrence()
        lifecycle.transition_occurrence(occurrence.id, status, tutor)
        with pytest.raises(InvalidTransitionException):
            lifecycle.transition_occurrence(occurrence.id, "completed", tutor)

    def test_admin_correction_reopens_terminal_session(
        self, db, lifecycle, make_occurrence, tutor, admin
    ):
        occurrence = make_occurrence()
        lifecycle.transition_occurrence(occurrence.id, "cancelled", tutor, reason="ill")
        corrected = lifecycle.transition_occurrence(
            occurrence.id, "scheduled", admin, correction=True
        )
        assert corrected.status == OccurrenceStatus.SCHEDULED.value
        assert corrected.cancellation_reason is None
        actions = [a.action for a in db.query(AuditLog).order_by(AuditLog.occurred_at).all()]
        assert "status_corrected" in actions

    def test_correction_requires_admin(self, lifecycle, make_occurrence, tutor):
        occurrence = make_occurrence()
        with pytest.raises(ForbiddenException):
            lifecycle.transition_occurrence(occurrence.id, "scheduled", tutor, correction=True)

    def test_unknown_status_rejected_before_lookup(self, lifecycle, tutor):
        with pytest.raises(ValidationException):
            lifecycle.transition_occurrence("missing", "finished", tutor)

    def test_missing_occurrence(self, lifecycle, tutor):
        with pytest.raises(NotFoundException):
            lifecycle.transition_occurrence("missing", "completed", tutor)

    def test_cancellation_dismisses_pending_alert(
        self, db, clock, lifecycle, make_occurrence, tutor
    ):
        occurrence = make_occurrence(start_at=datetime(2024, 2, 27, 16, 0, tzinfo=UTC))
        ComplianceAlertService(db, clock).scan_logging_alerts()

        lifecycle.transition_occurrence(occurrence.id, "no_show", tutor)

        alert = db.query(SessionLoggingAlert).one()
        assert alert.status == AlertStatus.DISMISSED.value
        assert alert.dismiss_reason == "Session marked as no-show by tutor"

    def test_failing_side_effect_keeps_transition(self, db, clock, make_occurrence, tutor):
        bus = EventBus()
        bus.subscribe(OccurrenceCompleted, MagicMock(side_effect=RuntimeError("boom")))
        service = OccurrenceLifecycleService(db, clock, event_bus=bus, notifications=MagicMock())
        occurrence = make_occurrence()

        result = service.transition_occurrence(occurrence.id, "completed", tutor)

        db.expire_all()
        assert result.status == OccurrenceStatus.COMPLETED.value

    def test_transition_is_audited(self, db, clock, make_occurrence, tutor):
        audit = MagicMock()
        service = OccurrenceLifecycleService(
            db, clock, event_bus=EventBus(), notifications=MagicMock(), audit=audit
        )
        occurrence = make_occurrence()
        service.transition_occurrence(occurrence.id, "cancelled", tutor, reason="ill")
        args = audit.record.call_args
        assert args.args[:4] == ("session_occurrence", occurrence.id, "status_changed", tutor)
        assert args.kwargs["after"]["status"] == "cancelled"


class TestUpdateOccurrence:
    def test_moving_a_session_marks_it_rescheduled(self, db, clock, make_occurrence, admin):
        bus = EventBus()
        seen = []
        bus.subscribe(OccurrenceRescheduled, seen.append)
        service = OccurrenceLifecycleService(db, clock, event_bus=bus, notifications=MagicMock())
        occurrence = make_occurrence()
        new_start = datetime(2024, 3, 5, 18, 0, tzinfo=UTC)

        updated = service.update_occurrence(occurrence.id, start_at=new_start, actor=admin)

        assert updated.start_at == new_start
        assert updated.end_at == new_start + timedelta(hours=1)
        assert updated.source == OccurrenceSource.RESCHEDULED.value
        assert updated.original_date == datetime(2024, 3, 3, 16, 0, tzinfo=UTC)
        assert seen[0].previous_start_at == datetime(2024, 3, 3, 16, 0, tzinfo=UTC)

    def test_notes_only_edit_is_not_a_reschedule(self, lifecycle, make_occurrence, admin):
        occurrence = make_occurrence()
        updated = lifecycle.update_occurrence(occurrence.id, notes="Bring calculator", actor=admin)
        assert updated.notes == "Bring calculator"
        assert updated.source == OccurrenceSource.MANUAL.value
        assert updated.original_date is None

    def test_closed_session_cannot_move(self, lifecycle, make_occurrence, admin):
        occurrence = make_occurrence(status=OccurrenceStatus.COMPLETED.value)
        with pytest.raises(BusinessRuleException):
            lifecycle.update_occurrence(
                occurrence.id, start_at=datetime(2024, 3, 5, 18, 0, tzinfo=UTC), actor=admin
            )


class TestAdhocAndFlagging:
    def test_create_adhoc_occurrence(self, lifecycle, tutor, student):
        start = datetime(2024, 3, 6, 9, 30, tzinfo=UTC)
        occurrence = lifecycle.create_adhoc_occurrence(
            tutor_id=tutor.id,
            student_id=student.id,
            start_at=start,
            end_at=start + timedelta(minutes=45),
            actor=tutor,
        )
        assert occurrence.source == OccurrenceSource.MANUAL.value
        assert occurrence.template_id is None
        assert occurrence.duration_minutes == 45

    def test_tutor_cannot_create_for_someone_else(self, lifecycle, other_tutor, tutor, student):
        start = datetime(2024, 3, 6, 9, 30, tzinfo=UTC)
        with pytest.raises(ForbiddenException):
            lifecycle.create_adhoc_occurrence(
                tutor_id=tutor.id,
                student_id=student.id,
                start_at=start,
                end_at=start + timedelta(hours=1),
                actor=other_tutor,
            )

    def test_parent_flag_notifies_admins(self, lifecycle, sink, make_occurrence, parent, admin):
        occurrence = make_occurrence()
        flagged = lifecycle.flag_occurrence(occurrence.id, parent, "Tutor was late")
        assert flagged.parent_flagged is True
        notes = sink.of_type(NotificationType.SESSION_FLAGGED.value)
        assert [n["recipient_id"] for n in notes] == [admin.id]

    def test_other_parent_cannot_flag(self, lifecycle, make_occurrence, other_parent):
        occurrence = make_occurrence()
        with pytest.raises(ForbiddenException):
            lifecycle.flag_occurrence(occurrence.id, other_parent, None)

    def test_list_occurrences_scoped_to_parent(
        self, lifecycle, make_occurrence, parent, other_parent
    ):
        make_occurrence()
        window = (datetime(2024, 3, 1, tzinfo=UTC), datetime(2024, 3, 31, tzinfo=UTC))
        assert len(lifecycle.list_occurrences(*window, parent=parent)) == 1
        assert lifecycle.list_occurrences(*window, parent=other_parent) == []
