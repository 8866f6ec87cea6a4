# tests/unit/services/test_timesheet_service.py
from datetime import date
from decimal import Decimal

import pytest

from tutorhub.core.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from tutorhub.models.timesheet import TimesheetEntry
from tutorhub.services.timesheet_service import TimesheetService


@pytest.fixture
def timesheets(db, clock, bus):
    return TimesheetService(db, clock, event_bus=bus)


def test_log_against_session_uses_its_length(db, timesheets, make_occurrence, tutor, student):
    occurrence = make_occurrence(duration_minutes=90)
    entry = timesheets.log_session(tutor, session_occurrence_id=occurrence.id)

    assert entry.hours == Decimal("1.50")
    assert entry.tutor_earnings == Decimal("37.50")
    assert entry.work_date == occurrence.occurrence_date
    assert entry.student_id == student.id
    db.refresh(student)
    assert student.sessions_remaining == 9


def test_session_can_only_be_logged_once(timesheets, make_occurrence, tutor):
    occurrence = make_occurrence()
    timesheets.log_session(tutor, session_occurrence_id=occurrence.id)
    with pytest.raises(ConflictException) as exc:
        timesheets.log_session(tutor, session_occurrence_id=occurrence.id)
    assert exc.value.code == "ALREADY_LOGGED"


def test_ensure_is_idempotent(db, timesheets, make_occurrence, tutor):
    occurrence = make_occurrence()
    first = timesheets.ensure_for_completed_occurrence(occurrence.id)
    second = timesheets.ensure_for_completed_occurrence(occurrence.id)
    assert first.id == second.id
    assert db.query(TimesheetEntry).count() == 1


def test_ensure_skips_missing_session(timesheets):
    assert timesheets.ensure_for_completed_occurrence("missing") is None


def test_other_tutor_cannot_log(timesheets, make_occurrence, other_tutor):
    occurrence = make_occurrence()
    with pytest.raises(ForbiddenException):
        timesheets.log_session(other_tutor, session_occurrence_id=occurrence.id)


def test_parent_cannot_log(timesheets, make_occurrence, parent):
    occurrence = make_occurrence()
    with pytest.raises(ForbiddenException):
        timesheets.log_session(parent, session_occurrence_id=occurrence.id)


def test_unknown_session(timesheets, tutor):
    with pytest.raises(NotFoundException):
        timesheets.log_session(tutor, session_occurrence_id="missing")


def test_free_standing_entry_needs_hours(timesheets, tutor, student):
    with pytest.raises(ValidationException):
        timesheets.log_session(tutor, student_id=student.id)

    entry = timesheets.log_session(
        tutor,
        student_id=student.id,
        work_date=date(2024, 2, 28),
        hours=Decimal("2"),
        description="Exam prep",
    )
    assert entry.session_occurrence_id is None
    assert entry.tutor_id == tutor.id
    assert entry.tutor_earnings == Decimal("50.00")


def test_student_required(timesheets, tutor):
    with pytest.raises(ValidationException):
        timesheets.log_session(tutor, hours=Decimal("1"))
