# tests/unit/services/test_template_service.py
from datetime import date, datetime, time, timezone

import pytest

from tutorhub.core.enums import OccurrenceStatus
from tutorhub.core.exceptions import ForbiddenException, NotFoundException, ValidationException
from tutorhub.models.audit_log import AuditLog
from tutorhub.models.recurring_template import RecurringSessionTemplate
from tutorhub.models.session_occurrence import SessionOccurrence
from tutorhub.schemas.template import TemplateCreate, TemplateUpdate
from tutorhub.services.template_service import TemplateService

UTC = timezone.utc


@pytest.fixture
def templates(db, clock):
    return TemplateService(db, clock)


def _payload(tutor, student, **overrides):
    values = {
        "tutor_id": tutor.id,
        "student_id": student.id,
        "day_of_week": 2,
        "start_time": "17:30",
        "start_date": date(2024, 3, 1),
        "end_date": date(2024, 3, 31),
    }
    values.update(overrides)
    return TemplateCreate(**values)


def _occurrences(db, template_id):
    return (
        db.query(SessionOccurrence)
        .filter(SessionOccurrence.template_id == template_id)
        .order_by(SessionOccurrence.start_at)
        .all()
    )


def test_create_expands_template(db, templates, admin, tutor, student):
    template = templates.create_template(_payload(tutor, student), admin)

    occurrences = _occurrences(db, template.id)
    assert [o.occurrence_date for o in occurrences] == [
        date(2024, 3, 5),
        date(2024, 3, 12),
        date(2024, 3, 19),
        date(2024, 3, 26),
    ]
    assert occurrences[0].start_at == datetime(2024, 3, 5, 17, 30, tzinfo=UTC)
    assert db.query(AuditLog).filter(AuditLog.action == "template_created").count() == 1


def test_create_without_generation(db, templates, admin, tutor, student):
    template = templates.create_template(_payload(tutor, student, generate=False), admin)
    assert _occurrences(db, template.id) == []


def test_tutor_creates_only_own_templates(templates, other_tutor, tutor, student):
    with pytest.raises(ForbiddenException):
        templates.create_template(_payload(tutor, student), other_tutor)


def test_unknown_student(templates, admin, tutor, student):
    with pytest.raises(NotFoundException):
        templates.create_template(_payload(tutor, student, student_id="missing"), admin)


def test_schedule_edit_rebuilds_future_sessions(db, templates, admin, tutor, student):
    template = templates.create_template(_payload(tutor, student), admin)
    first = _occurrences(db, template.id)[0]
    first.status = OccurrenceStatus.COMPLETED.value
    db.commit()

    templates.update_template(template.id, TemplateUpdate(day_of_week=4), admin)

    dates = [o.occurrence_date for o in _occurrences(db, template.id)]
    assert dates == [
        date(2024, 3, 5),
        date(2024, 3, 7),
        date(2024, 3, 14),
        date(2024, 3, 21),
        date(2024, 3, 28),
    ]


def test_cosmetic_edit_keeps_sessions(db, templates, admin, tutor, student):
    template = templates.create_template(_payload(tutor, student), admin)
    ids = [o.id for o in _occurrences(db, template.id)]
    templates.update_template(template.id, TemplateUpdate(subject="Chemistry"), admin)
    assert [o.id for o in _occurrences(db, template.id)] == ids


def test_update_rejects_inverted_dates(templates, admin, tutor, student):
    template = templates.create_template(_payload(tutor, student), admin)
    with pytest.raises(ValidationException):
        templates.update_template(template.id, TemplateUpdate(end_date=date(2024, 2, 1)), admin)


def test_deactivate_removes_future_sessions(db, templates, admin, tutor, student):
    template = templates.create_template(_payload(tutor, student), admin)
    deactivated = templates.deactivate_template(template.id, admin)
    assert deactivated.is_active is False
    assert _occurrences(db, template.id) == []
    assert templates.list_templates(tutor_id=tutor.id) == []
    assert len(templates.list_templates(tutor_id=tutor.id, active_only=False)) == 1


def test_replace_student_schedule(db, templates, admin, tutor, student):
    old = templates.create_template(_payload(tutor, student), admin)
    new_templates = templates.replace_student_schedule(
        student.id,
        [
            _payload(tutor, student, day_of_week=1, start_date=date(2024, 2, 1)),
            _payload(tutor, student, day_of_week=4, start_time=time(9, 0)),
        ],
        admin,
        effective_from=date(2024, 3, 10),
    )

    db.refresh(old)
    assert old.is_active is False
    assert _occurrences(db, old.id) == []
    assert [t.start_date for t in new_templates] == [date(2024, 3, 10), date(2024, 3, 10)]
    assert _occurrences(db, new_templates[0].id)[0].occurrence_date == date(2024, 3, 11)
    assert db.query(RecurringSessionTemplate).filter_by(is_active=True).count() == 2


def test_replace_rejects_other_students_templates(templates, admin, tutor, student):
    with pytest.raises(ValidationException):
        templates.replace_student_schedule(
            student.id, [_payload(tutor, student, student_id="someone-else")], admin
        )
