# tests/unit/services/test_occurrence_generator.py
"""Template expansion and regeneration."""

from datetime import date, datetime, time, timedelta, timezone

import pytest

from tutorhub.core.enums import ChangeRequestStatus, OccurrenceSource, OccurrenceStatus
from tutorhub.core.exceptions import NotFoundException, ValidationException
from tutorhub.models.change_request import ChangeRequest
from tutorhub.models.session_occurrence import SessionOccurrence
from tutorhub.models.timesheet import TimesheetEntry
from tutorhub.services.occurrence_generator import (
    OccurrenceGeneratorService,
    build_occurrence_drafts,
    iter_weekly_dates,
    python_weekday_to_template,
)

UTC = timezone.utc


@pytest.fixture
def generator(db, clock):
    return OccurrenceGeneratorService(db, clock)


def _occurrences(db, template_id):
    return (
        db.query(SessionOccurrence)
        .filter(SessionOccurrence.template_id == template_id)
        .order_by(SessionOccurrence.start_at)
        .all()
    )


class TestWeekdayHelpers:
    def test_sunday_is_zero(self):
        assert python_weekday_to_template(date(2024, 3, 3)) == 0
        assert python_weekday_to_template(date(2024, 3, 2)) == 6

    def test_iter_weekly_dates_stops_before_stop(self):
        dates = list(iter_weekly_dates(1, date(2024, 3, 1), date(2024, 3, 18)))
        assert dates == [date(2024, 3, 4), date(2024, 3, 11)]

    def test_iter_weekly_dates_includes_first_day_when_it_matches(self):
        dates = list(iter_weekly_dates(5, date(2024, 3, 1), date(2024, 3, 9)))
        assert dates == [date(2024, 3, 1), date(2024, 3, 8)]

    def test_invalid_weekday_rejected(self):
        with pytest.raises(ValueError):
            list(iter_weekly_dates(7, date(2024, 3, 1), date(2024, 3, 9)))


class TestBuildDrafts:
    def test_drafts_respect_end_date(self, make_template):
        template = make_template(end_date=date(2024, 3, 10))
        drafts = build_occurrence_drafts(template, date(2024, 3, 1), date(2024, 4, 30))
        assert [d["template_slot_date"] for d in drafts] == [date(2024, 3, 3), date(2024, 3, 10)]

    def test_drafts_snapshot_template_fields(self, make_template):
        template = make_template(subject="Physics", duration_minutes=90)
        draft = build_occurrence_drafts(template, date(2024, 3, 1), date(2024, 3, 8))[0]
        assert draft["subject"] == "Physics"
        assert draft["duration_minutes"] == 90
        assert draft["end_at"] - draft["start_at"] == timedelta(minutes=90)
        assert draft["source"] == OccurrenceSource.GENERATED.value
        assert draft["status"] == OccurrenceStatus.SCHEDULED.value

    def test_wall_time_follows_daylight_saving(self, make_template):
        # London moves to BST on 2024-03-31
        template = make_template(start_date=date(2024, 3, 24))
        drafts = build_occurrence_drafts(template, date(2024, 3, 1), date(2024, 4, 1))
        assert [d["start_at"] for d in drafts] == [
            datetime(2024, 3, 24, 16, 0, tzinfo=UTC),
            datetime(2024, 3, 31, 15, 0, tzinfo=UTC),
        ]

    def test_instant_horizon_excludes_later_starts(self, make_template):
        template = make_template()
        horizon = datetime(2024, 3, 10, 16, 0, tzinfo=UTC)
        drafts = build_occurrence_drafts(template, date(2024, 3, 1), horizon)
        assert [d["template_slot_date"] for d in drafts] == [date(2024, 3, 3)]


class TestGenerateOccurrences:
    def test_every_occurrence_on_template_weekday_and_after_start(self, db, generator, make_template):
        for day_of_week in range(7):
            template = make_template(day_of_week=day_of_week, start_date=date(2024, 3, 5))
            created = generator.generate_occurrences(template.id, date(2024, 6, 1))
            assert created
            for occurrence in created:
                assert python_weekday_to_template(occurrence.occurrence_date) == day_of_week
                assert occurrence.occurrence_date >= date(2024, 3, 5)

    def test_generation_starts_no_earlier_than_today(self, generator, make_template):
        template = make_template(start_date=date(2024, 1, 1))
        created = generator.generate_occurrences(template.id, date(2024, 3, 20))
        assert [o.occurrence_date for o in created] == [
            date(2024, 3, 3),
            date(2024, 3, 10),
            date(2024, 3, 17),
        ]

    def test_regenerating_twice_never_duplicates(self, db, generator, make_template):
        template = make_template()
        generator.generate_occurrences(template.id, date(2024, 5, 1))
        generator.regenerate_occurrences(template.id, date(2024, 5, 1))
        generator.regenerate_occurrences(template.id, date(2024, 5, 1))
        assert generator.generate_occurrences(template.id, date(2024, 5, 1)) == []

        slots = [o.template_slot_date for o in _occurrences(db, template.id)]
        assert len(slots) == len(set(slots))
        assert len(slots) == 9

    def test_inactive_template_generates_nothing(self, generator, make_template):
        template = make_template(is_active=False)
        assert generator.generate_occurrences(template.id, date(2024, 5, 1)) == []

    def test_unknown_template(self, generator):
        with pytest.raises(NotFoundException):
            generator.generate_occurrences("01HZZZZZZZZZZZZZZZZZZZZZZZ", date(2024, 5, 1))

    def test_horizon_beyond_limit_rejected(self, generator, make_template):
        template = make_template()
        with pytest.raises(ValidationException) as exc:
            generator.generate_occurrences(template.id, date(2030, 1, 1))
        assert exc.value.code == "HORIZON_TOO_FAR"

    def test_naive_horizon_rejected(self, generator, make_template):
        template = make_template()
        with pytest.raises(ValidationException):
            generator.generate_occurrences(template.id, datetime(2024, 5, 1, 12, 0))

    def test_extend_all_active(self, db, generator, make_template):
        first = make_template()
        second = make_template(day_of_week=3)
        make_template(day_of_week=4, is_active=False)
        total = generator.extend_all_active(date(2024, 3, 15))
        assert total == 4
        assert len(_occurrences(db, first.id)) == 2
        assert len(_occurrences(db, second.id)) == 2


class TestRegenerate:
    def test_keeps_closed_and_logged_occurrences(
        self, db, clock, generator, make_template, tutor, student
    ):
        template = make_template()
        generator.generate_occurrences(template.id, date(2024, 3, 18))
        first, second, third = _occurrences(db, template.id)
        second.status = OccurrenceStatus.CANCELLED.value
        db.add(
            TimesheetEntry(
                tutor_id=tutor.id,
                student_id=student.id,
                session_occurrence_id=third.id,
                work_date=third.occurrence_date,
                hours=1,
            )
        )
        db.commit()

        template.start_time = time(17, 0)
        db.commit()
        generator.regenerate_occurrences(template.id, date(2024, 3, 18))

        remaining = {o.template_slot_date: o for o in _occurrences(db, template.id)}
        assert remaining[date(2024, 3, 3)].start_at == datetime(2024, 3, 3, 17, 0, tzinfo=UTC)
        assert remaining[date(2024, 3, 10)].id == second.id
        assert remaining[date(2024, 3, 10)].status == OccurrenceStatus.CANCELLED.value
        assert remaining[date(2024, 3, 17)].id == third.id
        assert remaining[date(2024, 3, 17)].start_at == datetime(2024, 3, 17, 16, 0, tzinfo=UTC)

    def test_removes_open_change_requests_of_purged_occurrences(
        self, db, generator, make_template, tutor, parent
    ):
        template = make_template()
        generator.generate_occurrences(template.id, date(2024, 3, 8))
        (occurrence,) = _occurrences(db, template.id)
        db.add(
            ChangeRequest(
                session_occurrence_id=occurrence.id,
                requester_type="parent",
                requester_id=parent.id,
                parent_id=parent.id,
                tutor_id=tutor.id,
                request_type="cancel",
                original_date=occurrence.start_at,
                status=ChangeRequestStatus.PENDING.value,
            )
        )
        db.commit()

        generator.regenerate_occurrences(template.id, date(2024, 3, 8))
        assert db.query(ChangeRequest).count() == 0
        assert len(_occurrences(db, template.id)) == 1
