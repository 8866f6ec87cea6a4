# tests/unit/test_schemas.py
"""Request schema validation."""

from datetime import date, datetime, time, timezone

from pydantic import TypeAdapter, ValidationError
import pytest

from tutorhub.schemas.change_request import (
    CancelProposal,
    ChangeProposal,
    ChangeRequestSubmit,
    RescheduleProposal,
)
from tutorhub.schemas.template import TemplateCreate

UTC = timezone.utc


class TestProposals:
    def test_tagged_union_picks_variant(self):
        adapter = TypeAdapter(ChangeProposal)
        assert isinstance(adapter.validate_python({"request_type": "cancel"}), CancelProposal)
        proposal = adapter.validate_python(
            {
                "request_type": "reschedule",
                "proposed_start_at": "2024-03-10T16:00:00Z",
                "proposed_end_at": "2024-03-10T17:00:00Z",
            }
        )
        assert isinstance(proposal, RescheduleProposal)
        assert proposal.proposed_start_at == datetime(2024, 3, 10, 16, 0, tzinfo=UTC)

    def test_unknown_request_type(self):
        with pytest.raises(ValidationError):
            TypeAdapter(ChangeProposal).validate_python({"request_type": "swap"})

    def test_instants_given_together(self):
        with pytest.raises(ValidationError):
            RescheduleProposal(proposed_start_at=datetime(2024, 3, 10, 16, 0, tzinfo=UTC))

    def test_end_after_start(self):
        with pytest.raises(ValidationError):
            RescheduleProposal(
                proposed_start_at=datetime(2024, 3, 10, 17, 0, tzinfo=UTC),
                proposed_end_at=datetime(2024, 3, 10, 16, 0, tzinfo=UTC),
            )

    def test_naive_instants_rejected(self):
        with pytest.raises(ValidationError):
            RescheduleProposal(
                proposed_start_at=datetime(2024, 3, 10, 16, 0),
                proposed_end_at=datetime(2024, 3, 10, 17, 0),
            )

    def test_reschedule_needs_time_or_message(self):
        with pytest.raises(ValidationError):
            RescheduleProposal()
        assert RescheduleProposal(message="Any evening").proposed_start_at is None

    def test_submit_forbids_extra_fields(self):
        with pytest.raises(ValidationError):
            ChangeRequestSubmit(
                session_occurrence_id="occ",
                requester_type="parent",
                proposal={"request_type": "cancel"},
                status="approved",
            )


class TestTemplateCreate:
    def _base(self, **overrides):
        values = {
            "tutor_id": "tutor",
            "student_id": "student",
            "day_of_week": 0,
            "start_time": "16:00",
            "start_date": date(2024, 3, 1),
        }
        values.update(overrides)
        return values

    def test_parses_wall_time(self):
        assert TemplateCreate(**self._base()).start_time == time(16, 0)

    @pytest.mark.parametrize("day", [-1, 7])
    def test_day_of_week_range(self, day):
        with pytest.raises(ValidationError):
            TemplateCreate(**self._base(day_of_week=day))

    def test_exactly_one_party(self):
        with pytest.raises(ValidationError):
            TemplateCreate(**self._base(group_id="group"))
        with pytest.raises(ValidationError):
            TemplateCreate(**self._base(student_id=None))

    def test_end_not_before_start(self):
        with pytest.raises(ValidationError):
            TemplateCreate(**self._base(end_date=date(2024, 2, 1)))
