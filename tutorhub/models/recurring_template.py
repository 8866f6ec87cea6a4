# tutorhub/models/recurring_template.py
"""
Recurring session template model.

A template is a weekly rule: one weekday, one local start time and one
duration for a tutor and either a student or a group. Templates are never
hard-deleted; a schedule change deactivates the old template.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
)
import ulid

from ..core.enums import ClassType
from ..database import Base
from .types import UTCDateTime


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class RecurringSessionTemplate(Base):
    """
    Weekly recurrence rule for tutoring sessions.

    ``day_of_week`` follows the 0=Sunday .. 6=Saturday convention.
    ``start_time`` is a wall-clock time in the business timezone.
    """

    __tablename__ = "recurring_session_templates"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    tutor_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    student_id = Column(String(26), ForeignKey("students.id"), nullable=True, index=True)
    group_id = Column(String(26), ForeignKey("student_groups.id"), nullable=True, index=True)

    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=60)
    subject = Column(String(255), nullable=True)
    class_type = Column(String(20), nullable=False, default=ClassType.INDIVIDUAL.value)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    notes = Column(Text, nullable=True)

    created_by = Column(String(26), ForeignKey("users.id"), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=_now_utc)
    updated_at = Column(UTCDateTime(), nullable=True, onupdate=_now_utc)

    __table_args__ = (
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_template_day_of_week"),
        CheckConstraint("duration_minutes > 0", name="ck_template_duration_positive"),
        CheckConstraint(
            "(student_id IS NOT NULL AND group_id IS NULL) "
            "OR (student_id IS NULL AND group_id IS NOT NULL)",
            name="ck_template_student_xor_group",
        ),
        CheckConstraint(
            "end_date IS NULL OR end_date >= start_date", name="ck_template_date_range"
        ),
        Index("ix_templates_tutor_active", "tutor_id", "is_active"),
    )

    def __repr__(self) -> str:
        return (
            f"<RecurringSessionTemplate {self.id} day={self.day_of_week} "
            f"at={self.start_time} active={self.is_active}>"
        )
