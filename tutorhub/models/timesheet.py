"""Timesheet entries logged by tutors."""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Column, Date, ForeignKey, Numeric, String, Text
import ulid

from ..database import Base
from .types import UTCDateTime


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class TimesheetEntry(Base):
    """
    Hours worked by a tutor.

    ``session_occurrence_id`` is unique: a session is logged at most once.
    """

    __tablename__ = "timesheet_entries"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    tutor_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    student_id = Column(String(26), ForeignKey("students.id"), nullable=True, index=True)
    session_occurrence_id = Column(
        String(26),
        ForeignKey("session_occurrences.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )

    work_date = Column(Date, nullable=False)
    hours = Column(Numeric(6, 2), nullable=False)
    tutor_rate = Column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    parent_rate = Column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    tutor_earnings = Column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    description = Column(Text, nullable=True)

    created_by = Column(String(26), ForeignKey("users.id"), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=_now_utc)

    def __repr__(self) -> str:
        return f"<TimesheetEntry {self.id} hours={self.hours}>"
