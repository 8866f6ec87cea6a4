# tutorhub/models/session_occurrence.py
"""
Session occurrence model.

An occurrence is one dated session. Generated occurrences snapshot the
template's subject, class type and duration, so later template edits do
not rewrite history. ``template_slot_date`` is the template date the row
was generated for; it never changes, which keeps (template, date)
unique even after the session itself is rescheduled.
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
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import ClassType, OccurrenceSource, OccurrenceStatus
from ..database import Base
from .types import UTCDateTime


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class SessionOccurrence(Base):
    __tablename__ = "session_occurrences"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    template_id = Column(
        String(26),
        ForeignKey("recurring_session_templates.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    template_slot_date = Column(Date, nullable=True)

    tutor_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    student_id = Column(String(26), ForeignKey("students.id"), nullable=True, index=True)
    group_id = Column(String(26), ForeignKey("student_groups.id"), nullable=True, index=True)

    occurrence_date = Column(Date, nullable=False, index=True)
    start_at = Column(UTCDateTime(), nullable=False)
    end_at = Column(UTCDateTime(), nullable=False, index=True)

    # Snapshot of the template at generation time
    subject = Column(String(255), nullable=True)
    class_type = Column(String(20), nullable=False, default=ClassType.INDIVIDUAL.value)
    duration_minutes = Column(Integer, nullable=False)

    status = Column(
        String(20), nullable=False, default=OccurrenceStatus.SCHEDULED.value, index=True
    )
    source = Column(String(20), nullable=False, default=OccurrenceSource.GENERATED.value)
    original_date = Column(UTCDateTime(), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    # Parent flagging
    parent_flagged = Column(Boolean, nullable=False, default=False)
    parent_flag_comment = Column(Text, nullable=True)
    parent_flagged_at = Column(UTCDateTime(), nullable=True)

    created_by = Column(String(26), ForeignKey("users.id"), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=_now_utc)
    updated_at = Column(UTCDateTime(), nullable=True, onupdate=_now_utc)

    template = relationship("RecurringSessionTemplate", foreign_keys=[template_id])
    student = relationship("Student", foreign_keys=[student_id])

    __table_args__ = (
        UniqueConstraint("template_id", "template_slot_date", name="uq_occurrence_template_slot"),
        CheckConstraint("end_at > start_at", name="ck_occurrence_end_after_start"),
        Index("ix_occurrences_status_end", "status", "end_at"),
    )

    @property
    def status_enum(self) -> OccurrenceStatus:
        return OccurrenceStatus(self.status)

    def to_audit_dict(self) -> dict:
        return {
            "occurrence_date": self.occurrence_date.isoformat() if self.occurrence_date else None,
            "start_at": self.start_at.isoformat() if self.start_at else None,
            "end_at": self.end_at.isoformat() if self.end_at else None,
            "status": self.status,
            "source": self.source,
        }

    def __repr__(self) -> str:
        return f"<SessionOccurrence {self.id} {self.start_at} {self.status}>"
