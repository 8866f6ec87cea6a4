# tutorhub/models/change_request.py
"""
Change request model.

Parents and tutors ask for a session to be cancelled or moved; an admin
approves or rejects. At most one open request (pending or acknowledged)
may exist per session, enforced by a partial unique index.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, ForeignKey, Index, String, Text, text
import ulid

from ..core.enums import ChangeRequestStatus
from ..database import Base
from .types import UTCDateTime


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


_OPEN_STATUS_PREDICATE = "status IN ('pending', 'acknowledged')"


class ChangeRequest(Base):
    __tablename__ = "session_change_requests"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    session_occurrence_id = Column(
        String(26),
        ForeignKey("session_occurrences.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    requester_type = Column(String(10), nullable=False)
    requester_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    parent_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    tutor_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    student_id = Column(String(26), ForeignKey("students.id"), nullable=True)
    group_id = Column(String(26), ForeignKey("student_groups.id"), nullable=True)

    request_type = Column(String(20), nullable=False)
    original_date = Column(UTCDateTime(), nullable=False)
    proposed_start_at = Column(UTCDateTime(), nullable=True)
    proposed_end_at = Column(UTCDateTime(), nullable=True)
    proposed_message = Column(Text, nullable=True)
    reason = Column(Text, nullable=True)

    status = Column(
        String(20), nullable=False, default=ChangeRequestStatus.PENDING.value, index=True
    )
    admin_notes = Column(Text, nullable=True)
    processed_at = Column(UTCDateTime(), nullable=True)
    processed_by = Column(String(26), ForeignKey("users.id"), nullable=True)
    acknowledged_at = Column(UTCDateTime(), nullable=True)
    acknowledged_by = Column(String(26), ForeignKey("users.id"), nullable=True)

    created_at = Column(UTCDateTime(), nullable=False, default=_now_utc)
    updated_at = Column(UTCDateTime(), nullable=True, onupdate=_now_utc)

    __table_args__ = (
        Index(
            "uq_change_requests_one_open_per_occurrence",
            "session_occurrence_id",
            unique=True,
            postgresql_where=text(_OPEN_STATUS_PREDICATE),
            sqlite_where=text(_OPEN_STATUS_PREDICATE),
        ),
    )

    @property
    def status_enum(self) -> ChangeRequestStatus:
        return ChangeRequestStatus(self.status)

    @property
    def decision(self) -> Optional[str]:
        """Binding outcome, or None while the request is still open."""
        if self.status in (ChangeRequestStatus.APPROVED.value, ChangeRequestStatus.REJECTED.value):
            return self.status
        return None

    @property
    def is_acknowledged(self) -> bool:
        return self.acknowledged_at is not None

    def __repr__(self) -> str:
        return f"<ChangeRequest {self.id} {self.request_type} {self.status}>"
