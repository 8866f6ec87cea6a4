"""
Student and group models.

A student carries the prepaid session balance and the auto-invoicing
settings that drive invoice generation when the balance runs out.
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
)
from sqlalchemy.orm import relationship
import ulid

from ..database import Base
from .types import UTCDateTime


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


student_group_members = Table(
    "student_group_members",
    Base.metadata,
    Column(
        "group_id",
        String(26),
        ForeignKey("student_groups.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "student_id",
        String(26),
        ForeignKey("students.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Student(Base):
    __tablename__ = "students"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    full_name = Column(String(255), nullable=False)
    parent_user_id = Column(String(26), ForeignKey("users.id"), nullable=True, index=True)
    tutor_id = Column(String(26), ForeignKey("users.id"), nullable=True, index=True)

    # Prepaid balance and invoicing
    sessions_remaining = Column(Integer, nullable=False, default=0)
    auto_invoice_enabled = Column(Boolean, nullable=False, default=False)
    default_session_pack = Column(Integer, nullable=False, default=4)
    recurring_invoice_send_date = Column(Date, nullable=True)
    parent_rate = Column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    tutor_rate = Column(Numeric(10, 2), nullable=False, default=Decimal("0"))

    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime(), nullable=False, default=_now_utc)
    updated_at = Column(UTCDateTime(), nullable=True, onupdate=_now_utc)

    parent = relationship("User", foreign_keys=[parent_user_id])
    groups = relationship("StudentGroup", secondary=student_group_members, back_populates="members")

    def __repr__(self) -> str:
        return f"<Student {self.id} remaining={self.sessions_remaining}>"


class StudentGroup(Base):
    __tablename__ = "student_groups"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    name = Column(String(255), nullable=False)
    tutor_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=_now_utc)

    members = relationship("Student", secondary=student_group_members, back_populates="groups")
