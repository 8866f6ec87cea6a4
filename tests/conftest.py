# tests/conftest.py
"""
Pytest configuration for TutorHub.

Every test gets a fresh in-memory SQLite database (StaticPool, so the
single connection is shared with TestClient worker threads) and a
FixedClock. Notifications are captured by a recording sink.
"""

import os

# Set before any tutorhub import so settings never point at a real database
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["ENVIRONMENT"] = "testing"
os.environ["BUSINESS_TIMEZONE"] = "Europe/London"

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tutorhub import models  # noqa: F401
from tutorhub.core.clock import FixedClock
from tutorhub.core.enums import ClassType, OccurrenceSource, OccurrenceStatus, RoleName
from tutorhub.database import Base, build_engine
from tutorhub.events.bus import EventBus
from tutorhub.events.handlers import register_default_handlers
from tutorhub.models.recurring_template import RecurringSessionTemplate
from tutorhub.models.session_occurrence import SessionOccurrence
from tutorhub.models.student import Student
from tutorhub.models.user import User

UTC = timezone.utc

# Friday; London is on GMT until 2024-03-31 so local wall time equals UTC
DEFAULT_NOW = datetime(2024, 3, 1, 10, 0, tzinfo=UTC)


class RecordingSink:
    """NotificationSink that keeps every notification in memory."""

    def __init__(self) -> None:
        self.sent: List[Dict[str, Any]] = []

    def create_notification(
        self, recipient_id: str, notification_type: str, payload: Dict[str, Any]
    ) -> None:
        self.sent.append(
            {"recipient_id": recipient_id, "type": notification_type, "payload": payload}
        )

    def of_type(self, notification_type: str) -> List[Dict[str, Any]]:
        return [n for n in self.sent if n["type"] == notification_type]


@pytest.fixture
def engine():
    engine = build_engine("sqlite+pysqlite:///:memory:", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FixedClock(DEFAULT_NOW)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def bus(db, clock, sink):
    """Event bus with the production side effects bound to the test session."""
    return register_default_handlers(EventBus(), db, clock, sink)


def _user(db, role: RoleName, name: str) -> User:
    user = User(email=f"{name.lower().replace(' ', '.')}@example.com", full_name=name, role=role.value)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def admin(db):
    return _user(db, RoleName.ADMIN, "Ada Admin")


@pytest.fixture
def tutor(db):
    return _user(db, RoleName.TUTOR, "Tom Tutor")


@pytest.fixture
def other_tutor(db):
    return _user(db, RoleName.TUTOR, "Tina Tutor")


@pytest.fixture
def parent(db):
    return _user(db, RoleName.PARENT, "Pat Parent")


@pytest.fixture
def other_parent(db):
    return _user(db, RoleName.PARENT, "Olly Other")


@pytest.fixture
def student(db, parent, tutor):
    student = Student(
        full_name="Sam Student",
        parent_user_id=parent.id,
        tutor_id=tutor.id,
        sessions_remaining=10,
        auto_invoice_enabled=True,
        default_session_pack=4,
        parent_rate=Decimal("40.00"),
        tutor_rate=Decimal("25.00"),
    )
    db.add(student)
    db.commit()
    return student


@pytest.fixture
def make_template(db, tutor, student, admin):
    def _make(**overrides) -> RecurringSessionTemplate:
        values = {
            "tutor_id": tutor.id,
            "student_id": student.id,
            "day_of_week": 0,
            "start_time": time(16, 0),
            "duration_minutes": 60,
            "subject": "Maths",
            "class_type": ClassType.INDIVIDUAL.value,
            "start_date": date(2024, 3, 1),
            "is_active": True,
            "created_by": admin.id,
        }
        values.update(overrides)
        template = RecurringSessionTemplate(**values)
        db.add(template)
        db.commit()
        return template

    return _make


@pytest.fixture
def make_occurrence(db, tutor, student):
    def _make(start_at: datetime = datetime(2024, 3, 3, 16, 0, tzinfo=UTC), **overrides):
        minutes = overrides.pop("duration_minutes", 60)
        values = {
            "tutor_id": tutor.id,
            "student_id": student.id,
            "occurrence_date": start_at.date(),
            "start_at": start_at,
            "end_at": start_at + timedelta(minutes=minutes),
            "subject": "Maths",
            "class_type": ClassType.INDIVIDUAL.value,
            "duration_minutes": minutes,
            "status": OccurrenceStatus.SCHEDULED.value,
            "source": OccurrenceSource.MANUAL.value,
        }
        values.update(overrides)
        occurrence = SessionOccurrence(**values)
        db.add(occurrence)
        db.commit()
        return occurrence

    return _make
