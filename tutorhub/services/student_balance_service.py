"""
Student Balance Service for TutorHub

Owns the prepaid session balance. Every change publishes a
``SessionBalanceChanged`` event after commit; the invoice trigger listens
for the positive-to-depleted crossing.
"""

from typing import Optional, Tuple

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.exceptions import NotFoundException
from ..events.bus import EventBus
from ..events.occurrence_events import SessionBalanceChanged
from ..models.student import Student
from ..models.user import User
from ..repositories.factory import RepositoryFactory
from ..schemas.student import StudentBillingUpdate
from .audit_service import AuditService
from .base import BaseService


class StudentBalanceService(BaseService):
    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        event_bus: Optional[EventBus] = None,
        audit: Optional[AuditService] = None,
    ):
        super().__init__(db, clock)
        self.event_bus = event_bus or EventBus()
        self.audit = audit or AuditService(db, self.clock)
        self.repository = RepositoryFactory.create_student_repository(db)

    def get_student(self, student_id: str) -> Student:
        student = self.repository.get_by_id(student_id)
        if not student:
            raise NotFoundException(f"Student {student_id} not found")
        return student

    @BaseService.measure_operation("update_student_billing")
    def update_student_billing(
        self, student_id: str, changes: StudentBillingUpdate, actor: Optional[User] = None
    ) -> Student:
        """
        Apply an admin edit to the balance and invoicing settings.

        The balance change is committed first; invoice generation happens in
        an event handler and cannot fail this update.
        """
        fields = changes.model_dump(exclude_unset=True)
        student = self.repository.get_for_update(student_id)
        if not student:
            raise NotFoundException(f"Student {student_id} not found")

        previous_balance = student.sessions_remaining
        before = {key: _jsonable(getattr(student, key)) for key in fields}
        with self.transaction():
            for key, value in fields.items():
                setattr(student, key, value)

        self.audit.record(
            "student",
            student.id,
            "billing_updated",
            actor,
            before=before,
            after={key: _jsonable(getattr(student, key)) for key in fields},
        )
        if "sessions_remaining" in fields:
            self._publish_balance_change(student, previous_balance, actor)
        return student

    def consume_session(self, student: Student) -> Tuple[int, int]:
        """
        Take one session off the balance inside the caller's transaction.

        The balance may go negative; returns (previous, new).
        """
        previous = student.sessions_remaining or 0
        student.sessions_remaining = previous - 1
        self.repository.flush()
        return previous, student.sessions_remaining

    def publish_balance_change(
        self, student: Student, previous_balance: int, actor: Optional[User] = None
    ) -> None:
        self._publish_balance_change(student, previous_balance, actor)

    def _publish_balance_change(
        self, student: Student, previous_balance: int, actor: Optional[User]
    ) -> None:
        self.event_bus.publish(
            SessionBalanceChanged(
                occurred_at=self.now(),
                actor_id=actor.id if actor else None,
                student_id=student.id,
                previous_balance=previous_balance,
                new_balance=student.sessions_remaining,
            )
        )


def _jsonable(value):
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)
