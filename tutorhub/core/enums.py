"""
Centralized enums for TutorHub.

Values are stored as plain strings in the database, so every enum here
subclasses ``str``.
"""

from enum import Enum
from typing import FrozenSet


class RoleName(str, Enum):
    """Account roles that matter to scheduling."""

    ADMIN = "admin"
    TUTOR = "tutor"
    PARENT = "parent"


class ClassType(str, Enum):
    INDIVIDUAL = "individual"
    GROUP = "group"


class OccurrenceStatus(str, Enum):
    """Session occurrence lifecycle statuses."""

    SCHEDULED = "scheduled"  # Initial state
    COMPLETED = "completed"  # Session took place
    CANCELLED = "cancelled"  # Called off ahead of time
    NO_SHOW = "no_show"  # Student didn't attend

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_OCCURRENCE_STATUSES


TERMINAL_OCCURRENCE_STATUSES: FrozenSet[OccurrenceStatus] = frozenset(
    {OccurrenceStatus.COMPLETED, OccurrenceStatus.CANCELLED, OccurrenceStatus.NO_SHOW}
)


class OccurrenceSource(str, Enum):
    """How an occurrence came to exist."""

    GENERATED = "generated"
    MANUAL = "manual"
    RESCHEDULED = "rescheduled"


class RequesterType(str, Enum):
    PARENT = "parent"
    TUTOR = "tutor"


class ChangeRequestType(str, Enum):
    CANCEL = "cancel"
    RESCHEDULE = "reschedule"


class ChangeRequestStatus(str, Enum):
    """
    Stored status of a change request.

    ``acknowledged`` is a soft, non-binding marker: the request stays open
    and can still be approved or rejected. Only ``approved`` and
    ``rejected`` are decisions.
    """

    PENDING = "pending"
    ACKNOWLEDGED = "acknowledged"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_open(self) -> bool:
        return self in OPEN_CHANGE_REQUEST_STATUSES

    @property
    def is_decided(self) -> bool:
        return not self.is_open


OPEN_CHANGE_REQUEST_STATUSES: FrozenSet[ChangeRequestStatus] = frozenset(
    {ChangeRequestStatus.PENDING, ChangeRequestStatus.ACKNOWLEDGED}
)


class ChangeRequestDecision(str, Enum):
    """Binding admin decision on a change request."""

    APPROVE = "approve"
    REJECT = "reject"

    @property
    def resulting_status(self) -> ChangeRequestStatus:
        if self is ChangeRequestDecision.APPROVE:
            return ChangeRequestStatus.APPROVED
        return ChangeRequestStatus.REJECTED


class AlertStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    SENT = "sent"
    APPROVED = "approved"
    PARTIAL = "partial"
    OVERDUE = "overdue"
    PAID = "paid"
    CANCELLED = "cancelled"


class InvoiceType(str, Enum):
    MANUAL = "manual"
    AUTO_SESSIONS = "auto_sessions"


class NotificationType(str, Enum):
    NEW_CHANGE_REQUEST = "new_change_request"
    SESSION_CHANGE_APPROVED = "session_change_approved"
    SESSION_CHANGE_REJECTED = "session_change_rejected"
    SCHEDULE_CHANGED = "schedule_changed"
    SESSION_FLAGGED = "session_flagged"
    INVOICE_REMINDER = "invoice_reminder"
    INVOICE_GENERATED = "invoice_generated"
