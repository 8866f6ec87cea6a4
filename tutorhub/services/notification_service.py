# tutorhub/services/notification_service.py
"""
Notification sink for the scheduling engine.

The engine only asks for a notification to be created. Delivery over
email or push is someone else's job, so callers treat this as
fire-and-forget: failures are logged and never undo the business change
that caused them.
"""

import logging
from typing import Any, Dict, Iterable, Optional, Protocol

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.enums import NotificationType
from ..models.notification import Notification
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def create_notification(
        self, recipient_id: str, notification_type: str, payload: Dict[str, Any]
    ) -> None:
        """Record a notification for ``recipient_id``."""


_TITLES: Dict[str, str] = {
    NotificationType.NEW_CHANGE_REQUEST.value: "New session change request",
    NotificationType.SESSION_CHANGE_APPROVED.value: "Session change approved",
    NotificationType.SESSION_CHANGE_REJECTED.value: "Session change rejected",
    NotificationType.SCHEDULE_CHANGED.value: "Schedule changed",
    NotificationType.SESSION_FLAGGED.value: "Session flagged by parent",
    NotificationType.INVOICE_REMINDER.value: "Invoice payment reminder",
    NotificationType.INVOICE_GENERATED.value: "New invoice",
}


class NotificationService(BaseService):
    """Persists in-app notifications; implements ``NotificationSink``."""

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        super().__init__(db, clock)
        self.repository = RepositoryFactory.create_notification_repository(db)

    @BaseService.measure_operation("create_notification")
    def create_notification(
        self, recipient_id: str, notification_type: str, payload: Dict[str, Any]
    ) -> None:
        with self.transaction():
            self.repository.create(
                recipient_id=recipient_id,
                notification_type=notification_type,
                title=_TITLES.get(notification_type, notification_type.replace("_", " ").title()),
                message=payload.get("message"),
                payload=payload,
                created_at=self.now(),
            )
        self.logger.info("Notification %s queued for %s", notification_type, recipient_id)

    def list_for_recipient(self, recipient_id: str, limit: int = 50) -> list[Notification]:
        return self.repository.list_for_recipient(recipient_id, limit=limit)


def notify_all(
    sink: NotificationSink,
    db: Session,
    recipient_ids: Iterable[str],
    notification_type: str,
    payload: Dict[str, Any],
) -> int:
    """
    Fan a notification out to several recipients.

    Each recipient is isolated: one failure is logged and the rest are
    still attempted. Returns the number that succeeded.
    """
    sent = 0
    for recipient_id in recipient_ids:
        try:
            sink.create_notification(recipient_id, notification_type, payload)
            sent += 1
        except Exception:
            logger.exception(
                "Failed to create %s notification for %s", notification_type, recipient_id
            )
            db.rollback()
    return sent
