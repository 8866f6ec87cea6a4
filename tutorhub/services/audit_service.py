"""
Audit trail writer.

Audit rows are written in their own transaction after the business change
committed. A failed audit write is logged and swallowed; it never fails
the operation it describes.
"""

from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import settings
from ..models.audit_log import AuditLog
from ..repositories.factory import RepositoryFactory
from .base import BaseService


class AuditService(BaseService):
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        super().__init__(db, clock)
        self.repository = RepositoryFactory.create_audit_repository(db)

    def record(
        self,
        entity_type: str,
        entity_id: str,
        action: str,
        actor: Any,
        before: Optional[Mapping[str, Any]] = None,
        after: Optional[Mapping[str, Any]] = None,
    ) -> Optional[AuditLog]:
        if not settings.audit_enabled:
            return None
        try:
            with self.transaction():
                entry = AuditLog.from_change(
                    entity_type=entity_type,
                    entity_id=entity_id,
                    action=action,
                    actor=actor,
                    before=before,
                    after=after,
                    occurred_at=self.now(),
                )
                self.repository.write(entry)
            return entry
        except Exception:
            self.logger.exception("Audit write failed for %s %s (%s)", entity_type, entity_id, action)
            return None
