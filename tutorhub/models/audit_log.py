"""
Audit logging model to capture administrative actions for key entities.

Provides a simple helper for building rows from change events while applying
lightweight actor extraction.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from sqlalchemy import Column, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import JSON
import ulid

from ..database import Base
from .types import UTCDateTime


def _now_utc() -> datetime:
    """Return timezone-aware UTC timestamp for defaults."""
    return datetime.now(timezone.utc)


class AuditLog(Base):
    """Persistence model for audit trail entries."""

    __tablename__ = "audit_log"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(String(64), nullable=False, index=True)
    action = Column(String(50), nullable=False)
    actor_id = Column(String(26), nullable=True)
    actor_role = Column(String(30), nullable=True)
    occurred_at = Column(UTCDateTime(), nullable=False, default=_now_utc)
    before = Column(JSONB(astext_type=Text()).with_variant(JSON(), "sqlite"), nullable=True)
    after = Column(JSONB(astext_type=Text()).with_variant(JSON(), "sqlite"), nullable=True)

    @classmethod
    def from_change(
        cls,
        entity_type: str,
        entity_id: str,
        action: str,
        actor: Any | None,
        before: Mapping[str, Any] | None,
        after: Mapping[str, Any] | None,
        occurred_at: datetime | None = None,
    ) -> "AuditLog":
        """Build an AuditLog row; ``actor`` may be a User, a mapping or None."""
        actor_id: str | None = None
        actor_role: str | None = None
        if actor is not None:
            if isinstance(actor, Mapping):
                actor_id = actor.get("id")
                actor_role = actor.get("role")
            else:
                actor_id = getattr(actor, "id", None)
                actor_role = getattr(actor, "role", None)

        return cls(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            actor_role=str(actor_role) if actor_role is not None else None,
            occurred_at=occurred_at or _now_utc(),
            before=dict(before) if before is not None else None,
            after=dict(after) if after is not None else None,
        )
