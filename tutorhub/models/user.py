"""User accounts referenced by the scheduling engine."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, String
import ulid

from ..core.enums import RoleName
from ..database import Base
from .types import UTCDateTime


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """Admin, tutor or parent account. Authentication lives elsewhere."""

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), nullable=False, unique=True)
    full_name = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime(), nullable=False, default=_now_utc)

    @property
    def is_admin(self) -> bool:
        return self.role == RoleName.ADMIN.value

    @property
    def is_tutor(self) -> bool:
        return self.role == RoleName.TUTOR.value

    @property
    def is_parent(self) -> bool:
        return self.role == RoleName.PARENT.value

    def __repr__(self) -> str:
        return f"<User {self.id} {self.role}>"
