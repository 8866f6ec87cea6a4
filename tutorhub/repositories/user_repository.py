"""Data access for user accounts."""

from typing import List

from sqlalchemy.orm import Session

from ..core.enums import RoleName
from ..models.user import User
from .base_repository import BaseRepository


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)

    def list_active_admin_ids(self) -> List[str]:
        query = self.db.query(User.id).filter(
            User.role == RoleName.ADMIN.value, User.is_active.is_(True)
        )
        return [row[0] for row in self._execute_query(query)]
