"""Data access for session change requests."""

from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import OPEN_CHANGE_REQUEST_STATUSES
from ..core.exceptions import RepositoryException
from ..models.change_request import ChangeRequest
from .base_repository import BaseRepository

_OPEN_VALUES = [status.value for status in OPEN_CHANGE_REQUEST_STATUSES]


class ChangeRequestRepository(BaseRepository[ChangeRequest]):
    def __init__(self, db: Session):
        super().__init__(db, ChangeRequest)

    def find_open_for_occurrence(self, occurrence_id: str) -> Optional[ChangeRequest]:
        query = self._build_query().filter(
            ChangeRequest.session_occurrence_id == occurrence_id,
            ChangeRequest.status.in_(_OPEN_VALUES),
        )
        try:
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding open request for {occurrence_id}: {str(e)}")
            raise RepositoryException(f"Failed to find change request: {str(e)}")

    def list_filtered(
        self,
        status: Optional[str] = None,
        parent_id: Optional[str] = None,
        tutor_id: Optional[str] = None,
        requester_id: Optional[str] = None,
    ) -> List[ChangeRequest]:
        query = self._build_query()
        if status:
            query = query.filter(ChangeRequest.status == status)
        if parent_id:
            query = query.filter(ChangeRequest.parent_id == parent_id)
        if tutor_id:
            query = query.filter(ChangeRequest.tutor_id == tutor_id)
        if requester_id:
            query = query.filter(ChangeRequest.requester_id == requester_id)
        return self._execute_query(query.order_by(ChangeRequest.created_at.desc()))

    def delete_open_for_occurrences(self, occurrence_ids: List[str]) -> int:
        if not occurrence_ids:
            return 0
        try:
            deleted = (
                self.db.query(ChangeRequest)
                .filter(
                    ChangeRequest.session_occurrence_id.in_(occurrence_ids),
                    ChangeRequest.status.in_(_OPEN_VALUES),
                )
                .delete(synchronize_session="fetch")
            )
            self.db.flush()
            return deleted
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting change requests: {str(e)}")
            raise RepositoryException(f"Failed to delete change requests: {str(e)}")
