"""Data access for students and groups."""

from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.student import Student, StudentGroup, student_group_members
from .base_repository import BaseRepository


class StudentRepository(BaseRepository[Student]):
    def __init__(self, db: Session):
        super().__init__(db, Student)

    def get_for_update(self, student_id: str) -> Optional[Student]:
        query = self._build_query().filter(Student.id == student_id)
        if self.db.bind is not None and self.db.bind.dialect.name == "postgresql":
            query = query.with_for_update()
        try:
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking student {student_id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve student: {str(e)}")

    def list_for_parent(self, parent_user_id: str) -> List[Student]:
        return self.find_by(parent_user_id=parent_user_id)

    def get_group(self, group_id: str) -> Optional[StudentGroup]:
        try:
            return self.db.query(StudentGroup).filter(StudentGroup.id == group_id).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting group {group_id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve group: {str(e)}")

    def parent_has_child_in_group(self, parent_user_id: str, group_id: str) -> bool:
        query = (
            self.db.query(Student.id)
            .join(student_group_members, student_group_members.c.student_id == Student.id)
            .filter(
                student_group_members.c.group_id == group_id,
                Student.parent_user_id == parent_user_id,
            )
        )
        return self._execute_query(query.limit(1)) != []
