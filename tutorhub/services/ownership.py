"""Who may act on a session occurrence."""

from typing import Optional

from ..models.session_occurrence import SessionOccurrence
from ..models.user import User
from ..repositories.student_repository import StudentRepository


def parent_owns_occurrence(
    students: StudentRepository, parent: User, occurrence: SessionOccurrence
) -> bool:
    """True when ``parent`` is the parent of the session's student or of a group member."""
    if not parent.is_parent:
        return False
    if occurrence.student_id:
        student = students.get_by_id(occurrence.student_id)
        return student is not None and student.parent_user_id == parent.id
    if occurrence.group_id:
        return students.parent_has_child_in_group(parent.id, occurrence.group_id)
    return False


def tutor_assigned_to_occurrence(tutor: User, occurrence: SessionOccurrence) -> bool:
    return tutor.is_tutor and occurrence.tutor_id == tutor.id


def parent_id_for_occurrence(
    students: StudentRepository, occurrence: SessionOccurrence
) -> Optional[str]:
    if not occurrence.student_id:
        return None
    student = students.get_by_id(occurrence.student_id)
    return student.parent_user_id if student else None
