"""Data access for timesheet entries."""

from typing import Optional

from sqlalchemy.orm import Session

from ..models.timesheet import TimesheetEntry
from .base_repository import BaseRepository


class TimesheetRepository(BaseRepository[TimesheetEntry]):
    def __init__(self, db: Session):
        super().__init__(db, TimesheetEntry)

    def get_for_occurrence(self, occurrence_id: str) -> Optional[TimesheetEntry]:
        return self.find_one_by(session_occurrence_id=occurrence_id)
