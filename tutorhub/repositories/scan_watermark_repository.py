"""Data access for periodic job watermarks."""

from typing import Optional

from sqlalchemy.orm import Session

from ..models.scan_watermark import ScanWatermark


class ScanWatermarkRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, job_name: str) -> Optional[ScanWatermark]:
        return self.db.get(ScanWatermark, job_name)

    def get_or_create(self, job_name: str) -> ScanWatermark:
        mark = self.get(job_name)
        if mark is None:
            mark = ScanWatermark(job_name=job_name)
            self.db.add(mark)
            self.db.flush()
        return mark
