"""Persisted run markers for periodic jobs."""

from sqlalchemy import Column, Integer, String, Text

from ..database import Base
from .types import UTCDateTime


class ScanWatermark(Base):
    """
    Last start/completion of a periodic job.

    Lets a restarted worker or an overlapping beat tell whether a run is
    already done for the current interval.
    """

    __tablename__ = "scan_watermarks"

    job_name = Column(String(100), primary_key=True)
    last_started_at = Column(UTCDateTime(), nullable=True)
    last_completed_at = Column(UTCDateTime(), nullable=True)
    last_result_count = Column(Integer, nullable=True)
    last_error = Column(Text, nullable=True)
