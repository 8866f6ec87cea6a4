# tutorhub/core/config.py
"""
Application settings for TutorHub.

Values are read from the environment (and a local ``.env`` file when not
running in CI). Grace windows and reminder thresholds used by the
compliance scans live here so operators can tune them without a deploy.
"""

import logging
import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz

logger = logging.getLogger(__name__)


# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).resolve().parents[2] / ".env"
    if env_path.exists():
        logger.info("[CONFIG] Loading .env from %s", env_path)
        load_dotenv(env_path)


class Settings(BaseSettings):
    """Runtime configuration."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = Field(default="development")
    database_url: str = Field(default="sqlite+pysqlite:///./tutorhub.db")
    redis_url: str = Field(default="redis://localhost:6379/0")
    sql_echo: bool = Field(default=False)

    # Template wall-clock times are interpreted in this zone
    business_timezone: str = Field(default="Europe/London")

    # Occurrence generation
    generation_horizon_days: int = Field(default=365, ge=1)
    max_generation_horizon_days: int = Field(default=730, ge=1)

    # Compliance alerting
    session_logging_grace_hours: int = Field(default=24, ge=0)
    invoice_alert_grace_days: int = Field(default=2, ge=0)
    invoice_reminder_thresholds_days: List[int] = Field(default_factory=lambda: [2, 4, 5])
    compliance_scan_interval_minutes: int = Field(default=60, ge=1)

    # Invoicing
    invoice_payment_terms_days: int = Field(default=5, ge=0)
    scheduled_invoice_interval_minutes: int = Field(default=60, ge=1)

    audit_enabled: bool = Field(default=True)

    @field_validator("business_timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        if value not in pytz.all_timezones_set:
            raise ValueError(f"Unknown timezone: {value}")
        return value

    @field_validator("invoice_reminder_thresholds_days")
    @classmethod
    def normalize_thresholds(cls, value: List[int]) -> List[int]:
        if any(threshold < 0 for threshold in value):
            raise ValueError("Reminder thresholds must be non-negative")
        return sorted(set(value))


settings = Settings()
