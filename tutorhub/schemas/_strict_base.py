"""Strict schema baselines with forbidden extras by default."""

from datetime import datetime
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict


class StrictModel(BaseModel):
    """Neutral strict base for response DTOs."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class StrictRequestModel(StrictModel):
    """Request DTO base that always forbids unexpected fields."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class ORMResponseModel(BaseModel):
    """Response DTO read straight from ORM objects."""

    model_config = ConfigDict(from_attributes=True)


def require_aware(value: Optional[datetime], field_name: str) -> Optional[datetime]:
    """Reject naive datetimes; instants must carry their zone."""
    if value is not None and value.tzinfo is None:
        raise ValueError(f"{field_name} must include a timezone offset")
    return value


def reject_explicit_nulls(model: BaseModel, fields: Iterable[str]) -> None:
    """Partial updates may omit a required column but never clear it."""
    cleared = sorted(
        name for name in fields if name in model.model_fields_set and getattr(model, name) is None
    )
    if cleared:
        raise ValueError(f"{', '.join(cleared)} cannot be null")
