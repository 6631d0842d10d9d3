"""Change events emitted by the store after a commit.

Consumers (live feed, MQTT bridge, proximity monitors) only ever see
committed state through these events.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChangeKind(StrEnum):
    VEHICLE_POSITION = "vehicle_position"
    VEHICLE_STATUS = "vehicle_status"
    STUDENT_STATUS = "student_status"


class ChangeEvent(BaseModel):
    """A committed change to one record."""

    model_config = ConfigDict(frozen=True)

    kind: ChangeKind
    entity_id: str = Field(..., description="Student or vehicle id")
    vehicle_id: str | None = Field(default=None, description="Vehicle the entity is attached to")
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    data: dict[str, Any] = Field(default_factory=dict, description="JSON-ready public fields")

    @field_validator("entity_id")
    @classmethod
    def _normalize_id(cls, value: str) -> str:
        entity_id = value.strip()
        if not entity_id:
            raise ValueError("entity_id must be non-empty")
        return entity_id

    @field_validator("observed_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value
