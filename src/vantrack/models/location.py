"""Position ingestion payloads and breadcrumb rows."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, field_validator

from vantrack.ingestion import safe_float
from vantrack.models._base import Timestamp, VantrackBaseModel, utcnow


class PositionReport(VantrackBaseModel):
    """One position sample pushed by an operator device.

    ``speed`` is the raw device speed in m/s; ``heading`` in degrees.
    """

    lat: float = Field(..., ge=-90.0, le=90.0, validation_alias=AliasChoices("lat", "latitude"))
    lng: float = Field(..., ge=-180.0, le=180.0, validation_alias=AliasChoices("lng", "lon", "longitude"))
    speed: float | None = Field(default=None, validation_alias=AliasChoices("speed", "gpsSpeed"))
    heading: float | None = Field(default=None, validation_alias=AliasChoices("heading", "direction", "course"))
    timestamp: Timestamp = Field(default_factory=utcnow, validation_alias=AliasChoices("timestamp", "time"))

    @field_validator("speed", "heading", mode="before")
    @classmethod
    def _coerce_floats(cls, value: Any) -> float | None:
        return safe_float(value)


class Breadcrumb(VantrackBaseModel):
    """Persisted historical sample used to rebuild a vehicle's trail."""

    vehicle_id: str
    lat: float
    lng: float
    timestamp: Timestamp = Field(default_factory=utcnow)
