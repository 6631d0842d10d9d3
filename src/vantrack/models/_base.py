"""Base model and shared types for vantrack records.

Every record inherits from :class:`VantrackBaseModel` which provides:

* ``alias_generator=to_camel`` so the camelCase JSON used by clients maps
  to snake_case fields, while snake_case names are still accepted.
* Frozen instances; the store replaces records rather than mutating them.
* Empty-string values dropped before validation so field defaults apply.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def utcnow() -> datetime:
    return datetime.now(UTC)


def parse_timestamp(value: Any) -> datetime | None:
    """Coerce an epoch timestamp (seconds **or** milliseconds) or ISO string to a UTC datetime."""
    if value is None:
        return value
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            value = float(value)
        else:
            return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    ts = float(value)
    if ts >= _MS_THRESHOLD:
        ts = ts / 1000
    return datetime.fromtimestamp(ts, tz=UTC)


Timestamp = Annotated[datetime | None, BeforeValidator(parse_timestamp)]
"""Annotated type that accepts epoch seconds/ms, ISO strings, or datetimes."""


class VantrackBaseModel(BaseModel):
    """Base for all vantrack records."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_empty_strings(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        return {k: v for k, v in values.items() if not (isinstance(v, str) and not v.strip())}

    def to_json_dict(self) -> dict[str, Any]:
        """camelCase JSON-ready dict, as served to clients."""
        return self.model_dump(mode="json", by_alias=True)


class Coordinates(VantrackBaseModel):
    """A WGS84 point."""

    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)

    def as_tuple(self) -> tuple[float, float]:
        return (self.lat, self.lng)
