"""Student custody record."""

from __future__ import annotations

import enum
import re
from datetime import datetime

from pydantic import Field, field_validator, model_validator

from vantrack.models._base import Coordinates, Timestamp, VantrackBaseModel

GUARDIAN_CODE_PATTERN = re.compile(r"^\d{6}$")


class StudentStatus(enum.StrEnum):
    """Where a student is in today's transit cycle."""

    WAITING = "waiting"
    PICKED_UP = "picked_up"
    DROPPED_OFF = "dropped_off"


class Student(VantrackBaseModel):
    """A student as seen by the custody-transfer core.

    ``on_board`` is derived state and must always equal
    ``status == PICKED_UP``; construction fails otherwise.
    """

    id: str
    name: str = ""
    status: StudentStatus = StudentStatus.WAITING
    on_board: bool = False
    assigned_vehicle_id: str | None = None
    guardian_code: str
    handover_token: str
    home_location: Coordinates | None = None
    last_pickup_time: Timestamp = None
    last_dropoff_time: Timestamp = None
    version: int = Field(default=0, ge=0)
    """Bumped by the store on every committed mutation."""

    @field_validator("id")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("must be non-empty")
        return text

    @field_validator("handover_token")
    @classmethod
    def _opaque_token(cls, value: str) -> str:
        # Stored exactly as issued; QR matching is byte-for-byte.
        if not value.strip():
            raise ValueError("must be non-empty")
        return value

    @field_validator("guardian_code", mode="before")
    @classmethod
    def _check_guardian_code(cls, value: object) -> str:
        code = str(value).strip()
        if not GUARDIAN_CODE_PATTERN.match(code):
            raise ValueError("guardian code must be exactly 6 digits")
        return code

    @model_validator(mode="after")
    def _on_board_matches_status(self) -> Student:
        if self.on_board != (self.status == StudentStatus.PICKED_UP):
            raise ValueError(f"on_board={self.on_board} contradicts status={self.status.value}")
        return self

    @property
    def last_transition_at(self) -> datetime | None:
        stamps = [t for t in (self.last_pickup_time, self.last_dropoff_time) if t is not None]
        return max(stamps) if stamps else None
