"""Vehicle (van) record and its live position cell."""

from __future__ import annotations

import enum

from pydantic import Field

from vantrack._constants import SHIFT_ENDED_LOCATION_NAME
from vantrack.models._base import Coordinates, Timestamp, VantrackBaseModel


class VehicleStatus(enum.StrEnum):
    PARKED = "parked"
    ACTIVE = "active"


class VehiclePosition(VantrackBaseModel):
    """The single authoritative "current position" of a vehicle.

    Overwritten on every accepted sample; history lives in breadcrumbs.
    """

    lat: float | None = None
    lng: float | None = None
    speed: int = 0
    """Speed in km/h."""
    heading: float = 0.0
    location_name: str | None = None
    updated_at: Timestamp = None

    @property
    def coordinates(self) -> Coordinates | None:
        if self.lat is None or self.lng is None:
            return None
        return Coordinates(lat=self.lat, lng=self.lng)

    @classmethod
    def shift_ended(cls) -> VehiclePosition:
        return cls(location_name=SHIFT_ENDED_LOCATION_NAME)


class Vehicle(VantrackBaseModel):
    id: str
    plate_number: str = ""
    operator_id: str | None = None
    operational_status: VehicleStatus = VehicleStatus.PARKED
    position: VehiclePosition = Field(default_factory=VehiclePosition)
