"""Guardian-side arrival detection."""

from __future__ import annotations

import logging
import math
from collections.abc import AsyncIterable, Callable
from dataclasses import dataclass
from datetime import datetime

from vantrack._constants import EARTH_RADIUS_KM
from vantrack.config import VantrackConfig
from vantrack.ingestion import safe_float
from vantrack.models._base import utcnow
from vantrack.models.student import StudentStatus
from vantrack.state.events import ChangeEvent, ChangeKind
from vantrack.state.store import TransitStore

_logger = logging.getLogger(__name__)


def haversine_km(a: tuple[float, float], b: tuple[float, float]) -> float:
    """Great-circle distance between two ``(lat, lng)`` points in kilometres."""
    lat1, lng1 = map(math.radians, a)
    lat2, lng2 = map(math.radians, b)
    dlat = lat2 - lat1
    dlng = lng2 - lng1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(min(1.0, h)))


@dataclass(frozen=True)
class ProximityAlert:
    student_id: str
    vehicle_id: str | None
    distance_km: float
    destination: tuple[float, float]
    at: datetime


class ProximityMonitor:
    """Fire one alert per transit leg when the vehicle nears the destination.

    The ``has_notified`` latch is cleared whenever the student enters
    ``picked_up`` and set by the first alert of the leg.
    """

    def __init__(
        self,
        student_id: str,
        store: TransitStore,
        *,
        config: VantrackConfig | None = None,
        on_alert: Callable[[ProximityAlert], None] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._student_id = student_id
        self._store = store
        self._config = config or VantrackConfig()
        self._on_alert = on_alert
        self._clock = clock
        self.has_notified = False
        student = store.find_student(student_id)
        self._status: StudentStatus = student.status if student is not None else StudentStatus.WAITING
        self._vehicle_id = student.assigned_vehicle_id if student is not None else None

    @property
    def on_board(self) -> bool:
        return self._status == StudentStatus.PICKED_UP

    def destination(self) -> tuple[float, float]:
        """The student's home location, or the configured default."""
        try:
            student = self._store.get_student(self._student_id)
        except Exception:
            _logger.warning("Destination lookup failed student=%s; using default", self._student_id, exc_info=True)
            return self._config.default_destination
        if student.home_location is None:
            return self._config.default_destination
        return student.home_location.as_tuple()

    def on_status(self, status: StudentStatus | str) -> None:
        status = StudentStatus(status)
        if status == StudentStatus.PICKED_UP and self._status != StudentStatus.PICKED_UP:
            self.has_notified = False
        self._status = status

    def on_position(self, lat: float | None, lng: float | None) -> ProximityAlert | None:
        if not self.on_board or lat is None or lng is None:
            return None
        destination = self.destination()
        distance = haversine_km((lat, lng), destination)
        if distance >= self._config.proximity_radius_km or self.has_notified:
            return None
        self.has_notified = True
        alert = ProximityAlert(
            student_id=self._student_id,
            vehicle_id=self._vehicle_id,
            distance_km=distance,
            destination=destination,
            at=self._clock(),
        )
        _logger.info("Proximity alert student=%s distance_km=%.3f", self._student_id, distance)
        if self._on_alert is not None:
            self._on_alert(alert)
        return alert

    def handle(self, event: ChangeEvent) -> ProximityAlert | None:
        if event.kind == ChangeKind.STUDENT_STATUS and event.entity_id == self._student_id:
            self.on_status(event.data.get("status", self._status))
            return None
        if event.kind == ChangeKind.VEHICLE_POSITION and event.vehicle_id == self._vehicle_id:
            return self.on_position(safe_float(event.data.get("lat")), safe_float(event.data.get("lng")))
        return None

    async def watch(self, events: AsyncIterable[ChangeEvent]) -> None:
        """Consume a change stream (e.g. a feed subscription) until it ends."""
        async for event in events:
            self.handle(event)
