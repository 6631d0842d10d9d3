"""Live position ingestion for one vehicle's tracking session."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterable, Callable
from datetime import datetime

from vantrack._constants import ms_to_kmh
from vantrack._geocode import NullGeocoder, ReverseGeocoder
from vantrack.config import VantrackConfig
from vantrack.exceptions import VantrackError
from vantrack.ingestion import moved_beyond
from vantrack.models._base import utcnow
from vantrack.models.location import Breadcrumb, PositionReport
from vantrack.models.vehicle import Vehicle, VehiclePosition, VehicleStatus
from vantrack.state.policy import should_accept_sample
from vantrack.state.store import TransitStore

_logger = logging.getLogger(__name__)


class LocationBroadcaster:
    """Maintain a vehicle's current position and breadcrumb trail.

    Every accepted sample overwrites the position cell. Reverse geocoding
    runs on the first sample of a session and then only after the vehicle
    moves past ``geocode_threshold_deg``; a breadcrumb is written on the
    first sample and then only after ``breadcrumb_threshold_deg``.
    """

    def __init__(
        self,
        vehicle_id: str,
        store: TransitStore,
        *,
        config: VantrackConfig | None = None,
        geocoder: ReverseGeocoder | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._vehicle_id = vehicle_id
        self._store = store
        self._config = config or VantrackConfig()
        self._geocoder: ReverseGeocoder = geocoder or NullGeocoder()
        self._clock = clock
        self._task: asyncio.Task[None] | None = None
        self._last_geocoded: tuple[float, float] | None = None
        self._last_breadcrumb: tuple[float, float] | None = None
        self._last_applied_at: datetime | None = None

    @property
    def vehicle_id(self) -> str:
        return self._vehicle_id

    @property
    def is_active(self) -> bool:
        """Whether a background session task is consuming samples."""
        return self._task is not None and not self._task.done()

    def reset_session(self) -> None:
        """Forget movement history so the next sample counts as a session start."""
        self._last_geocoded = None
        self._last_breadcrumb = None
        self._last_applied_at = None

    # ------------------------------------------------------------------
    # Per-sample path
    # ------------------------------------------------------------------

    async def ingest(self, report: PositionReport) -> Vehicle | None:
        """Apply one sample. Returns the updated vehicle, or ``None`` if the sample was stale."""
        vehicle = self._store.get_vehicle(self._vehicle_id)
        if not should_accept_sample(last_applied_at=self._last_applied_at, incoming_at=report.timestamp):
            _logger.warning(
                "Dropping out-of-order sample vehicle=%s at=%s last=%s",
                self._vehicle_id,
                report.timestamp,
                self._last_applied_at,
            )
            return None

        point = (report.lat, report.lng)
        location_name = vehicle.position.location_name
        geocode_point = self._last_geocoded
        if self._config.geocoding_enabled and moved_beyond(
            self._last_geocoded, point, self._config.geocode_threshold_deg
        ):
            resolved = await self._geocoder.reverse(report.lat, report.lng)
            if resolved:
                location_name = resolved
            geocode_point = point

        position = VehiclePosition(
            lat=report.lat,
            lng=report.lng,
            speed=ms_to_kmh(report.speed),
            heading=report.heading or 0.0,
            location_name=location_name,
            updated_at=report.timestamp or self._clock(),
        )
        write_breadcrumb = moved_beyond(self._last_breadcrumb, point, self._config.breadcrumb_threshold_deg)

        with self._store.unit_of_work():
            updated = self._store.update_vehicle(
                self._vehicle_id,
                position=position,
                operational_status=VehicleStatus.ACTIVE,
            )
            if write_breadcrumb:
                self._store.append_breadcrumb(
                    Breadcrumb(
                        vehicle_id=self._vehicle_id,
                        lat=report.lat,
                        lng=report.lng,
                        timestamp=position.updated_at,
                    )
                )

        self._last_geocoded = geocode_point
        if write_breadcrumb:
            self._last_breadcrumb = point
        self._last_applied_at = report.timestamp
        return updated

    # ------------------------------------------------------------------
    # Session loop
    # ------------------------------------------------------------------

    async def run(self, source: AsyncIterable[PositionReport]) -> None:
        """Consume *source* until it is exhausted or the task is cancelled.

        A sample that fails to apply is logged and skipped.
        """
        async for report in source:
            try:
                await self.ingest(report)
            except VantrackError as exc:
                _logger.warning("Sample rejected vehicle=%s: %s", self._vehicle_id, exc)
            except Exception:
                _logger.exception("Sample failed vehicle=%s", self._vehicle_id)

    def start(self, source: AsyncIterable[PositionReport]) -> None:
        """Begin an active tracking session fed by *source*."""
        if self.is_active:
            raise RuntimeError(f"Tracking session already active for vehicle {self._vehicle_id!r}")
        self._store.update_vehicle(self._vehicle_id, operational_status=VehicleStatus.ACTIVE)
        self.reset_session()
        self._task = asyncio.create_task(self.run(source), name=f"vantrack-broadcast-{self._vehicle_id}")
        _logger.debug("Tracking session started vehicle=%s", self._vehicle_id)

    async def stop(self) -> None:
        """Cancel the session task and wait until it has released the source."""
        task = self._task
        self._task = None
        if task is None:
            return
        if not task.done():
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        _logger.debug("Tracking session stopped vehicle=%s", self._vehicle_id)
