"""High-level facade wiring the custody-transfer components together."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

import aiohttp

from vantrack._constants import DEFAULT_TRAIL_LIMIT
from vantrack._geocode import NominatimGeocoder, NullGeocoder, ReverseGeocoder
from vantrack._mqtt import MqttFeedBridge
from vantrack.audit import AuditLedger
from vantrack.broadcaster import LocationBroadcaster
from vantrack.config import VantrackConfig
from vantrack.credentials import CredentialStore
from vantrack.feed import LiveFeed, Subscription
from vantrack.gateway import VerificationGateway
from vantrack.models._base import Coordinates, utcnow
from vantrack.models.dashboard import StudentDashboard
from vantrack.models.location import Breadcrumb, PositionReport
from vantrack.models.student import Student
from vantrack.models.vehicle import Vehicle
from vantrack.models.verification import VerificationEvent, VerificationRequest, VerificationResult
from vantrack.proximity import ProximityAlert, ProximityMonitor
from vantrack.scheduler import DailyResetScheduler, ResetReport
from vantrack.state.store import TransitStore
from vantrack.transit import TransitStateMachine

_logger = logging.getLogger(__name__)


class TransitCore:
    """Custody-transfer core.

    Usage::

        async with TransitCore(config) as core:
            core.add_student(student)
            result = await core.verify(request)
    """

    def __init__(
        self,
        config: VantrackConfig | None = None,
        *,
        store: TransitStore | None = None,
        geocoder: ReverseGeocoder | None = None,
        session: aiohttp.ClientSession | None = None,
        clock: Callable[[], datetime] = utcnow,
        start_scheduler: bool = False,
    ) -> None:
        self.config = config or VantrackConfig()
        self.store = store or TransitStore()
        self._clock = clock
        self._external_session = session is not None
        self._http_session = session
        self._geocoder = geocoder
        self._start_scheduler = start_scheduler
        self._broadcasters: dict[str, LocationBroadcaster] = {}
        self._mqtt_bridge: MqttFeedBridge | None = None

        self.ledger = AuditLedger(self.store)
        self.credentials = CredentialStore(self.store)
        self.transit = TransitStateMachine(self.store, clock=clock)
        self.gateway = VerificationGateway(
            self.store,
            transit=self.transit,
            credentials=self.credentials,
            ledger=self.ledger,
            clock=clock,
        )
        self.scheduler = DailyResetScheduler(
            self.store,
            credentials=self.credentials,
            transit=self.transit,
            config=self.config,
            clock=clock,
        )
        self.feed = LiveFeed(self.store)
        self.feed.attach()

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> TransitCore:
        if self._geocoder is None:
            if self.config.geocoding_enabled:
                if self._http_session is None:
                    self._http_session = aiohttp.ClientSession()
                self._geocoder = NominatimGeocoder(self.config, self._http_session)
            else:
                self._geocoder = NullGeocoder()
        if self.config.mqtt.enabled:
            self._start_mqtt()
        if self._start_scheduler:
            self.scheduler.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.scheduler.stop()
        for broadcaster in list(self._broadcasters.values()):
            await broadcaster.stop()
        self._stop_mqtt()
        self.feed.detach()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    def _start_mqtt(self) -> None:
        """Best-effort bridge startup (failures must not break the request path)."""
        bridge = MqttFeedBridge(self.config.mqtt, logger=_logger)
        try:
            bridge.start()
        except Exception:
            _logger.warning("MQTT bridge startup failed", exc_info=True)
            return
        self.store.add_listener(bridge.publish)
        self._mqtt_bridge = bridge

    def _stop_mqtt(self) -> None:
        bridge = self._mqtt_bridge
        self._mqtt_bridge = None
        if bridge is not None:
            self.store.remove_listener(bridge.publish)
            bridge.stop()

    # ------------------------------------------------------------------
    # Provisioning passthrough
    # ------------------------------------------------------------------

    def add_student(self, student: Student) -> None:
        self.store.add_student(student)

    def add_vehicle(self, vehicle: Vehicle) -> None:
        self.store.add_vehicle(vehicle)

    # ------------------------------------------------------------------
    # Custody transfer
    # ------------------------------------------------------------------

    async def verify(self, request: VerificationRequest) -> VerificationResult:
        return await self.gateway.verify(request)

    def history(self, student_id: str, *, limit: int | None = None) -> list[VerificationEvent]:
        self.store.get_student(student_id)
        return self.ledger.history(student_id, limit=limit)

    def dashboard(self, student_id: str) -> StudentDashboard:
        student = self.store.get_student(student_id)
        vehicle = self.store.find_vehicle(student.assigned_vehicle_id) if student.assigned_vehicle_id else None
        return StudentDashboard.build(student, vehicle)

    def set_guardian_code(self, student_id: str, code: str) -> str:
        return self.credentials.set_guardian_code(student_id, code)

    def set_home_location(self, student_id: str, lat: float, lng: float) -> Student:
        return self.store.update_student(student_id, home_location=Coordinates(lat=lat, lng=lng))

    # ------------------------------------------------------------------
    # Vehicles
    # ------------------------------------------------------------------

    def broadcaster(self, vehicle_id: str) -> LocationBroadcaster:
        """Broadcaster for *vehicle_id*, created on first use (session start)."""
        broadcaster = self._broadcasters.get(vehicle_id)
        if broadcaster is None:
            self.store.get_vehicle(vehicle_id)
            broadcaster = LocationBroadcaster(
                vehicle_id,
                self.store,
                config=self.config,
                geocoder=self._geocoder,
                clock=self._clock,
            )
            self._broadcasters[vehicle_id] = broadcaster
        return broadcaster

    async def ingest_position(self, vehicle_id: str, report: PositionReport) -> Vehicle | None:
        return await self.broadcaster(vehicle_id).ingest(report)

    def trail(self, vehicle_id: str, *, limit: int | None = DEFAULT_TRAIL_LIMIT) -> list[Breadcrumb]:
        self.store.get_vehicle(vehicle_id)
        crumbs = self.store.breadcrumbs(vehicle_id)
        return crumbs[:limit] if limit is not None else crumbs

    async def finish_route(self, vehicle_id: str) -> int:
        """End the vehicle's tracking session and reset it and its students."""
        self.store.get_vehicle(vehicle_id)
        broadcaster = self._broadcasters.pop(vehicle_id, None)
        if broadcaster is not None:
            await broadcaster.stop()
        return self.transit.finish_route(vehicle_id)

    # ------------------------------------------------------------------
    # Day boundary
    # ------------------------------------------------------------------

    async def run_daily_reset(self) -> ResetReport:
        return await self.scheduler.run_once()

    # ------------------------------------------------------------------
    # Guardian side
    # ------------------------------------------------------------------

    def subscribe_student(self, student_id: str) -> Subscription:
        student = self.store.get_student(student_id)
        return self.feed.subscribe_student(student_id, student.assigned_vehicle_id)

    def proximity_monitor(
        self,
        student_id: str,
        on_alert: Callable[[ProximityAlert], None] | None = None,
    ) -> ProximityMonitor:
        self.store.get_student(student_id)
        return ProximityMonitor(student_id, self.store, config=self.config, on_alert=on_alert, clock=self._clock)
