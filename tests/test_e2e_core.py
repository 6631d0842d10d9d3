from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from vantrack import (
    Coordinates,
    PinClaim,
    PositionReport,
    ProximityAlert,
    QrClaim,
    Student,
    StudentStatus,
    TransitAction,
    TransitCore,
    VantrackConfig,
    Vehicle,
    VehicleNotFoundError,
    VehicleStatus,
    VerificationRequest,
)
from vantrack.state.events import ChangeKind


class _StaticGeocoder:
    async def reverse(self, lat: float, lng: float) -> str | None:
        return "Ntinda Road, Kampala"


def _ts(minute: int) -> datetime:
    return datetime(2026, 3, 2, 15, minute, tzinfo=UTC)


@pytest.mark.asyncio
async def test_guardian_follows_a_full_trip() -> None:
    alerts: list[ProximityAlert] = []
    async with TransitCore(VantrackConfig(), geocoder=_StaticGeocoder()) as core:
        core.add_vehicle(Vehicle(id="van-1", plate_number="UBA 123X"))
        core.add_student(
            Student(
                id="stu-1",
                name="Amina",
                guardian_code="482913",
                handover_token="tok-7f3a",
                assigned_vehicle_id="van-1",
                home_location=Coordinates(lat=0.3550, lng=32.6100),
            )
        )
        subscription = core.subscribe_student("stu-1")
        monitor = core.proximity_monitor("stu-1", on_alert=alerts.append)
        watcher = asyncio.create_task(monitor.watch(subscription))

        await core.verify(
            VerificationRequest(
                student_id="stu-1",
                operator_id="op-9",
                action=TransitAction.PICKED_UP,
                claim=PinClaim(pin="482913"),
            )
        )
        await core.ingest_position("van-1", PositionReport(lat=0.3300, lng=32.6100, speed=12.0, timestamp=_ts(0)))
        await core.ingest_position("van-1", PositionReport(lat=0.3530, lng=32.6100, speed=8.0, timestamp=_ts(5)))
        await core.ingest_position("van-1", PositionReport(lat=0.3545, lng=32.6100, speed=2.0, timestamp=_ts(6)))
        for _ in range(5):
            await asyncio.sleep(0)

        assert len(alerts) == 1
        dashboard = core.dashboard("stu-1")
        assert dashboard.on_board is True
        assert dashboard.location_name == "Ntinda Road, Kampala"
        assert dashboard.vehicle_speed == 7

        await core.verify(
            VerificationRequest(
                student_id="stu-1",
                operator_id="op-9",
                action=TransitAction.DROPPED_OFF,
                claim=QrClaim(scanned_token="tok-7f3a"),
            )
        )
        assert core.store.get_student("stu-1").status == StudentStatus.DROPPED_OFF
        assert [e.action_type.value for e in core.history("stu-1")] == ["dropoff", "pickup"]

        assert await core.finish_route("van-1") == 1
        assert core.store.get_vehicle("van-1").operational_status == VehicleStatus.PARKED
        assert len(core.trail("van-1")) == 3

        for _ in range(5):
            await asyncio.sleep(0)
        subscription.close()
        await watcher

    assert monitor.on_board is False


@pytest.mark.asyncio
async def test_subscription_sees_position_changes() -> None:
    async with TransitCore(VantrackConfig(geocoding_enabled=False)) as core:
        core.add_vehicle(Vehicle(id="van-1"))
        core.add_student(Student(id="stu-1", guardian_code="482913", handover_token="tok", assigned_vehicle_id="van-1"))
        subscription = core.subscribe_student("stu-1")

        await core.ingest_position("van-1", PositionReport(lat=0.31, lng=32.58, timestamp=_ts(0)))

        kinds = set()
        for _ in range(2):
            event = await asyncio.wait_for(subscription.get(), timeout=1)
            assert event is not None
            kinds.add(event.kind)
        assert kinds == {ChangeKind.VEHICLE_POSITION, ChangeKind.VEHICLE_STATUS}


@pytest.mark.asyncio
async def test_unknown_vehicle_is_rejected() -> None:
    async with TransitCore(VantrackConfig(geocoding_enabled=False)) as core:
        with pytest.raises(VehicleNotFoundError):
            await core.ingest_position("van-404", PositionReport(lat=0.31, lng=32.58))
        with pytest.raises(VehicleNotFoundError):
            core.trail("van-404")
