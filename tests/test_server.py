from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from vantrack.config import VantrackConfig
from vantrack.core import TransitCore
from vantrack.models import Outcome, Student, StudentStatus, Vehicle
from vantrack.server import create_app

_OPERATOR = {"X-Operator-Id": "op-9"}


@pytest_asyncio.fixture
async def core() -> AsyncIterator[TransitCore]:
    async with TransitCore(VantrackConfig(geocoding_enabled=False)) as transit_core:
        transit_core.add_vehicle(Vehicle(id="van-1", plate_number="UBA 123X"))
        transit_core.add_student(
            Student(
                id="stu-1",
                name="Amina",
                guardian_code="482913",
                handover_token="tok-7f3a",
                assigned_vehicle_id="van-1",
            )
        )
        yield transit_core


@pytest_asyncio.fixture
async def client(core: TransitCore) -> AsyncIterator[TestClient]:
    async with TestClient(TestServer(create_app(core))) as test_client:
        yield test_client


@pytest.mark.asyncio
async def test_verify_pickup_then_dashboard(client: TestClient, core: TransitCore) -> None:
    resp = await client.post(
        "/students/stu-1/verify",
        json={"method": "PIN", "pin": 482913, "action": "picked_up", "lat": 0.31, "lng": 32.58},
        headers=_OPERATOR,
    )
    assert resp.status == 200
    body = await resp.json()
    assert body["success"] is True
    assert body["status"] == "picked_up"
    assert body["onBoard"] is True

    resp = await client.get("/students/stu-1/dashboard")
    data = (await resp.json())["data"]
    assert data["status"] == "picked_up"
    assert data["onBoard"] is True
    assert data["guardianCode"] != "482913"
    assert data["handoverToken"] == "tok-7f3a"

    [event] = core.history("stu-1")
    assert event.operator_id == "op-9"
    assert event.coordinates is not None and event.coordinates.as_tuple() == (0.31, 32.58)


@pytest.mark.asyncio
async def test_wrong_credential_is_401_and_audited(client: TestClient, core: TransitCore) -> None:
    resp = await client.post(
        "/students/stu-1/verify",
        json={"method": "QR", "scannedToken": "nope", "action": "dropped_off"},
        headers=_OPERATOR,
    )

    assert resp.status == 401
    assert (await resp.json())["error"] == "invalid_credential"
    assert core.store.get_student("stu-1").status == StudentStatus.WAITING
    [event] = core.history("stu-1")
    assert event.outcome == Outcome.FAILURE


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("path", "payload", "headers", "status", "error"),
    [
        ("/students/ghost/verify", {"method": "PIN", "pin": "1", "action": "picked_up"}, _OPERATOR, 404, "not_found"),
        ("/students/stu-1/verify", {"method": "SMS", "action": "picked_up"}, _OPERATOR, 400, "bad_request"),
        ("/students/stu-1/verify", {"method": "PIN", "pin": "1", "action": "boarded"}, _OPERATOR, 400, "bad_request"),
        ("/students/stu-1/verify", {"method": "PIN", "pin": "1", "action": "picked_up"}, {}, 400, "bad_request"),
    ],
)
async def test_verify_error_mapping(
    client: TestClient,
    path: str,
    payload: dict[str, object],
    headers: dict[str, str],
    status: int,
    error: str,
) -> None:
    resp = await client.post(path, json=payload, headers=headers)

    assert resp.status == status
    assert (await resp.json())["error"] == error


@pytest.mark.asyncio
async def test_store_outage_is_503(client: TestClient, core: TransitCore, monkeypatch: pytest.MonkeyPatch) -> None:
    def _boom(_event: object) -> None:
        raise ConnectionError("database unreachable")

    monkeypatch.setattr(core.store, "_write_event", _boom)

    resp = await client.post(
        "/students/stu-1/verify",
        json={"method": "PIN", "pin": "482913", "action": "picked_up"},
        headers=_OPERATOR,
    )

    assert resp.status == 503
    assert (await resp.json())["error"] == "store_unavailable"
    assert core.store.get_student("stu-1").guardian_code == "482913"


@pytest.mark.asyncio
async def test_invalid_json_body_is_400(client: TestClient) -> None:
    resp = await client.post("/students/stu-1/verify", data="not json", headers=_OPERATOR)

    assert resp.status == 400


@pytest.mark.asyncio
async def test_location_trail_and_finish_route(client: TestClient) -> None:
    for idx, lat in enumerate((0.3000, 0.3005, 0.3010)):
        resp = await client.post(
            "/vehicles/van-1/location",
            json={"lat": lat, "lng": 32.5, "speed": 10, "timestamp": 1772434800000 + idx * 1000},
        )
        assert resp.status == 200
        assert (await resp.json())["applied"] is True

    resp = await client.get("/vehicles/van-1/trail", params={"limit": "2"})
    crumbs = (await resp.json())["data"]
    assert [c["lat"] for c in crumbs] == [0.3000, 0.3005]

    resp = await client.post("/vehicles/van-1/finish-route")
    assert (await resp.json())["studentsReset"] == 1

    resp = await client.get("/students/stu-1/dashboard")
    data = (await resp.json())["data"]
    assert data["vehiclePosition"] is None
    assert data["vehicleSpeed"] == 0
    assert data["locationName"] == "Shift Ended"


@pytest.mark.asyncio
async def test_guardian_code_and_home_location(client: TestClient, core: TransitCore) -> None:
    resp = await client.patch("/students/stu-1/guardian-code", json={"guardianCode": "12345"})
    assert resp.status == 400

    resp = await client.patch("/students/stu-1/guardian-code", json={"guardianCode": "654321"})
    assert resp.status == 200
    assert core.store.get_student("stu-1").guardian_code == "654321"

    resp = await client.put("/students/stu-1/home-location", json={"lat": 0.33, "lng": 32.6})
    assert (await resp.json())["data"]["homeLocation"] == {"lat": 0.33, "lng": 32.6}


@pytest.mark.asyncio
async def test_history_and_daily_reset(client: TestClient) -> None:
    await client.post(
        "/students/stu-1/verify",
        json={"method": "QR", "scannedToken": "tok-7f3a", "action": "picked_up"},
        headers=_OPERATOR,
    )

    resp = await client.get("/students/stu-1/history")
    [row] = (await resp.json())["data"]
    assert row["actionType"] == "pickup"
    assert row["method"] == "QR"

    resp = await client.post("/jobs/daily-reset")
    assert (await resp.json())["studentsReset"] == 1

    resp = await client.get("/students/stu-1/dashboard")
    assert (await resp.json())["data"]["status"] == "waiting"

    resp = await client.get("/students/ghost/history")
    assert resp.status == 404


@pytest.mark.asyncio
async def test_qr_mismatch_ignores_a_correct_pin_in_the_same_body(client: TestClient, core: TransitCore) -> None:
    resp = await client.post(
        "/students/stu-1/verify",
        json={"method": "QR", "scannedToken": "stale", "pin": "482913", "action": "picked_up"},
        headers=_OPERATOR,
    )

    assert resp.status == 401
    assert core.store.get_student("stu-1").on_board is False


@pytest.mark.asyncio
async def test_padded_scanned_token_is_not_trimmed(client: TestClient, core: TransitCore) -> None:
    resp = await client.post(
        "/students/stu-1/verify",
        json={"method": "QR", "scannedToken": "  tok-7f3a \n", "action": "picked_up"},
        headers=_OPERATOR,
    )

    assert resp.status == 401
    assert core.store.get_student("stu-1").status == StudentStatus.WAITING


@pytest.mark.asyncio
async def test_unknown_students_do_not_accumulate_locks(client: TestClient, core: TransitCore) -> None:
    for idx in range(20):
        resp = await client.post(
            f"/students/ghost-{idx}/verify",
            json={"method": "PIN", "pin": "482913", "action": "picked_up"},
            headers=_OPERATOR,
        )
        assert resp.status == 404

    assert core.store._locks == {}  # noqa: SLF001


@pytest.mark.asyncio
async def test_missing_operator_header_explains_itself(client: TestClient) -> None:
    resp = await client.post(
        "/students/stu-1/verify",
        json={"method": "PIN", "pin": "482913", "action": "picked_up"},
    )

    assert resp.status == 400
    assert "X-Operator-Id" in (await resp.json())["message"]


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/students/stu-1/history", "/vehicles/van-1/trail"])
@pytest.mark.parametrize("limit", ["-1", "ten"])
async def test_bad_limit_is_400(client: TestClient, path: str, limit: str) -> None:
    resp = await client.get(path, params={"limit": limit})

    assert resp.status == 400
    assert (await resp.json())["error"] == "bad_request"
