"""aiohttp HTTP surface over :class:`~vantrack.core.TransitCore`.

Authentication is handled upstream. The authenticated operator is passed in
the ``X-Operator-Id`` header, and verification requests without it are
rejected with 400.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from aiohttp import web
from pydantic import ValidationError

from vantrack._constants import DEFAULT_TRAIL_LIMIT
from vantrack._redact import redact_for_log
from vantrack.config import VantrackConfig
from vantrack.core import TransitCore
from vantrack.exceptions import InvalidCredentialError, NotFoundError, TransientStoreError
from vantrack.ingestion import safe_float, safe_str
from vantrack.models.location import PositionReport
from vantrack.models.verification import VerificationRequest

_logger = logging.getLogger(__name__)

CORE_KEY = web.AppKey("vantrack_core", TransitCore)
OPERATOR_HEADER = "X-Operator-Id"

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def _error(status: int, code: str, message: str) -> web.Response:
    return web.json_response({"success": False, "error": code, "message": message}, status=status)


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Translate core errors into distinct, structured responses."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except NotFoundError as exc:
        return _error(404, "not_found", str(exc))
    except InvalidCredentialError:
        return _error(401, "invalid_credential", "Credential did not match. Check the code and retry.")
    except TransientStoreError:
        _logger.warning("Store unavailable for %s %s", request.method, request.path, exc_info=True)
        return _error(503, "store_unavailable", "Service temporarily unavailable. Try again later.")
    except (ValidationError, ValueError) as exc:
        return _error(400, "bad_request", str(exc))
    except Exception:
        _logger.exception("Unhandled error for %s %s", request.method, request.path)
        return _error(500, "internal_error", "Internal Server Error")


async def _json_body(request: web.Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except json.JSONDecodeError as exc:
        raise ValueError("request body must be JSON") from exc
    if not isinstance(body, dict):
        raise ValueError("request body must be a JSON object")
    return body


def _coordinates(body: dict[str, Any]) -> dict[str, float] | None:
    lat = safe_float(body.get("lat"))
    lng = safe_float(body.get("lng"))
    if lat is None or lng is None:
        return None
    return {"lat": lat, "lng": lng}


def _limit(request: web.Request, default: int | None) -> int | None:
    raw = request.query.get("limit")
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"limit must be an integer, got {raw!r}") from exc
    if value < 0:
        raise ValueError("limit must not be negative")
    return value


def build_verification_request(student_id: str, operator_id: str, body: dict[str, Any]) -> VerificationRequest:
    """Turn the wire body into a typed request; the claim shape follows ``method``."""
    method = (safe_str(body.get("method")) or "").upper()
    claim: dict[str, Any] = {"method": method}
    if method == "PIN":
        claim["pin"] = safe_str(body.get("pin")) or ""
    elif method == "QR":
        token = body.get("scannedToken", body.get("scanned_token"))
        claim["scannedToken"] = token if isinstance(token, str) else ""
    else:
        raise ValueError("method must be 'PIN' or 'QR'")
    return VerificationRequest.model_validate(
        {
            "studentId": student_id,
            "operatorId": operator_id,
            "action": body.get("action"),
            "claim": claim,
            "coordinates": _coordinates(body),
        }
    )


# ----------------------------------------------------------------------
# Handlers
# ----------------------------------------------------------------------


async def verify_student(request: web.Request) -> web.Response:
    core = request.app[CORE_KEY]
    student_id = request.match_info["student_id"]
    operator_id = safe_str(request.headers.get(OPERATOR_HEADER))
    if operator_id is None:
        return _error(
            400,
            "bad_request",
            f"missing {OPERATOR_HEADER} header; the authenticated operator id must be forwarded by the auth layer",
        )
    body = await _json_body(request)
    _logger.debug("POST verify student=%s body=%s", student_id, redact_for_log(body))
    result = await core.verify(build_verification_request(student_id, operator_id, body))
    return web.json_response(result.to_json_dict())


async def student_dashboard(request: web.Request) -> web.Response:
    core = request.app[CORE_KEY]
    dashboard = core.dashboard(request.match_info["student_id"])
    return web.json_response({"success": True, "data": dashboard.to_json_dict()})


async def student_history(request: web.Request) -> web.Response:
    core = request.app[CORE_KEY]
    events = core.history(request.match_info["student_id"], limit=_limit(request, None))
    return web.json_response({"success": True, "data": [e.to_json_dict() for e in events]})


async def set_guardian_code(request: web.Request) -> web.Response:
    core = request.app[CORE_KEY]
    body = await _json_body(request)
    code = safe_str(body.get("guardianCode") or body.get("guardian_code")) or ""
    core.set_guardian_code(request.match_info["student_id"], code)
    return web.json_response({"success": True, "message": "Guardian code updated"})


async def set_home_location(request: web.Request) -> web.Response:
    core = request.app[CORE_KEY]
    coords = _coordinates(await _json_body(request))
    if coords is None:
        raise ValueError("lat and lng are required")
    student = core.set_home_location(request.match_info["student_id"], coords["lat"], coords["lng"])
    home = student.home_location.to_json_dict() if student.home_location is not None else None
    return web.json_response({"success": True, "data": {"homeLocation": home}})


async def ingest_location(request: web.Request) -> web.Response:
    core = request.app[CORE_KEY]
    report = PositionReport.model_validate(await _json_body(request))
    vehicle = await core.ingest_position(request.match_info["vehicle_id"], report)
    if vehicle is None:
        return web.json_response({"success": True, "applied": False})
    return web.json_response({"success": True, "applied": True, "data": vehicle.position.to_json_dict()})


async def vehicle_trail(request: web.Request) -> web.Response:
    core = request.app[CORE_KEY]
    crumbs = core.trail(request.match_info["vehicle_id"], limit=_limit(request, DEFAULT_TRAIL_LIMIT))
    return web.json_response({"success": True, "data": [c.to_json_dict() for c in crumbs]})


async def finish_route(request: web.Request) -> web.Response:
    core = request.app[CORE_KEY]
    reset = await core.finish_route(request.match_info["vehicle_id"])
    return web.json_response({"success": True, "studentsReset": reset, "message": "Route finalized successfully"})


async def run_daily_reset(request: web.Request) -> web.Response:
    core = request.app[CORE_KEY]
    report = await core.run_daily_reset()
    return web.json_response({"success": True, "studentsReset": report.students_reset})


async def ping(_request: web.Request) -> web.Response:
    return web.json_response({"status": "online"})


# ----------------------------------------------------------------------
# Application factory
# ----------------------------------------------------------------------


def create_app(core: TransitCore) -> web.Application:
    """Build the application around an already-entered core."""
    app = web.Application(middlewares=[error_middleware])
    app[CORE_KEY] = core
    app.add_routes(
        [
            web.get("/ping", ping),
            web.post("/students/{student_id}/verify", verify_student),
            web.get("/students/{student_id}/dashboard", student_dashboard),
            web.get("/students/{student_id}/history", student_history),
            web.patch("/students/{student_id}/guardian-code", set_guardian_code),
            web.put("/students/{student_id}/home-location", set_home_location),
            web.post("/vehicles/{vehicle_id}/location", ingest_location),
            web.get("/vehicles/{vehicle_id}/trail", vehicle_trail),
            web.post("/vehicles/{vehicle_id}/finish-route", finish_route),
            web.post("/jobs/daily-reset", run_daily_reset),
        ]
    )
    return app


def build_app(config: VantrackConfig) -> web.Application:
    """Application that owns its core and daily scheduler for the process lifetime."""
    core = TransitCore(config, start_scheduler=True)
    app = create_app(core)

    async def _core_ctx(_app: web.Application) -> AsyncIterator[None]:
        async with core:
            yield

    app.cleanup_ctx.append(_core_ctx)
    return app
