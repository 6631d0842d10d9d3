"""Reverse geocoding over HTTP (Nominatim)."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import aiohttp

from vantrack.config import VantrackConfig
from vantrack.exceptions import GeocodingError
from vantrack.ingestion import short_place_name

_logger = logging.getLogger(__name__)


class ReverseGeocoder(Protocol):
    """Structural geocoder interface used by the broadcaster.

    Implementations return a short human-readable place name, or ``None``
    when nothing could be resolved.
    """

    async def reverse(self, lat: float, lng: float) -> str | None:
        ...


class NominatimGeocoder:
    """Resolve ``(lat, lng)`` to ``"Street, Area"`` via a Nominatim reverse endpoint."""

    def __init__(self, config: VantrackConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session

    async def fetch(self, lat: float, lng: float) -> dict[str, Any]:
        """Perform the raw lookup; raises :class:`GeocodingError` on any failure."""
        params = {"format": "jsonv2", "lat": f"{lat:.6f}", "lon": f"{lng:.6f}"}
        headers = {"user-agent": self._config.user_agent, "accept": "application/json"}
        timeout = aiohttp.ClientTimeout(total=self._config.geocode_timeout)

        _logger.debug("GET %s lat=%s lon=%s", self._config.nominatim_url, params["lat"], params["lon"])
        try:
            async with self._http.get(
                self._config.nominatim_url,
                params=params,
                headers=headers,
                timeout=timeout,
            ) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise GeocodingError(f"HTTP {resp.status} from geocoder: {text[:200]}", status_code=resp.status)
        except GeocodingError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise GeocodingError(f"Geocoder request failed: {exc}") from exc

        try:
            body: Any = json.loads(text)
        except json.JSONDecodeError as exc:
            raise GeocodingError(f"Invalid JSON from geocoder: {text[:200]}") from exc
        if not isinstance(body, dict):
            raise GeocodingError("Geocoder response is not an object")
        return body

    async def reverse(self, lat: float, lng: float) -> str | None:
        try:
            body = await self.fetch(lat, lng)
        except GeocodingError:
            _logger.debug("Reverse geocoding failed lat=%s lng=%s", lat, lng, exc_info=True)
            return None
        return short_place_name(body.get("display_name"))


class NullGeocoder:
    """Geocoder used when lookups are disabled."""

    async def reverse(self, lat: float, lng: float) -> str | None:
        return None
