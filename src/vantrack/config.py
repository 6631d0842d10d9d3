"""Runtime configuration for vantrack."""

from __future__ import annotations

import dataclasses
import datetime as dt
import os
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from vantrack._constants import (
    BREADCRUMB_THRESHOLD_DEG,
    DEFAULT_DESTINATION,
    GEOCODE_THRESHOLD_DEG,
    NOMINATIM_REVERSE_URL,
    PROXIMITY_RADIUS_KM,
    USER_AGENT,
)
from vantrack.exceptions import VantrackConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _parse_reset_time(value: str) -> dt.time:
    try:
        return dt.time.fromisoformat(value.strip())
    except ValueError as exc:
        raise VantrackConfigError(f"reset time must be HH:MM, got {value!r}") from exc


def _parse_coordinates(value: str) -> tuple[float, float]:
    lat_text, sep, lng_text = value.partition(",")
    if not sep:
        raise VantrackConfigError(f"destination must be 'lat,lng', got {value!r}")
    try:
        return float(lat_text), float(lng_text)
    except ValueError as exc:
        raise VantrackConfigError(f"destination must be 'lat,lng', got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class MqttSettings:
    """Broker settings for the optional live fan-out bridge."""

    enabled: bool = False
    host: str = "localhost"
    port: int = 1883
    topic_prefix: str = "vantrack"
    client_id: str = "vantrack-core"
    keepalive: int = 60


@dataclasses.dataclass(frozen=True)
class VantrackConfig:
    """Core configuration.

    Parameters
    ----------
    time_zone : str
        IANA zone the fleet operates in; the daily reset fires in it.
    reset_time : datetime.time
        Local wall-clock time of the daily reset.
    geocode_threshold_deg : float
        Movement (degrees, either axis) before a new reverse-geocoding lookup.
    breadcrumb_threshold_deg : float
        Movement (degrees, either axis) before a new breadcrumb row.
    proximity_radius_km : float
        Distance under which the guardian-side arrival alert fires.
    default_destination : tuple of float
        Fallback ``(lat, lng)`` for students without a home location.
    geocoding_enabled : bool
        Disable to skip all reverse-geocoding network calls.
    nominatim_url : str
        Reverse-geocoding endpoint.
    user_agent : str
        User agent sent to the geocoder (Nominatim requires one).
    geocode_timeout : float
        Seconds before a geocoding request is abandoned.
    server_host, server_port
        Bind address for ``python -m vantrack``.
    mqtt : MqttSettings
        Live fan-out bridge settings.
    """

    time_zone: str = "Africa/Kampala"
    reset_time: dt.time = dt.time(0, 0)
    geocode_threshold_deg: float = GEOCODE_THRESHOLD_DEG
    breadcrumb_threshold_deg: float = BREADCRUMB_THRESHOLD_DEG
    proximity_radius_km: float = PROXIMITY_RADIUS_KM
    default_destination: tuple[float, float] = DEFAULT_DESTINATION
    geocoding_enabled: bool = True
    nominatim_url: str = NOMINATIM_REVERSE_URL
    user_agent: str = USER_AGENT
    geocode_timeout: float = 10.0
    server_host: str = "0.0.0.0"
    server_port: int = 5000
    mqtt: MqttSettings = dataclasses.field(default_factory=MqttSettings)

    def __post_init__(self) -> None:
        try:
            ZoneInfo(self.time_zone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise VantrackConfigError(f"unknown time zone {self.time_zone!r}") from exc
        if self.breadcrumb_threshold_deg <= 0 or self.geocode_threshold_deg <= 0:
            raise VantrackConfigError("movement thresholds must be positive")
        if self.proximity_radius_km <= 0:
            raise VantrackConfigError("proximity radius must be positive")

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.time_zone)

    @classmethod
    def from_env(cls, **overrides: Any) -> VantrackConfig:
        """Create configuration from ``VANTRACK_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        _ENV_STR_MAP = {
            "VANTRACK_TIME_ZONE": "time_zone",
            "VANTRACK_NOMINATIM_URL": "nominatim_url",
            "VANTRACK_USER_AGENT": "user_agent",
            "VANTRACK_SERVER_HOST": "server_host",
        }
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_FLOAT_MAP = {
            "VANTRACK_GEOCODE_THRESHOLD_DEG": "geocode_threshold_deg",
            "VANTRACK_BREADCRUMB_THRESHOLD_DEG": "breadcrumb_threshold_deg",
            "VANTRACK_PROXIMITY_RADIUS_KM": "proximity_radius_km",
            "VANTRACK_GEOCODE_TIMEOUT": "geocode_timeout",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None:
                try:
                    config_kwargs[field_name] = float(val)
                except ValueError as exc:
                    raise VantrackConfigError(f"{env_key} must be numeric, got {val!r}") from exc

        reset_env = env.get("VANTRACK_RESET_TIME")
        if reset_env is not None:
            config_kwargs["reset_time"] = _parse_reset_time(reset_env)

        destination_env = env.get("VANTRACK_DEFAULT_DESTINATION")
        if destination_env is not None:
            config_kwargs["default_destination"] = _parse_coordinates(destination_env)

        port_env = env.get("VANTRACK_SERVER_PORT")
        if port_env is not None:
            config_kwargs["server_port"] = int(port_env)

        config_kwargs["geocoding_enabled"] = _env_bool(env.get("VANTRACK_GEOCODING_ENABLED"), True)

        # MQTT fields can be overridden with a nested dict
        mqtt_kwargs: dict[str, Any] = {
            "enabled": _env_bool(env.get("VANTRACK_MQTT_ENABLED"), False),
        }
        if env.get("VANTRACK_MQTT_HOST") is not None:
            mqtt_kwargs["host"] = env["VANTRACK_MQTT_HOST"]
        if env.get("VANTRACK_MQTT_PORT") is not None:
            mqtt_kwargs["port"] = int(env["VANTRACK_MQTT_PORT"])
        if env.get("VANTRACK_MQTT_TOPIC_PREFIX") is not None:
            mqtt_kwargs["topic_prefix"] = env["VANTRACK_MQTT_TOPIC_PREFIX"]

        mqtt_overrides = overrides.pop("mqtt", None)
        if isinstance(mqtt_overrides, dict):
            mqtt_kwargs.update(mqtt_overrides)
        elif isinstance(mqtt_overrides, MqttSettings):
            mqtt_kwargs = dataclasses.asdict(mqtt_overrides)
        config_kwargs["mqtt"] = MqttSettings(**mqtt_kwargs)

        if isinstance(overrides.get("reset_time"), str):
            overrides["reset_time"] = _parse_reset_time(overrides["reset_time"])

        config_kwargs.update(overrides)
        return cls(**config_kwargs)
