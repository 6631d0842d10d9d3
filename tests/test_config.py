from __future__ import annotations

import datetime as dt

import pytest

from vantrack.config import MqttSettings, VantrackConfig
from vantrack.exceptions import VantrackConfigError


def test_defaults_match_fleet_operations() -> None:
    config = VantrackConfig()

    assert config.time_zone == "Africa/Kampala"
    assert config.reset_time == dt.time(0, 0)
    assert config.geocode_threshold_deg == 0.0005
    assert config.breadcrumb_threshold_deg == 0.0001
    assert config.proximity_radius_km == 0.5
    assert config.mqtt.enabled is False


def test_from_env_reads_variables_and_overrides_win(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VANTRACK_TIME_ZONE", "Africa/Nairobi")
    monkeypatch.setenv("VANTRACK_RESET_TIME", "01:30")
    monkeypatch.setenv("VANTRACK_PROXIMITY_RADIUS_KM", "0.8")
    monkeypatch.setenv("VANTRACK_GEOCODING_ENABLED", "off")
    monkeypatch.setenv("VANTRACK_DEFAULT_DESTINATION", "0.5,32.1")
    monkeypatch.setenv("VANTRACK_MQTT_ENABLED", "yes")
    monkeypatch.setenv("VANTRACK_MQTT_HOST", "broker.local")
    monkeypatch.setenv("VANTRACK_SERVER_PORT", "8080")

    config = VantrackConfig.from_env(server_port=9000, mqtt={"port": 8883})

    assert config.time_zone == "Africa/Nairobi"
    assert config.reset_time == dt.time(1, 30)
    assert config.proximity_radius_km == 0.8
    assert config.geocoding_enabled is False
    assert config.default_destination == (0.5, 32.1)
    assert config.server_port == 9000
    assert config.mqtt == MqttSettings(enabled=True, host="broker.local", port=8883)


def test_string_reset_time_override() -> None:
    assert VantrackConfig.from_env(reset_time="05:45").reset_time == dt.time(5, 45)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"time_zone": "Mars/Olympus_Mons"},
        {"geocode_threshold_deg": 0},
        {"breadcrumb_threshold_deg": -1.0},
        {"proximity_radius_km": 0},
    ],
)
def test_invalid_values_raise(kwargs: dict[str, object]) -> None:
    with pytest.raises(VantrackConfigError):
        VantrackConfig(**kwargs)  # type: ignore[arg-type]


def test_bad_env_values_raise(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VANTRACK_RESET_TIME", "midnight")
    with pytest.raises(VantrackConfigError):
        VantrackConfig.from_env()
