"""Internal MQTT bridge publishing committed changes to a broker."""

from __future__ import annotations

import json
import logging
from typing import Any, cast

import paho.mqtt.client as mqtt

from vantrack.config import MqttSettings
from vantrack.state.events import ChangeEvent, ChangeKind


def topic_for(prefix: str, event: ChangeEvent) -> str:
    """``<prefix>/vehicles/<id>`` for vehicle changes, ``<prefix>/students/<id>`` otherwise."""
    root = prefix.strip("/")
    if event.kind == ChangeKind.STUDENT_STATUS:
        return f"{root}/students/{event.entity_id}"
    return f"{root}/vehicles/{event.entity_id}"


def encode_change(event: ChangeEvent) -> bytes:
    body: dict[str, Any] = {
        "kind": event.kind.value,
        "id": event.entity_id,
        "vehicleId": event.vehicle_id,
        "observedAt": event.observed_at.isoformat(),
        "data": event.data,
    }
    return json.dumps(body, separators=(",", ":")).encode("utf-8")


class MqttFeedBridge:
    """Threaded paho-mqtt publisher fed by store change listeners.

    Vehicle positions are published retained so a guardian client that
    subscribes late still receives the latest point.
    """

    def __init__(self, settings: MqttSettings, *, logger: logging.Logger | None = None) -> None:
        self._settings = settings
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Connect and start the paho network loop."""
        self.stop()
        self._logger.debug(
            "MQTT bridge start host=%s port=%s client_id=%s",
            self._settings.host,
            self._settings.port,
            self._settings.client_id,
        )
        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=self._settings.client_id,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)

        def on_connect(
            _c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.debug("MQTT connected reason=%s", reason_code)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.debug("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_disconnect = on_disconnect
        client.connect(self._settings.host, self._settings.port, keepalive=self._settings.keepalive)
        client.loop_start()

        self._client = client
        self._running = True

    def publish(self, event: ChangeEvent) -> None:
        """Store listener: forward one change. Never raises."""
        client = self._client
        if client is None or not self._running:
            return
        topic = topic_for(self._settings.topic_prefix, event)
        retain = event.kind == ChangeKind.VEHICLE_POSITION
        try:
            client.publish(topic, encode_change(event), qos=0, retain=retain)
        except Exception:
            self._logger.debug("MQTT publish failed topic=%s", topic, exc_info=True)

    def stop(self) -> None:
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        if client is None:
            return
        try:
            if was_running:
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")
