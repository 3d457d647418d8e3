"""Notification payloads and the transports that deliver them."""

from __future__ import annotations

import json
import logging
import math
import ssl
import threading
from collections.abc import Callable
from dataclasses import dataclass

import paho.mqtt.client as mqtt

from chime.datetime_utils import format_utc, from_epoch_ms, parse_instant_ms

from .config import MqttConfig
from .models import PendingAlert

LOGGER = logging.getLogger("chime.alerts.notifier")

DEFAULT_ALERT_TITLE = "Calendar alert"


@dataclass(slots=True, frozen=True)
class Notification:
    title: str
    message: str
    duration_ms: int
    on_activate: Callable[[], None] | None = None
    event_id: str | None = None
    alert_id: str | None = None
    fire_time_ms: int | None = None


def format_alert_message(alert: PendingAlert, now_ms: int) -> tuple[str, str]:
    """Default English (title, message) pair for a due alert."""
    event = alert.event
    title = event.title or DEFAULT_ALERT_TITLE
    start_ms = parse_instant_ms(event.utc_start or event.start)
    diff_minutes = 0 if start_ms is None else math.floor((start_ms - now_ms) / 60000 + 0.5)
    if diff_minutes <= 0:
        time_label = "Now"
    elif diff_minutes == 1:
        time_label = "In 1 minute"
    else:
        time_label = f"In {diff_minutes} minutes"
    if alert.calendar_name:
        return title, f"{time_label} · {alert.calendar_name}"
    return title, time_label


def notification_payload(notification: Notification) -> dict[str, object]:
    payload: dict[str, object] = {
        "title": notification.title,
        "message": notification.message,
        "duration_ms": notification.duration_ms,
        "event_id": notification.event_id,
        "alert_id": notification.alert_id,
    }
    if notification.fire_time_ms is not None:
        payload["fire_time"] = format_utc(from_epoch_ms(notification.fire_time_ms))
    return payload


class LogNotifier:
    """Dispatcher used when no transport is configured."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or LOGGER

    def __call__(self, notification: Notification) -> None:
        self._logger.info("[alerts] %s: %s", notification.title, notification.message)


class MqttNotifier:
    """Publish notifications as JSON to ``<topic_base>/calendar/alert``.

    Activation callbacks cannot cross the broker; consumers subscribe to the
    topic and render the notification themselves.
    """

    def __init__(self, config: MqttConfig, logger: logging.Logger | None = None) -> None:
        self.config = config
        self._logger = logger or LOGGER
        self._client: mqtt.Client | None = None
        self._lock = threading.Lock()

    @property
    def topic(self) -> str:
        return f"{self.config.topic_base}/calendar/alert"

    def connect(self) -> None:
        """Start connecting in paho's network thread; never blocks the caller.

        paho keeps retrying in the background, and QoS 1 alerts published
        before the broker answers are queued until the session is up.
        """
        if not self.config.host:
            self._logger.debug("[mqtt] MQTT host not configured; alert publishing disabled")
            return
        with self._lock:
            if self._client is not None:
                return
            try:
                client = self._build_client()
                client.connect_async(self.config.host, self.config.port, keepalive=30)
                client.loop_start()
            except Exception as exc:  # pylint: disable=broad-except
                self._logger.warning("[mqtt] Failed to start MQTT connection to %s: %s", self.config.host, exc)
                return
            self._client = client

    def _build_client(self) -> mqtt.Client:
        client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=f"chime-alerts-{self.config.topic_base}",
            clean_session=True,
        )
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        if self.config.username:
            client.username_pw_set(self.config.username, self.config.password or "")
        if self.config.tls_enabled:
            certificates = {
                "ca_certs": self.config.ca_cert,
                "certfile": self.config.cert,
                "keyfile": self.config.key,
            }
            client.tls_set(
                tls_version=ssl.PROTOCOL_TLS_CLIENT,
                **{name: path for name, path in certificates.items() if path},
            )
        return client

    def _on_connect(self, _client, _userdata, _flags, reason_code, _properties=None) -> None:
        if getattr(reason_code, "is_failure", False):
            self._logger.warning("[mqtt] Broker refused alert publisher: %s", reason_code)
            return
        self._logger.info("[mqtt] Alert publisher connected to %s:%s", self.config.host, self.config.port)

    def _on_disconnect(self, _client, _userdata, _flags, reason_code, _properties=None) -> None:
        self._logger.debug("[mqtt] Alert publisher disconnected: %s", reason_code)

    def disconnect(self) -> None:
        with self._lock:
            client, self._client = self._client, None
        if client is None:
            return
        client.disconnect()
        client.loop_stop()

    def is_connected(self) -> bool:
        client = self._client
        try:
            return bool(client and client.is_connected())
        except Exception:  # pylint: disable=broad-except
            return False

    def __call__(self, notification: Notification) -> None:
        client = self._client
        if not client:
            self._logger.warning("[mqtt] Dropping calendar alert %r; MQTT not connected", notification.title)
            return
        try:
            client.publish(self.topic, payload=json.dumps(notification_payload(notification)), qos=1)
        except Exception as exc:  # pylint: disable=broad-except
            self._logger.warning("[mqtt] Failed to publish calendar alert: %s", exc)
