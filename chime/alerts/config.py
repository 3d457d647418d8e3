"""Configuration helpers for the Chime alert daemon."""

from __future__ import annotations

import os
import socket
from dataclasses import dataclass, field
from pathlib import Path

from chime.utils import parse_bool, parse_int, split_csv, strip_or_none

DEFAULT_STATE_FILE = Path.home() / ".local" / "state" / "chime" / "acknowledged_alerts.json"
MAX_NOTIFICATION_MINUTES = 366 * 24 * 60


def _normalize_calendar_url(value: str | None) -> str | None:
    if not value:
        return None
    trimmed = value.strip()
    if not trimmed:
        return None
    lowered = trimmed.lower()
    if lowered.startswith("webcal://"):
        trimmed = "https://" + trimmed[9:]
    return trimmed


def _parse_notification_minutes(value: str | None) -> tuple[int, ...]:
    """Unique minute counts up to a year, largest first; anything else is dropped."""
    minutes = {parse_int(token, -1) for token in split_csv(value)}
    return tuple(sorted((item for item in minutes if 0 <= item <= MAX_NOTIFICATION_MINUTES), reverse=True))


@dataclass(frozen=True)
class SessionConfig:
    enabled: bool = True
    check_interval_seconds: int = 60
    lookahead_hours: int = 24
    stale_window_minutes: int = 10
    notification_duration_ms: int = 15000
    sound_enabled: bool = True
    initial_check_delay_seconds: float = 0.5
    proactive_throttle_factor: int = 5

    @property
    def check_interval_ms(self) -> int:
        return self.check_interval_seconds * 1000

    @property
    def proactive_throttle_ms(self) -> int:
        return self.check_interval_ms * self.proactive_throttle_factor

    @property
    def lookahead_ms(self) -> int:
        return self.lookahead_hours * 60 * 60 * 1000

    @property
    def stale_window_ms(self) -> int:
        return self.stale_window_minutes * 60 * 1000


@dataclass(frozen=True)
class CalendarConfig:
    feeds: tuple[str, ...] = ()
    refresh_minutes: int = 5
    visible_hours: int = 72
    attendee_emails: tuple[str, ...] = ()
    default_notifications: tuple[int, ...] = ()  # Minutes before event start (e.g., (10, 5))
    hide_declined_events: bool = True


@dataclass(frozen=True)
class MqttConfig:
    host: str | None
    port: int
    username: str | None
    password: str | None
    tls_enabled: bool
    cert: str | None
    key: str | None
    ca_cert: str | None
    topic_base: str


@dataclass(frozen=True)
class AlertsConfig:
    hostname: str
    session: SessionConfig
    calendar: CalendarConfig
    mqtt: MqttConfig
    state_file: Path = field(default=DEFAULT_STATE_FILE)
    sound_file: Path | None = None

    @staticmethod
    def from_env(env: dict[str, str] | None = None) -> AlertsConfig:
        source = env if env is not None else os.environ
        hostname = source.get("CHIME_HOSTNAME") or socket.gethostname()

        session = SessionConfig(
            enabled=parse_bool(source.get("CHIME_ALERTS_ENABLED"), True),
            check_interval_seconds=max(1, parse_int(source.get("CHIME_ALERT_CHECK_SECONDS"), 60)),
            lookahead_hours=max(1, parse_int(source.get("CHIME_ALERT_LOOKAHEAD_HOURS"), 24)),
            stale_window_minutes=max(1, parse_int(source.get("CHIME_ALERT_STALE_MINUTES"), 10)),
            notification_duration_ms=max(0, parse_int(source.get("CHIME_ALERT_DURATION_MS"), 15000)),
            sound_enabled=parse_bool(source.get("CHIME_ALERT_SOUND"), True),
        )

        raw_calendar_urls = split_csv(source.get("CHIME_CALENDAR_ICS_URLS"))
        feeds: tuple[str, ...] = tuple(
            normalized for normalized in (_normalize_calendar_url(url) for url in raw_calendar_urls) if normalized
        )
        owner_emails = tuple(email.lower() for email in split_csv(source.get("CHIME_CALENDAR_OWNER_EMAILS")))
        default_notifications = _parse_notification_minutes(source.get("CHIME_CALENDAR_DEFAULT_NOTIFICATIONS"))
        calendar = CalendarConfig(
            feeds=feeds,
            refresh_minutes=max(1, parse_int(source.get("CHIME_CALENDAR_REFRESH_MINUTES"), 5)),
            visible_hours=max(1, parse_int(source.get("CHIME_CALENDAR_VISIBLE_HOURS"), 72)),
            attendee_emails=owner_emails,
            default_notifications=default_notifications,
            hide_declined_events=parse_bool(source.get("CHIME_CALENDAR_HIDE_DECLINED"), True),
        )

        mqtt = MqttConfig(
            host=strip_or_none(source.get("MQTT_HOST")),
            port=parse_int(source.get("MQTT_PORT"), 1883),
            username=strip_or_none(source.get("MQTT_USER") or source.get("MQTT_USERNAME")),
            password=strip_or_none(source.get("MQTT_PASS") or source.get("MQTT_PASSWORD")),
            tls_enabled=parse_bool(source.get("MQTT_TLS_ENABLED"), False),
            cert=strip_or_none(source.get("MQTT_CERT")),
            key=strip_or_none(source.get("MQTT_KEY")),
            ca_cert=strip_or_none(source.get("MQTT_CA_CERT")),
            topic_base=source.get("CHIME_TOPIC_BASE") or f"chime/{hostname}",
        )

        state_file_raw = strip_or_none(source.get("CHIME_ALERT_STATE_FILE"))
        state_file = Path(state_file_raw).expanduser() if state_file_raw else DEFAULT_STATE_FILE
        sound_file_raw = strip_or_none(source.get("CHIME_ALERT_SOUND_FILE"))

        return AlertsConfig(
            hostname=hostname,
            session=session,
            calendar=calendar,
            mqtt=mqtt,
            state_file=state_file,
            sound_file=Path(sound_file_raw).expanduser() if sound_file_raw else None,
        )
