"""Calendar event, calendar and alert records consumed by the alert engine."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from .keys import build_alert_key

LOGGER = logging.getLogger("chime.alerts.models")

AlertAction = str
RelativeTo = Literal["start", "end"]

ACTION_DISPLAY = "display"
ACTION_EMAIL = "email"


@dataclass(slots=True, frozen=True)
class OffsetTrigger:
    """Fire at a signed duration relative to the event start or end."""

    offset: str
    relative_to: RelativeTo = "start"


@dataclass(slots=True, frozen=True)
class AbsoluteTrigger:
    """Fire at a literal instant."""

    when: str


Trigger = OffsetTrigger | AbsoluteTrigger


@dataclass(slots=True, frozen=True)
class Alert:
    trigger: Trigger
    action: AlertAction = ACTION_DISPLAY
    acknowledged: str | None = None
    related_to: Mapping[str, Any] | None = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> Alert | None:
        """Build an alert from a JMAP-style ``Alert`` object; None when malformed."""
        if not isinstance(payload, Mapping):
            return None
        trigger = trigger_from_dict(payload.get("trigger"))
        if trigger is None:
            return None
        action = payload.get("action") or ACTION_DISPLAY
        acknowledged = payload.get("acknowledged")
        related = payload.get("relatedTo")
        return cls(
            trigger=trigger,
            action=str(action),
            acknowledged=str(acknowledged) if acknowledged else None,
            related_to=related if isinstance(related, Mapping) else None,
        )


def trigger_from_dict(payload: Any) -> Trigger | None:
    if not isinstance(payload, Mapping):
        return None
    kind = payload.get("@type") or "OffsetTrigger"
    if kind == "OffsetTrigger":
        offset = payload.get("offset")
        if not isinstance(offset, str):
            return None
        relative_to = "end" if payload.get("relativeTo") == "end" else "start"
        return OffsetTrigger(offset=offset, relative_to=relative_to)
    if kind == "AbsoluteTrigger":
        when = payload.get("when")
        if not isinstance(when, str):
            return None
        return AbsoluteTrigger(when=when)
    return None


def alerts_from_dict(payload: Any) -> dict[str, Alert] | None:
    """Parse an ``alertId -> Alert`` mapping, dropping malformed entries."""
    if payload is None:
        return None
    if not isinstance(payload, Mapping):
        LOGGER.debug("Ignoring non-mapping alert set: %r", payload)
        return None
    alerts: dict[str, Alert] = {}
    for alert_id, raw in payload.items():
        alert = Alert.from_dict(raw)
        if alert is None:
            LOGGER.debug("Skipping malformed alert %s: %r", alert_id, raw)
            continue
        alerts[str(alert_id)] = alert
    return alerts


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(slots=True, frozen=True)
class Calendar:
    calendar_id: str
    name: str
    default_alerts_with_time: dict[str, Alert] | None = None
    default_alerts_without_time: dict[str, Alert] | None = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> Calendar:
        calendar_id = payload.get("id")
        if not calendar_id:
            raise ValueError("Calendar payload is missing 'id'")
        return cls(
            calendar_id=str(calendar_id),
            name=str(payload.get("name") or ""),
            default_alerts_with_time=alerts_from_dict(payload.get("defaultAlertsWithTime")),
            default_alerts_without_time=alerts_from_dict(payload.get("defaultAlertsWithoutTime")),
        )


@dataclass(slots=True, frozen=True)
class CalendarEvent:
    """An event as seen by the alert engine.

    ``utc_start``/``utc_end`` are the server-resolved instants when known;
    ``start``/``end`` are the local (floating) representations used as a
    fallback anchor.
    """

    event_id: str
    calendar_ids: tuple[str, ...]
    start: str
    title: str = ""
    utc_start: str | None = None
    utc_end: str | None = None
    end: str | None = None
    duration: str | None = None
    show_without_time: bool = False
    use_default_alerts: bool = False
    alerts: dict[str, Alert] | None = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> CalendarEvent:
        """Build an event from a JMAP-style ``CalendarEvent`` object."""
        event_id = payload.get("id")
        if not event_id:
            raise ValueError("Event payload is missing 'id'")
        raw_calendars = payload.get("calendarIds") or {}
        if isinstance(raw_calendars, Mapping):
            calendar_ids = tuple(str(cid) for cid, member in raw_calendars.items() if member)
        else:
            calendar_ids = tuple(str(cid) for cid in raw_calendars)
        return cls(
            event_id=str(event_id),
            calendar_ids=calendar_ids,
            start=str(payload.get("start") or ""),
            title=str(payload.get("title") or ""),
            utc_start=_optional_str(payload.get("utcStart")),
            utc_end=_optional_str(payload.get("utcEnd")),
            end=_optional_str(payload.get("end")),
            duration=_optional_str(payload.get("duration")),
            show_without_time=bool(payload.get("showWithoutTime")),
            use_default_alerts=bool(payload.get("useDefaultAlerts")),
            alerts=alerts_from_dict(payload.get("alerts")),
        )


@dataclass(slots=True, frozen=True)
class PendingAlert:
    """A due, non-stale, not yet acknowledged alert."""

    event_id: str
    alert_id: str
    fire_time_ms: int
    calendar_name: str | None
    event: CalendarEvent = field(repr=False, compare=False)

    @property
    def key(self) -> str:
        return build_alert_key(self.event_id, self.alert_id, self.fire_time_ms)
