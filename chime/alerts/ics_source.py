"""ICS/WebCal feeds as an event and calendar source for the alert engine."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

import httpx
from icalendar import Calendar as ICalendar

from chime.datetime_utils import format_utc, to_epoch_ms, utc_now

from .config import CalendarConfig
from .durations import format_offset
from .models import AbsoluteTrigger, Alert, Calendar, CalendarEvent, OffsetTrigger
from .triggers import compute_fire_time

LOGGER = logging.getLogger("chime.alerts.ics_source")

FEED_TIMEOUT = 12.0
FALLBACK_NOTIFICATION_MINUTES = 5
ALL_DAY_DEFAULT_OFFSET = "-PT12H"  # noon on the previous day

_START_ANCHOR = OffsetTrigger(offset="PT0S", relative_to="start")
_END_ANCHOR = OffsetTrigger(offset="PT0S", relative_to="end")


class EventSourceError(RuntimeError):
    """Raised when a range query could not reach any feed."""


def _normalize_attendee_identifier(value) -> str:
    """Normalize ATTENDEE values and configured emails for comparison."""

    if value is None:
        return ""
    text = str(value).strip().lower()
    if text.startswith("mailto:"):
        text = text[len("mailto:") :]
    return text


def default_alert_sets(config: CalendarConfig) -> tuple[dict[str, Alert], dict[str, Alert]]:
    """Build the (timed, all-day) default alert sets shared by every feed."""
    minutes = config.default_notifications or (FALLBACK_NOTIFICATION_MINUTES,)
    timed = {
        f"default-{value}m": Alert(trigger=OffsetTrigger(offset=format_offset(timedelta(minutes=-value))))
        for value in minutes
    }
    all_day = {"default-all-day": Alert(trigger=OffsetTrigger(offset=ALL_DAY_DEFAULT_OFFSET))}
    return timed, all_day


def event_span_ms(event: CalendarEvent) -> tuple[int, int] | None:
    start_ms = compute_fire_time(event, _START_ANCHOR)
    if start_ms is None:
        return None
    end_ms = compute_fire_time(event, _END_ANCHOR)
    return start_ms, max(start_ms, end_ms if end_ms is not None else start_ms)


def _split_instant(value) -> tuple[str | None, str | None, bool]:
    """Return (utc, local floating, all_day) renderings of a decoded DTSTART/DTEND."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return None, value.isoformat(), False
        local = value.astimezone().replace(tzinfo=None)
        return format_utc(value), local.isoformat(), False
    if isinstance(value, date):
        return None, f"{value.isoformat()}T00:00:00", True
    return None, None, False


@dataclass(slots=True)
class _FeedState:
    url: str
    etag: str | None = None
    last_modified: str | None = None
    calendar_name: str | None = None
    events: list[CalendarEvent] = field(default_factory=list)
    owner_tokens: set[str] = field(default_factory=set)


class IcsEventSource:
    """Poll ICS/WebCal feeds and expose their events as ``CalendarEvent`` records."""

    def __init__(
        self,
        *,
        config: CalendarConfig,
        client: httpx.AsyncClient | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._owns_client = client is None
        self._logger = logger or LOGGER
        owner_tokens = {_normalize_attendee_identifier(email) for email in config.attendee_emails if email}
        self._feed_states = {url: _FeedState(url=url, owner_tokens=set(owner_tokens)) for url in config.feeds}
        self._default_timed, self._default_all_day = default_alert_sets(config)

    async def start(self) -> None:
        if not self._config.feeds:
            self._logger.warning("[calendar] Calendar source started but no feeds configured")
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=True, timeout=20.0)

    async def stop(self) -> None:
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    def calendars(self) -> list[Calendar]:
        return [
            Calendar(
                calendar_id=state.url,
                name=state.calendar_name or state.url,
                default_alerts_with_time=self._default_timed,
                default_alerts_without_time=self._default_all_day,
            )
            for state in self._feed_states.values()
        ]

    def all_events(self) -> list[CalendarEvent]:
        return [event for state in self._feed_states.values() for event in state.events]

    def visible_events(self, now: datetime | None = None) -> list[CalendarEvent]:
        """Cached events that have not ended and start within the visible horizon."""
        now = now or utc_now()
        return self._events_between(now, now + timedelta(hours=self._config.visible_hours))

    async def query_events(self, after: datetime, before: datetime) -> list[CalendarEvent]:
        """Refresh all feeds and return events overlapping ``[after, before]``."""
        if not await self.refresh():
            raise EventSourceError("No calendar feed could be fetched")
        return self._events_between(after, before)

    def _events_between(self, after: datetime, before: datetime) -> list[CalendarEvent]:
        after_ms = to_epoch_ms(after)
        before_ms = to_epoch_ms(before)
        selected: list[CalendarEvent] = []
        for event in self.all_events():
            span = event_span_ms(event)
            if span is None:
                continue
            start_ms, end_ms = span
            if end_ms >= after_ms and start_ms <= before_ms:
                selected.append(event)
        return selected

    async def refresh(self) -> bool:
        """Fetch every feed; return True when at least one feed is usable."""
        if not self._feed_states:
            return False
        succeeded = False
        for state in self._feed_states.values():
            try:
                if await asyncio.wait_for(self._sync_feed(state), timeout=FEED_TIMEOUT):
                    succeeded = True
            except TimeoutError:
                self._logger.warning("[calendar] Calendar sync timed out for feed %s", state.url)
            except Exception:  # pylint: disable=broad-except
                self._logger.exception("[calendar] Calendar sync failed for feed %s", state.url)
        return succeeded

    async def _sync_feed(self, state: _FeedState) -> bool:
        if not self._client:
            return False
        headers: dict[str, str] = {}
        if state.etag:
            headers["If-None-Match"] = state.etag
        if state.last_modified:
            headers["If-Modified-Since"] = state.last_modified
        try:
            response = await self._client.get(state.url, headers=headers)
        except httpx.HTTPError as exc:
            self._logger.warning("[calendar] Calendar fetch failed for %s: %s", state.url, exc)
            return False
        if response.status_code == 304:
            return True
        if response.status_code >= 400:
            self._logger.warning("[calendar] Calendar fetch returned %s for %s", response.status_code, state.url)
            return False
        try:
            calendar = ICalendar.from_ical(response.content)
        except Exception as exc:  # pylint: disable=broad-except
            self._logger.warning("[calendar] Calendar parse failed for %s: %s", state.url, exc)
            return False
        state.etag = response.headers.get("etag") or state.etag
        state.last_modified = response.headers.get("last-modified") or state.last_modified
        calendar_name = calendar.get("X-WR-CALNAME")
        if calendar_name:
            state.calendar_name = str(calendar_name)
        state.events = self.parse_events(calendar, state)
        self._logger.debug("[calendar] Feed %s produced %d event(s)", state.url, len(state.events))
        return True

    def parse_events(self, calendar: ICalendar, state: _FeedState) -> list[CalendarEvent]:
        events: list[CalendarEvent] = []
        for component in calendar.walk("VEVENT"):
            event = self._process_vevent(component, state)
            if event is None:
                continue
            if self._config.hide_declined_events and self._event_declined(component, state.owner_tokens):
                continue
            events.append(event)
        return events

    def _process_vevent(self, component, state: _FeedState) -> CalendarEvent | None:
        uid = component.get("UID")
        if not uid:
            return None
        try:
            start_value = component.decoded("DTSTART")
        except Exception:  # pylint: disable=broad-except
            return None
        utc_start, start, all_day = _split_instant(start_value)
        if start is None:
            return None
        utc_end = end = duration = None
        if "DTEND" in component:
            try:
                utc_end, end, _ = _split_instant(component.decoded("DTEND"))
            except Exception:  # pylint: disable=broad-except
                utc_end = end = None
        elif "DURATION" in component:
            try:
                duration_value = component.decoded("DURATION")
            except Exception:  # pylint: disable=broad-except
                duration_value = None
            if isinstance(duration_value, timedelta):
                duration = format_offset(duration_value)
                if isinstance(start_value, datetime) and start_value.tzinfo is not None:
                    utc_end = format_utc(start_value + duration_value)
        event_id = str(uid)
        recurrence_id = component.get("RECURRENCE-ID")
        if recurrence_id is not None:
            event_id = f"{event_id}#{recurrence_id.to_ical().decode('utf-8')}"
        alerts = self._extract_alerts(component)
        summary = str(component.get("SUMMARY") or "Calendar event").strip() or "Calendar event"
        return CalendarEvent(
            event_id=event_id,
            calendar_ids=(state.url,),
            start=start,
            title=summary,
            utc_start=utc_start,
            utc_end=utc_end,
            end=end,
            duration=duration,
            show_without_time=all_day,
            use_default_alerts=not alerts,
            alerts=alerts or None,
        )

    def _extract_alerts(self, component) -> dict[str, Alert]:
        alerts: dict[str, Alert] = {}
        subcomponents = getattr(component, "subcomponents", [])
        alarms = [sub for sub in subcomponents if getattr(sub, "name", "").upper() == "VALARM"]
        for index, alarm in enumerate(alarms):
            trigger_raw = alarm.get("TRIGGER")
            if trigger_raw is None:
                continue
            try:
                decoded = alarm.decoded("TRIGGER")
            except Exception:  # pylint: disable=broad-except
                continue
            if isinstance(decoded, timedelta):
                related = str(getattr(trigger_raw, "params", {}).get("RELATED", "START")).upper()
                trigger = OffsetTrigger(
                    offset=format_offset(decoded),
                    relative_to="end" if related == "END" else "start",
                )
            elif isinstance(decoded, datetime):
                when = format_utc(decoded) if decoded.tzinfo else decoded.isoformat()
                trigger = AbsoluteTrigger(when=when)
            else:
                continue
            acknowledged = None
            if "ACKNOWLEDGED" in alarm:
                try:
                    acked = alarm.decoded("ACKNOWLEDGED")
                except Exception:  # pylint: disable=broad-except
                    acked = None
                acknowledged = format_utc(acked) if isinstance(acked, datetime) else str(alarm.get("ACKNOWLEDGED"))
            alarm_id = str(alarm.get("UID") or alarm.get("X-WR-ALARMUID") or f"valarm-{index}")
            action = str(alarm.get("ACTION") or "DISPLAY").strip().lower()
            alerts[alarm_id] = Alert(trigger=trigger, action=action, acknowledged=acknowledged)
        return alerts

    def _event_declined(self, component, owner_tokens: set[str]) -> bool:
        if not owner_tokens:
            return False
        attendees = component.get("ATTENDEE")
        if not attendees:
            return False
        if not isinstance(attendees, list):
            attendees = [attendees]
        for attendee in attendees:
            params = getattr(attendee, "params", {}) or {}
            email_param = params.get("EMAIL")
            identifier = _normalize_attendee_identifier(email_param) or _normalize_attendee_identifier(attendee)
            if not identifier or identifier not in owner_tokens:
                continue
            partstat = params.get("PARTSTAT")
            if isinstance(partstat, bytes):
                partstat = partstat.decode("utf-8", errors="ignore")
            if str(partstat or "").strip().upper() == "DECLINED":
                return True
        return False
