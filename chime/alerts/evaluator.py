"""Select the alerts that are due right now."""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterable, Sequence

from .keys import build_alert_key
from .models import ACTION_DISPLAY, Calendar, CalendarEvent, PendingAlert
from .resolver import first_calendar, get_effective_alerts
from .triggers import compute_fire_time

LOGGER = logging.getLogger("chime.alerts.evaluator")

STALE_WINDOW_MS = 10 * 60 * 1000


def get_pending_alerts(
    events: Iterable[CalendarEvent],
    calendars: Sequence[Calendar],
    acknowledged_keys: Collection[str],
    now_ms: int,
    *,
    stale_window_ms: int = STALE_WINDOW_MS,
) -> list[PendingAlert]:
    """Return every display alert that is due, not stale and not acknowledged.

    An alert is due once its fire instant is at or before ``now_ms`` and stays
    eligible until it is ``stale_window_ms`` old (exclusive). Entries whose
    fire time cannot be computed are skipped. The result has no particular
    order.
    """
    if acknowledged_keys is None:
        raise TypeError("acknowledged_keys must be a collection, not None")
    pending: list[PendingAlert] = []
    for event in events:
        try:
            pending.extend(_pending_for_event(event, calendars, acknowledged_keys, now_ms, stale_window_ms))
        except (AttributeError, TypeError, ValueError):
            LOGGER.debug("Skipping malformed event %r", getattr(event, "event_id", event), exc_info=True)
    return pending


def _pending_for_event(
    event: CalendarEvent,
    calendars: Sequence[Calendar],
    acknowledged_keys: Collection[str],
    now_ms: int,
    stale_window_ms: int,
) -> list[PendingAlert]:
    alerts = get_effective_alerts(event, calendars)
    if not alerts:
        return []
    calendar = first_calendar(event, calendars)
    calendar_name = calendar.name if calendar else None
    due: list[PendingAlert] = []
    for alert_id, alert in alerts.items():
        if alert.action != ACTION_DISPLAY:
            continue
        if alert.acknowledged is not None:
            continue
        fire_time_ms = compute_fire_time(event, alert.trigger)
        if fire_time_ms is None:
            continue
        if fire_time_ms > now_ms:
            continue
        if now_ms - fire_time_ms >= stale_window_ms:
            continue
        if build_alert_key(event.event_id, alert_id, fire_time_ms) in acknowledged_keys:
            continue
        due.append(
            PendingAlert(
                event_id=event.event_id,
                alert_id=alert_id,
                fire_time_ms=fire_time_ms,
                calendar_name=calendar_name,
                event=event,
            )
        )
    return due
