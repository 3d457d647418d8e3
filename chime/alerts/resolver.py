"""Pick the alert set that applies to an event."""

from __future__ import annotations

from collections.abc import Iterable

from .models import Alert, Calendar, CalendarEvent


def first_calendar(event: CalendarEvent, calendars: Iterable[Calendar]) -> Calendar | None:
    """Return the first of the event's calendars that is present in ``calendars``."""
    by_id = {calendar.calendar_id: calendar for calendar in calendars}
    for calendar_id in event.calendar_ids:
        calendar = by_id.get(calendar_id)
        if calendar is not None:
            return calendar
    return None


def get_effective_alerts(event: CalendarEvent, calendars: Iterable[Calendar]) -> dict[str, Alert] | None:
    """Resolve event-specific alerts or the inherited calendar defaults.

    Events that do not request defaults keep their own alerts verbatim. Events
    that do inherit from their first known calendar, using the all-day set for
    events shown without a time and the timed set otherwise.
    """
    if not event.use_default_alerts:
        return event.alerts
    calendar = first_calendar(event, calendars)
    if calendar is None:
        return None
    if event.show_without_time:
        return calendar.default_alerts_without_time
    return calendar.default_alerts_with_time
