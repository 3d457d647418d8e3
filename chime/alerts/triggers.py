"""Resolve alert triggers to absolute fire instants."""

from __future__ import annotations

from chime.datetime_utils import parse_instant_ms

from .durations import parse_offset
from .models import AbsoluteTrigger, CalendarEvent, OffsetTrigger, Trigger


def _start_anchor_ms(event: CalendarEvent) -> int | None:
    if event.utc_start:
        return parse_instant_ms(event.utc_start)
    return parse_instant_ms(event.start)


def _end_anchor_ms(event: CalendarEvent) -> int | None:
    if event.utc_end:
        return parse_instant_ms(event.utc_end)
    if event.end:
        return parse_instant_ms(event.end)
    # No explicit end: start + duration.
    start_ms = _start_anchor_ms(event)
    duration_ms = parse_offset(event.duration)
    if start_ms is None or duration_ms is None:
        return None
    return start_ms + duration_ms


def compute_fire_time(event: CalendarEvent, trigger: Trigger) -> int | None:
    """Return the epoch-millisecond instant at which ``trigger`` fires for ``event``.

    Offset triggers anchor on the authoritative UTC start/end when present and
    fall back to the local representation otherwise. Returns None when the
    offset, the anchor or the absolute instant cannot be parsed.
    """
    if isinstance(trigger, AbsoluteTrigger):
        return parse_instant_ms(trigger.when)
    if isinstance(trigger, OffsetTrigger):
        offset_ms = parse_offset(trigger.offset)
        if offset_ms is None:
            return None
        anchor_ms = _end_anchor_ms(event) if trigger.relative_to == "end" else _start_anchor_ms(event)
        if anchor_ms is None:
            return None
        return anchor_ms + offset_ms
    return None
