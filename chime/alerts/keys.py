"""Stable identity for one (event, alert, fire instant) triple."""

from __future__ import annotations


def build_alert_key(event_id: str, alert_id: str, fire_time_ms: int) -> str:
    """Return the acknowledgment key for an alert occurrence.

    The fire instant is part of the key, so a rescheduled event produces a new
    key and becomes eligible to fire again at its new time.
    """
    return f"{event_id}:{alert_id}:{fire_time_ms}"
