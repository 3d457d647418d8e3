"""
Calendar alert engine

This package computes when calendar alerts fire and surfaces each due alert
exactly once:

- Duration parsing: signed ``[+-]P[nD][T[nH][nM][nS]]`` offsets
- Trigger resolution: offset/absolute triggers to epoch-millisecond instants
- Alert resolution: event-specific alerts vs. calendar default sets
- Evaluation: due, non-stale, unacknowledged display alerts
- Session: periodic evaluation, look-ahead fetching, acknowledge-then-dispatch
- Sources and sinks: ICS feeds in, MQTT/log notifications out

The pure functions are re-exported here for library use.
"""

from __future__ import annotations

from .durations import parse_offset
from .evaluator import STALE_WINDOW_MS, get_pending_alerts
from .keys import build_alert_key
from .models import AbsoluteTrigger, Alert, Calendar, CalendarEvent, OffsetTrigger, PendingAlert
from .resolver import get_effective_alerts
from .triggers import compute_fire_time

__all__ = [
    "STALE_WINDOW_MS",
    "AbsoluteTrigger",
    "Alert",
    "Calendar",
    "CalendarEvent",
    "OffsetTrigger",
    "PendingAlert",
    "build_alert_key",
    "compute_fire_time",
    "get_effective_alerts",
    "get_pending_alerts",
    "parse_offset",
]
