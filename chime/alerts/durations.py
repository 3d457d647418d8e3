"""Signed alert offsets in the simplified ISO-8601 form ``[+-]P[nD][T[nH][nM][nS]]``."""

from __future__ import annotations

import re
from datetime import timedelta

_OFFSET_PATTERN = re.compile(r"([+-]?)P(?:([0-9]{1,9})D)?(?:T(?:([0-9]{1,9})H)?(?:([0-9]{1,9})M)?(?:([0-9]{1,9})S)?)?")

_MS_PER_SECOND = 1000
_MS_PER_MINUTE = 60 * _MS_PER_SECOND
_MS_PER_HOUR = 60 * _MS_PER_MINUTE
_MS_PER_DAY = 24 * _MS_PER_HOUR


def parse_offset(text: str | None) -> int | None:
    """Parse an alert offset into signed milliseconds.

    Negative values fire before the anchor, positive after. Returns None for
    anything outside the grammar, including surrounding whitespace and
    non-ASCII digits. Each component is capped at nine digits; never raises.
    """
    if not isinstance(text, str):
        return None
    match = _OFFSET_PATTERN.fullmatch(text)
    if not match:
        return None
    sign, days, hours, minutes, seconds = match.groups()
    total = (
        int(days or 0) * _MS_PER_DAY
        + int(hours or 0) * _MS_PER_HOUR
        + int(minutes or 0) * _MS_PER_MINUTE
        + int(seconds or 0) * _MS_PER_SECOND
    )
    return -total if sign == "-" else total


def format_offset(delta: timedelta) -> str:
    """Render a timedelta in the offset grammar accepted by ``parse_offset``.

    Sub-second precision is truncated.
    """
    total_seconds = int(delta.total_seconds())
    sign = "-" if total_seconds < 0 else ""
    remaining = abs(total_seconds)
    days, remaining = divmod(remaining, 86400)
    hours, remaining = divmod(remaining, 3600)
    minutes, seconds = divmod(remaining, 60)
    time_part = ""
    if hours:
        time_part += f"{hours}H"
    if minutes:
        time_part += f"{minutes}M"
    if seconds:
        time_part += f"{seconds}S"
    day_part = f"{days}D" if days else ""
    if not day_part and not time_part:
        return "PT0S"
    return f"{sign}P{day_part}{'T' + time_part if time_part else ''}"
