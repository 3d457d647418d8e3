"""Shared instant parsing and epoch-millisecond conversion utilities."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_ONE_MS = timedelta(milliseconds=1)


def utc_now() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(UTC)


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return to_epoch_ms(utc_now())


def ensure_aware(dt: datetime) -> datetime:
    """Attach the local timezone to naive (floating) datetimes."""
    if dt.tzinfo is None:
        return dt.astimezone()
    return dt


def to_epoch_ms(dt: datetime) -> int:
    """Convert a datetime to integer epoch milliseconds without float rounding."""
    return (ensure_aware(dt) - _EPOCH) // _ONE_MS


def from_epoch_ms(value: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=value)


def parse_instant(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp into an aware datetime.

    Values carrying ``Z`` or an explicit offset keep it; floating values are
    interpreted in the host's local timezone. Returns None for anything that
    does not parse.
    """
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
        return ensure_aware(parsed)
    except (ValueError, OverflowError, OSError):
        return None


def parse_instant_ms(value: str | None) -> int | None:
    """Parse an ISO-8601 timestamp into epoch milliseconds, or None."""
    parsed = parse_instant(value)
    if parsed is None:
        return None
    try:
        return to_epoch_ms(parsed)
    except (OverflowError, OSError):
        return None


def format_utc(dt: datetime) -> str:
    """Render an instant as a ``Z``-suffixed UTC ISO string."""
    return ensure_aware(dt).astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
