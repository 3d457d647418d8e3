"""Tests for fire-instant computation (chime/alerts/triggers.py)."""

from __future__ import annotations

from datetime import UTC, datetime

from chime.alerts.models import AbsoluteTrigger, OffsetTrigger
from chime.alerts.triggers import compute_fire_time
from chime.datetime_utils import to_epoch_ms

START_MS = to_epoch_ms(datetime(2026, 3, 1, 10, 0, tzinfo=UTC))
END_MS = to_epoch_ms(datetime(2026, 3, 1, 11, 0, tzinfo=UTC))
MINUTE = 60 * 1000


def _local_floating(dt: datetime) -> str:
    """Render an aware instant as a floating local timestamp."""
    return dt.astimezone().replace(tzinfo=None).isoformat()


class TestOffsetTriggers:
    def test_offset_from_utc_start(self, event_factory) -> None:
        event = event_factory()
        assert compute_fire_time(event, OffsetTrigger("-PT5M", "start")) == START_MS - 5 * MINUTE

    def test_offset_from_utc_end(self, event_factory) -> None:
        event = event_factory()
        assert compute_fire_time(event, OffsetTrigger("-PT10M", "end")) == END_MS - 10 * MINUTE

    def test_positive_offset_fires_after_anchor(self, event_factory) -> None:
        event = event_factory()
        assert compute_fire_time(event, OffsetTrigger("PT15M", "start")) == START_MS + 15 * MINUTE

    def test_falls_back_to_local_start(self, event_factory) -> None:
        start = datetime(2026, 3, 1, 10, 0, tzinfo=UTC)
        event = event_factory(utc_start=None, start=_local_floating(start))
        assert compute_fire_time(event, OffsetTrigger("-PT5M", "start")) == START_MS - 5 * MINUTE

    def test_utc_and_local_representations_agree(self, event_factory) -> None:
        start = datetime(2026, 7, 15, 18, 30, tzinfo=UTC)
        utc_event = event_factory(utc_start="2026-07-15T18:30:00Z", start="1999-01-01T00:00:00")
        local_event = event_factory(utc_start=None, start=_local_floating(start))
        trigger = OffsetTrigger("-PT1H", "start")
        assert compute_fire_time(utc_event, trigger) == compute_fire_time(local_event, trigger)

    def test_utc_start_takes_precedence_over_local(self, event_factory) -> None:
        event = event_factory(start="2030-01-01T00:00:00")
        assert compute_fire_time(event, OffsetTrigger("PT0S", "start")) == START_MS

    def test_end_falls_back_to_local_end(self, event_factory) -> None:
        end = datetime(2026, 3, 1, 11, 0, tzinfo=UTC)
        event = event_factory(utc_end=None, end=_local_floating(end))
        assert compute_fire_time(event, OffsetTrigger("PT0S", "end")) == END_MS

    def test_end_falls_back_to_start_plus_duration(self, event_factory) -> None:
        start = datetime(2026, 3, 1, 10, 0, tzinfo=UTC)
        event = event_factory(utc_start=None, utc_end=None, start=_local_floating(start), duration="PT1H")
        assert compute_fire_time(event, OffsetTrigger("-PT5M", "end")) == END_MS - 5 * MINUTE

    def test_end_without_any_anchor_is_invalid(self, event_factory) -> None:
        event = event_factory(utc_end=None, end=None, duration=None)
        assert compute_fire_time(event, OffsetTrigger("-PT5M", "end")) is None

    def test_invalid_offset_is_invalid(self, event_factory) -> None:
        event = event_factory()
        assert compute_fire_time(event, OffsetTrigger("5 minutes before", "start")) is None

    def test_unparseable_anchor_is_invalid(self, event_factory) -> None:
        event = event_factory(utc_start=None, start="someday")
        assert compute_fire_time(event, OffsetTrigger("-PT5M", "start")) is None

    def test_unparseable_utc_start_is_invalid(self, event_factory) -> None:
        event = event_factory(utc_start="not-a-date")
        assert compute_fire_time(event, OffsetTrigger("-PT5M", "start")) is None


class TestAbsoluteTriggers:
    def test_absolute_instant(self, event_factory) -> None:
        event = event_factory()
        when = "2026-03-01T08:00:00Z"
        expected = to_epoch_ms(datetime(2026, 3, 1, 8, 0, tzinfo=UTC))
        assert compute_fire_time(event, AbsoluteTrigger(when)) == expected

    def test_absolute_ignores_event_anchor(self, event_factory) -> None:
        event = event_factory(utc_start=None, start="garbage")
        assert compute_fire_time(event, AbsoluteTrigger("2026-03-01T08:00:00Z")) is not None

    def test_unparseable_absolute_is_invalid(self, event_factory) -> None:
        event = event_factory()
        assert compute_fire_time(event, AbsoluteTrigger("tomorrow-ish")) is None


def test_unknown_trigger_kind_is_invalid(event_factory) -> None:
    assert compute_fire_time(event_factory(), object()) is None  # type: ignore[arg-type]


def test_is_deterministic(event_factory) -> None:
    event = event_factory()
    trigger = OffsetTrigger("-P1DT2H", "start")
    assert compute_fire_time(event, trigger) == compute_fire_time(event, trigger)
