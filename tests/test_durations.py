"""Tests for alert offset parsing (chime/alerts/durations.py)."""

from __future__ import annotations

from datetime import timedelta

import pytest
from chime.alerts.durations import format_offset, parse_offset

MINUTE = 60 * 1000
HOUR = 60 * MINUTE
DAY = 24 * HOUR


class TestParseOffset:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("-PT5M", -5 * MINUTE),
            ("PT10M", 10 * MINUTE),
            ("+PT10M", 10 * MINUTE),
            ("PT0S", 0),
            ("-PT1H", -HOUR),
            ("-P1D", -DAY),
            ("P2D", 2 * DAY),
            ("PT30S", 30 * 1000),
            ("-P1DT2H30M", -(DAY + 2 * HOUR + 30 * MINUTE)),
            ("P1DT1H1M1S", DAY + HOUR + MINUTE + 1000),
            ("-PT90M", -90 * MINUTE),
        ],
    )
    def test_valid_offsets(self, text: str, expected: int) -> None:
        assert parse_offset(text) == expected

    @pytest.mark.parametrize(
        "text",
        [
            "invalid",
            "",
            "5M",
            "-5M",
            "PT5",
            "P1W",
            "P1Y",
            "PT1.5H",
            "--PT5M",
            "-PT5M extra",
            "pt5m",
            "T5M",
            "P1H",
        ],
    )
    def test_invalid_offsets_return_none(self, text: str) -> None:
        assert parse_offset(text) is None

    def test_non_string_input_returns_none(self) -> None:
        assert parse_offset(None) is None
        assert parse_offset(300) is None  # type: ignore[arg-type]

    @pytest.mark.parametrize("text", ["  -PT15M ", "-PT15M\n", "\t-PT15M"])
    def test_surrounding_whitespace_is_rejected(self, text: str) -> None:
        assert parse_offset(text) is None

    @pytest.mark.parametrize("text", ["-PT\u0665M", "PT\uff15M", "P\u0967D"])
    def test_non_ascii_digits_are_rejected(self, text: str) -> None:
        assert parse_offset(text) is None

    def test_oversized_component_returns_none(self) -> None:
        assert parse_offset("PT" + "1" * 5000 + "M") is None
        assert parse_offset("-P" + "9" * 10 + "D") is None

    def test_nine_digit_component_is_accepted(self) -> None:
        assert parse_offset("PT999999999S") == 999_999_999 * 1000

    def test_zero_is_distinct_from_invalid(self) -> None:
        result = parse_offset("-PT0S")
        assert result == 0
        assert result is not None


class TestFormatOffset:
    def test_negative_minutes(self) -> None:
        assert format_offset(timedelta(minutes=-30)) == "-PT30M"

    def test_days_and_time(self) -> None:
        assert format_offset(timedelta(days=1, hours=2, seconds=5)) == "P1DT2H5S"

    def test_zero(self) -> None:
        assert format_offset(timedelta(0)) == "PT0S"

    def test_output_parses_back(self) -> None:
        delta = timedelta(hours=-12)
        assert parse_offset(format_offset(delta)) == -12 * HOUR
