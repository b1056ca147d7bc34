"""Unit tests for calendar intervals and date normalisation."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from partition_topology.intervals import (
    Interval,
    advance,
    align,
    coerce_interval,
    detect_interval,
    normalize_date,
    quarter_of,
)


class TestAlign:
    """Tests for aligning dates to interval starts."""

    @pytest.mark.parametrize(
        ("interval", "expected"),
        [
            (Interval.DAILY, date(2024, 5, 17)),
            (Interval.WEEKLY, date(2024, 5, 13)),
            (Interval.MONTHLY, date(2024, 5, 1)),
            (Interval.QUARTERLY, date(2024, 4, 1)),
            (Interval.YEARLY, date(2024, 1, 1)),
        ],
    )
    def test_align(self, interval: Interval, expected: date) -> None:
        assert align(date(2024, 5, 17), interval) == expected

    def test_align_datetime_drops_time(self) -> None:
        assert align(datetime(2024, 5, 17, 23, 59), Interval.DAILY) == date(2024, 5, 17)


class TestAdvance:
    """Tests for interval stepping."""

    def test_month_end_does_not_drift(self) -> None:
        assert advance(date(2024, 1, 31), Interval.MONTHLY) == date(2024, 2, 29)

    def test_quarter_and_year(self) -> None:
        assert advance(date(2024, 10, 1), Interval.QUARTERLY) == date(2025, 1, 1)
        assert advance(date(2024, 1, 1), Interval.YEARLY, steps=3) == date(2027, 1, 1)


class TestNormalizeDate:
    """Tests for loose date input."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (2026, date(2026, 1, 1)),
            ("2026", date(2026, 1, 1)),
            ("2026-03", date(2026, 3, 1)),
            ("2026/03", date(2026, 3, 1)),
            ("2026-03-15", date(2026, 3, 15)),
            (date(2026, 3, 15), date(2026, 3, 15)),
            (datetime(2026, 3, 15, 8, 0), date(2026, 3, 15)),
            ("March 15, 2026", date(2026, 3, 15)),
        ],
    )
    def test_accepted_forms(self, value: object, expected: date) -> None:
        assert normalize_date(value) == expected

    @pytest.mark.parametrize("value", [True, 3.5, None, "not a date"])
    def test_rejects_non_dates(self, value: object) -> None:
        with pytest.raises(ValueError):
            normalize_date(value)


class TestIntervalHelpers:
    """Tests for interval coercion, tags and quarters."""

    def test_coerce_interval_is_case_insensitive(self) -> None:
        assert coerce_interval("MONTHLY") is Interval.MONTHLY
        assert coerce_interval(Interval.DAILY) is Interval.DAILY

    def test_coerce_interval_rejects_unknown(self) -> None:
        with pytest.raises(ValueError):
            coerce_interval("hourly")

    def test_tags(self) -> None:
        assert [i.tag for i in Interval] == ["d", "w", "m", "q", "y"]

    def test_quarter_of(self) -> None:
        assert [quarter_of(date(2024, m, 1)) for m in (1, 4, 7, 12)] == [1, 2, 3, 4]


class TestDetectInterval:
    """Tests for inferring the interval of existing ranges."""

    def test_detects_monthly(self) -> None:
        ranges = [("2024-01-01", "2024-02-01"), ("2024-02-01", "2024-03-01"), ("2024-03-01", "2024-04-01")]
        assert detect_interval(ranges) is Interval.MONTHLY

    def test_most_common_wins(self) -> None:
        ranges = [
            ("2024-01-01", "2024-01-02"),
            ("2024-01-02", "2024-01-03"),
            ("2024-01-03", "2024-02-01"),
        ]
        assert detect_interval(ranges) is Interval.DAILY

    def test_ignores_numeric_ranges(self) -> None:
        assert detect_interval([(1, 100), (100, 200)]) is None

    def test_empty_is_none(self) -> None:
        assert detect_interval([]) is None
