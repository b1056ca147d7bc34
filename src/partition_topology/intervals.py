"""Calendar intervals for date-driven partition sequences.

Alignment, stepping and date normalisation use python-dateutil so that
month and year arithmetic never drifts (Jan 31 + 1 month is Feb 29/28,
not Mar 2).
"""

from __future__ import annotations

import re
from collections import Counter
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Iterable

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

_YEAR_ONLY = re.compile(r"^\d{4}$")
_YEAR_MONTH = re.compile(r"^(\d{4})[-/](\d{1,2})$")


class Interval(str, Enum):
    """Calendar interval of a RANGE sequence."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"

    @property
    def tag(self) -> str:
        """Return the one-letter kind tag used in partition names."""
        return _TAGS[self]

    @property
    def step(self) -> relativedelta:
        """Return the length of one interval."""
        return _STEPS[self]


_TAGS = {
    Interval.DAILY: "d",
    Interval.WEEKLY: "w",
    Interval.MONTHLY: "m",
    Interval.QUARTERLY: "q",
    Interval.YEARLY: "y",
}

_STEPS = {
    Interval.DAILY: relativedelta(days=1),
    Interval.WEEKLY: relativedelta(weeks=1),
    Interval.MONTHLY: relativedelta(months=1),
    Interval.QUARTERLY: relativedelta(months=3),
    Interval.YEARLY: relativedelta(years=1),
}


def coerce_interval(value: Interval | str) -> Interval:
    """Accept an Interval or its name ("monthly", "MONTHLY")."""
    if isinstance(value, Interval):
        return value
    return Interval(value.strip().lower())


def align(value: date, interval: Interval) -> date:
    """Align a date down to the start of its interval.

    Daily is the date itself, weekly the Monday, monthly the 1st,
    quarterly the 1st of Jan/Apr/Jul/Oct and yearly Jan 1.

    Example:
        >>> align(date(2024, 5, 17), Interval.QUARTERLY)
        datetime.date(2024, 4, 1)
    """
    if isinstance(value, datetime):
        value = value.date()
    if interval is Interval.DAILY:
        return value
    if interval is Interval.WEEKLY:
        return value - timedelta(days=value.weekday())
    if interval is Interval.MONTHLY:
        return value.replace(day=1)
    if interval is Interval.QUARTERLY:
        first_month = ((value.month - 1) // 3) * 3 + 1
        return value.replace(month=first_month, day=1)
    return value.replace(month=1, day=1)


def advance(value: date, interval: Interval, steps: int = 1) -> date:
    """Move a date forward by a number of intervals."""
    return value + interval.step * steps


def normalize_date(value: Any) -> date:
    """Normalise a loosely specified date.

    Accepts an int year, "YYYY", "YYYY-MM", "YYYY/MM", full date strings,
    date and datetime objects. Anything else goes through dateutil's parser.

    Args:
        value: Date-like input.

    Returns:
        The corresponding date.

    Raises:
        ValueError: If the value cannot be interpreted as a date.

    Example:
        >>> normalize_date("2026/03")
        datetime.date(2026, 3, 1)
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Cannot interpret {value!r} as a date")
    if isinstance(value, int):
        return date(value, 1, 1)
    if not isinstance(value, str):
        raise ValueError(f"Cannot interpret {value!r} as a date")

    text = value.strip()
    if _YEAR_ONLY.match(text):
        return date(int(text), 1, 1)
    match = _YEAR_MONTH.match(text)
    if match:
        return date(int(match.group(1)), int(match.group(2)), 1)
    return date_parser.parse(text).date()


def quarter_of(value: date) -> int:
    return (value.month - 1) // 3 + 1


def _interval_for_days(days: int) -> Interval | None:
    if days == 1:
        return Interval.DAILY
    if days == 7:
        return Interval.WEEKLY
    if 28 <= days <= 31:
        return Interval.MONTHLY
    if 89 <= days <= 92:
        return Interval.QUARTERLY
    if 365 <= days <= 366:
        return Interval.YEARLY
    return None


def detect_interval(ranges: Iterable[tuple[Any, Any]]) -> Interval | None:
    """Infer the interval of existing RANGE partitions.

    Each (from, to) pair whose limits are dates is classified by its length
    in days; the most common interval wins. Numeric, sentinel and other
    non-date limits are ignored.

    Args:
        ranges: (from, to) pairs of existing range partitions.

    Returns:
        The detected interval, or None when no pair is a recognisable date
        range.
    """
    counts: Counter[Interval] = Counter()
    for lower, upper in ranges:
        if not isinstance(lower, str | date) or not isinstance(upper, str | date):
            continue
        try:
            start = normalize_date(lower)
            end = normalize_date(upper)
        except (ValueError, OverflowError):
            continue
        interval = _interval_for_days((end - start).days)
        if interval is not None:
            counts[interval] += 1

    if not counts:
        return None
    return counts.most_common(1)[0][0]
