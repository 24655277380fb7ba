"""Date-centred rolling averages, linear and circular.

Both averagers slide a window over chronologically sorted ``(date, value)``
samples.  The window around a sample spans ``(window_days - 1) // 2`` days
before it and the remaining days after it, measured in elapsed time rather
than sample count, so gaps in the data shrink the window instead of
stretching it.  Two monotonic pointers maintain running sums, which keeps a
full pass at O(n).

Samples whose weekday is excluded never enter the running sums, but their own
date still receives a value computed from the other samples in its window.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime, timedelta
from typing import Iterable, Sequence

from src.healthstats.base import RollingPoint
from src.healthstats.circular import angle_to_seconds, to_angle

logger = logging.getLogger("healthstats.rolling")

DEFAULT_WINDOW_DAYS = 7

DatedValue = tuple[date, float]


class _LinearAccumulator:
    """Running sum / count for an arithmetic mean."""

    def __init__(self) -> None:
        self.total = 0.0
        self.count = 0

    def add(self, value: float) -> None:
        self.total += value
        self.count += 1

    def remove(self, value: float) -> None:
        self.total -= value
        self.count -= 1

    def value(self) -> float | None:
        if self.count <= 0:
            return None
        return self.total / self.count


class _CircularAccumulator:
    """Running sin / cos sums for a circular mean of times of day."""

    def __init__(self) -> None:
        self.sum_sin = 0.0
        self.sum_cos = 0.0
        self.count = 0

    def add(self, value: float) -> None:
        angle = to_angle(value)
        self.sum_sin += math.sin(angle)
        self.sum_cos += math.cos(angle)
        self.count += 1

    def remove(self, value: float) -> None:
        angle = to_angle(value)
        self.sum_sin -= math.sin(angle)
        self.sum_cos -= math.cos(angle)
        self.count -= 1

    def value(self) -> float | None:
        if self.count <= 0:
            return None
        return angle_to_seconds(self.sum_sin, self.sum_cos, self.count)


def _as_datetime(day: date) -> datetime:
    if isinstance(day, datetime):
        return day
    return datetime.combine(day, datetime.min.time())


def window_offsets(window_days: int) -> tuple[timedelta, timedelta]:
    """Return (before, after) spans of a centred window of ``window_days`` days."""
    before_days = (window_days - 1) // 2
    after_days = window_days - 1 - before_days
    return timedelta(days=before_days), timedelta(days=after_days)


def _slide(
    points: Sequence[DatedValue],
    window_days: int,
    exclude_weekdays: Iterable[int] | None,
    accumulator: _LinearAccumulator | _CircularAccumulator,
) -> list[RollingPoint]:
    if not points:
        return []

    if window_days < 1:
        logger.warning("Rolling window of %d days clamped to 1", window_days)
        window_days = 1

    excluded = frozenset(exclude_weekdays or ())
    before, after = window_offsets(window_days)
    moments = [_as_datetime(d) for d, _ in points]

    def eligible(idx: int) -> bool:
        return moments[idx].weekday() not in excluded

    result: list[RollingPoint] = []
    start_idx = 0
    end_idx = 0

    for i, (day, _) in enumerate(points):
        window_start = moments[i] - before
        window_end = moments[i] + after

        while start_idx < end_idx and moments[start_idx] < window_start:
            if eligible(start_idx):
                accumulator.remove(points[start_idx][1])
            start_idx += 1

        while end_idx < len(points) and moments[end_idx] <= window_end:
            if eligible(end_idx):
                accumulator.add(points[end_idx][1])
            end_idx += 1

        result.append(RollingPoint(date=day, value=accumulator.value()))

    return result


def rolling_average(
    points: Sequence[DatedValue],
    window_days: int = DEFAULT_WINDOW_DAYS,
    exclude_weekdays: Iterable[int] | None = None,
) -> list[RollingPoint]:
    """Centred rolling mean of dated values.

    Args:
        points:           ``(date, value)`` pairs sorted by date.
        window_days:      Window width in days (1 = identity).
        exclude_weekdays: Weekdays kept out of the sums, numbered like
                          ``date.weekday()`` (Monday=0 … Sunday=6).

    Returns:
        One RollingPoint per input sample; ``value`` is None when the window
        holds no eligible sample.
    """
    return _slide(points, window_days, exclude_weekdays, _LinearAccumulator())


def rolling_time_average(
    points: Sequence[DatedValue],
    window_days: int = DEFAULT_WINDOW_DAYS,
    exclude_weekdays: Iterable[int] | None = None,
) -> list[RollingPoint]:
    """Centred rolling circular mean of times of day (seconds since midnight).

    Same window mechanics as :func:`rolling_average`; used for bedtime and
    wake-time trends that wrap around midnight.
    """
    return _slide(points, window_days, exclude_weekdays, _CircularAccumulator())


def series_from(items: Iterable[object], attr: str) -> list[DatedValue]:
    """Build a sorted ``(date, value)`` series from objects with a ``date`` attribute.

    Items whose attribute is None are skipped.
    """
    series = [
        (item.date, float(value))  # type: ignore[attr-defined]
        for item in items
        if (value := getattr(item, attr, None)) is not None
    ]
    series.sort(key=lambda pair: _as_datetime(pair[0]))
    return series
