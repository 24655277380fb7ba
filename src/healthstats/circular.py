"""Circular (time-of-day) averaging.

Bed and wake times live on a 24-hour circle: averaging 23:30 and 00:30
arithmetically gives 12:00, while the mean of the corresponding angles gives
00:00.  Values are "seconds since local midnight" in ``[0, 86400)``.
"""

from __future__ import annotations

import math
from typing import Iterable

from src.healthstats.base import SECONDS_IN_DAY, seconds_of_day

__all__ = [
    "NIGHT_SHIFT_THRESHOLD_SECONDS",
    "angle_to_seconds",
    "circular_mean_time",
    "seconds_of_day",
    "shift_night_seconds",
    "signed_time_difference",
    "to_angle",
]

NIGHT_SHIFT_THRESHOLD_SECONDS = 12 * 3600
_HALF_DAY = SECONDS_IN_DAY / 2


def to_angle(value: float) -> float:
    return value / SECONDS_IN_DAY * 2.0 * math.pi


def angle_to_seconds(sum_sin: float, sum_cos: float, count: int) -> float:
    """Reduce accumulated sin/cos sums to a time of day in ``[0, 86400)``."""
    mean_angle = math.atan2(sum_sin / count, sum_cos / count)
    return (mean_angle / (2.0 * math.pi) * SECONDS_IN_DAY + SECONDS_IN_DAY) % SECONDS_IN_DAY


def circular_mean_time(values: Iterable[float]) -> float | None:
    """Circular mean of times of day.

    Args:
        values: Seconds since local midnight.

    Returns:
        Mean time of day in seconds, or None for an empty input.
    """
    sum_sin = 0.0
    sum_cos = 0.0
    count = 0
    for value in values:
        angle = to_angle(value)
        sum_sin += math.sin(angle)
        sum_cos += math.cos(angle)
        count += 1
    if count == 0:
        return None
    return angle_to_seconds(sum_sin, sum_cos, count)


def shift_night_seconds(
    value: float, threshold_seconds: float = NIGHT_SHIFT_THRESHOLD_SECONDS
) -> float:
    """Move early-morning times past 24:00 (02:00 → 26:00) for a continuous night axis."""
    return value + SECONDS_IN_DAY if value < threshold_seconds else value


def signed_time_difference(a: float, b: float) -> float:
    """``a - b`` for two times of day, wrapped to the shorter way round the clock.

    The result lies in ``[-43200, 43200]``: 00:10 minus 23:50 is +20 minutes,
    not -23h40.
    """
    diff = a - b
    if diff > _HALF_DAY:
        diff -= SECONDS_IN_DAY
    if diff < -_HALF_DAY:
        diff += SECONDS_IN_DAY
    return diff
