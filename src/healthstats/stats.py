"""Small numeric helpers shared by every aggregation module.

All helpers skip missing and non-finite values and return None instead of
NaN / infinity when there is nothing to compute.
"""

from __future__ import annotations

import math
import statistics
from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class MinMax:
    min: float
    max: float


def _finite(values: Iterable[float | None]) -> list[float]:
    return [
        float(v)
        for v in values
        if isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)
    ]


def average_metric(values: Iterable[float | None]) -> float | None:
    """Arithmetic mean of the finite values, or None if there are none."""
    filtered = _finite(values)
    if not filtered:
        return None
    return statistics.mean(filtered)


def min_max(values: Iterable[float | None]) -> MinMax | None:
    """Smallest and largest finite value, or None if there are none."""
    filtered = _finite(values)
    if not filtered:
        return None
    return MinMax(min=min(filtered), max=max(filtered))


def population_std(values: Iterable[float | None]) -> float | None:
    """Population standard deviation; needs at least two finite values."""
    filtered = _finite(values)
    if len(filtered) < 2:
        return None
    return statistics.pstdev(filtered)


def percent_change(a: float | None, b: float | None) -> float | None:
    """Percentage change from ``a`` to ``b``; None for a zero or missing baseline."""
    if a is None or b is None or a == 0:
        return None
    return (b - a) / a * 100.0


def delta(a: float | None, b: float | None) -> float:
    """Signed difference ``b - a``; 0.0 when either side is missing."""
    if a is None or b is None:
        return 0.0
    return b - a
