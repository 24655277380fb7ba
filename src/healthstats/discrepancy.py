"""Double-device discrepancy analysis.

When a primary device (bed sensor) and a secondary device (wrist tracker)
record the same night, the per-component difference between the two is a
measure of how much the devices disagree.  For every co-recorded night we
compute signed primary-minus-secondary deltas, then summarise them across
nights as:

    mean_deltas      signed bias (primary reads higher when positive)
    abs_avg_deltas   typical disagreement irrespective of direction
    std_deltas       population spread of the deltas (needs two nights)

Time-of-day deltas are wrapped to the shorter way round the clock so that a
23:50 vs 00:10 bedtime reads as -20 minutes, not +23h40.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from datetime import date, datetime
from typing import Iterable, Sequence

from src.healthstats.base import DeviceCategory, Night, RawSleepSession, seconds_of_day
from src.healthstats.circular import signed_time_difference
from src.healthstats.stats import average_metric, population_std

logger = logging.getLogger("healthstats.discrepancy")

DEFAULT_MIN_OVERLAP_RATIO = 0.5


# ---------------------------------------------------------------------------
# Overlap helpers
# ---------------------------------------------------------------------------


def _overlap_seconds(
    start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime
) -> float:
    """Return the number of seconds two time intervals overlap (0 if disjoint)."""
    overlap_start = max(start_a, start_b)
    overlap_end = min(end_a, end_b)
    return max(0.0, (overlap_end - overlap_start).total_seconds())


def overlap_ratio(a: RawSleepSession, b: RawSleepSession) -> float:
    """Overlap of two sessions as a fraction of the shorter one.

    Returns 0.0 when either session lacks a valid interval.
    """
    if not (a.has_valid_interval and b.has_valid_interval):
        return 0.0
    shorter = min(a.interval_seconds, b.interval_seconds)
    if shorter <= 0:
        return 0.0
    overlap = _overlap_seconds(a.start, a.end, b.start, b.end)  # type: ignore[arg-type]
    return overlap / shorter


def find_co_recorded_pair(
    sessions: Sequence[RawSleepSession],
    min_overlap_ratio: float = DEFAULT_MIN_OVERLAP_RATIO,
) -> tuple[RawSleepSession, RawSleepSession] | None:
    """Detect the night recorded twice by two different devices.

    Only the first non-nap session of each device category is considered.
    The pair counts when the overlap is strictly greater than
    ``min_overlap_ratio`` of the shorter session: exactly 50% is not a pair.

    Returns:
        ``(primary, secondary)`` or None.
    """
    non_naps = [s for s in sessions if not s.is_nap]
    if len(non_naps) < 2:
        return None

    primary = next((s for s in non_naps if s.device == DeviceCategory.PRIMARY), None)
    secondary = next((s for s in non_naps if s.device == DeviceCategory.SECONDARY), None)
    if primary is None or secondary is None:
        return None

    if overlap_ratio(primary, secondary) > min_overlap_ratio:
        return primary, secondary
    return None


# ---------------------------------------------------------------------------
# Per-night deltas
# ---------------------------------------------------------------------------


@dataclass
class DeltaComponents:
    """One value per compared component (seconds, except heart rate in bpm)."""

    duration: float
    deep_sleep: float
    light_sleep: float
    rem_sleep: float
    awake: float
    asleep_time: float
    wake_time: float
    hr_average: float

    @classmethod
    def component_names(cls) -> list[str]:
        return [f.name for f in fields(cls)]


@dataclass
class DoubleTrackerNightDelta:
    """Primary-minus-secondary deltas for a single co-recorded night."""

    date: date
    deltas: DeltaComponents


def compute_night_delta(
    primary: RawSleepSession, secondary: RawSleepSession
) -> DeltaComponents:
    """Signed primary-minus-secondary deltas; missing stages and HR count as 0."""

    def _diff(attr: str) -> float:
        return (getattr(primary, attr) or 0.0) - (getattr(secondary, attr) or 0.0)

    return DeltaComponents(
        duration=primary.duration - secondary.duration,
        deep_sleep=_diff("deep_sleep"),
        light_sleep=_diff("light_sleep"),
        rem_sleep=_diff("rem_sleep"),
        awake=_diff("awake"),
        asleep_time=signed_time_difference(
            seconds_of_day(primary.start), seconds_of_day(secondary.start)  # type: ignore[arg-type]
        ),
        wake_time=signed_time_difference(
            seconds_of_day(primary.end), seconds_of_day(secondary.end)  # type: ignore[arg-type]
        ),
        hr_average=_diff("hr_average"),
    )


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


@dataclass
class DoubleTrackerStats:
    """Aggregated device disagreement over all co-recorded nights.

    Attributes:
        night_count:    Number of co-recorded nights.
        mean_deltas:    Mean signed delta per component (None if no nights).
        abs_avg_deltas: Mean absolute delta per component (None if no nights).
        std_deltas:     Population std per component (None below two nights).
        nights:         The per-night deltas the aggregates were built from.
    """

    night_count: int = 0
    mean_deltas: DeltaComponents | None = None
    abs_avg_deltas: DeltaComponents | None = None
    std_deltas: DeltaComponents | None = None
    nights: list[DoubleTrackerNightDelta] | None = None

    def to_dict(self) -> dict:
        """Serialise for the export layer (per-night detail omitted)."""
        return {
            "night_count": self.night_count,
            "mean_deltas": asdict(self.mean_deltas) if self.mean_deltas else None,
            "abs_avg_deltas": asdict(self.abs_avg_deltas) if self.abs_avg_deltas else None,
            "std_deltas": asdict(self.std_deltas) if self.std_deltas else None,
        }


def _reduce(deltas: list[DeltaComponents], reducer) -> DeltaComponents:
    return DeltaComponents(
        **{
            name: reducer([getattr(d, name) for d in deltas])
            for name in DeltaComponents.component_names()
        }
    )


def summarize_discrepancies(
    nights: Sequence[DoubleTrackerNightDelta],
) -> DoubleTrackerStats:
    """Aggregate per-night deltas into mean, mean-absolute and std components."""
    deltas = [n.deltas for n in nights]
    if not deltas:
        return DoubleTrackerStats(night_count=0, nights=[])

    return DoubleTrackerStats(
        night_count=len(deltas),
        mean_deltas=_reduce(deltas, average_metric),
        abs_avg_deltas=_reduce(deltas, lambda vs: average_metric(abs(v) for v in vs)),
        std_deltas=_reduce(deltas, population_std) if len(deltas) >= 2 else None,
        nights=list(nights),
    )


def analyze_double_tracker(
    nights: Iterable[Night],
    min_overlap_ratio: float = DEFAULT_MIN_OVERLAP_RATIO,
) -> DoubleTrackerStats:
    """Find every co-recorded night and summarise the device disagreement.

    Args:
        nights:            Grouped nights (all sessions, before precedence).
        min_overlap_ratio: Strict lower bound on overlap / shorter session.
    """
    per_night: list[DoubleTrackerNightDelta] = []
    for night in nights:
        pair = find_co_recorded_pair(night.sessions, min_overlap_ratio)
        if pair is None:
            continue
        primary, secondary = pair
        per_night.append(
            DoubleTrackerNightDelta(
                date=night.date, deltas=compute_night_delta(primary, secondary)
            )
        )

    stats = summarize_discrepancies(per_night)
    logger.debug("Double-tracker analysis: %d co-recorded nights", stats.night_count)
    return stats
