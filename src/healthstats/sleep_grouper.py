"""Night grouper — reduce multi-device sleep sessions to one summary per night.

Sessions are grouped by wake date.  Inside a night the active device
precedence picks the working subset, overlapping sessions are merged into
non-overlapping intervals, and sleep stages are apportioned from each
interval's template session so that overlapping recordings are never
double-counted.

Usage::

    grouper = NightGrouper(precedence=DevicePrecedence.PRIMARY_FIRST)
    summaries = grouper.summarize(sessions)
    stats = calculate_sleep_stats(sessions)
    stats.avg_sleep_seconds
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Sequence

from src.healthstats.base import DailySleepSummary, Night, RawSleepSession
from src.healthstats.discrepancy import (
    DEFAULT_MIN_OVERLAP_RATIO,
    DoubleTrackerStats,
    analyze_double_tracker,
)
from src.healthstats.precedence import DevicePrecedence, select_sessions
from src.healthstats.stats import average_metric

logger = logging.getLogger("healthstats.sleep_grouper")

_STAGES = ("deep_sleep", "light_sleep", "rem_sleep", "awake")


# ---------------------------------------------------------------------------
# Grouping and merging
# ---------------------------------------------------------------------------


def group_by_night(sessions: Iterable[RawSleepSession]) -> list[Night]:
    """Group sessions by wake date, nights in ascending date order."""
    by_date: dict[date, list[RawSleepSession]] = defaultdict(list)
    for session in sessions:
        by_date[session.date].append(session)
    return [Night(date=d, sessions=by_date[d]) for d in sorted(by_date)]


@dataclass
class MergedInterval:
    """A maximal run of overlapping sessions.

    Attributes:
        start:        Start of the first contributing session.
        end:          Latest end among the contributing sessions.
        contributors: Sessions merged into this interval, in start order.
    """

    start: datetime
    end: datetime
    contributors: list[RawSleepSession] = field(default_factory=list)

    @property
    def duration(self) -> float:
        return (self.end - self.start).total_seconds()

    @property
    def entry(self) -> RawSleepSession:
        """The session that opened the interval."""
        return self.contributors[0]


def merge_intervals(sessions: Sequence[RawSleepSession]) -> list[MergedInterval]:
    """Merge overlapping sessions into non-overlapping intervals.

    Sessions are sorted by start; a session starting strictly before the
    previous interval's end extends it, otherwise it opens a new interval.
    Touching intervals (``start == previous.end``) stay separate.  Sessions
    without a valid interval are ignored.
    """
    valid = sorted(
        (s for s in sessions if s.has_valid_interval),
        key=lambda s: s.start,  # type: ignore[arg-type,return-value]
    )

    merged: list[MergedInterval] = []
    for session in valid:
        if merged and session.start < merged[-1].end:  # type: ignore[operator]
            last = merged[-1]
            last.end = max(last.end, session.end)  # type: ignore[type-var]
            last.contributors.append(session)
        else:
            merged.append(
                MergedInterval(
                    start=session.start,  # type: ignore[arg-type]
                    end=session.end,  # type: ignore[arg-type]
                    contributors=[session],
                )
            )
    return merged


def _template(
    interval: MergedInterval, average: bool
) -> tuple[float, dict[str, float]]:
    """Return (template duration, stage seconds) used to apportion an interval."""
    if not average:
        entry = interval.entry
        return entry.duration, {
            stage: getattr(entry, stage) or 0.0 for stage in _STAGES
        }

    contributors = interval.contributors
    duration = average_metric(s.duration for s in contributors) or 0.0
    stages = {
        stage: average_metric(getattr(s, stage) for s in contributors) or 0.0
        for stage in _STAGES
    }
    return duration, stages


def summarize_night(
    night: Night, precedence: DevicePrecedence = DevicePrecedence.AVERAGE
) -> DailySleepSummary | None:
    """Reduce one night to a DailySleepSummary.

    ``start`` and ``end`` span the merged union of the working sessions, so in
    average mode ``end`` is the latest session end rather than the first
    session's, and ``end - start`` bounds the merged duration.

    Returns None when the working sessions produce no merged duration.
    """
    working = select_sessions(night.sessions, precedence)
    intervals = merge_intervals(working)
    if not intervals:
        return None

    average = precedence is DevicePrecedence.AVERAGE
    totals = dict.fromkeys(_STAGES, 0.0)
    night_duration = 0.0
    contributors: list[RawSleepSession] = []

    for interval in intervals:
        interval_duration = interval.duration
        if interval_duration <= 0:
            continue
        template_duration, stages = _template(interval, average)
        ratio = interval_duration / (
            template_duration if template_duration > 0 else interval_duration
        )
        night_duration += interval_duration
        for stage, seconds in stages.items():
            totals[stage] += seconds * ratio
        contributors.extend(interval.contributors)

    if night_duration <= 0:
        return None

    if average:
        to_sleep = average_metric(s.duration_to_sleep for s in contributors)
        to_wake = average_metric(s.duration_to_wake_up for s in contributors)
    else:
        to_sleep = contributors[0].duration_to_sleep
        to_wake = contributors[-1].duration_to_wake_up

    return DailySleepSummary(
        date=night.date,
        duration=night_duration,
        deep_sleep=totals["deep_sleep"],
        light_sleep=totals["light_sleep"],
        rem_sleep=totals["rem_sleep"],
        awake=totals["awake"],
        sleep_score=average_metric(s.sleep_score for s in contributors),
        hr_average=average_metric(s.hr_average for s in contributors),
        start=intervals[0].start,
        end=intervals[-1].end,
        duration_to_sleep=to_sleep,
        duration_to_wake_up=to_wake,
        device=precedence.device,
        session_count=len(contributors),
    )


class NightGrouper:
    """Group sessions into nights and reduce each night to a summary.

    Usage::

        grouper = NightGrouper(DevicePrecedence.SECONDARY_FIRST)
        for summary in grouper.summarize(sessions):
            print(summary.date, summary.duration)
    """

    def __init__(
        self,
        precedence: DevicePrecedence = DevicePrecedence.AVERAGE,
        min_overlap_ratio: float = DEFAULT_MIN_OVERLAP_RATIO,
    ) -> None:
        self.precedence = DevicePrecedence.parse(precedence)
        self.min_overlap_ratio = min_overlap_ratio

    def group(self, sessions: Iterable[RawSleepSession]) -> list[Night]:
        return group_by_night(sessions)

    def summarize(self, sessions: Iterable[RawSleepSession]) -> list[DailySleepSummary]:
        """Return one summary per night with positive merged duration."""
        return self.summarize_nights(self.group(sessions))

    def summarize_nights(self, nights: Sequence[Night]) -> list[DailySleepSummary]:
        summaries: list[DailySleepSummary] = []
        for night in nights:
            summary = summarize_night(night, self.precedence)
            if summary is None:
                logger.debug("Night %s dropped: no merged duration", night.date)
                continue
            summaries.append(summary)

        logger.debug(
            "NightGrouper(%s): %d nights → %d summaries",
            self.precedence.value,
            len(nights),
            len(summaries),
        )
        return summaries


# ---------------------------------------------------------------------------
# Aggregate statistics
# ---------------------------------------------------------------------------


@dataclass
class SleepStats:
    """Aggregate sleep metrics over a set of sessions.

    Averages are per night and None when no night survived merging.
    ``asleep_times`` / ``wake_times`` hold each night's start / end as
    seconds since local midnight, ready for circular averaging.
    """

    total_duration: float = 0.0
    count: int = 0
    avg_sleep_seconds: float | None = None
    avg_deep_sleep_seconds: float | None = None
    avg_light_sleep_seconds: float | None = None
    avg_rem_sleep_seconds: float | None = None
    avg_awake_seconds: float | None = None
    avg_time_to_sleep_seconds: float | None = None
    avg_time_to_wake_seconds: float | None = None
    avg_hr_average: float | None = None
    avg_sleep_score: float | None = None
    asleep_times: list[int] = field(default_factory=list)
    wake_times: list[int] = field(default_factory=list)
    daily_summaries: list[DailySleepSummary] = field(default_factory=list)
    double_tracker: DoubleTrackerStats = field(default_factory=DoubleTrackerStats)


def calculate_sleep_stats(
    sessions: Sequence[RawSleepSession],
    precedence: DevicePrecedence = DevicePrecedence.AVERAGE,
    min_overlap_ratio: float = DEFAULT_MIN_OVERLAP_RATIO,
) -> SleepStats:
    """Group, merge and aggregate sleep sessions.

    Args:
        sessions:          Raw sessions from any number of devices.
        precedence:        Device precedence policy.
        min_overlap_ratio: Co-recording threshold for the discrepancy analysis.

    Returns:
        SleepStats with per-night summaries and double-tracker statistics.
    """
    grouper = NightGrouper(precedence, min_overlap_ratio)
    nights = grouper.group(sessions)
    summaries = grouper.summarize_nights(nights)
    double_tracker = analyze_double_tracker(nights, min_overlap_ratio)

    if not summaries:
        return SleepStats(double_tracker=double_tracker)

    total = sum(s.duration for s in summaries)
    count = len(summaries)

    return SleepStats(
        total_duration=total,
        count=count,
        avg_sleep_seconds=total / count,
        avg_deep_sleep_seconds=sum(s.deep_sleep for s in summaries) / count,
        avg_light_sleep_seconds=sum(s.light_sleep for s in summaries) / count,
        avg_rem_sleep_seconds=sum(s.rem_sleep for s in summaries) / count,
        avg_awake_seconds=sum(s.awake for s in summaries) / count,
        avg_time_to_sleep_seconds=average_metric(s.duration_to_sleep for s in summaries),
        avg_time_to_wake_seconds=average_metric(s.duration_to_wake_up for s in summaries),
        avg_hr_average=average_metric(s.hr_average for s in summaries),
        avg_sleep_score=average_metric(s.sleep_score for s in summaries),
        asleep_times=[s.asleep_seconds_of_day for s in summaries],
        wake_times=[s.wake_seconds_of_day for s in summaries],
        daily_summaries=summaries,
        double_tracker=double_tracker,
    )
