"""Health metrics engine — explicit-config entry points over the aggregators.

The engine holds an :class:`EngineConfig` and turns each call's
:class:`MetricsFilters` into arguments for the underlying pure functions.
Nothing is cached between calls: every result is recomputed from the inputs.

Usage::

    engine = HealthMetricsEngine()
    filters = engine.default_filters().with_overrides(exclude_naps=True)
    stats = engine.sleep_stats(sessions, filters)
    debt = engine.sleep_debt(sessions, filters)
    overview = engine.overview(steps, sessions, weights, filters)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Sequence

from src.healthstats.base import (
    DailySleepSummary,
    RawSleepSession,
    RollingPoint,
    StepRecord,
    WeightRecord,
)
from src.healthstats.circular import circular_mean_time, shift_night_seconds
from src.healthstats.comparison import (
    ComparisonFilters,
    ComparisonPeriod,
    ComparisonResult,
    calculate_comparison,
)
from src.healthstats.config_loader import EngineConfig, MetricsFilters, get_engine_config
from src.healthstats.discrepancy import DoubleTrackerStats
from src.healthstats.range_stats import (
    DateRangeOption,
    PatternEvent,
    RangeStat,
    calculate_day_type_stats,
    calculate_event_stats,
    calculate_season_stats,
    filter_by_range,
)
from src.healthstats.rolling import rolling_average, rolling_time_average, series_from
from src.healthstats.sleep_debt import SleepDebtResult, calculate_sleep_debt
from src.healthstats.sleep_grouper import NightGrouper, SleepStats, calculate_sleep_stats
from src.healthstats.stats import average_metric

logger = logging.getLogger("healthstats.engine")


@dataclass
class OverviewStats:
    """Headline numbers for a date range.

    Attributes:
        steps_days:       Days with a step record.
        total_steps:      Sum of steps.
        avg_steps:        Mean daily steps.
        steps_values:     Raw daily step counts (for histograms).
        sleep_nights:     Nights surviving grouping and filters.
        avg_sleep_seconds: Mean nightly sleep.
        avg_bed_seconds:  Circular mean bedtime (seconds of day).
        avg_wake_seconds: Circular mean wake time (seconds of day).
        avg_sleep_score:  Mean nightly sleep score.
        weight_entries:   Weight readings in range.
        latest_weight:    Most recent reading.
        weight_delta:     Latest minus earliest reading (2+ readings).
        double_tracker:   Device disagreement over the range.
    """

    steps_days: int = 0
    total_steps: int = 0
    avg_steps: float | None = None
    steps_values: list[int] = field(default_factory=list)
    sleep_nights: int = 0
    avg_sleep_seconds: float | None = None
    avg_bed_seconds: float | None = None
    avg_wake_seconds: float | None = None
    avg_sleep_score: float | None = None
    weight_entries: int = 0
    latest_weight: float | None = None
    weight_delta: float | None = None
    double_tracker: DoubleTrackerStats = field(default_factory=DoubleTrackerStats)


def _sleep_day(session: RawSleepSession) -> date:
    return session.start.date() if session.start is not None else session.date


def _latest_day(
    steps: Sequence[StepRecord],
    sleep: Sequence[RawSleepSession],
    weight: Sequence[WeightRecord],
) -> date | None:
    """Latest record date across every series, or None when all are empty."""
    days = [s.date for s in steps]
    days.extend(_sleep_day(s) for s in sleep)
    days.extend(w.date for w in weight)
    return max(days, default=None)


class HealthMetricsEngine:
    """Orchestrates the aggregation pipeline with an explicit filter struct.

    Usage::

        engine = HealthMetricsEngine()
        nights = engine.daily_summaries(sessions)
        trend = engine.rolling_bedtime(sessions, night_shift=True)
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self._config = config or get_engine_config()

    @property
    def config(self) -> EngineConfig:
        return self._config

    def default_filters(self) -> MetricsFilters:
        return self._config.default_filters()

    # ── Filtering ────────────────────────────────────────────────────────────

    def _filters(self, filters: MetricsFilters | None) -> MetricsFilters:
        return filters or self.default_filters()

    @staticmethod
    def _without_naps(
        sessions: Sequence[RawSleepSession], filters: MetricsFilters
    ) -> list[RawSleepSession]:
        if not filters.exclude_naps:
            return list(sessions)
        return [s for s in sessions if not s.is_nap]

    def _for_averages(
        self, sessions: Sequence[RawSleepSession], filters: MetricsFilters
    ) -> list[RawSleepSession]:
        """Apply nap and weekend exclusion (weekend = the session's start day)."""
        kept = self._without_naps(sessions, filters)
        if filters.exclude_weekends:
            kept = [s for s in kept if _sleep_day(s).weekday() not in filters.weekend_days]
        return kept

    def _grouper(self, filters: MetricsFilters) -> NightGrouper:
        return NightGrouper(
            filters.precedence, self._config.sleep_grouping.co_record_min_overlap_ratio
        )

    # ── Sleep ────────────────────────────────────────────────────────────────

    def sleep_stats(
        self, sessions: Sequence[RawSleepSession], filters: MetricsFilters | None = None
    ) -> SleepStats:
        """Aggregate sleep metrics after nap and weekend exclusion."""
        filters = self._filters(filters)
        return calculate_sleep_stats(
            self._for_averages(sessions, filters),
            filters.precedence,
            self._config.sleep_grouping.co_record_min_overlap_ratio,
        )

    def daily_summaries(
        self, sessions: Sequence[RawSleepSession], filters: MetricsFilters | None = None
    ) -> list[DailySleepSummary]:
        """One summary per night; weekends are kept so charts have every date."""
        filters = self._filters(filters)
        return self._grouper(filters).summarize(self._without_naps(sessions, filters))

    def double_tracker_stats(
        self, sessions: Sequence[RawSleepSession], filters: MetricsFilters | None = None
    ) -> DoubleTrackerStats:
        return self.sleep_stats(sessions, filters).double_tracker

    # ── Rolling trends ───────────────────────────────────────────────────────

    def _rolling(
        self,
        sessions: Sequence[RawSleepSession],
        filters: MetricsFilters | None,
        attr: str,
        circular: bool,
    ) -> list[RollingPoint]:
        filters = self._filters(filters)
        series = series_from(self.daily_summaries(sessions, filters), attr)
        averager = rolling_time_average if circular else rolling_average
        return averager(series, filters.rolling_window_days, filters.rolling_exclusions)

    def rolling_sleep_duration(
        self, sessions: Sequence[RawSleepSession], filters: MetricsFilters | None = None
    ) -> list[RollingPoint]:
        """Centred rolling mean of nightly sleep seconds.

        Excluded weekend nights still get a value but never feed the sums.
        """
        return self._rolling(sessions, filters, "duration", circular=False)

    def rolling_bedtime(
        self,
        sessions: Sequence[RawSleepSession],
        filters: MetricsFilters | None = None,
        night_shift: bool = False,
    ) -> list[RollingPoint]:
        """Circular rolling mean of bedtimes (seconds of day).

        With ``night_shift`` early-morning values are moved past 24:00 so the
        series plots continuously on a single night axis.
        """
        points = self._rolling(sessions, filters, "asleep_seconds_of_day", circular=True)
        return self._shift(points) if night_shift else points

    def rolling_wake_time(
        self,
        sessions: Sequence[RawSleepSession],
        filters: MetricsFilters | None = None,
        night_shift: bool = False,
    ) -> list[RollingPoint]:
        points = self._rolling(sessions, filters, "wake_seconds_of_day", circular=True)
        return self._shift(points) if night_shift else points

    def _shift(self, points: list[RollingPoint]) -> list[RollingPoint]:
        threshold = self._config.rolling.night_shift_threshold_seconds
        return [
            RollingPoint(
                date=p.date,
                value=shift_night_seconds(p.value, threshold) if p.value is not None else None,
            )
            for p in points
        ]

    # ── Sleep debt ───────────────────────────────────────────────────────────

    def sleep_debt(
        self,
        sessions: Sequence[RawSleepSession],
        filters: MetricsFilters | None = None,
        include_naps: bool = False,
    ) -> SleepDebtResult:
        """Sleep debt over the nightly summaries, using the filters' goal.

        Naps are dropped before grouping unless ``include_naps`` is set, so a
        nap never pays down the night it is merged into.
        """
        filters = self._filters(filters)
        cfg = self._config.sleep_debt
        if not include_naps:
            sessions = [s for s in sessions if not s.is_nap]
        return calculate_sleep_debt(
            self.daily_summaries(sessions, filters),
            goal_seconds=filters.sleep_goal_seconds,
            max_debt_seconds=cfg.max_debt_seconds,
            require_consecutive_days=cfg.require_consecutive_days,
            fast_recovery_extra_seconds=cfg.fast_recovery_extra_seconds,
        )

    # ── Comparison ───────────────────────────────────────────────────────────

    def compare(
        self,
        steps: Sequence[StepRecord],
        sleep: Sequence[RawSleepSession],
        weight: Sequence[WeightRecord],
        period_a: ComparisonPeriod,
        period_b: ComparisonPeriod,
        filters: MetricsFilters | None = None,
    ) -> ComparisonResult:
        filters = self._filters(filters)
        return calculate_comparison(
            steps,
            sleep,
            weight,
            period_a,
            period_b,
            ComparisonFilters(
                exclude_naps=filters.exclude_naps,
                exclude_weekends=filters.exclude_weekends,
                weekend_days=filters.weekend_days,
                precedence=filters.precedence,
            ),
            trend_threshold=self._config.comparison.trend_threshold,
        )

    # ── Range statistics ─────────────────────────────────────────────────────

    def event_stats(
        self,
        events: Sequence[PatternEvent],
        steps: Sequence[StepRecord],
        sleep: Sequence[RawSleepSession],
        weight: Sequence[WeightRecord],
        filters: MetricsFilters | None = None,
    ) -> list[RangeStat]:
        filters = self._filters(filters)
        return calculate_event_stats(
            events,
            steps,
            self._without_naps(sleep, filters),
            weight,
            filters.precedence,
            exclude_weekends=filters.exclude_weekends,
            weekend_days=filters.weekend_days,
        )

    def season_stats(
        self,
        steps: Sequence[StepRecord],
        sleep: Sequence[RawSleepSession],
        weight: Sequence[WeightRecord],
        filters: MetricsFilters | None = None,
    ) -> list[RangeStat]:
        filters = self._filters(filters)
        return calculate_season_stats(
            steps, self._without_naps(sleep, filters), weight, filters.precedence
        )

    def day_type_stats(
        self,
        steps: Sequence[StepRecord],
        sleep: Sequence[RawSleepSession],
        filters: MetricsFilters | None = None,
    ) -> list[RangeStat]:
        filters = self._filters(filters)
        return calculate_day_type_stats(
            steps,
            self._without_naps(sleep, filters),
            filters.weekend_days,
            filters.precedence,
        )

    # ── Overview ─────────────────────────────────────────────────────────────

    def overview(
        self,
        steps: Sequence[StepRecord],
        sleep: Sequence[RawSleepSession],
        weight: Sequence[WeightRecord],
        filters: MetricsFilters | None = None,
        date_range: DateRangeOption | str = DateRangeOption.ALL,
        custom_range: tuple[date, date] | None = None,
    ) -> OverviewStats:
        """Headline stats for a relative or custom date range.

        Relative ranges end at the latest date across all three series, so
        a source that stopped recording early is trimmed to the same window
        as the others.
        """
        filters = self._filters(filters)
        latest = _latest_day(steps, sleep, weight)
        range_steps = filter_by_range(
            steps, lambda s: s.date, date_range, custom_range, latest=latest
        )
        range_sleep = filter_by_range(
            self._without_naps(sleep, filters),
            _sleep_day,
            date_range,
            custom_range,
            latest=latest,
        )
        range_weight = sorted(
            filter_by_range(weight, lambda w: w.date, date_range, custom_range, latest=latest),
            key=lambda w: w.date,
        )

        sleep_stats = self.sleep_stats(range_sleep, filters)
        latest_weight = range_weight[-1].weight if range_weight else None

        overview = OverviewStats(
            steps_days=len(range_steps),
            total_steps=sum(s.steps for s in range_steps),
            avg_steps=average_metric(s.steps for s in range_steps),
            steps_values=[s.steps for s in range_steps],
            sleep_nights=sleep_stats.count,
            avg_sleep_seconds=sleep_stats.avg_sleep_seconds,
            avg_bed_seconds=circular_mean_time(sleep_stats.asleep_times),
            avg_wake_seconds=circular_mean_time(sleep_stats.wake_times),
            avg_sleep_score=sleep_stats.avg_sleep_score,
            weight_entries=len(range_weight),
            latest_weight=latest_weight,
            weight_delta=(
                latest_weight - range_weight[0].weight  # type: ignore[operator]
                if len(range_weight) >= 2
                else None
            ),
            double_tracker=sleep_stats.double_tracker,
        )
        logger.info(
            "Overview (%s): %d step days, %d sleep nights, %d weight readings",
            DateRangeOption(date_range).value,
            overview.steps_days,
            overview.sleep_nights,
            overview.weight_entries,
        )
        return overview
