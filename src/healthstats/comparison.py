"""Period comparison engine — compare steps, sleep and weight across two ranges.

Each period is reduced to a :class:`PeriodStats` (steps totals, nightly sleep
averages through the night grouper, circular bed / wake times, weight
averages and the within-period weight change).  The two periods are then
diffed metric by metric and the headline metrics get a trend label.

Trend labels:

    sleep   percent change of average sleep,  higher is better
    steps   percent change of average steps,  higher is better
    weight  period B's own weight change,     lower is better

The weight trend looks at the change *within* period B (treated as 0 when B
has fewer than two readings), not at the A→B difference.  Identical periods
with a weight gain inside each therefore read as "worse".
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Sequence

from dateutil.relativedelta import relativedelta

from src.healthstats.base import RawSleepSession, StepRecord, WeightRecord
from src.healthstats.circular import circular_mean_time
from src.healthstats.precedence import DevicePrecedence
from src.healthstats.sleep_grouper import NightGrouper
from src.healthstats.stats import average_metric, delta, percent_change

logger = logging.getLogger("healthstats.comparison")

DEFAULT_TREND_THRESHOLD = 0.01


class Trend(str, Enum):
    BETTER = "better"
    WORSE = "worse"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class ComparisonPeriod:
    """A labelled, inclusive calendar-date range."""

    label: str
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


@dataclass(frozen=True)
class ComparisonFilters:
    """Filters shared by both periods of a comparison.

    Attributes:
        exclude_naps:     Drop nap sessions.
        exclude_weekends: Drop sleep sessions starting on ``weekend_days``.
        weekend_days:     Weekdays treated as weekend, numbered like
                          ``date.weekday()`` (Monday=0 … Sunday=6); convert
                          Sunday-based sets with
                          :func:`~src.healthstats.base.weekdays_from_sunday_based`.
        precedence:       Device precedence used to build nightly summaries.
    """

    exclude_naps: bool = False
    exclude_weekends: bool = False
    weekend_days: frozenset[int] = frozenset({5, 6})
    precedence: DevicePrecedence = DevicePrecedence.AVERAGE


@dataclass
class PeriodStats:
    """Aggregates for one comparison period (None where there is no data)."""

    total_steps: int = 0
    avg_steps: float | None = None
    steps_days: int = 0
    total_sleep_seconds: float = 0.0
    avg_sleep_seconds: float | None = None
    avg_deep_sleep_seconds: float | None = None
    avg_light_sleep_seconds: float | None = None
    avg_rem_sleep_seconds: float | None = None
    avg_awake_seconds: float | None = None
    avg_sleep_score: float | None = None
    avg_hr_average: float | None = None
    sleep_nights: int = 0
    avg_bedtime_seconds: float | None = None
    avg_wake_time_seconds: float | None = None
    avg_weight: float | None = None
    weight_start: float | None = None
    weight_end: float | None = None
    weight_delta: float | None = None
    weight_entries: int = 0
    days_in_period: int = 0


@dataclass
class ComparisonDelta:
    """B-minus-A differences and percent changes between two periods.

    Differences are 0.0 when either side is missing; percent changes are None
    when either side is missing or A is zero.
    """

    total_steps_delta: float = 0.0
    total_steps_percent: float | None = None
    avg_steps_delta: float = 0.0
    avg_steps_percent: float | None = None

    avg_sleep_delta_seconds: float = 0.0
    avg_sleep_percent: float | None = None
    avg_deep_sleep_delta_seconds: float = 0.0
    avg_deep_sleep_percent: float | None = None
    avg_light_sleep_delta_seconds: float = 0.0
    avg_light_sleep_percent: float | None = None
    avg_rem_sleep_delta_seconds: float = 0.0
    avg_rem_sleep_percent: float | None = None
    avg_awake_delta_seconds: float = 0.0
    avg_awake_percent: float | None = None
    avg_sleep_score_delta: float = 0.0
    avg_sleep_score_percent: float | None = None
    avg_hr_delta: float = 0.0
    avg_hr_percent: float | None = None

    avg_weight_delta: float = 0.0
    avg_weight_percent: float | None = None
    weight_delta_diff: float = 0.0

    sleep_trend: Trend = Trend.NEUTRAL
    steps_trend: Trend = Trend.NEUTRAL
    weight_trend: Trend = Trend.NEUTRAL


@dataclass
class ComparisonResult:
    period_a: PeriodStats
    period_b: PeriodStats
    delta: ComparisonDelta
    period_a_label: str = "A"
    period_b_label: str = "B"

    def to_dict(self) -> dict:
        """Serialise for the export layer; enums become their string values."""
        delta_dict = asdict(self.delta)
        for key in ("sleep_trend", "steps_trend", "weight_trend"):
            delta_dict[key] = getattr(self.delta, key).value
        return {
            "period_a": {"label": self.period_a_label, **asdict(self.period_a)},
            "period_b": {"label": self.period_b_label, **asdict(self.period_b)},
            "delta": delta_dict,
        }


# ---------------------------------------------------------------------------
# Period statistics
# ---------------------------------------------------------------------------


def _sleep_day(session: RawSleepSession) -> date:
    """Calendar day a session is filtered on: its start, else its wake date."""
    return session.start.date() if session.start is not None else session.date


def calculate_period_stats(
    steps: Sequence[StepRecord],
    sleep: Sequence[RawSleepSession],
    weight: Sequence[WeightRecord],
    period: ComparisonPeriod,
    filters: ComparisonFilters | None = None,
) -> PeriodStats:
    """Aggregate steps, sleep and weight inside one period.

    Sleep is filtered on the day the session started, reduced to nightly
    summaries with the filters' precedence, and averaged per night.
    """
    filters = filters or ComparisonFilters()

    period_steps = [s for s in steps if period.contains(s.date)]
    period_sleep = [s for s in sleep if period.contains(_sleep_day(s))]
    period_weight = sorted(
        (w for w in weight if period.contains(w.date)), key=lambda w: w.date
    )

    if filters.exclude_naps:
        period_sleep = [s for s in period_sleep if not s.is_nap]
    if filters.exclude_weekends:
        period_sleep = [
            s for s in period_sleep if _sleep_day(s).weekday() not in filters.weekend_days
        ]

    summaries = NightGrouper(filters.precedence).summarize(period_sleep)

    weights = [w.weight for w in period_weight]
    weight_start = weights[0] if weights else None
    weight_end = weights[-1] if weights else None
    weight_delta = weight_end - weight_start if len(weights) >= 2 else None  # type: ignore[operator]

    stats = PeriodStats(
        total_steps=sum(s.steps for s in period_steps),
        avg_steps=average_metric(s.steps for s in period_steps),
        steps_days=len(period_steps),
        total_sleep_seconds=sum(s.duration for s in summaries),
        avg_sleep_seconds=average_metric(s.duration for s in summaries),
        avg_deep_sleep_seconds=average_metric(s.deep_sleep for s in summaries),
        avg_light_sleep_seconds=average_metric(s.light_sleep for s in summaries),
        avg_rem_sleep_seconds=average_metric(s.rem_sleep for s in summaries),
        avg_awake_seconds=average_metric(s.awake for s in summaries),
        avg_sleep_score=average_metric(s.sleep_score for s in summaries),
        avg_hr_average=average_metric(s.hr_average for s in summaries),
        sleep_nights=len(summaries),
        avg_bedtime_seconds=circular_mean_time(s.asleep_seconds_of_day for s in summaries),
        avg_wake_time_seconds=circular_mean_time(s.wake_seconds_of_day for s in summaries),
        avg_weight=average_metric(weights),
        weight_start=weight_start,
        weight_end=weight_end,
        weight_delta=weight_delta,
        weight_entries=len(period_weight),
        days_in_period=period.days,
    )
    logger.debug(
        "Period %r: %d step days, %d sleep nights, %d weight readings",
        period.label,
        stats.steps_days,
        stats.sleep_nights,
        stats.weight_entries,
    )
    return stats


# ---------------------------------------------------------------------------
# Deltas and trends
# ---------------------------------------------------------------------------


def determine_trend(
    value: float | None,
    higher_is_better: bool,
    threshold: float = DEFAULT_TREND_THRESHOLD,
) -> Trend:
    """Label a change as better / worse / neutral.

    Neutral when ``value`` is None or its magnitude is below ``threshold``.
    """
    if value is None or abs(value) < threshold:
        return Trend.NEUTRAL
    return Trend.BETTER if (value > 0) == higher_is_better else Trend.WORSE


def calculate_comparison_delta(
    a: PeriodStats,
    b: PeriodStats,
    trend_threshold: float = DEFAULT_TREND_THRESHOLD,
) -> ComparisonDelta:
    avg_sleep_percent = percent_change(a.avg_sleep_seconds, b.avg_sleep_seconds)
    avg_steps_percent = percent_change(a.avg_steps, b.avg_steps)

    return ComparisonDelta(
        total_steps_delta=delta(a.total_steps, b.total_steps),
        total_steps_percent=percent_change(a.total_steps, b.total_steps),
        avg_steps_delta=delta(a.avg_steps, b.avg_steps),
        avg_steps_percent=avg_steps_percent,
        avg_sleep_delta_seconds=delta(a.avg_sleep_seconds, b.avg_sleep_seconds),
        avg_sleep_percent=avg_sleep_percent,
        avg_deep_sleep_delta_seconds=delta(a.avg_deep_sleep_seconds, b.avg_deep_sleep_seconds),
        avg_deep_sleep_percent=percent_change(a.avg_deep_sleep_seconds, b.avg_deep_sleep_seconds),
        avg_light_sleep_delta_seconds=delta(a.avg_light_sleep_seconds, b.avg_light_sleep_seconds),
        avg_light_sleep_percent=percent_change(
            a.avg_light_sleep_seconds, b.avg_light_sleep_seconds
        ),
        avg_rem_sleep_delta_seconds=delta(a.avg_rem_sleep_seconds, b.avg_rem_sleep_seconds),
        avg_rem_sleep_percent=percent_change(a.avg_rem_sleep_seconds, b.avg_rem_sleep_seconds),
        avg_awake_delta_seconds=delta(a.avg_awake_seconds, b.avg_awake_seconds),
        avg_awake_percent=percent_change(a.avg_awake_seconds, b.avg_awake_seconds),
        avg_sleep_score_delta=delta(a.avg_sleep_score, b.avg_sleep_score),
        avg_sleep_score_percent=percent_change(a.avg_sleep_score, b.avg_sleep_score),
        avg_hr_delta=delta(a.avg_hr_average, b.avg_hr_average),
        avg_hr_percent=percent_change(a.avg_hr_average, b.avg_hr_average),
        avg_weight_delta=delta(a.avg_weight, b.avg_weight),
        avg_weight_percent=percent_change(a.avg_weight, b.avg_weight),
        weight_delta_diff=delta(a.weight_delta, b.weight_delta),
        sleep_trend=determine_trend(avg_sleep_percent, True, trend_threshold),
        steps_trend=determine_trend(avg_steps_percent, True, trend_threshold),
        # Period B's own weight change, not the A→B difference.
        weight_trend=determine_trend(
            b.weight_delta if b.weight_delta is not None else 0.0, False, trend_threshold
        ),
    )


def calculate_comparison(
    steps: Sequence[StepRecord],
    sleep: Sequence[RawSleepSession],
    weight: Sequence[WeightRecord],
    period_a: ComparisonPeriod,
    period_b: ComparisonPeriod,
    filters: ComparisonFilters | None = None,
    trend_threshold: float = DEFAULT_TREND_THRESHOLD,
) -> ComparisonResult:
    """Compare two periods of steps, sleep and weight data."""
    stats_a = calculate_period_stats(steps, sleep, weight, period_a, filters)
    stats_b = calculate_period_stats(steps, sleep, weight, period_b, filters)
    result = ComparisonResult(
        period_a=stats_a,
        period_b=stats_b,
        delta=calculate_comparison_delta(stats_a, stats_b, trend_threshold),
        period_a_label=period_a.label,
        period_b_label=period_b.label,
    )
    logger.info(
        "Comparison %r vs %r: sleep=%s steps=%s weight=%s",
        period_a.label,
        period_b.label,
        result.delta.sleep_trend.value,
        result.delta.steps_trend.value,
        result.delta.weight_trend.value,
    )
    return result


# ---------------------------------------------------------------------------
# Chart rows
# ---------------------------------------------------------------------------


@dataclass
class ComparisonChartMetric:
    """One row of the side-by-side comparison chart."""

    name: str
    unit: str
    period_a_value: float | None
    period_b_value: float | None
    delta: float
    percent_change: float | None
    higher_is_better: bool


def _hours(seconds: float | None) -> float | None:
    return seconds / 3600 if seconds is not None else None


def comparison_chart_metrics(result: ComparisonResult) -> list[ComparisonChartMetric]:
    """Headline metrics of a comparison, with sleep converted to hours."""
    a, b, d = result.period_a, result.period_b, result.delta
    return [
        ComparisonChartMetric(
            "Average Steps", "steps/day", a.avg_steps, b.avg_steps,
            d.avg_steps_delta, d.avg_steps_percent, True,
        ),
        ComparisonChartMetric(
            "Average Sleep", "hours", _hours(a.avg_sleep_seconds), _hours(b.avg_sleep_seconds),
            d.avg_sleep_delta_seconds / 3600, d.avg_sleep_percent, True,
        ),
        ComparisonChartMetric(
            "Deep Sleep", "hours",
            _hours(a.avg_deep_sleep_seconds), _hours(b.avg_deep_sleep_seconds),
            d.avg_deep_sleep_delta_seconds / 3600, d.avg_deep_sleep_percent, True,
        ),
        ComparisonChartMetric(
            "REM Sleep", "hours",
            _hours(a.avg_rem_sleep_seconds), _hours(b.avg_rem_sleep_seconds),
            d.avg_rem_sleep_delta_seconds / 3600, d.avg_rem_sleep_percent, True,
        ),
        ComparisonChartMetric(
            "Sleep Score", "points", a.avg_sleep_score, b.avg_sleep_score,
            d.avg_sleep_score_delta, d.avg_sleep_score_percent, True,
        ),
        ComparisonChartMetric(
            "Average Weight", "kg", a.avg_weight, b.avg_weight,
            d.avg_weight_delta, d.avg_weight_percent, False,
        ),
    ]


# ---------------------------------------------------------------------------
# Preset periods
# ---------------------------------------------------------------------------


class ComparisonPreset(str, Enum):
    JAN_VS_FEB = "jan-vs-feb"
    FEB_VS_MAR = "feb-vs-mar"
    MAR_VS_APR = "mar-vs-apr"
    APR_VS_MAY = "apr-vs-may"
    MAY_VS_JUN = "may-vs-jun"
    JUN_VS_JUL = "jun-vs-jul"
    JUL_VS_AUG = "jul-vs-aug"
    AUG_VS_SEP = "aug-vs-sep"
    SEP_VS_OCT = "sep-vs-oct"
    OCT_VS_NOV = "oct-vs-nov"
    NOV_VS_DEC = "nov-vs-dec"
    LAST_MONTH_VS_THIS_MONTH = "last-month-vs-this-month"
    LAST_3_MONTHS_VS_PREVIOUS_3 = "last-3-months-vs-previous-3"
    CUSTOM = "custom"


# Month-pair presets in calendar order: index i compares month i+1 with i+2.
_MONTH_PAIRS = [
    ComparisonPreset.JAN_VS_FEB,
    ComparisonPreset.FEB_VS_MAR,
    ComparisonPreset.MAR_VS_APR,
    ComparisonPreset.APR_VS_MAY,
    ComparisonPreset.MAY_VS_JUN,
    ComparisonPreset.JUN_VS_JUL,
    ComparisonPreset.JUL_VS_AUG,
    ComparisonPreset.AUG_VS_SEP,
    ComparisonPreset.SEP_VS_OCT,
    ComparisonPreset.OCT_VS_NOV,
    ComparisonPreset.NOV_VS_DEC,
]


def _month_period(first_day: date, label: str | None = None) -> ComparisonPeriod:
    last_day = first_day + relativedelta(months=1, days=-1)
    return ComparisonPeriod(
        label=label or calendar.month_name[first_day.month],
        start=first_day,
        end=last_day,
    )


def preset_periods(
    preset: ComparisonPreset | str,
    reference_date: date | None = None,
) -> tuple[ComparisonPeriod, ComparisonPeriod]:
    """Resolve a preset into ``(period_a, period_b)`` around ``reference_date``.

    Month pairs use the reference year.  ``custom`` falls back to last month
    vs this month.
    """
    preset = ComparisonPreset(preset)
    reference = reference_date or date.today()
    this_month = reference.replace(day=1)

    if preset in _MONTH_PAIRS:
        month = _MONTH_PAIRS.index(preset) + 1
        first = date(reference.year, month, 1)
        return _month_period(first), _month_period(first + relativedelta(months=1))

    if preset is ComparisonPreset.LAST_3_MONTHS_VS_PREVIOUS_3:
        recent_start = this_month - relativedelta(months=2)
        previous_start = this_month - relativedelta(months=5)
        recent_end = this_month + relativedelta(months=1, days=-1)
        previous_end = recent_start - relativedelta(days=1)
        return (
            ComparisonPeriod(
                label=_span_label(previous_start, previous_end),
                start=previous_start,
                end=previous_end,
            ),
            ComparisonPeriod(
                label=_span_label(recent_start, recent_end),
                start=recent_start,
                end=recent_end,
            ),
        )

    # LAST_MONTH_VS_THIS_MONTH and CUSTOM
    return (
        _month_period(this_month - relativedelta(months=1)),
        _month_period(this_month),
    )


def _span_label(start: date, end: date) -> str:
    return f"{calendar.month_name[start.month]} - {calendar.month_name[end.month]}"
