"""Range statistics — averages bucketed by events, seasons and day types.

A bucket gathers the steps and sleep that fall inside it, runs the sleep
through :func:`calculate_sleep_stats` and reports per-night averages plus
circular bed / wake times.  Weight is summarised as a change over the bucket,
whose definition depends on the bucket kind:

    event    reading closest to the event end minus reading closest to its start
    season   mean of the per-year first-to-last change inside the season
    day type not defined (None)

Also home to :func:`filter_by_range`, the relative date-range filter used to
trim every series to "last 12 / 3 / 1 months" before bucketing.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Callable, Iterable, Sequence, TypeVar

from dateutil.relativedelta import relativedelta

from src.healthstats.base import RawSleepSession, StepRecord, WeightRecord
from src.healthstats.circular import circular_mean_time
from src.healthstats.precedence import DevicePrecedence
from src.healthstats.sleep_grouper import calculate_sleep_stats
from src.healthstats.stats import MinMax, average_metric, min_max

logger = logging.getLogger("healthstats.range_stats")

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Date-range filter
# ---------------------------------------------------------------------------


class DateRangeOption(str, Enum):
    LAST_12_MONTHS = "12m"
    LAST_3_MONTHS = "3m"
    LAST_MONTH = "1m"
    ALL = "all"
    CUSTOM = "custom"


_RANGE_MONTHS = {
    DateRangeOption.LAST_12_MONTHS: 12,
    DateRangeOption.LAST_3_MONTHS: 3,
    DateRangeOption.LAST_MONTH: 1,
}


def _as_day(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def filter_by_range(
    items: Sequence[T],
    get_date: Callable[[T], date | datetime],
    option: DateRangeOption | str,
    custom_range: tuple[date, date] | None = None,
    latest: date | None = None,
) -> list[T]:
    """Keep the items inside a relative or custom date range.

    Relative ranges end at the latest item and reach back whole calendar
    months (``12m`` from 2024-03-15 starts at 2023-03-15).  Pass ``latest``
    to end the window at a bound shared with other series instead.
    ``custom`` keeps items inside the inclusive ``custom_range``; without one
    it keeps everything, as does ``all``.
    """
    option = DateRangeOption(option)
    if option is DateRangeOption.ALL or not items:
        return list(items)

    if option is DateRangeOption.CUSTOM:
        if custom_range is None:
            return list(items)
        start, end = custom_range
        return [item for item in items if start <= _as_day(get_date(item)) <= end]

    if latest is None:
        latest = max(_as_day(get_date(item)) for item in items)
    start = latest - relativedelta(months=_RANGE_MONTHS[option])
    return [item for item in items if start <= _as_day(get_date(item)) <= latest]


# ---------------------------------------------------------------------------
# Bucket model
# ---------------------------------------------------------------------------


class EventType(str, Enum):
    POINT = "point"
    RANGE = "range"


@dataclass(frozen=True)
class PatternEvent:
    """A user-annotated event: a single day or an inclusive range of days."""

    id: str
    title: str
    type: EventType
    start_date: date
    end_date: date | None = None

    @property
    def last_day(self) -> date:
        return self.end_date or self.start_date


@dataclass
class RangeStat:
    """Per-bucket averages (sleep values are per night, in seconds).

    Attributes:
        key:                       Stable bucket identifier.
        title:                     Human-readable bucket name.
        avg_steps:                 Mean daily steps.
        avg_sleep_seconds:         Mean nightly sleep.
        avg_deep_sleep_seconds:    Mean nightly deep sleep.
        avg_light_sleep_seconds:   Mean nightly light sleep.
        avg_rem_sleep_seconds:     Mean nightly REM sleep.
        avg_awake_seconds:         Mean nightly awake time.
        avg_asleep_time:           Circular mean bedtime (seconds of day).
        avg_wake_time:             Circular mean wake time (seconds of day).
        avg_time_to_sleep_seconds: Mean sleep latency.
        avg_time_to_wake_seconds:  Mean wake latency.
        avg_hr_average:            Mean sleeping heart rate.
        weight_delta:              Bucket-specific weight change (kg).
        event:                     Source event for event buckets.
    """

    key: str
    title: str
    avg_steps: float | None = None
    avg_sleep_seconds: float | None = None
    avg_deep_sleep_seconds: float | None = None
    avg_light_sleep_seconds: float | None = None
    avg_rem_sleep_seconds: float | None = None
    avg_awake_seconds: float | None = None
    avg_asleep_time: float | None = None
    avg_wake_time: float | None = None
    avg_time_to_sleep_seconds: float | None = None
    avg_time_to_wake_seconds: float | None = None
    avg_hr_average: float | None = None
    weight_delta: float | None = None
    event: PatternEvent | None = None


def _sleep_day(session: RawSleepSession) -> date:
    return session.start.date() if session.start is not None else session.date


def _build_stat(
    key: str,
    title: str,
    steps: Iterable[StepRecord],
    sleep: Sequence[RawSleepSession],
    precedence: DevicePrecedence,
    weight_delta: float | None,
    event: PatternEvent | None = None,
) -> RangeStat:
    sleep_stats = calculate_sleep_stats(sleep, precedence)
    return RangeStat(
        key=key,
        title=title,
        avg_steps=average_metric(s.steps for s in steps),
        avg_sleep_seconds=sleep_stats.avg_sleep_seconds,
        avg_deep_sleep_seconds=sleep_stats.avg_deep_sleep_seconds,
        avg_light_sleep_seconds=sleep_stats.avg_light_sleep_seconds,
        avg_rem_sleep_seconds=sleep_stats.avg_rem_sleep_seconds,
        avg_awake_seconds=sleep_stats.avg_awake_seconds,
        avg_asleep_time=circular_mean_time(sleep_stats.asleep_times),
        avg_wake_time=circular_mean_time(sleep_stats.wake_times),
        avg_time_to_sleep_seconds=sleep_stats.avg_time_to_sleep_seconds,
        avg_time_to_wake_seconds=sleep_stats.avg_time_to_wake_seconds,
        avg_hr_average=sleep_stats.avg_hr_average,
        weight_delta=weight_delta,
        event=event,
    )


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


def _closest_reading(readings: Sequence[WeightRecord], target: datetime) -> WeightRecord:
    """Reading nearest to ``target``; the earliest one wins ties."""
    return min(
        readings,
        key=lambda r: abs((datetime.combine(r.date, time.min) - target).total_seconds()),
    )


def _event_weight_delta(
    weight: Sequence[WeightRecord], event: PatternEvent
) -> float | None:
    if not weight:
        return None
    readings = sorted(weight, key=lambda w: w.date)
    start = datetime.combine(event.start_date, time.min)
    end = datetime.combine(event.last_day, time.max)
    return _closest_reading(readings, end).weight - _closest_reading(readings, start).weight


def calculate_event_stats(
    events: Sequence[PatternEvent],
    steps: Sequence[StepRecord],
    sleep: Sequence[RawSleepSession],
    weight: Sequence[WeightRecord],
    precedence: DevicePrecedence = DevicePrecedence.AVERAGE,
    exclude_weekends: bool = False,
    weekend_days: Iterable[int] = (),
) -> list[RangeStat]:
    """One RangeStat per range event, ordered by event start.

    Point events are ignored.  Weekend sleep is dropped when
    ``exclude_weekends`` is set and ``weekend_days`` is non-empty.
    """
    weekend = frozenset(weekend_days)
    range_events = sorted(
        (e for e in events if e.type is EventType.RANGE), key=lambda e: e.start_date
    )

    results: list[RangeStat] = []
    for event in range_events:
        first, last = event.start_date, event.last_day
        event_steps = [s for s in steps if first <= s.date <= last]
        event_sleep = [s for s in sleep if first <= _sleep_day(s) <= last]
        if exclude_weekends and weekend:
            event_sleep = [s for s in event_sleep if _sleep_day(s).weekday() not in weekend]

        results.append(
            _build_stat(
                key=event.id,
                title=event.title,
                steps=event_steps,
                sleep=event_sleep,
                precedence=precedence,
                weight_delta=_event_weight_delta(weight, event),
                event=event,
            )
        )

    logger.debug("Event stats: %d range events of %d", len(results), len(events))
    return results


# ---------------------------------------------------------------------------
# Seasons
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Season:
    key: str
    months: frozenset[int]


SEASONS: tuple[Season, ...] = (
    Season("spring", frozenset({3, 4, 5})),
    Season("summer", frozenset({6, 7, 8})),
    Season("autumn", frozenset({9, 10, 11})),
    Season("winter", frozenset({12, 1, 2})),
)


def _season_weight_delta(readings: Sequence[WeightRecord]) -> float | None:
    """Mean of the per-calendar-year first-to-last change (years with 2+ readings)."""
    by_year: dict[int, list[WeightRecord]] = defaultdict(list)
    for reading in readings:
        by_year[reading.date.year].append(reading)

    deltas = []
    for year_readings in by_year.values():
        if len(year_readings) < 2:
            continue
        ordered = sorted(year_readings, key=lambda w: w.date)
        deltas.append(ordered[-1].weight - ordered[0].weight)
    return average_metric(deltas)


def calculate_season_stats(
    steps: Sequence[StepRecord],
    sleep: Sequence[RawSleepSession],
    weight: Sequence[WeightRecord],
    precedence: DevicePrecedence = DevicePrecedence.AVERAGE,
) -> list[RangeStat]:
    """Spring, summer, autumn and winter buckets across every year present."""
    results = []
    for season in SEASONS:
        results.append(
            _build_stat(
                key=f"season-{season.key}",
                title=season.key,
                steps=[s for s in steps if s.date.month in season.months],
                sleep=[s for s in sleep if _sleep_day(s).month in season.months],
                precedence=precedence,
                weight_delta=_season_weight_delta(
                    [w for w in weight if w.date.month in season.months]
                ),
            )
        )
    return results


# ---------------------------------------------------------------------------
# Day types
# ---------------------------------------------------------------------------


def calculate_day_type_stats(
    steps: Sequence[StepRecord],
    sleep: Sequence[RawSleepSession],
    weekend_days: Iterable[int] = (5, 6),
    precedence: DevicePrecedence = DevicePrecedence.AVERAGE,
) -> list[RangeStat]:
    """Weekday and weekend buckets; weight change is not defined for these."""
    weekend = frozenset(weekend_days)

    def _is_weekend(day: date) -> bool:
        return day.weekday() in weekend

    return [
        _build_stat(
            key="daytype-weekday",
            title="Week days",
            steps=[s for s in steps if not _is_weekend(s.date)],
            sleep=[s for s in sleep if not _is_weekend(_sleep_day(s))],
            precedence=precedence,
            weight_delta=None,
        ),
        _build_stat(
            key="daytype-weekend",
            title="Weekend days",
            steps=[s for s in steps if _is_weekend(s.date)],
            sleep=[s for s in sleep if _is_weekend(_sleep_day(s))],
            precedence=precedence,
            weight_delta=None,
        ),
    ]


# ---------------------------------------------------------------------------
# Magnitude ranges
# ---------------------------------------------------------------------------


_MAGNITUDE_COLUMNS = {
    "steps": "avg_steps",
    "sleep": "avg_sleep_seconds",
    "asleep": "avg_asleep_time",
    "wake": "avg_wake_time",
    "deep": "avg_deep_sleep_seconds",
    "light": "avg_light_sleep_seconds",
    "rem": "avg_rem_sleep_seconds",
    "awake": "avg_awake_seconds",
    "sleep_latency": "avg_time_to_sleep_seconds",
    "wake_latency": "avg_time_to_wake_seconds",
    "hr": "avg_hr_average",
}


def build_magnitude_ranges(stats: Sequence[RangeStat]) -> dict[str, MinMax | None]:
    """Min / max of every column across buckets, for colour scaling.

    Weight uses absolute deltas under the ``weight_abs`` key.
    """
    ranges: dict[str, MinMax | None] = {
        name: min_max(getattr(stat, attr) for stat in stats)
        for name, attr in _MAGNITUDE_COLUMNS.items()
    }
    ranges["weight_abs"] = min_max(
        abs(stat.weight_delta) if stat.weight_delta is not None else None for stat in stats
    )
    return ranges
