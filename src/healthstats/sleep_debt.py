"""Sleep debt tracker — cumulative shortfall against a nightly goal.

For every day in order the day's debt is ``goal - actual sleep`` and the
running total is capped above at ``max_debt_seconds``.  Surplus (negative
debt) is never capped, so a run of long nights can bank sleep indefinitely.

The streak walks backward from the most recent day while the sign of the
daily debt stays the same.  By default only adjacency in the list matters:
two records a week apart still continue a streak.  Pass
``require_consecutive_days=True`` to break the streak on calendar gaps.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Sequence

from src.healthstats.base import DailySleepSummary, RawSleepSession

logger = logging.getLogger("healthstats.sleep_debt")

DEFAULT_SLEEP_GOAL_SECONDS = 8 * 60 * 60
MAX_SLEEP_DEBT_SECONDS = 16 * 60 * 60
FAST_RECOVERY_EXTRA_SECONDS = 60 * 60


class StreakType(str, Enum):
    DEFICIT = "deficit"
    SURPLUS = "surplus"
    NEUTRAL = "neutral"


@dataclass
class Streak:
    type: StreakType = StreakType.NEUTRAL
    days: int = 0


@dataclass
class SleepDebtDay:
    """Debt bookkeeping for one calendar day.

    Attributes:
        date:                    Day the sleep is attributed to.
        actual_sleep_seconds:    Summed sleep across the day's records.
        goal_seconds:            Goal in force for the day.
        debt_seconds:            ``goal - actual`` (positive = deficit).
        cumulative_debt_seconds: Running total after this day, capped above.
        is_nap:                  True if any of the day's records is a nap.
    """

    date: date
    actual_sleep_seconds: float
    goal_seconds: float
    debt_seconds: float
    cumulative_debt_seconds: float
    is_nap: bool = False


@dataclass
class SleepDebtResult:
    """Outcome of a sleep debt calculation.

    ``nights_to_recover`` is ``ceil(total / goal)`` and
    ``nights_to_recover_fast`` is ``ceil(total / (goal + extra))``, both
    floored at 0 and None when the goal is not positive.
    """

    daily: list[SleepDebtDay] = field(default_factory=list)
    total_debt_seconds: float = 0.0
    nights_below_goal: int = 0
    nights_at_or_above_goal: int = 0
    avg_sleep_seconds: float | None = None
    nights_to_recover: int | None = 0
    nights_to_recover_fast: int | None = 0
    date_range: tuple[date | None, date | None] = (None, None)
    streak: Streak = field(default_factory=Streak)

    def to_dict(self) -> dict:
        start, end = self.date_range
        return {
            "daily": [
                {**asdict(day), "date": day.date.isoformat()} for day in self.daily
            ],
            "total_debt_seconds": self.total_debt_seconds,
            "nights_below_goal": self.nights_below_goal,
            "nights_at_or_above_goal": self.nights_at_or_above_goal,
            "avg_sleep_seconds": self.avg_sleep_seconds,
            "nights_to_recover": self.nights_to_recover,
            "nights_to_recover_fast": self.nights_to_recover_fast,
            "date_range": {
                "start": start.isoformat() if start else None,
                "end": end.isoformat() if end else None,
            },
            "streak": {"type": self.streak.type.value, "days": self.streak.days},
        }


def _classify(debt_seconds: float) -> StreakType:
    if debt_seconds > 0:
        return StreakType.DEFICIT
    if debt_seconds < 0:
        return StreakType.SURPLUS
    return StreakType.NEUTRAL


def current_streak(
    daily: Sequence[SleepDebtDay], require_consecutive_days: bool = False
) -> Streak:
    """Walk backward from the last day while the debt sign is unchanged.

    A neutral last day (debt exactly zero) yields ``neutral, 0``.
    """
    if not daily:
        return Streak()

    streak_type = _classify(daily[-1].debt_seconds)
    if streak_type is StreakType.NEUTRAL:
        return Streak(StreakType.NEUTRAL, 0)

    days = 1
    for i in range(len(daily) - 2, -1, -1):
        if _classify(daily[i].debt_seconds) is not streak_type:
            break
        if require_consecutive_days and daily[i + 1].date - daily[i].date != timedelta(days=1):
            break
        days += 1
    return Streak(streak_type, days)


def _recovery_nights(total_debt: float, per_night: float) -> int | None:
    if per_night <= 0:
        return None
    return max(0, math.ceil(total_debt / per_night))


def calculate_sleep_debt(
    entries: Sequence[RawSleepSession | DailySleepSummary],
    goal_seconds: float = DEFAULT_SLEEP_GOAL_SECONDS,
    max_debt_seconds: float = MAX_SLEEP_DEBT_SECONDS,
    include_naps: bool = False,
    require_consecutive_days: bool = False,
    fast_recovery_extra_seconds: float = FAST_RECOVERY_EXTRA_SECONDS,
) -> SleepDebtResult:
    """Compute daily and cumulative sleep debt.

    Args:
        entries:                     Raw sessions or nightly summaries.
        goal_seconds:                Nightly sleep goal.
        max_debt_seconds:            Upper cap on the cumulative debt.
        include_naps:                Count nap records towards the day's sleep.
        require_consecutive_days:    Break the streak on calendar gaps.
        fast_recovery_extra_seconds: Extra sleep per night for the fast estimate.

    Returns:
        SleepDebtResult; empty input gives zero totals and a neutral streak.
    """
    relevant = [
        e for e in entries if (include_naps or not e.is_nap) and e.duration > 0
    ]
    if len(relevant) < len(entries):
        logger.debug(
            "Sleep debt: %d of %d records skipped (naps or non-positive duration)",
            len(entries) - len(relevant),
            len(entries),
        )
    if not relevant:
        return SleepDebtResult()

    by_date: dict[date, list[RawSleepSession | DailySleepSummary]] = defaultdict(list)
    for entry in relevant:
        by_date[entry.date].append(entry)

    daily: list[SleepDebtDay] = []
    cumulative = 0.0
    for day in sorted(by_date):
        day_entries = by_date[day]
        actual = sum(e.duration for e in day_entries)
        day_debt = goal_seconds - actual
        cumulative = min(cumulative + day_debt, max_debt_seconds)
        daily.append(
            SleepDebtDay(
                date=day,
                actual_sleep_seconds=actual,
                goal_seconds=goal_seconds,
                debt_seconds=day_debt,
                cumulative_debt_seconds=cumulative,
                is_nap=any(e.is_nap for e in day_entries),
            )
        )

    result = SleepDebtResult(
        daily=daily,
        total_debt_seconds=cumulative,
        nights_below_goal=sum(1 for d in daily if d.debt_seconds > 0),
        nights_at_or_above_goal=sum(1 for d in daily if d.debt_seconds <= 0),
        avg_sleep_seconds=sum(d.actual_sleep_seconds for d in daily) / len(daily),
        nights_to_recover=_recovery_nights(cumulative, goal_seconds),
        nights_to_recover_fast=_recovery_nights(
            cumulative, goal_seconds + fast_recovery_extra_seconds
        )
        if goal_seconds > 0
        else None,
        date_range=(daily[0].date, daily[-1].date),
        streak=current_streak(daily, require_consecutive_days),
    )
    logger.debug(
        "Sleep debt over %d days: %.0fs cumulative, streak %s×%d",
        len(daily),
        result.total_debt_seconds,
        result.streak.type.value,
        result.streak.days,
    )
    return result
