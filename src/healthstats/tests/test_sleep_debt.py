"""Tests for the sleep debt tracker."""

from __future__ import annotations

from datetime import timedelta

import pytest

from src.healthstats.sleep_debt import (
    SleepDebtDay,
    StreakType,
    calculate_sleep_debt,
    current_streak,
)
from src.healthstats.tests.conftest import HOUR, TEST_DATE, at, make_night, make_session


def nights(*wake_hours: int, start=TEST_DATE):
    """One 23:00 bedtime night per value, on consecutive wake dates."""
    return [
        make_night(start + timedelta(days=i), bed_hour=23, wake_hour=h)
        for i, h in enumerate(wake_hours)
    ]


class TestCalculateSleepDebt:
    def test_empty_input(self) -> None:
        result = calculate_sleep_debt([])
        assert result.daily == []
        assert result.total_debt_seconds == 0.0
        assert result.streak.type is StreakType.NEUTRAL
        assert result.streak.days == 0
        assert result.date_range == (None, None)

    def test_five_short_nights(self) -> None:
        """Five 7h nights against an 8h goal owe five hours."""
        result = calculate_sleep_debt(nights(6, 6, 6, 6, 6))
        assert result.total_debt_seconds == 5 * HOUR
        assert result.nights_below_goal == 5
        assert result.nights_at_or_above_goal == 0
        assert result.avg_sleep_seconds == pytest.approx(7 * HOUR)
        assert result.nights_to_recover == 1
        assert result.nights_to_recover_fast == 1
        assert result.streak.type is StreakType.DEFICIT
        assert result.streak.days == 5
        assert result.date_range == (TEST_DATE, TEST_DATE + timedelta(days=4))

    def test_cumulative_debt_is_capped(self) -> None:
        """A 1h night owes 7h but the cap holds it at 4h; a 10h night repays 2h."""
        sessions = [
            make_night(TEST_DATE, bed_hour=23, wake_hour=0),
            make_night(TEST_DATE + timedelta(days=1), bed_hour=21, wake_hour=7),
        ]
        result = calculate_sleep_debt(sessions, max_debt_seconds=4 * HOUR)
        assert [d.cumulative_debt_seconds for d in result.daily] == [4 * HOUR, 2 * HOUR]
        assert result.total_debt_seconds == 2 * HOUR

    def test_surplus_is_not_capped(self) -> None:
        result = calculate_sleep_debt(nights(9, 9, 9), max_debt_seconds=HOUR)
        assert result.total_debt_seconds == -6 * HOUR
        assert result.nights_to_recover == 0
        assert result.nights_to_recover_fast == 0
        assert result.streak.type is StreakType.SURPLUS
        assert result.streak.days == 3

    def test_cap_never_exceeded(self) -> None:
        result = calculate_sleep_debt(nights(0, 0, 0, 0, 0, 0))
        assert all(d.cumulative_debt_seconds <= 16 * HOUR for d in result.daily)
        assert result.total_debt_seconds == 16 * HOUR

    def test_multiple_records_per_day_are_summed(self) -> None:
        sessions = [
            make_session(at(TEST_DATE, 0), at(TEST_DATE, 4)),
            make_session(at(TEST_DATE, 5), at(TEST_DATE, 9)),
        ]
        result = calculate_sleep_debt(sessions)
        assert len(result.daily) == 1
        assert result.daily[0].actual_sleep_seconds == 8 * HOUR
        assert result.streak.type is StreakType.NEUTRAL
        assert result.streak.days == 0

    def test_naps_excluded_by_default(self) -> None:
        sessions = [
            make_night(TEST_DATE, bed_hour=23, wake_hour=5),
            make_session(at(TEST_DATE, 14), at(TEST_DATE, 16), is_nap=True),
        ]
        assert calculate_sleep_debt(sessions).total_debt_seconds == 2 * HOUR

        with_naps = calculate_sleep_debt(sessions, include_naps=True)
        assert with_naps.total_debt_seconds == 0
        assert with_naps.daily[0].is_nap is True

    def test_non_positive_durations_are_ignored(self) -> None:
        sessions = nights(6) + [
            make_session(None, None, sleep_date=TEST_DATE + timedelta(days=1), duration=0)
        ]
        result = calculate_sleep_debt(sessions)
        assert len(result.daily) == 1

    def test_days_in_date_order(self) -> None:
        result = calculate_sleep_debt(list(reversed(nights(6, 7, 8))))
        assert [d.date for d in result.daily] == [
            TEST_DATE + timedelta(days=i) for i in range(3)
        ]

    def test_zero_goal_has_no_recovery_estimate(self) -> None:
        result = calculate_sleep_debt(nights(6), goal_seconds=0)
        assert result.nights_to_recover is None
        assert result.nights_to_recover_fast is None

    def test_recovery_rounds_up(self) -> None:
        """Nine hours owed at an 8h goal needs two nights, one at 9h+1h."""
        result = calculate_sleep_debt(nights(4, 4, 4))
        assert result.total_debt_seconds == 9 * HOUR
        assert result.nights_to_recover == 2
        assert result.nights_to_recover_fast == 1

    def test_to_dict(self) -> None:
        payload = calculate_sleep_debt(nights(6, 6)).to_dict()
        assert payload["daily"][0]["date"] == TEST_DATE.isoformat()
        assert payload["streak"] == {"type": "deficit", "days": 2}
        assert payload["date_range"]["end"] == (TEST_DATE + timedelta(days=1)).isoformat()


class TestStreak:
    def _days(self, *entries: tuple[int, float]) -> list[SleepDebtDay]:
        return [
            SleepDebtDay(
                date=TEST_DATE + timedelta(days=offset),
                actual_sleep_seconds=8 * HOUR - debt,
                goal_seconds=8 * HOUR,
                debt_seconds=debt,
                cumulative_debt_seconds=0.0,
            )
            for offset, debt in entries
        ]

    def test_sign_change_ends_streak(self) -> None:
        streak = current_streak(self._days((0, 600), (1, -600), (2, 600), (3, 300)))
        assert streak.type is StreakType.DEFICIT
        assert streak.days == 2

    def test_gaps_ignored_by_default(self) -> None:
        streak = current_streak(self._days((0, 600), (1, 600), (5, 600)))
        assert streak.days == 3

    def test_gaps_break_streak_when_required(self) -> None:
        streak = current_streak(
            self._days((0, 600), (1, 600), (5, 600)), require_consecutive_days=True
        )
        assert streak.type is StreakType.DEFICIT
        assert streak.days == 1

    def test_neutral_last_day(self) -> None:
        streak = current_streak(self._days((0, 600), (1, 0)))
        assert streak.type is StreakType.NEUTRAL
        assert streak.days == 0

    def test_neutral_day_interrupts(self) -> None:
        streak = current_streak(self._days((0, -60), (1, 0), (2, -60)))
        assert streak.type is StreakType.SURPLUS
        assert streak.days == 1
