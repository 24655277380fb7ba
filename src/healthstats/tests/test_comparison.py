"""Tests for the period comparison engine and its presets."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from src.healthstats.base import StepRecord, WeightRecord
from src.healthstats.comparison import (
    ComparisonFilters,
    ComparisonPeriod,
    ComparisonPreset,
    PeriodStats,
    Trend,
    calculate_comparison,
    calculate_comparison_delta,
    calculate_period_stats,
    comparison_chart_metrics,
    determine_trend,
    preset_periods,
)
from src.healthstats.tests.conftest import HOUR, at, make_night, make_session

# Monday 2 Feb – Sunday 8 Feb and Monday 9 Feb – Sunday 15 Feb 2026
PERIOD_A = ComparisonPeriod("Week 1", date(2026, 2, 2), date(2026, 2, 8))
PERIOD_B = ComparisonPeriod("Week 2", date(2026, 2, 9), date(2026, 2, 15))


def _days(period: ComparisonPeriod) -> list[date]:
    return [period.start + timedelta(days=i) for i in range(period.days)]


def _steps(period: ComparisonPeriod, count: int) -> list[StepRecord]:
    return [StepRecord(date=d, steps=count) for d in _days(period)]


def _sleep(period: ComparisonPeriod, wake_hour: int = 7, **kwargs):
    """One night per day of the period, going to bed at 23:00 on that day."""
    return [
        make_night(d + timedelta(days=1), bed_hour=23, wake_hour=wake_hour, **kwargs)
        for d in _days(period)
    ]


def _weight(period: ComparisonPeriod, first: float, last: float) -> list[WeightRecord]:
    return [WeightRecord(period.start, first), WeightRecord(period.end, last)]


class TestComparisonPeriod:
    def test_inclusive_bounds(self) -> None:
        assert PERIOD_A.contains(date(2026, 2, 2))
        assert PERIOD_A.contains(date(2026, 2, 8))
        assert not PERIOD_A.contains(date(2026, 2, 9))
        assert PERIOD_A.days == 7


class TestPeriodStats:
    def test_aggregates(self) -> None:
        stats = calculate_period_stats(
            _steps(PERIOD_A, 8000),
            _sleep(PERIOD_A, sleep_score=80, hr_average=55),
            _weight(PERIOD_A, 70.0, 71.0),
            PERIOD_A,
        )
        assert stats.total_steps == 56000
        assert stats.avg_steps == pytest.approx(8000)
        assert stats.steps_days == 7
        assert stats.sleep_nights == 7
        assert stats.avg_sleep_seconds == pytest.approx(8 * HOUR)
        assert stats.avg_sleep_score == pytest.approx(80)
        assert stats.avg_bedtime_seconds == pytest.approx(23 * HOUR, abs=1e-6)
        assert stats.avg_wake_time_seconds == pytest.approx(7 * HOUR, abs=1e-6)
        assert stats.avg_weight == pytest.approx(70.5)
        assert stats.weight_delta == pytest.approx(1.0)
        assert stats.days_in_period == 7

    def test_sleep_filtered_on_start_day(self) -> None:
        """A night starting on the last day of A belongs to A though it ends in B."""
        stats = calculate_period_stats([], _sleep(PERIOD_A), [], PERIOD_A)
        assert stats.sleep_nights == 7

    def test_weekend_exclusion(self) -> None:
        filters = ComparisonFilters(exclude_weekends=True)
        stats = calculate_period_stats([], _sleep(PERIOD_A), [], PERIOD_A, filters)
        assert stats.sleep_nights == 5

    def test_nap_exclusion(self) -> None:
        nap = make_session(at(date(2026, 2, 3), 14), at(date(2026, 2, 3), 15), is_nap=True)
        sleep = _sleep(PERIOD_A) + [nap]
        with_naps = calculate_period_stats([], sleep, [], PERIOD_A)
        without = calculate_period_stats(
            [], sleep, [], PERIOD_A, ComparisonFilters(exclude_naps=True)
        )
        assert with_naps.total_sleep_seconds == 57 * HOUR
        assert without.total_sleep_seconds == 56 * HOUR

    def test_single_weight_reading_has_no_delta(self) -> None:
        stats = calculate_period_stats([], [], [WeightRecord(PERIOD_A.start, 70.0)], PERIOD_A)
        assert stats.weight_delta is None
        assert stats.weight_start == stats.weight_end == 70.0

    def test_empty_period(self) -> None:
        stats = calculate_period_stats([], [], [], PERIOD_A)
        assert stats.avg_steps is None
        assert stats.avg_sleep_seconds is None
        assert stats.avg_bedtime_seconds is None
        assert stats.avg_weight is None


class TestDetermineTrend:
    @pytest.mark.parametrize(
        ("value", "higher_is_better", "expected"),
        [
            (12.5, True, Trend.BETTER),
            (-3.0, True, Trend.WORSE),
            (1.0, False, Trend.WORSE),
            (-1.0, False, Trend.BETTER),
            (0.005, True, Trend.NEUTRAL),
            (None, True, Trend.NEUTRAL),
        ],
    )
    def test_trend(self, value, higher_is_better: bool, expected: Trend) -> None:
        assert determine_trend(value, higher_is_better) is expected

    def test_custom_threshold(self) -> None:
        assert determine_trend(4.0, True, threshold=5.0) is Trend.NEUTRAL


class TestCalculateComparison:
    def test_identical_periods_are_neutral(self) -> None:
        steps = _steps(PERIOD_A, 8000) + _steps(PERIOD_B, 8000)
        sleep = _sleep(PERIOD_A, sleep_score=80, hr_average=55) + _sleep(
            PERIOD_B, sleep_score=80, hr_average=55
        )
        weight = _weight(PERIOD_A, 70.0, 70.0) + _weight(PERIOD_B, 70.0, 70.0)

        result = calculate_comparison(steps, sleep, weight, PERIOD_A, PERIOD_B)
        assert result.delta.sleep_trend is Trend.NEUTRAL
        assert result.delta.steps_trend is Trend.NEUTRAL
        assert result.delta.weight_trend is Trend.NEUTRAL
        assert result.delta.avg_steps_delta == 0
        assert result.delta.avg_sleep_percent == pytest.approx(0)
        assert result.period_a_label == "Week 1"

    def test_weight_trend_uses_period_b_change(self) -> None:
        """Gaining a kilo inside B reads worse even when A gained the same."""
        weight = _weight(PERIOD_A, 70.0, 71.0) + _weight(PERIOD_B, 70.0, 71.0)
        result = calculate_comparison([], [], weight, PERIOD_A, PERIOD_B)
        assert result.delta.avg_weight_delta == pytest.approx(0)
        assert result.delta.weight_delta_diff == pytest.approx(0)
        assert result.delta.weight_trend is Trend.WORSE

    def test_better_sleep_and_worse_steps(self) -> None:
        steps = _steps(PERIOD_A, 10000) + _steps(PERIOD_B, 8000)
        sleep = _sleep(PERIOD_A, wake_hour=7) + _sleep(PERIOD_B, wake_hour=8)
        result = calculate_comparison(steps, sleep, [], PERIOD_A, PERIOD_B)
        assert result.delta.avg_sleep_delta_seconds == pytest.approx(HOUR)
        assert result.delta.avg_sleep_percent == pytest.approx(12.5)
        assert result.delta.sleep_trend is Trend.BETTER
        assert result.delta.avg_steps_percent == pytest.approx(-20)
        assert result.delta.steps_trend is Trend.WORSE

    def test_missing_side_gives_zero_delta_and_no_percent(self) -> None:
        result = calculate_comparison(_steps(PERIOD_B, 5000), [], [], PERIOD_A, PERIOD_B)
        assert result.delta.avg_steps_delta == 0.0
        assert result.delta.avg_steps_percent is None
        assert result.delta.total_steps_percent is None
        assert result.delta.steps_trend is Trend.NEUTRAL

    def test_to_dict(self) -> None:
        weight = _weight(PERIOD_B, 72.0, 71.0)
        payload = calculate_comparison([], [], weight, PERIOD_A, PERIOD_B).to_dict()
        assert payload["delta"]["weight_trend"] == "better"
        assert payload["period_a"]["label"] == "Week 1"
        assert payload["period_b"]["weight_delta"] == pytest.approx(-1.0)

    def test_delta_from_stats(self) -> None:
        a = PeriodStats(avg_sleep_seconds=7 * HOUR, avg_steps=0.0)
        b = PeriodStats(avg_sleep_seconds=6 * HOUR, avg_steps=4000.0)
        delta = calculate_comparison_delta(a, b)
        assert delta.sleep_trend is Trend.WORSE
        assert delta.avg_steps_percent is None
        assert delta.avg_steps_delta == 4000.0


class TestChartMetrics:
    def test_rows(self) -> None:
        sleep = _sleep(PERIOD_A, wake_hour=6) + _sleep(PERIOD_B, wake_hour=7)
        result = calculate_comparison([], sleep, [], PERIOD_A, PERIOD_B)
        rows = comparison_chart_metrics(result)
        assert [r.name for r in rows] == [
            "Average Steps",
            "Average Sleep",
            "Deep Sleep",
            "REM Sleep",
            "Sleep Score",
            "Average Weight",
        ]
        sleep_row = rows[1]
        assert sleep_row.unit == "hours"
        assert sleep_row.period_a_value == pytest.approx(7)
        assert sleep_row.period_b_value == pytest.approx(8)
        assert sleep_row.delta == pytest.approx(1)
        assert rows[-1].higher_is_better is False


class TestPresetPeriods:
    def test_month_pair(self) -> None:
        a, b = preset_periods(ComparisonPreset.JAN_VS_FEB, date(2026, 6, 1))
        assert (a.start, a.end, a.label) == (date(2026, 1, 1), date(2026, 1, 31), "January")
        assert (b.start, b.end, b.label) == (date(2026, 2, 1), date(2026, 2, 28), "February")

    def test_nov_vs_dec(self) -> None:
        a, b = preset_periods("nov-vs-dec", date(2024, 3, 3))
        assert a.end == date(2024, 11, 30)
        assert b.end == date(2024, 12, 31)

    def test_last_month_across_year_boundary(self) -> None:
        a, b = preset_periods(ComparisonPreset.LAST_MONTH_VS_THIS_MONTH, date(2026, 1, 15))
        assert (a.start, a.end) == (date(2025, 12, 1), date(2025, 12, 31))
        assert (b.start, b.end) == (date(2026, 1, 1), date(2026, 1, 31))

    def test_last_three_months(self) -> None:
        a, b = preset_periods(ComparisonPreset.LAST_3_MONTHS_VS_PREVIOUS_3, date(2026, 6, 10))
        assert (a.start, a.end, a.label) == (
            date(2026, 1, 1),
            date(2026, 3, 31),
            "January - March",
        )
        assert (b.start, b.end, b.label) == (date(2026, 4, 1), date(2026, 6, 30), "April - June")

    def test_custom_falls_back_to_last_month(self) -> None:
        assert preset_periods("custom", date(2026, 3, 5)) == preset_periods(
            "last-month-vs-this-month", date(2026, 3, 5)
        )

    def test_unknown_preset_raises(self) -> None:
        with pytest.raises(ValueError):
            preset_periods("dec-vs-jan")
