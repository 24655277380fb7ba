"""Tests for circular time-of-day averaging."""

from __future__ import annotations

from datetime import datetime

import pytest

from src.healthstats.circular import (
    circular_mean_time,
    seconds_of_day,
    shift_night_seconds,
    signed_time_difference,
)


def _clock_distance(a: float, b: float) -> float:
    """Shortest distance between two times of day in seconds."""
    diff = abs(a - b) % 86400
    return min(diff, 86400 - diff)


class TestCircularMean:
    def test_midnight_straddle_averages_to_midnight(self) -> None:
        """23:30 and 00:30 average to 00:00, not 12:00."""
        mean = circular_mean_time([23.5 * 3600, 0.5 * 3600])
        assert mean is not None
        assert _clock_distance(mean, 0) == pytest.approx(0, abs=1e-6)
        assert _clock_distance(mean, 12 * 3600) > 11 * 3600

    def test_empty_is_none(self) -> None:
        assert circular_mean_time([]) is None

    def test_single_value_returns_itself(self) -> None:
        assert circular_mean_time([22 * 3600 + 15 * 60]) == pytest.approx(80100, abs=1e-6)

    def test_result_in_day_range(self) -> None:
        mean = circular_mean_time([22 * 3600, 23 * 3600])
        assert mean is not None
        assert 0 <= mean < 86400
        assert mean == pytest.approx(22.5 * 3600, abs=1e-6)

    def test_accepts_generators(self) -> None:
        mean = circular_mean_time(v for v in [6 * 3600, 8 * 3600])
        assert mean == pytest.approx(7 * 3600, abs=1e-6)


class TestSecondsOfDay:
    def test_seconds_of_day(self) -> None:
        assert seconds_of_day(datetime(2026, 2, 22, 23, 30, 15)) == 84615

    def test_midnight_is_zero(self) -> None:
        assert seconds_of_day(datetime(2026, 2, 23)) == 0


class TestNightShift:
    def test_early_morning_moves_past_midnight(self) -> None:
        assert shift_night_seconds(2 * 3600) == 26 * 3600

    def test_evening_is_unchanged(self) -> None:
        assert shift_night_seconds(22 * 3600) == 22 * 3600

    def test_threshold_is_exclusive(self) -> None:
        assert shift_night_seconds(12 * 3600) == 12 * 3600

    def test_custom_threshold(self) -> None:
        assert shift_night_seconds(5 * 3600, threshold_seconds=4 * 3600) == 5 * 3600
        assert shift_night_seconds(3 * 3600, threshold_seconds=4 * 3600) == 27 * 3600


class TestSignedTimeDifference:
    def test_wraps_forward_across_midnight(self) -> None:
        """00:10 minus 23:50 is +20 minutes."""
        assert signed_time_difference(600, 85800) == 1200

    def test_wraps_backward_across_midnight(self) -> None:
        assert signed_time_difference(85800, 600) == -1200

    def test_plain_difference(self) -> None:
        assert signed_time_difference(7 * 3600, 6 * 3600) == 3600

    def test_half_day_is_not_wrapped(self) -> None:
        assert signed_time_difference(43200, 0) == 43200
