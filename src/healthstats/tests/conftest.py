"""Shared fixtures and record builders for healthstats tests."""

from __future__ import annotations

import json
from datetime import date, datetime, timedelta
from pathlib import Path

import pytest

from src.healthstats.base import DeviceCategory, RawSleepSession
from src.healthstats.config_loader import EngineConfig, load_engine_config

# Fixtures directory
FIXTURES_DIR = Path(__file__).parent / "fixtures"

# A Monday
TEST_DATE = date(2026, 2, 23)

HOUR = 3600


def at(day: date, hour: int, minute: int = 0, second: int = 0) -> datetime:
    """Local timestamp on ``day``."""
    return datetime(day.year, day.month, day.day, hour, minute, second)


def make_session(
    start: datetime | None,
    end: datetime | None,
    device: DeviceCategory = DeviceCategory.PRIMARY,
    sleep_date: date | None = None,
    duration: float | None = None,
    **kwargs,
) -> RawSleepSession:
    """Build a session; wake date and duration default to the interval's."""
    if duration is None:
        duration = (end - start).total_seconds() if start and end else 0.0
    if sleep_date is None:
        sleep_date = end.date() if end else TEST_DATE
    return RawSleepSession(
        date=sleep_date,
        start=start,
        end=end,
        duration=duration,
        device=device,
        **kwargs,
    )


def make_night(
    wake_date: date,
    bed_hour: int = 23,
    wake_hour: int = 7,
    device: DeviceCategory = DeviceCategory.PRIMARY,
    **kwargs,
) -> RawSleepSession:
    """A session from ``bed_hour`` the evening before to ``wake_hour`` on ``wake_date``."""
    start = at(wake_date - timedelta(days=1), bed_hour)
    end = at(wake_date, wake_hour)
    return make_session(start, end, device=device, sleep_date=wake_date, **kwargs)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine_config() -> EngineConfig:
    """Load the real engine config for tests."""
    return load_engine_config()


# ---------------------------------------------------------------------------
# JSON fixture loaders
# ---------------------------------------------------------------------------


@pytest.fixture
def sleep_rows() -> list[dict]:
    return json.loads((FIXTURES_DIR / "sleep_rows.json").read_text())


@pytest.fixture
def step_rows() -> list[dict]:
    return json.loads((FIXTURES_DIR / "step_rows.json").read_text())


@pytest.fixture
def weight_rows() -> list[dict]:
    return json.loads((FIXTURES_DIR / "weight_rows.json").read_text())


# ---------------------------------------------------------------------------
# Session fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def double_tracked_night() -> list[RawSleepSession]:
    """Bed sensor 22:00–06:00 and wrist tracker 23:00–07:00 for TEST_DATE."""
    eve = TEST_DATE - timedelta(days=1)
    return [
        make_session(
            at(eve, 22),
            at(TEST_DATE, 6),
            DeviceCategory.PRIMARY,
            deep_sleep=5400,
            light_sleep=14400,
            rem_sleep=7200,
            awake=1800,
            sleep_score=82,
            hr_average=52,
        ),
        make_session(
            at(eve, 23),
            at(TEST_DATE, 7),
            DeviceCategory.SECONDARY,
            deep_sleep=3600,
            light_sleep=16200,
            rem_sleep=7200,
            awake=1800,
            sleep_score=78,
            hr_average=56,
        ),
    ]
