"""Canonical data models for the healthstats aggregation engine.

Every component consumes and produces the dataclasses defined here.  Input
records (sleep sessions, step counts, weight readings) arrive already parsed
from the ingestion layer; the engine only derives new structures from them
and never mutates its inputs.

Timestamps are naive datetimes in the caller's local calendar.  A "day" is
always the caller's local calendar day, not UTC.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Iterable

logger = logging.getLogger("healthstats")

SECONDS_IN_DAY = 24 * 60 * 60


class DeviceCategory(str, Enum):
    """Which kind of device recorded a sleep session.

    PRIMARY is the under-mattress / bedside device and SECONDARY the worn
    tracker.  UNKNOWN covers rows without any device information.
    """

    PRIMARY = "primary-device"
    SECONDARY = "secondary-device"
    UNKNOWN = "unknown"


# ---------------------------------------------------------------------------
# Input records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RawSleepSession:
    """One device-recorded sleep interval.

    Attributes:
        date:                Calendar date of the wake-up (the night's key).
        start:               Local timestamp when sleep began.
        end:                 Local timestamp when sleep ended.
        duration:            Effective sleep in seconds (awake time excluded).
        deep_sleep:          Deep sleep seconds.
        light_sleep:         Light sleep seconds.
        rem_sleep:           REM sleep seconds.
        awake:               Awake seconds inside the session.
        is_nap:              True for daytime naps.
        device:              Device category that produced the session.
        sleep_score:         Device sleep score (0–100).
        hr_average:          Average heart rate during the session (bpm).
        duration_to_sleep:   Latency to fall asleep in seconds.
        duration_to_wake_up: Latency to get up after waking, in seconds.
    """

    date: date
    start: datetime | None
    end: datetime | None
    duration: float
    deep_sleep: float | None = None
    light_sleep: float | None = None
    rem_sleep: float | None = None
    awake: float | None = None
    is_nap: bool = False
    device: DeviceCategory = DeviceCategory.UNKNOWN
    sleep_score: float | None = None
    hr_average: float | None = None
    duration_to_sleep: float | None = None
    duration_to_wake_up: float | None = None

    @property
    def has_valid_interval(self) -> bool:
        """True when both bounds are present and the interval is positive."""
        return (
            self.start is not None
            and self.end is not None
            and self.end > self.start
        )

    @property
    def interval_seconds(self) -> float:
        if not self.has_valid_interval:
            return 0.0
        return (self.end - self.start).total_seconds()  # type: ignore[operator]

    @property
    def anchor(self) -> datetime:
        """Start instant, falling back to midnight of the wake date."""
        if self.start is not None:
            return self.start
        return datetime.combine(self.date, datetime.min.time())


@dataclass(frozen=True)
class StepRecord:
    """Daily step count."""

    date: date
    steps: int
    distance: float | None = None
    elevation: float | None = None
    calories: float | None = None


@dataclass(frozen=True)
class WeightRecord:
    """Body-composition reading (kg unless stated otherwise)."""

    date: date
    weight: float
    fat_mass: float | None = None
    muscle_mass: float | None = None
    bone_mass: float | None = None
    hydration: float | None = None


# ---------------------------------------------------------------------------
# Derived records
# ---------------------------------------------------------------------------


@dataclass
class Night:
    """All sessions sharing one wake date.  Transient, never persisted."""

    date: date
    sessions: list[RawSleepSession]

    @property
    def non_naps(self) -> list[RawSleepSession]:
        return [s for s in self.sessions if not s.is_nap]

    def by_device(self, device: DeviceCategory) -> list[RawSleepSession]:
        return [s for s in self.sessions if s.device == device]


@dataclass
class DailySleepSummary:
    """One merged, device-reconciled record per night.

    ``duration`` is the sum of the non-overlapping merged interval lengths of
    the night, so overlapping device recordings are never double-counted.

    Attributes:
        date:                Wake date of the night.
        duration:            Merged sleep seconds.
        deep_sleep:          Apportioned deep sleep seconds.
        light_sleep:         Apportioned light sleep seconds.
        rem_sleep:           Apportioned REM seconds.
        awake:               Apportioned awake seconds.
        sleep_score:         Mean score of the contributing sessions.
        hr_average:          Mean heart rate of the contributing sessions.
        start:               Start of the first merged interval.
        end:                 End of the last merged interval.
        duration_to_sleep:   Latency to sleep for the night.
        duration_to_wake_up: Latency to wake for the night.
        device:              Category implied by the precedence mode
                             (None when sessions were averaged).
        session_count:       Number of sessions that contributed.
    """

    date: date
    duration: float
    deep_sleep: float
    light_sleep: float
    rem_sleep: float
    awake: float
    sleep_score: float | None
    hr_average: float | None
    start: datetime
    end: datetime
    duration_to_sleep: float | None = None
    duration_to_wake_up: float | None = None
    device: DeviceCategory | None = None
    session_count: int = 1

    is_nap = False

    @property
    def asleep_seconds_of_day(self) -> int:
        return seconds_of_day(self.start)

    @property
    def wake_seconds_of_day(self) -> int:
        return seconds_of_day(self.end)


@dataclass
class RollingPoint:
    """One output sample of a rolling average (None = no eligible samples)."""

    date: date
    value: float | None


def seconds_of_day(moment: datetime) -> int:
    """Seconds elapsed since local midnight for ``moment``."""
    return moment.hour * 3600 + moment.minute * 60 + moment.second


def weekdays_from_sunday_based(days: Iterable[int]) -> frozenset[int]:
    """Convert a Sunday=0 … Saturday=6 day set to ``date.weekday()`` numbering.

    Weekday sets across the engine use Monday=0 … Sunday=6; browser-style
    exports number from Sunday, so ``{0, 6}`` (Sunday, Saturday) becomes
    ``{6, 5}``.
    """
    return frozenset((int(day) - 1) % 7 for day in days)


# ---------------------------------------------------------------------------
# Coercion helpers shared by the record loaders
# ---------------------------------------------------------------------------


def safe_float(value: object) -> float | None:
    """Coerce a value to a finite float, returning None on failure."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def parse_local_datetime(value: object) -> datetime | None:
    """Parse an ISO-8601 value into a naive local datetime.

    Aware datetimes keep their wall-clock reading and drop the offset, since
    the engine reasons in the caller's local calendar.  Returns None if the
    value is missing or unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Could not parse datetime string: %r", value)
        return None
    return parsed.replace(tzinfo=None)
