"""Pydantic models for loosely-typed health record rows: sleep, steps, weight."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import Field, field_validator

from src.healthstats.base import DeviceCategory, parse_local_datetime
from src.models.base import CamelCaseRow


# ---------- Device labels ----------

DEVICE_LABELS: dict[str, DeviceCategory] = {
    "primary": DeviceCategory.PRIMARY,
    "primary-device": DeviceCategory.PRIMARY,
    "bed": DeviceCategory.PRIMARY,
    "mat": DeviceCategory.PRIMARY,
    "secondary": DeviceCategory.SECONDARY,
    "secondary-device": DeviceCategory.SECONDARY,
    "tracker": DeviceCategory.SECONDARY,
    "watch": DeviceCategory.SECONDARY,
}


def _coerce_day(value: Any) -> Any:
    """Accept ``YYYY-MM-DD`` strings, full ISO timestamps and datetimes."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and len(value.strip()) > 10:
        return value.strip()[:10]
    return value


# ---------- Sleep ----------

class SleepSessionRow(CamelCaseRow):
    date: date
    start: datetime | None = None
    end: datetime | None = None
    duration: float = 0.0
    deep_sleep: float | None = Field(default=None, ge=0)
    light_sleep: float | None = Field(default=None, ge=0)
    rem_sleep: float | None = Field(default=None, ge=0)
    awake: float | None = Field(default=None, ge=0)
    is_nap: bool = False
    device_category: DeviceCategory = DeviceCategory.UNKNOWN
    sleep_score: float | None = Field(default=None, ge=0, le=100)
    hr_average: float | None = Field(default=None, gt=0, le=250)
    duration_to_sleep: float | None = Field(default=None, ge=0)
    duration_to_wake_up: float | None = Field(default=None, ge=0)

    @field_validator("date", mode="before")
    @classmethod
    def normalize_date(cls, v: Any) -> Any:
        return _coerce_day(v)

    @field_validator("start", "end", mode="before")
    @classmethod
    def parse_timestamp(cls, v: Any) -> datetime | None:
        """Unparseable timestamps become None instead of failing the row."""
        return parse_local_datetime(v)

    @field_validator("device_category", mode="before")
    @classmethod
    def normalize_device(cls, v: Any) -> DeviceCategory:
        if isinstance(v, DeviceCategory):
            return v
        if v is None:
            return DeviceCategory.UNKNOWN
        return DEVICE_LABELS.get(str(v).strip().lower(), DeviceCategory.UNKNOWN)


# ---------- Steps ----------

class StepRow(CamelCaseRow):
    date: date
    steps: int = Field(ge=0)
    distance: float | None = Field(default=None, ge=0)
    elevation: float | None = None
    calories: float | None = Field(default=None, ge=0)

    @field_validator("date", mode="before")
    @classmethod
    def normalize_date(cls, v: Any) -> Any:
        return _coerce_day(v)

    @field_validator("steps", mode="before")
    @classmethod
    def round_steps(cls, v: Any) -> Any:
        """Some exports write step counts as floats (``"8123.0"``)."""
        if isinstance(v, str):
            v = v.strip()
        try:
            return int(round(float(v)))
        except (TypeError, ValueError):
            return v


# ---------- Weight ----------

class WeightRow(CamelCaseRow):
    date: date
    weight: float = Field(gt=0, le=700)
    fat_mass: float | None = Field(default=None, ge=0)
    muscle_mass: float | None = Field(default=None, ge=0)
    bone_mass: float | None = Field(default=None, ge=0)
    hydration: float | None = Field(default=None, ge=0)

    @field_validator("date", mode="before")
    @classmethod
    def normalize_date(cls, v: Any) -> Any:
        return _coerce_day(v)
