"""Input boundary — turn loosely-typed dict rows into domain records.

Rows usually come straight from a CSV / JSON export: ISO-8601 strings,
numeric strings, camelCase keys.  Each row is validated through the pydantic
schemas in :mod:`src.models.health_records`; rows that fail validation are
logged and dropped so one bad line never aborts a whole import.

Usage::

    sessions = load_sleep_sessions(rows)
    steps = load_steps(step_rows)
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping, TypeVar

from pydantic import BaseModel, ValidationError

from src.healthstats.base import RawSleepSession, StepRecord, WeightRecord, safe_float
from src.models.health_records import SleepSessionRow, StepRow, WeightRow

logger = logging.getLogger("healthstats.records")

RowT = TypeVar("RowT", bound=BaseModel)
RecordT = TypeVar("RecordT")


def _load(
    rows: Iterable[Mapping[str, Any] | Any],
    schema: type[RowT],
    convert: Callable[[RowT], RecordT],
    kind: str,
) -> list[RecordT]:
    records: list[RecordT] = []
    dropped = 0
    for index, row in enumerate(rows):
        try:
            parsed = schema.model_validate(row)
        except ValidationError as exc:
            dropped += 1
            logger.warning(
                "Dropping %s row %d: %d validation error(s): %s",
                kind,
                index,
                exc.error_count(),
                "; ".join(
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                    for err in exc.errors()
                ),
            )
            continue
        records.append(convert(parsed))

    logger.debug("Loaded %d %s records (%d dropped)", len(records), kind, dropped)
    return records


def _to_session(row: SleepSessionRow) -> RawSleepSession:
    return RawSleepSession(
        date=row.date,
        start=row.start,
        end=row.end,
        duration=safe_float(row.duration) or 0.0,
        deep_sleep=safe_float(row.deep_sleep),
        light_sleep=safe_float(row.light_sleep),
        rem_sleep=safe_float(row.rem_sleep),
        awake=safe_float(row.awake),
        is_nap=row.is_nap,
        device=row.device_category,
        sleep_score=safe_float(row.sleep_score),
        hr_average=safe_float(row.hr_average),
        duration_to_sleep=safe_float(row.duration_to_sleep),
        duration_to_wake_up=safe_float(row.duration_to_wake_up),
    )


def _to_steps(row: StepRow) -> StepRecord:
    return StepRecord(
        date=row.date,
        steps=row.steps,
        distance=safe_float(row.distance),
        elevation=safe_float(row.elevation),
        calories=safe_float(row.calories),
    )


def _to_weight(row: WeightRow) -> WeightRecord:
    return WeightRecord(
        date=row.date,
        weight=row.weight,
        fat_mass=safe_float(row.fat_mass),
        muscle_mass=safe_float(row.muscle_mass),
        bone_mass=safe_float(row.bone_mass),
        hydration=safe_float(row.hydration),
    )


def load_sleep_sessions(rows: Iterable[Mapping[str, Any] | Any]) -> list[RawSleepSession]:
    """Validate sleep rows into RawSleepSession records.

    Device labels ``bed`` / ``mat`` map to the primary category and
    ``tracker`` / ``watch`` to the secondary one; anything else is UNKNOWN.
    Unparseable timestamps become None and the session keeps its duration.
    """
    return _load(rows, SleepSessionRow, _to_session, "sleep")


def load_steps(rows: Iterable[Mapping[str, Any] | Any]) -> list[StepRecord]:
    return _load(rows, StepRow, _to_steps, "steps")


def load_weights(rows: Iterable[Mapping[str, Any] | Any]) -> list[WeightRecord]:
    return _load(rows, WeightRow, _to_weight, "weight")
