"""healthstats — multi-device health metrics aggregation engine.

This package turns already-parsed sleep sessions, step counts and weight
readings into nightly summaries, rolling trends, sleep debt and
period-vs-period comparisons.

Core modules:
    base           — Canonical data models (sessions, summaries, records)
    stats          — Mean / min-max / population std / percent change helpers
    circular       — Circular time-of-day averaging
    rolling        — Date-centred linear and circular rolling averages
    precedence     — Device precedence policies
    sleep_grouper  — Night grouping, interval merging, sleep stats
    discrepancy    — Double-device disagreement analysis
    sleep_debt     — Cumulative sleep debt and streaks
    comparison     — Period comparison, chart rows and presets
    range_stats    — Event / season / day-type buckets and range filter
    records        — Validate loosely-typed rows into domain records
    config_loader  — Load/validate/hot-reload engine_config.yaml
    engine         — HealthMetricsEngine orchestrator
"""

from src.healthstats.base import (
    DailySleepSummary,
    DeviceCategory,
    RawSleepSession,
    RollingPoint,
    StepRecord,
    WeightRecord,
)
from src.healthstats.config_loader import EngineConfig, MetricsFilters, get_engine_config
from src.healthstats.precedence import DevicePrecedence

__all__ = [
    "DeviceCategory",
    "DevicePrecedence",
    "RawSleepSession",
    "DailySleepSummary",
    "RollingPoint",
    "StepRecord",
    "WeightRecord",
    "EngineConfig",
    "MetricsFilters",
    "get_engine_config",
]
