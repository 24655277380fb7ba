"""Load, validate, and hot-reload the healthstats engine configuration.

The config lives in ``engine_config.yaml`` alongside this module.  It is
loaded once on first use and cached.  Call ``reload_engine_config()`` to
re-read it from disk.

The aggregation functions never consult this module: the engine converts the
config into an explicit :class:`MetricsFilters` struct and passes it along.

Usage::

    from src.healthstats.config_loader import get_engine_config

    config = get_engine_config()
    filters = config.default_filters()
    filters.sleep_goal_seconds       # 28800
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from src.healthstats.base import weekdays_from_sunday_based
from src.healthstats.precedence import DevicePrecedence

logger = logging.getLogger("healthstats.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "engine_config.yaml"

_HOUR = 3600


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class SleepGroupingConfig:
    """Night grouping and device reconciliation settings."""

    co_record_min_overlap_ratio: float
    precedence: DevicePrecedence


@dataclass
class RollingConfig:
    """Rolling window settings."""

    window_days: int
    night_shift_threshold_seconds: int


@dataclass
class SleepDebtConfig:
    """Sleep debt settings."""

    goal_seconds: int
    max_debt_seconds: int
    fast_recovery_extra_seconds: int
    require_consecutive_days: bool = False


@dataclass
class ComparisonConfig:
    """Period comparison settings."""

    trend_threshold: float


@dataclass(frozen=True)
class MetricsFilters:
    """Explicit filter struct passed to every engine entry point.

    Attributes:
        precedence:          Device precedence mode.
        exclude_naps:        Drop nap sessions before aggregating.
        exclude_weekends:    Drop sessions starting on ``weekend_days``.
        weekend_days:        Weekdays considered weekend, numbered like
                             ``date.weekday()`` (Monday=0 … Sunday=6).
        rolling_window_days: Width of rolling averages.
        sleep_goal_seconds:  Nightly sleep goal for debt tracking.
    """

    precedence: DevicePrecedence = DevicePrecedence.AVERAGE
    exclude_naps: bool = False
    exclude_weekends: bool = False
    weekend_days: frozenset[int] = frozenset({5, 6})
    rolling_window_days: int = 7
    sleep_goal_seconds: int = 8 * _HOUR

    def with_overrides(self, **changes: Any) -> MetricsFilters:
        """Copy with fields replaced.

        ``sunday_based_weekend_days`` sets ``weekend_days`` from a Sunday=0
        day set, as exported by browser dashboards.
        """
        if "sunday_based_weekend_days" in changes:
            changes["weekend_days"] = weekdays_from_sunday_based(
                changes.pop("sunday_based_weekend_days")
            )
        elif "weekend_days" in changes:
            changes["weekend_days"] = frozenset(changes["weekend_days"])
        if "precedence" in changes:
            changes["precedence"] = DevicePrecedence.parse(changes["precedence"])
        return replace(self, **changes)

    @property
    def rolling_exclusions(self) -> frozenset[int]:
        """Weekdays kept out of rolling sums (empty unless weekends are excluded)."""
        return self.weekend_days if self.exclude_weekends else frozenset()


@dataclass
class EngineConfig:
    """Complete, validated engine configuration.

    This is the single in-memory representation of engine_config.yaml.

    Attributes:
        version:        Config schema version string.
        sleep_grouping: Night grouping parameters.
        rolling:        Rolling window parameters.
        sleep_debt:     Sleep debt parameters.
        comparison:     Period comparison parameters.
        exclude_naps:   Default nap exclusion.
        exclude_weekends: Default weekend exclusion.
        weekend_days:   Default weekend weekday set.
    """

    version: str
    sleep_grouping: SleepGroupingConfig
    rolling: RollingConfig
    sleep_debt: SleepDebtConfig
    comparison: ComparisonConfig
    exclude_naps: bool = False
    exclude_weekends: bool = False
    weekend_days: frozenset[int] = frozenset({5, 6})
    _raw: dict = field(default_factory=dict, repr=False)

    def default_filters(self) -> MetricsFilters:
        """Build the MetricsFilters struct described by this config."""
        return MetricsFilters(
            precedence=self.sleep_grouping.precedence,
            exclude_naps=self.exclude_naps,
            exclude_weekends=self.exclude_weekends,
            weekend_days=self.weekend_days,
            rolling_window_days=self.rolling.window_days,
            sleep_goal_seconds=self.sleep_debt.goal_seconds,
        )


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when engine_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Engine config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> EngineConfig:
    """Validate the raw YAML dict and construct an EngineConfig.

    Every problem is collected first and reported in a single error.

    Raises:
        ConfigValidationError: If any value is missing or out of range.
    """
    errors: list[str] = []

    def _number(section: dict, key: str, path: str, default: float) -> float:
        value = section.get(key, default)
        try:
            return float(value)
        except (TypeError, ValueError):
            errors.append(f"{path}.{key} must be a number, got {value!r}")
            return default

    def _section(key: str) -> dict:
        value = raw.get(key) or {}
        if not isinstance(value, dict):
            errors.append(f"'{key}' must be a mapping")
            return {}
        return value

    version = str(raw.get("version", "1.0"))

    # ── Sleep grouping ──
    sg_raw = _section("sleep_grouping")
    ratio = _number(sg_raw, "co_record_min_overlap_ratio", "sleep_grouping", 0.5)
    if not (0.0 <= ratio < 1.0):
        errors.append(
            f"sleep_grouping.co_record_min_overlap_ratio = {ratio} is out of range [0.0, 1.0)"
        )
    try:
        precedence = DevicePrecedence.parse(sg_raw.get("precedence", "average"))
    except ValueError as exc:
        errors.append(f"sleep_grouping.precedence: {exc}")
        precedence = DevicePrecedence.AVERAGE
    sleep_grouping = SleepGroupingConfig(
        co_record_min_overlap_ratio=ratio,
        precedence=precedence,
    )

    # ── Rolling ──
    rl_raw = _section("rolling")
    window_days = int(_number(rl_raw, "window_days", "rolling", 7))
    if window_days < 1:
        errors.append(f"rolling.window_days = {window_days} must be at least 1")
    shift_hours = _number(rl_raw, "night_shift_threshold_hours", "rolling", 12)
    if not (0 <= shift_hours <= 24):
        errors.append(
            f"rolling.night_shift_threshold_hours = {shift_hours} is out of range [0, 24]"
        )
    rolling = RollingConfig(
        window_days=window_days,
        night_shift_threshold_seconds=int(shift_hours * _HOUR),
    )

    # ── Sleep debt ──
    sd_raw = _section("sleep_debt")
    goal_hours = _number(sd_raw, "goal_hours", "sleep_debt", 8)
    max_debt_hours = _number(sd_raw, "max_debt_hours", "sleep_debt", 16)
    extra_hours = _number(sd_raw, "fast_recovery_extra_hours", "sleep_debt", 1)
    if goal_hours <= 0:
        errors.append(f"sleep_debt.goal_hours = {goal_hours} must be positive")
    if max_debt_hours <= 0:
        errors.append(f"sleep_debt.max_debt_hours = {max_debt_hours} must be positive")
    if extra_hours < 0:
        errors.append(
            f"sleep_debt.fast_recovery_extra_hours = {extra_hours} must not be negative"
        )
    sleep_debt = SleepDebtConfig(
        goal_seconds=int(goal_hours * _HOUR),
        max_debt_seconds=int(max_debt_hours * _HOUR),
        fast_recovery_extra_seconds=int(extra_hours * _HOUR),
        require_consecutive_days=bool(sd_raw.get("require_consecutive_days", False)),
    )

    # ── Comparison ──
    cp_raw = _section("comparison")
    threshold = _number(cp_raw, "trend_threshold", "comparison", 0.01)
    if threshold < 0:
        errors.append(f"comparison.trend_threshold = {threshold} must not be negative")
    comparison = ComparisonConfig(trend_threshold=threshold)

    # ── Filters ──
    ft_raw = _section("filters")
    weekend_raw = ft_raw.get("weekend_days", [5, 6]) or []
    weekend_days: set[int] = set()
    for day in weekend_raw:
        if not isinstance(day, int) or isinstance(day, bool) or not (0 <= day <= 6):
            errors.append(f"filters.weekend_days entry {day!r} must be an integer 0–6")
            continue
        weekend_days.add(day)

    if errors:
        raise ConfigValidationError(
            f"engine_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return EngineConfig(
        version=version,
        sleep_grouping=sleep_grouping,
        rolling=rolling,
        sleep_debt=sleep_debt,
        comparison=comparison,
        exclude_naps=bool(ft_raw.get("exclude_naps", False)),
        exclude_weekends=bool(ft_raw.get("exclude_weekends", False)),
        weekend_days=frozenset(weekend_days),
        _raw=raw,
    )


def load_engine_config(path: Path | None = None) -> EngineConfig:
    """Load and validate the engine config from disk.

    Args:
        path: Override path to YAML. Uses the bundled engine_config.yaml by default.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded engine config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: EngineConfig | None = None
_config_lock = threading.Lock()


def get_engine_config() -> EngineConfig:
    """Return the global EngineConfig singleton, loading it on first call.

    Thread-safe.  Use ``reload_engine_config()`` to refresh after YAML changes.
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_engine_config()
    return _config


def reload_engine_config(path: Path | None = None) -> EngineConfig:
    """Reload the engine config from disk and replace the global singleton.

    If validation fails, the old config is retained and the error re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_engine_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded engine config: %s → %s", old_version, new_config.version)
    return new_config
