"""Device precedence — decide which sessions represent a night.

When two devices record the same night, the active policy picks the working
subset before intervals are merged:

    PRIMARY_FIRST    primary-device sessions, else secondary, else everything
    SECONDARY_FIRST  secondary-device sessions, else primary, else everything
    AVERAGE          every session; per-session values are averaged downstream
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Sequence

from src.healthstats.base import DeviceCategory, RawSleepSession

logger = logging.getLogger("healthstats.precedence")


class DevicePrecedence(str, Enum):
    PRIMARY_FIRST = "primary-first"
    SECONDARY_FIRST = "secondary-first"
    AVERAGE = "average"

    @classmethod
    def parse(cls, value: str | DevicePrecedence) -> DevicePrecedence:
        """Parse a mode name, accepting the legacy ``mat-first`` / ``tracker-first``.

        Raises:
            ValueError: If the name matches no mode.
        """
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        if key in _ALIASES:
            return _ALIASES[key]
        try:
            return cls(key)
        except ValueError:
            raise ValueError(
                f"Unknown device precedence {value!r}; expected one of "
                f"{[m.value for m in cls]}"
            ) from None

    @property
    def device(self) -> DeviceCategory | None:
        """Category a summary is attributed to under this mode."""
        if self is DevicePrecedence.PRIMARY_FIRST:
            return DeviceCategory.PRIMARY
        if self is DevicePrecedence.SECONDARY_FIRST:
            return DeviceCategory.SECONDARY
        return None


_ALIASES: dict[str, DevicePrecedence] = {
    "mat-first": DevicePrecedence.PRIMARY_FIRST,
    "bed-first": DevicePrecedence.PRIMARY_FIRST,
    "tracker-first": DevicePrecedence.SECONDARY_FIRST,
}


def _prefer(
    sessions: Sequence[RawSleepSession],
    first: DeviceCategory,
    fallback: DeviceCategory,
) -> list[RawSleepSession]:
    preferred = [s for s in sessions if s.device == first]
    if preferred:
        return preferred
    secondary = [s for s in sessions if s.device == fallback]
    if secondary:
        return secondary
    return list(sessions)


def select_sessions(
    sessions: Sequence[RawSleepSession], mode: DevicePrecedence
) -> list[RawSleepSession]:
    """Return the working subset of one night's sessions for ``mode``.

    Args:
        sessions: All sessions sharing a wake date.
        mode:     Active precedence policy.

    Returns:
        The sessions to merge (never empty unless ``sessions`` is).
    """
    if mode is DevicePrecedence.PRIMARY_FIRST:
        return _prefer(sessions, DeviceCategory.PRIMARY, DeviceCategory.SECONDARY)
    if mode is DevicePrecedence.SECONDARY_FIRST:
        return _prefer(sessions, DeviceCategory.SECONDARY, DeviceCategory.PRIMARY)
    if mode is DevicePrecedence.AVERAGE:
        return list(sessions)
    raise ValueError(f"Unhandled device precedence: {mode!r}")
