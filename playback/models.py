"""
Playback - Models.

============================================================
RESPONSIBILITY
============================================================
Defines configuration models for the playback engine.

- Timing modes and timestamp units
- Per-session playback configuration (operator input)
- Engine settings (buffer thresholds and loop delays)

============================================================
CONFIGURATION SOURCES
============================================================
PlaybackConfig  <- operator request (wire names or snake_case)
PlaybackSettings <- environment (.env), overridable from CLI

============================================================
"""

from enum import Enum
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional
import math
import os

from dotenv import load_dotenv

from core.constants import (
    DEFAULT_FALLBACK_DELAY_MS,
    DEFAULT_HIGH_WATER_MARK,
    DEFAULT_INTERVAL_MS,
    DEFAULT_LOOKAHEAD_POLL_MS,
    DEFAULT_LOW_WATER_MARK,
    DEFAULT_MULTIPLIER,
    DEFAULT_UNDERFLOW_RETRY_MS,
)
from core.exceptions import InvalidConfigError


# ============================================================
# ENUMS
# ============================================================

class PlaybackMode(str, Enum):
    """How the delay between consecutive rows is computed."""

    REALTIME = "realtime"
    """Original timestamp deltas."""

    MULTIPLIER = "multiplier"
    """Original deltas divided by a speed multiplier."""

    FIXED = "fixed"
    """Constant interval regardless of row contents."""


class TimestampUnit(str, Enum):
    """How raw timestamp column values are read."""

    AUTO = "auto"
    SECONDS = "seconds"
    MINUTES = "minutes"
    MILLISECONDS = "milliseconds"

    @classmethod
    def _missing_(cls, value: object) -> Optional["TimestampUnit"]:
        if isinstance(value, str):
            return _UNIT_ALIASES.get(value.strip().lower())
        return None


_UNIT_ALIASES = {
    "s": TimestampUnit.SECONDS,
    "sec": TimestampUnit.SECONDS,
    "m": TimestampUnit.MINUTES,
    "min": TimestampUnit.MINUTES,
    "ms": TimestampUnit.MILLISECONDS,
    "": TimestampUnit.AUTO,
}


# ============================================================
# PLAYBACK CONFIG
# ============================================================

# wire name -> field name
_WIRE_FIELDS = {
    "timestampColumn": "timestamp_column",
    "timestampCol": "timestamp_column",
    "timestampUnit": "timestamp_unit",
    "mode": "mode",
    "multiplier": "multiplier",
    "intervalMs": "interval_ms",
    "interval": "interval_ms",
    "reportByException": "report_by_exception",
    "rbe": "report_by_exception",
}


def _enum_text(value: Any) -> str:
    if isinstance(value, Enum):
        return value.value
    return str(value).strip().lower()


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@dataclass(frozen=True)
class PlaybackConfig:
    """Configuration accepted at session start."""

    timestamp_column: Optional[str] = None
    timestamp_unit: TimestampUnit = TimestampUnit.AUTO
    mode: PlaybackMode = PlaybackMode.REALTIME
    multiplier: float = DEFAULT_MULTIPLIER
    interval_ms: int = DEFAULT_INTERVAL_MS
    report_by_exception: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PlaybackConfig":
        """
        Build from a request payload.

        Unknown keys are ignored and missing keys take defaults.

        Raises:
            InvalidConfigError: If a value cannot be read at all
        """
        values: Dict[str, Any] = {}
        for key, raw in data.items():
            name = _WIRE_FIELDS.get(key, key)
            if name in cls.__dataclass_fields__ and raw is not None:
                values[name] = raw

        try:
            if "mode" in values:
                values["mode"] = PlaybackMode(_enum_text(values["mode"]))
        except ValueError:
            raise InvalidConfigError("mode", values["mode"], "unknown playback mode")

        try:
            if "timestamp_unit" in values:
                values["timestamp_unit"] = TimestampUnit(_enum_text(values["timestamp_unit"]))
        except ValueError:
            raise InvalidConfigError("timestamp_unit", values["timestamp_unit"], "unknown timestamp unit")

        try:
            if "multiplier" in values:
                values["multiplier"] = float(values["multiplier"])
        except (TypeError, ValueError):
            raise InvalidConfigError("multiplier", values["multiplier"], "must be a number")

        try:
            if "interval_ms" in values:
                values["interval_ms"] = int(float(values["interval_ms"]))
        except (TypeError, ValueError):
            raise InvalidConfigError("interval_ms", values["interval_ms"], "must be an integer")

        if "report_by_exception" in values:
            values["report_by_exception"] = _as_bool(values["report_by_exception"])

        if values.get("timestamp_column") == "":
            values["timestamp_column"] = None

        return cls(**values)

    def validate(self) -> None:
        """
        Refuse configurations that would schedule nonsensical delays.

        Raises:
            InvalidConfigError: On the first violation found
        """
        if self.mode == PlaybackMode.FIXED and not self.interval_ms > 0:
            raise InvalidConfigError("interval_ms", self.interval_ms, "fixed mode requires interval_ms > 0")

        if self.mode == PlaybackMode.MULTIPLIER and not (
            math.isfinite(self.multiplier) and self.multiplier > 0
        ):
            raise InvalidConfigError("multiplier", self.multiplier, "multiplier mode requires multiplier > 0")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestampColumn": self.timestamp_column,
            "timestampUnit": self.timestamp_unit.value,
            "mode": self.mode.value,
            "multiplier": self.multiplier,
            "intervalMs": self.interval_ms,
            "reportByException": self.report_by_exception,
        }


# ============================================================
# ENGINE SETTINGS
# ============================================================

@dataclass(frozen=True)
class PlaybackSettings:
    """Buffer thresholds and loop delays (milliseconds)."""

    high_water_mark: int = DEFAULT_HIGH_WATER_MARK
    low_water_mark: int = DEFAULT_LOW_WATER_MARK
    lookahead_poll_ms: float = DEFAULT_LOOKAHEAD_POLL_MS
    underflow_retry_ms: float = DEFAULT_UNDERFLOW_RETRY_MS
    fallback_delay_ms: float = DEFAULT_FALLBACK_DELAY_MS

    @classmethod
    def from_env(cls) -> "PlaybackSettings":
        """Load settings from environment variables."""
        load_dotenv()
        return cls(
            high_water_mark=int(os.getenv("PLAYBACK_HIGH_WATER_MARK", str(DEFAULT_HIGH_WATER_MARK))),
            low_water_mark=int(os.getenv("PLAYBACK_LOW_WATER_MARK", str(DEFAULT_LOW_WATER_MARK))),
            lookahead_poll_ms=float(os.getenv("PLAYBACK_LOOKAHEAD_POLL_MS", str(DEFAULT_LOOKAHEAD_POLL_MS))),
            underflow_retry_ms=float(os.getenv("PLAYBACK_UNDERFLOW_RETRY_MS", str(DEFAULT_UNDERFLOW_RETRY_MS))),
            fallback_delay_ms=float(os.getenv("PLAYBACK_FALLBACK_DELAY_MS", str(DEFAULT_FALLBACK_DELAY_MS))),
        )

    def validate(self) -> List[str]:
        """Validate settings, return list of errors."""
        errors = []

        if self.low_water_mark < 0:
            errors.append("low_water_mark must be >= 0")

        if self.high_water_mark <= self.low_water_mark:
            errors.append("high_water_mark must be greater than low_water_mark")

        if self.lookahead_poll_ms <= 0:
            errors.append("lookahead_poll_ms must be positive")

        if self.underflow_retry_ms <= 0:
            errors.append("underflow_retry_ms must be positive")

        if self.fallback_delay_ms < 0:
            errors.append("fallback_delay_ms must be >= 0")

        return errors


__all__ = [
    "PlaybackMode",
    "TimestampUnit",
    "PlaybackConfig",
    "PlaybackSettings",
]
