"""
Playback - Timing Policy.

============================================================
RESPONSIBILITY
============================================================
Converts two consecutive rows and the playback configuration
into the delay before the second row is emitted.

- FIXED: configured interval
- REALTIME: timestamp delta
- MULTIPLIER: timestamp delta / multiplier

============================================================
DESIGN PRINCIPLES
============================================================
- Pure functions, no side effects beyond debug logging
- Never a negative wait: out-of-order, duplicate or
  unparseable timestamps clamp to zero
- Parse failures degrade, they are never raised

============================================================
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping, Optional
import logging
import math

from core.clock import from_iso8601, to_epoch_ms
from core.constants import DEFAULT_FALLBACK_DELAY_MS, MS_PER_MINUTE, MS_PER_SECOND
from playback.models import PlaybackConfig, PlaybackMode, TimestampUnit


logger = logging.getLogger(__name__)

_UNIT_SCALE = {
    TimestampUnit.SECONDS: MS_PER_SECOND,
    TimestampUnit.MINUTES: MS_PER_MINUTE,
    TimestampUnit.MILLISECONDS: 1,
}


def _parse_number(raw: Any) -> Optional[float]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float, Decimal)):
        return float(raw)
    if isinstance(raw, (str, bytes)):
        text = raw.decode() if isinstance(raw, bytes) else raw
        try:
            return float(text.strip())
        except ValueError:
            return None
    return None


def _parse_calendar(raw: Any) -> Optional[float]:
    if isinstance(raw, (datetime, date)):
        return to_epoch_ms(raw)
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float, Decimal)):
        # bare numbers read as epoch milliseconds
        return float(raw)
    if isinstance(raw, str):
        try:
            return to_epoch_ms(from_iso8601(raw))
        except ValueError:
            return None
    return None


def parse_timestamp_ms(raw: Any, unit: TimestampUnit = TimestampUnit.AUTO) -> float:
    """
    Read a raw timestamp column value as epoch milliseconds.

    None and unparseable values yield 0.
    """
    if raw is None:
        return 0.0

    if unit == TimestampUnit.AUTO:
        value = _parse_calendar(raw)
    else:
        number = _parse_number(raw)
        value = None if number is None else number * _UNIT_SCALE[unit]

    if value is None or not math.isfinite(value):
        logger.debug(f"Unparseable timestamp {raw!r} (unit={unit.value}), using 0")
        return 0.0
    return value


def compute_delay_ms(
    current: Mapping[str, Any],
    upcoming: Mapping[str, Any],
    config: PlaybackConfig,
    fallback_delay_ms: float = DEFAULT_FALLBACK_DELAY_MS,
) -> float:
    """
    Delay in milliseconds between emitting current and upcoming.

    Args:
        current: Row just emitted
        upcoming: Next row in the buffer
        config: Playback configuration (already validated)
        fallback_delay_ms: Used when timestamps cannot be resolved

    Returns:
        Finite, non-negative delay
    """
    if config.mode == PlaybackMode.FIXED:
        return float(config.interval_ms)

    column = config.timestamp_column
    if not column or column not in current or column not in upcoming:
        return float(fallback_delay_ms)

    t_current = parse_timestamp_ms(current[column], config.timestamp_unit)
    t_next = parse_timestamp_ms(upcoming[column], config.timestamp_unit)

    delta = t_next - t_current
    if not math.isfinite(delta) or delta < 0:
        delta = 0.0

    if config.mode == PlaybackMode.MULTIPLIER:
        return delta / config.multiplier
    return delta


__all__ = [
    "parse_timestamp_ms",
    "compute_delay_ms",
]
