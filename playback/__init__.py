"""
Playback Package.

Replays a row source into a tag space at a controlled pace.

Modules:
- models: PlaybackConfig, PlaybackSettings, modes and units
- events: typed playback notifications
- buffer: flow-controlled row buffer
- timing: delay computation between consecutive rows
- engine: cooperative replay scheduler
- change_detector: report-by-exception diffing
- session: coordinator wiring engine, detector and tag sync
- cli: command-line entry point
"""

from playback.buffer import BufferEmpty, FlowControlledBuffer
from playback.change_detector import ChangeDetector, values_equal
from playback.engine import PlaybackEngine
from playback.events import (
    PlaybackEvent,
    PlaybackFailed,
    PlaybackFinished,
    PlaybackStarted,
    PlaybackStopped,
    RowEmitted,
)
from playback.models import PlaybackConfig, PlaybackMode, PlaybackSettings, TimestampUnit
from playback.session import PlaybackSession, PlaybackStats
from playback.timing import compute_delay_ms, parse_timestamp_ms

__all__ = [
    "BufferEmpty",
    "FlowControlledBuffer",
    "ChangeDetector",
    "values_equal",
    "PlaybackEngine",
    "PlaybackEvent",
    "PlaybackFailed",
    "PlaybackFinished",
    "PlaybackStarted",
    "PlaybackStopped",
    "RowEmitted",
    "PlaybackConfig",
    "PlaybackMode",
    "PlaybackSettings",
    "TimestampUnit",
    "PlaybackSession",
    "PlaybackStats",
    "compute_delay_ms",
    "parse_timestamp_ms",
]
