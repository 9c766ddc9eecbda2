"""
Playback - Session Coordinator.

============================================================
RESPONSIBILITY
============================================================
Wires one engine, one change detector and one tag synchronizer
into a playback session.

- Binds the tag schema (sample row, or first emitted row)
- Runs every emitted row through report-by-exception
- Pushes the forwarded payload into the tag space
- Relays lifecycle events and forwarded rows to observers
- Tracks session statistics

============================================================
DATA FLOW
============================================================
source -> buffer -> engine tick -> RowEmitted(row)
       -> ChangeDetector.process -> TagSynchronizer.sync
       -> RowEmitted(payload) to session observers

============================================================
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Union
import logging

from core.state_manager import PlaybackState
from data_sources.base import Row, RowSource
from playback.change_detector import ChangeDetector
from playback.engine import PlaybackEngine
from playback.events import (
    TERMINAL_EVENTS,
    EventDispatcher,
    PlaybackEvent,
    PlaybackObserver,
    PlaybackStarted,
    RowEmitted,
)
from playback.models import PlaybackConfig
from tag_space.synchronizer import TagSynchronizer


# ============================================================
# SESSION STATISTICS
# ============================================================

@dataclass
class PlaybackStats:
    """Counters for one session."""
    rows_emitted: int = 0
    rows_forwarded: int = 0
    rows_suppressed: int = 0
    tag_writes: int = 0
    tags_defaulted: int = 0
    fields_ignored: int = 0
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    final_state: Optional[PlaybackState] = None

    @property
    def duration_seconds(self) -> float:
        if self.started_at and self.ended_at:
            return (self.ended_at - self.started_at).total_seconds()
        return 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rows_emitted": self.rows_emitted,
            "rows_forwarded": self.rows_forwarded,
            "rows_suppressed": self.rows_suppressed,
            "tag_writes": self.tag_writes,
            "tags_defaulted": self.tags_defaulted,
            "fields_ignored": self.fields_ignored,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_seconds": self.duration_seconds,
            "final_state": self.final_state.value if self.final_state else None,
        }


# ============================================================
# SESSION
# ============================================================

class PlaybackSession:
    """
    Session coordinator.

    Collaborators are constructed by the caller and injected; the
    session holds no process-wide state.
    """

    def __init__(
        self,
        engine: PlaybackEngine,
        synchronizer: TagSynchronizer,
        detector: Optional[ChangeDetector] = None,
    ) -> None:
        self._engine = engine
        self._synchronizer = synchronizer
        self._detector = detector or ChangeDetector()
        self._events = EventDispatcher("playback.session")
        self._stats = PlaybackStats()
        self._terminal: Optional[asyncio.Event] = None
        self._logger = logging.getLogger("playback.session")

        self._engine.subscribe(self._on_engine_event)

    @property
    def engine(self) -> PlaybackEngine:
        return self._engine

    @property
    def detector(self) -> ChangeDetector:
        return self._detector

    @property
    def synchronizer(self) -> TagSynchronizer:
        return self._synchronizer

    @property
    def state(self) -> PlaybackState:
        return self._engine.state

    @property
    def stats(self) -> PlaybackStats:
        return self._stats

    def subscribe(self, observer: PlaybackObserver) -> None:
        self._events.subscribe(observer)

    def unsubscribe(self, observer: PlaybackObserver) -> None:
        self._events.unsubscribe(observer)

    # =========================================================
    # CONTROL
    # =========================================================

    def start(
        self,
        source: RowSource,
        config: Union[PlaybackConfig, Mapping[str, Any]],
        sample_row: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """
        Start a new session, stopping any running one first.

        Raises:
            InvalidConfigError: If the configuration is refused
        """
        if not isinstance(config, PlaybackConfig):
            config = PlaybackConfig.from_dict(config)
        config.validate()

        self._engine.stop()

        self._detector.reset(config.timestamp_column, config.report_by_exception)
        self._stats = PlaybackStats()
        self._terminal = asyncio.Event()

        if sample_row is not None:
            self._synchronizer.bind_schema(sample_row)
        else:
            self._synchronizer.unbind()

        self._logger.info(f"Starting playback session: {config.to_dict()}")
        self._engine.initialize(source, config)
        self._engine.start()

    def stop(self) -> None:
        """Stop the running session. Safe to call at any time."""
        self._engine.stop()

    async def wait(self, timeout: Optional[float] = None) -> PlaybackState:
        """
        Wait until the session finishes, stops or fails.

        Raises:
            asyncio.TimeoutError: If timeout elapses first
        """
        if self._terminal is not None:
            await asyncio.wait_for(self._terminal.wait(), timeout)
        return self._engine.state

    # =========================================================
    # ENGINE EVENTS
    # =========================================================

    def _on_engine_event(self, event: PlaybackEvent) -> None:
        if isinstance(event, RowEmitted):
            self._on_row(event)
            return

        if isinstance(event, PlaybackStarted):
            self._stats.started_at = event.at
        elif isinstance(event, TERMINAL_EVENTS):
            self._stats.ended_at = event.at
            self._stats.final_state = self._engine.state
            self._logger.info(f"Playback session ended: {self._stats.to_dict()}")

        self._events.emit(event)

        if isinstance(event, TERMINAL_EVENTS) and self._terminal is not None:
            self._terminal.set()

    def _on_row(self, event: RowEmitted) -> None:
        row: Row = event.payload
        self._stats.rows_emitted += 1

        if not self._synchronizer.is_bound:
            self._synchronizer.bind_schema(row)

        payload = self._detector.process(row)
        if payload is None:
            self._stats.rows_suppressed += 1
            return

        result = self._synchronizer.sync(payload)
        self._stats.rows_forwarded += 1
        self._stats.tag_writes += result.written
        self._stats.tags_defaulted += result.defaulted
        self._stats.fields_ignored += result.ignored

        self._events.emit(
            RowEmitted(payload=payload, sequence=event.sequence),
            should_continue=lambda: self._engine.state == PlaybackState.PLAYING,
        )
