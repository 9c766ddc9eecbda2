"""
Playback - Replay Engine.

============================================================
RESPONSIBILITY
============================================================
Replays a row source at a controlled pace.

- Owns the flow-controlled buffer and the source listeners
- Pops one row per tick and emits it
- Re-arms itself after the delay the timing policy computes
- Owns the playback lifecycle state machine

============================================================
TICK
============================================================
1. Buffer empty and source ended  -> FINISHED (once)
2. Buffer empty, source live      -> retry after underflow delay
3. Otherwise pop head, emit RowEmitted, then
   - next row buffered  -> re-arm after timing policy delay
   - nothing buffered   -> re-arm after lookahead poll delay

============================================================
CONCURRENCY
============================================================
Ticks and source signals run as callbacks on one event loop,
never in parallel. stop() cancels the pending tick before
any teardown, so no scheduled tick fires after it returns.

============================================================
"""

from typing import Optional
import logging

from core.clock import AsyncioTaskScheduler, TaskHandle, TaskScheduler
from core.exceptions import InvalidConfigError
from core.state_manager import PlaybackState, StateManager
from data_sources.base import Row, RowSource
from playback.buffer import FlowControlledBuffer
from playback.events import (
    EventDispatcher,
    PlaybackFailed,
    PlaybackFinished,
    PlaybackObserver,
    PlaybackStarted,
    PlaybackStopped,
    RowEmitted,
)
from playback.models import PlaybackConfig, PlaybackSettings
from playback.timing import compute_delay_ms


class PlaybackEngine:
    """
    Cooperative replay scheduler for one session at a time.

    Re-initializing tears down the previous session first.
    """

    def __init__(
        self,
        scheduler: Optional[TaskScheduler] = None,
        settings: Optional[PlaybackSettings] = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            scheduler: Timed re-arm primitive (defaults to the asyncio loop)
            settings: Buffer thresholds and loop delays

        Raises:
            InvalidConfigError: If settings are inconsistent
        """
        self._settings = settings or PlaybackSettings()
        errors = self._settings.validate()
        if errors:
            raise InvalidConfigError("settings", self._settings, "; ".join(errors))

        self._scheduler = scheduler or AsyncioTaskScheduler()
        self._state = StateManager()
        self._buffer = FlowControlledBuffer(
            high_water_mark=self._settings.high_water_mark,
            low_water_mark=self._settings.low_water_mark,
        )
        self._events = EventDispatcher("playback.engine")

        self._source: Optional[RowSource] = None
        self._config: Optional[PlaybackConfig] = None
        self._pending: Optional[TaskHandle] = None
        self._rows_emitted = 0

        self._logger = logging.getLogger("playback.engine")

    # =========================================================
    # PROPERTIES
    # =========================================================

    @property
    def state(self) -> PlaybackState:
        return self._state.state

    @property
    def state_manager(self) -> StateManager:
        return self._state

    @property
    def config(self) -> Optional[PlaybackConfig]:
        return self._config

    @property
    def settings(self) -> PlaybackSettings:
        return self._settings

    @property
    def buffer(self) -> FlowControlledBuffer:
        return self._buffer

    @property
    def rows_emitted(self) -> int:
        return self._rows_emitted

    @property
    def has_pending_tick(self) -> bool:
        return self._pending is not None

    # =========================================================
    # OBSERVERS
    # =========================================================

    def subscribe(self, observer: PlaybackObserver) -> None:
        self._events.subscribe(observer)

    def unsubscribe(self, observer: PlaybackObserver) -> None:
        self._events.unsubscribe(observer)

    # =========================================================
    # LIFECYCLE
    # =========================================================

    def initialize(self, source: RowSource, config: PlaybackConfig) -> None:
        """
        Bind a source and configuration as a new session.

        Raises:
            InvalidConfigError: If the configuration is refused;
                the previous session is left untouched
        """
        config.validate()
        self.stop()

        self._source = source
        self._config = config
        self._buffer.reset(source)
        self._rows_emitted = 0

        self._state.transition_to(
            PlaybackState.INITIALIZED,
            "session initialized",
            context={"source": source.name, "mode": config.mode.value},
        )

        source.attach(
            on_data=lambda row: self._on_source_data(source, row),
            on_end=lambda: self._on_source_end(source),
            on_error=lambda exc: self._on_source_error(source, exc),
        )

    def start(self) -> None:
        """Begin the scheduling loop. No-op unless freshly initialized."""
        state = self._state.state
        if state == PlaybackState.PLAYING:
            self._logger.debug("start() while playing, ignored")
            return
        if state != PlaybackState.INITIALIZED:
            self._logger.warning(f"start() ignored in state={state.value}")
            return

        self._state.transition_to(PlaybackState.PLAYING, "playback started")
        self._events.emit(PlaybackStarted())
        if self._state.state == PlaybackState.PLAYING:
            self._arm(0)

    def stop(self) -> None:
        """Stop the session. Idempotent: only an active session emits PlaybackStopped."""
        if not self._state.state.is_active:
            return

        self._teardown()
        self._state.transition_to(
            PlaybackState.STOPPED,
            "stopped by operator",
            context={"rows_emitted": self._rows_emitted},
        )
        self._events.emit(PlaybackStopped(rows_emitted=self._rows_emitted))

    def _teardown(self) -> None:
        self._scheduler.cancel(self._pending)
        self._pending = None

        source, self._source = self._source, None
        if source is not None:
            source.detach()
            source.destroy()

        self._buffer.reset()

    # =========================================================
    # SCHEDULING LOOP
    # =========================================================

    def _is_playing(self) -> bool:
        return self._state.state == PlaybackState.PLAYING

    def _arm(self, delay_ms: float) -> None:
        self._pending = self._scheduler.schedule_after(delay_ms, self._tick)

    def _tick(self) -> None:
        self._pending = None
        if self._state.state != PlaybackState.PLAYING:
            return

        if self._buffer.is_empty:
            if self._buffer.is_ended:
                self._finish()
            else:
                self._logger.debug("Buffer underflow, retrying")
                self._arm(self._settings.underflow_retry_ms)
            return

        row = self._buffer.pop()
        self._rows_emitted += 1
        self._events.emit(
            RowEmitted(payload=row, sequence=self._rows_emitted),
            should_continue=self._is_playing,
        )

        # an observer may have stopped playback
        if not self._is_playing():
            return

        upcoming = self._buffer.peek()
        if upcoming is None:
            delay = self._settings.lookahead_poll_ms
        else:
            delay = compute_delay_ms(
                row,
                upcoming,
                self._config,
                fallback_delay_ms=self._settings.fallback_delay_ms,
            )
        self._arm(delay)

    def _finish(self) -> None:
        source, self._source = self._source, None
        if source is not None:
            source.detach()
            source.destroy()

        self._state.transition_to(
            PlaybackState.FINISHED,
            "source drained",
            context={"rows_emitted": self._rows_emitted},
        )
        self._events.emit(PlaybackFinished(rows_emitted=self._rows_emitted))

    # =========================================================
    # SOURCE SIGNALS
    # =========================================================

    def _on_source_data(self, source: RowSource, row: Row) -> None:
        if source is not self._source:
            return
        self._buffer.push(row)

    def _on_source_end(self, source: RowSource) -> None:
        if source is not self._source:
            return
        self._buffer.mark_ended()
        self._logger.info(f"Source ended, {len(self._buffer)} rows left in buffer")

    def _on_source_error(self, source: RowSource, exc: BaseException) -> None:
        if source is not self._source or not self._state.state.is_active:
            return

        failure = PlaybackFailed(detail=exc)
        self._logger.error(
            f"Playback source failed: {exc} | classification={failure.classification.value}"
        )
        self._teardown()
        self._state.transition_to(
            PlaybackState.ERRORED,
            "source failure",
            context={"error": str(exc)},
        )
        self._events.emit(failure)
