"""
Base Row Source - Abstract interface for replayable row streams.

A row source exposes an ordered, pausable sequence of rows and
reports three signals to a single attached listener:
- data(row): one row, in source order
- end(): no further rows will ever arrive
- error(exc): the sequence failed; terminal

All signals are delivered on the event loop thread, so the
listener may mutate its own state without locking.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional


logger = logging.getLogger(__name__)

Row = Dict[str, Any]
DataListener = Callable[[Row], None]
EndListener = Callable[[], None]
ErrorListener = Callable[[BaseException], None]


class RowSource(ABC):
    """
    Abstract base class for all row sources.

    Subclasses implement:
    1. _start() - begin producing once a listener is attached
    2. _on_pause() / _on_resume() - react to flow control
    3. _close() - release connections, stop producing

    Pause is advisory: rows already in flight may still arrive.
    """

    def __init__(self, name: str = "rows") -> None:
        self._name = name
        self._on_data: Optional[DataListener] = None
        self._on_end: Optional[EndListener] = None
        self._on_error: Optional[ErrorListener] = None
        self._paused = False
        self._started = False
        self._destroyed = False
        self._rows_emitted = 0

    @property
    def name(self) -> str:
        """Identifier used in logs and errors."""
        return self._name

    @property
    def rows_emitted(self) -> int:
        return self._rows_emitted

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    # =========================================================
    # LISTENERS
    # =========================================================

    def attach(
        self,
        on_data: DataListener,
        on_end: EndListener,
        on_error: ErrorListener,
    ) -> None:
        """
        Attach the listener and start producing.

        A source can be consumed once; attaching again only swaps
        the listener.
        """
        self._on_data = on_data
        self._on_end = on_end
        self._on_error = on_error
        if not self._started and not self._destroyed:
            self._started = True
            self._start()

    def detach(self) -> None:
        """Drop the listener. Later signals are discarded."""
        self._on_data = None
        self._on_end = None
        self._on_error = None

    # =========================================================
    # FLOW CONTROL
    # =========================================================

    def pause(self) -> None:
        if self._paused:
            return
        self._paused = True
        self._on_pause()

    def resume(self) -> None:
        if not self._paused:
            return
        self._paused = False
        self._on_resume()

    def is_paused(self) -> bool:
        return self._paused

    def destroy(self) -> None:
        """Stop producing and release resources. Idempotent."""
        if self._destroyed:
            return
        self._destroyed = True
        self.detach()
        self._close()
        logger.debug(f"[{self._name}] destroyed after {self._rows_emitted} rows")

    # =========================================================
    # SIGNAL DELIVERY (subclasses call these on the loop thread)
    # =========================================================

    def _emit_data(self, row: Row) -> None:
        if self._destroyed or self._on_data is None:
            return
        self._rows_emitted += 1
        self._on_data(row)

    def _emit_end(self) -> None:
        if self._destroyed or self._on_end is None:
            return
        logger.debug(f"[{self._name}] ended after {self._rows_emitted} rows")
        self._on_end()

    def _emit_error(self, exc: BaseException) -> None:
        if self._destroyed or self._on_error is None:
            return
        logger.error(f"[{self._name}] source error: {exc}")
        self._on_error(exc)

    # =========================================================
    # SUBCLASS HOOKS
    # =========================================================

    @abstractmethod
    def _start(self) -> None:
        """Begin producing rows."""
        pass

    def _on_pause(self) -> None:
        pass

    def _on_resume(self) -> None:
        pass

    @abstractmethod
    def _close(self) -> None:
        """Stop producing and release resources."""
        pass
