"""
Playback - Flow-Controlled Buffer.

============================================================
RESPONSIBILITY
============================================================
Absorbs a push-based row source into a bounded FIFO.

- push() at the tail, pop() from the head
- Pauses the source at the high-water mark
- Resumes it only at or below the low-water mark
- Records end-of-stream so "ended and empty" is observable

============================================================
HYSTERESIS
============================================================
len >= high_water_mark            -> pause (once)
len <= low_water_mark and paused  -> resume (once)

The pause check runs after every push and the resume check
after every pop. A push that reaches the high mark while the
buffer drains toward the low mark pauses the source again.

============================================================
"""

from collections import deque
from typing import Deque, Optional, Protocol
import logging

from core.constants import DEFAULT_HIGH_WATER_MARK, DEFAULT_LOW_WATER_MARK
from core.exceptions import InvalidConfigError
from data_sources.base import Row


class FlowControlled(Protocol):
    """The part of a row source the buffer signals."""

    def pause(self) -> None: ...

    def resume(self) -> None: ...

    def is_paused(self) -> bool: ...


class BufferEmpty(LookupError):
    """pop() on an empty buffer."""


class FlowControlledBuffer:
    """
    FIFO row buffer with watermark-based source backpressure.

    All operations are synchronous and never block.
    """

    def __init__(
        self,
        high_water_mark: int = DEFAULT_HIGH_WATER_MARK,
        low_water_mark: int = DEFAULT_LOW_WATER_MARK,
        source: Optional[FlowControlled] = None,
    ) -> None:
        if low_water_mark < 0:
            raise InvalidConfigError("low_water_mark", low_water_mark, "must be >= 0")
        if high_water_mark <= low_water_mark:
            raise InvalidConfigError(
                "high_water_mark", high_water_mark, "must be greater than low_water_mark"
            )

        self._high_water_mark = high_water_mark
        self._low_water_mark = low_water_mark
        self._source = source
        self._rows: Deque[Row] = deque()
        self._ended = False

        self.pause_signals = 0
        self.resume_signals = 0
        self._logger = logging.getLogger("playback.buffer")

    @property
    def high_water_mark(self) -> int:
        return self._high_water_mark

    @property
    def low_water_mark(self) -> int:
        return self._low_water_mark

    def __len__(self) -> int:
        return len(self._rows)

    @property
    def is_empty(self) -> bool:
        return not self._rows

    @property
    def is_ended(self) -> bool:
        return self._ended

    @property
    def is_drained(self) -> bool:
        """Ended and empty: nothing will ever be popped again."""
        return self._ended and not self._rows

    def reset(self, source: Optional[FlowControlled] = None) -> None:
        """Drop all rows and state, optionally binding a new source."""
        self._rows.clear()
        self._ended = False
        self._source = source
        self.pause_signals = 0
        self.resume_signals = 0

    def push(self, row: Row) -> None:
        self._rows.append(row)
        if len(self._rows) >= self._high_water_mark:
            self._pause_source()

    def pop(self) -> Row:
        """
        Remove and return the head row.

        Raises:
            BufferEmpty: If no row is buffered
        """
        if not self._rows:
            raise BufferEmpty("buffer is empty")
        row = self._rows.popleft()
        self.check_resume()
        return row

    def peek(self) -> Optional[Row]:
        """Head row without removing it, or None."""
        return self._rows[0] if self._rows else None

    def mark_ended(self) -> None:
        """No further rows will ever be pushed."""
        self._ended = True

    def clear(self) -> None:
        self._rows.clear()

    def check_resume(self) -> None:
        """Resume a paused source once the buffer is at or below the low mark."""
        if len(self._rows) > self._low_water_mark or self._source is None:
            return
        if self._source.is_paused():
            self._source.resume()
            self.resume_signals += 1
            self._logger.debug(f"Source resumed at buffer length {len(self._rows)}")

    def _pause_source(self) -> None:
        if self._source is None or self._source.is_paused():
            return
        self._source.pause()
        self.pause_signals += 1
        self._logger.debug(f"Source paused at buffer length {len(self._rows)}")
