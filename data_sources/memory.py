"""
In-Memory Row Source - Replays an iterable on the event loop.

Accepts a plain iterable or an async iterable of mappings. Rows
are produced by an asyncio task that waits while paused and
yields to the loop every few rows, so the consumer gets turns
even when the iterable is instant.
"""

import asyncio
import logging
from typing import Any, AsyncIterable, Iterable, Mapping, Optional, Union

from data_sources.base import Row, RowSource


logger = logging.getLogger(__name__)

RowIterable = Union[Iterable[Mapping[str, Any]], AsyncIterable[Mapping[str, Any]]]


class IterableRowSource(RowSource):
    """
    Row source over an in-memory (or async) iterable.

    An exception raised while iterating is reported through the
    error signal, exactly like a failing database cursor.
    """

    def __init__(
        self,
        rows: RowIterable,
        name: str = "memory",
        rows_per_turn: int = 50,
    ) -> None:
        super().__init__(name=name)
        self._rows = rows
        self._rows_per_turn = max(1, rows_per_turn)
        self._resumed: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    def _start(self) -> None:
        self._resumed = asyncio.Event()
        if not self._paused:
            self._resumed.set()
        self._task = asyncio.get_running_loop().create_task(
            self._produce(), name=f"row-source-{self._name}"
        )

    async def _produce(self) -> None:
        produced = 0
        try:
            if hasattr(self._rows, "__aiter__"):
                async for row in self._rows:
                    if not await self._deliver(row):
                        return
                    produced += 1
                    if produced % self._rows_per_turn == 0:
                        await asyncio.sleep(0)
            else:
                for row in self._rows:
                    if not await self._deliver(row):
                        return
                    produced += 1
                    if produced % self._rows_per_turn == 0:
                        await asyncio.sleep(0)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._emit_error(e)
            return

        self._emit_end()

    async def _deliver(self, row: Mapping[str, Any]) -> bool:
        """Emit one row, waiting first if paused. False once destroyed."""
        while self._paused and not self._destroyed:
            await self._resumed.wait()
        if self._destroyed:
            return False
        self._emit_data(dict(row))
        return True

    def _on_pause(self) -> None:
        if self._resumed is not None:
            self._resumed.clear()

    def _on_resume(self) -> None:
        if self._resumed is not None:
            self._resumed.set()

    def _close(self) -> None:
        if self._resumed is not None:
            self._resumed.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()
