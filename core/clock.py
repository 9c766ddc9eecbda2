"""
Core Module - Clock and Task Scheduling.

============================================================
RESPONSIBILITY
============================================================
Provides the time abstractions the playback engine runs on.

- Wall clock for "current instant" values
- Cancellable timed re-arm primitive for the scheduler loop

============================================================
DESIGN PRINCIPLES
============================================================
- UTC only - naive datetimes are read as UTC
- Settable clock and virtual-time scheduler for tests
- No process-wide clock instance; callers inject one
- A cancelled task never fires

============================================================
"""

import asyncio
import heapq
import itertools
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple


# ============================================================
# CLOCK PROTOCOL
# ============================================================

class ClockProtocol(ABC):
    """Source of "now" for default timestamp values."""

    @abstractmethod
    def now(self) -> datetime:
        """Current instant, timezone-aware UTC."""


class SystemClock(ClockProtocol):
    """Wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class MockClock(ClockProtocol):
    """
    Settable clock for tests.

    Time only moves when set_time() or advance() is called.
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        self._frozen_at = _as_utc(initial_time) if initial_time else datetime.now(timezone.utc)

    def now(self) -> datetime:
        return self._frozen_at

    def set_time(self, new_time: datetime) -> None:
        """Jump to new_time. Naive values are read as UTC."""
        self._frozen_at = _as_utc(new_time)

    def advance(self, seconds: float = 0, **kwargs) -> None:
        """Move forward; extra keywords go to timedelta (minutes=, hours=)."""
        self._frozen_at += timedelta(seconds=seconds, **kwargs)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


# ============================================================
# TASK HANDLES
# ============================================================

class TaskHandle(ABC):
    """Handle to a scheduled callback."""

    @abstractmethod
    def cancel(self) -> None:
        """Cancel the callback. Safe to call more than once."""
        pass

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        """Whether the callback was cancelled."""
        pass


class _AsyncioTaskHandle(TaskHandle):
    def __init__(self, timer: asyncio.TimerHandle):
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()

    @property
    def cancelled(self) -> bool:
        return self._timer.cancelled()


class _ManualTaskHandle(TaskHandle):
    def __init__(self, due_ms: float, callback: Callable[[], None]):
        self.due_ms = due_ms
        self.callback = callback
        self.fired = False
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


# ============================================================
# TASK SCHEDULERS
# ============================================================

class TaskScheduler(ABC):
    """
    Cancellable timed re-arm primitive.

    The playback engine never sleeps; it asks the scheduler to call
    it back after a delay and keeps the handle so stop() can cancel.
    """

    @abstractmethod
    def schedule_after(self, delay_ms: float, callback: Callable[[], None]) -> TaskHandle:
        """Run callback once after delay_ms milliseconds."""
        pass

    def cancel(self, handle: Optional[TaskHandle]) -> None:
        """Cancel a handle returned by schedule_after."""
        if handle is not None:
            handle.cancel()


class AsyncioTaskScheduler(TaskScheduler):
    """
    Production scheduler backed by the asyncio event loop.

    Callbacks run on the loop thread, interleaved with source
    callbacks, so nothing they touch needs a lock.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def schedule_after(self, delay_ms: float, callback: Callable[[], None]) -> TaskHandle:
        delay_seconds = max(0.0, float(delay_ms)) / 1000.0
        return _AsyncioTaskHandle(self.loop.call_later(delay_seconds, callback))


class ManualTaskScheduler(TaskScheduler):
    """
    Virtual-time scheduler for deterministic tests.

    Nothing fires until advance() or run_until_idle() is called.
    Callbacks due at the same instant run in scheduling order.
    """

    def __init__(self, start_ms: float = 0.0):
        self._now_ms = start_ms
        self._queue: List[Tuple[float, int, _ManualTaskHandle]] = []
        self._sequence = itertools.count()
        self.scheduled_delays: List[float] = []

    @property
    def now_ms(self) -> float:
        return self._now_ms

    @property
    def pending(self) -> int:
        """Number of scheduled, uncancelled, unfired callbacks."""
        return sum(1 for _, _, h in self._queue if not h.cancelled and not h.fired)

    def schedule_after(self, delay_ms: float, callback: Callable[[], None]) -> TaskHandle:
        delay_ms = max(0.0, float(delay_ms))
        self.scheduled_delays.append(delay_ms)
        handle = _ManualTaskHandle(self._now_ms + delay_ms, callback)
        heapq.heappush(self._queue, (handle.due_ms, next(self._sequence), handle))
        return handle

    def advance(self, delta_ms: float) -> int:
        """
        Move virtual time forward, firing every callback that falls due.

        Returns:
            Number of callbacks fired
        """
        target = self._now_ms + delta_ms
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due_ms, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now_ms = due_ms
            handle.fired = True
            handle.callback()
            fired += 1
        self._now_ms = target
        return fired

    def run_next(self) -> bool:
        """Jump to and fire the next due callback. False when none remain."""
        while self._queue:
            due_ms, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now_ms = max(self._now_ms, due_ms)
            handle.fired = True
            handle.callback()
            return True
        return False

    def run_until_idle(self, max_steps: int = 100_000) -> int:
        """Fire callbacks until none are scheduled. Returns callbacks fired."""
        steps = 0
        while steps < max_steps and self.run_next():
            steps += 1
        return steps


# ============================================================
# TIMESTAMP UTILITIES
# ============================================================

def from_iso8601(iso_string: str) -> datetime:
    """Parse ISO 8601 string to datetime. A trailing 'Z' means UTC."""
    text = iso_string.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return _as_utc(datetime.fromisoformat(text))


def to_epoch_ms(value) -> float:
    """Epoch milliseconds of a datetime or date (naive read as UTC)."""
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp() * 1000.0


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    # Clocks
    "ClockProtocol",
    "SystemClock",
    "MockClock",

    # Scheduling
    "TaskHandle",
    "TaskScheduler",
    "AsyncioTaskScheduler",
    "ManualTaskScheduler",

    # Utilities
    "from_iso8601",
    "to_epoch_ms",
]
