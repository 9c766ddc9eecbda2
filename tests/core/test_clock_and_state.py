"""
Tests for Core Clock, Scheduling and State Management.

============================================================
PURPOSE
============================================================
Verify the time and lifecycle primitives the playback engine
is built on.

TEST PRINCIPLES:
- Virtual time only, no sleeping
- Cancelled callbacks never fire
- Illegal lifecycle transitions are refused

============================================================
"""

import pytest
from datetime import date, datetime, timedelta, timezone

from core.clock import (
    AsyncioTaskScheduler,
    ManualTaskScheduler,
    MockClock,
    from_iso8601,
    to_epoch_ms,
)
from core.exceptions import (
    ErrorClassification,
    InvalidConfigError,
    ReplayException,
    StateTransitionError,
    classify_exception,
)
from core.state_manager import PlaybackState, StateManager


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def scheduler():
    return ManualTaskScheduler()


@pytest.fixture
def state_manager():
    return StateManager()


# ============================================================
# MANUAL TASK SCHEDULER TESTS
# ============================================================

class TestManualTaskScheduler:
    """Tests for the virtual-time scheduler."""

    def test_nothing_fires_before_due(self, scheduler):
        """Test that a callback waits for its delay."""
        fired = []
        scheduler.schedule_after(100, lambda: fired.append(scheduler.now_ms))

        assert scheduler.advance(99) == 0
        assert fired == []

        assert scheduler.advance(1) == 1
        assert fired == [100]

    def test_cancelled_never_fires(self, scheduler):
        """Test that a cancelled callback is skipped."""
        fired = []
        handle = scheduler.schedule_after(10, lambda: fired.append(1))
        scheduler.cancel(handle)

        assert handle.cancelled
        assert scheduler.pending == 0
        assert scheduler.run_until_idle() == 0
        assert fired == []

    def test_cancel_none_is_noop(self, scheduler):
        """Test that cancelling no handle does nothing."""
        scheduler.cancel(None)

    def test_same_instant_runs_in_scheduling_order(self, scheduler):
        """Test FIFO order for callbacks due together."""
        order = []
        scheduler.schedule_after(5, lambda: order.append("a"))
        scheduler.schedule_after(5, lambda: order.append("b"))
        scheduler.schedule_after(0, lambda: order.append("c"))

        scheduler.run_until_idle()

        assert order == ["c", "a", "b"]

    def test_rearm_from_callback(self, scheduler):
        """Test that a callback may schedule the next one."""
        times = []

        def tick():
            times.append(scheduler.now_ms)
            if len(times) < 3:
                scheduler.schedule_after(250, tick)

        scheduler.schedule_after(0, tick)
        scheduler.run_until_idle()

        assert times == [0, 250, 500]
        assert scheduler.scheduled_delays == [0, 250, 250]

    def test_negative_delay_clamped(self, scheduler):
        """Test that negative delays run immediately."""
        scheduler.schedule_after(-50, lambda: None)
        assert scheduler.scheduled_delays == [0]


class TestAsyncioTaskScheduler:
    """Tests for the event-loop scheduler."""

    @pytest.mark.asyncio
    async def test_callback_runs_on_loop(self):
        """Test that a scheduled callback runs after its delay."""
        import asyncio

        done = asyncio.Event()
        scheduler = AsyncioTaskScheduler()
        scheduler.schedule_after(1, done.set)

        await asyncio.wait_for(done.wait(), 1.0)

    @pytest.mark.asyncio
    async def test_cancelled_callback_skipped(self):
        """Test that cancel prevents the callback."""
        import asyncio

        fired = []
        scheduler = AsyncioTaskScheduler()
        handle = scheduler.schedule_after(1, lambda: fired.append(1))
        scheduler.cancel(handle)

        await asyncio.sleep(0.02)

        assert handle.cancelled
        assert fired == []


# ============================================================
# CLOCK TESTS
# ============================================================

class TestMockClock:
    """Tests for the mockable wall clock."""

    def test_advance(self):
        """Test that advance moves time forward."""
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        clock = MockClock(start)

        clock.advance(seconds=90)

        assert clock.now() == start + timedelta(seconds=90)

    def test_set_time_naive_is_utc(self):
        """Test that a naive set_time is read as UTC."""
        clock = MockClock()
        clock.set_time(datetime(2024, 1, 1))

        assert clock.now().tzinfo == timezone.utc


class TestTimestampUtilities:
    """Tests for timestamp conversion helpers."""

    def test_iso_z_suffix(self):
        """Test that a trailing Z means UTC."""
        dt = from_iso8601("2024-01-01T00:00:00Z")
        assert dt == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_epoch_ms_naive_and_aware_agree(self):
        """Test that naive datetimes are read as UTC."""
        naive = datetime(2024, 1, 1, 0, 0, 1)
        aware = datetime(2024, 1, 1, 0, 0, 1, tzinfo=timezone.utc)
        assert to_epoch_ms(naive) == to_epoch_ms(aware)

    def test_epoch_ms_of_date(self):
        """Test that a date is midnight UTC."""
        assert to_epoch_ms(date(1970, 1, 2)) == 86_400_000


# ============================================================
# STATE MANAGER TESTS
# ============================================================

class TestStateManager:
    """Tests for the playback lifecycle state machine."""

    def test_initial_state(self, state_manager):
        """Test that a new manager starts idle."""
        assert state_manager.state == PlaybackState.IDLE
        assert state_manager.last_transition is None

    def test_full_lifecycle(self, state_manager):
        """Test the happy path through the lifecycle."""
        state_manager.transition_to(PlaybackState.INITIALIZED, "init")
        state_manager.transition_to(PlaybackState.PLAYING, "start")
        state_manager.transition_to(PlaybackState.FINISHED, "drained")

        assert state_manager.state == PlaybackState.FINISHED
        assert state_manager.state.is_terminal
        assert [t.to_state for t in state_manager.get_history()] == [
            PlaybackState.INITIALIZED,
            PlaybackState.PLAYING,
            PlaybackState.FINISHED,
        ]

    def test_illegal_transition_refused(self, state_manager):
        """Test that IDLE cannot jump to PLAYING."""
        with pytest.raises(StateTransitionError):
            state_manager.transition_to(PlaybackState.PLAYING, "skip init")

        assert state_manager.state == PlaybackState.IDLE

    def test_terminal_states_can_reinitialize(self, state_manager):
        """Test that every terminal state allows a new session."""
        for terminal in (PlaybackState.STOPPED, PlaybackState.FINISHED, PlaybackState.ERRORED):
            manager = StateManager()
            manager.transition_to(PlaybackState.INITIALIZED, "init")
            if terminal == PlaybackState.FINISHED:
                manager.transition_to(PlaybackState.PLAYING, "start")
            manager.transition_to(terminal, "end")

            assert manager.can_transition_to(PlaybackState.INITIALIZED)
            assert not manager.can_transition_to(PlaybackState.PLAYING)

    def test_active_states(self):
        """Test which states own a source."""
        assert PlaybackState.INITIALIZED.is_active
        assert PlaybackState.PLAYING.is_active
        assert not PlaybackState.IDLE.is_active
        assert not PlaybackState.STOPPED.is_active


# ============================================================
# EXCEPTION TESTS
# ============================================================

class TestExceptions:
    """Tests for the exception hierarchy."""

    def test_invalid_config_carries_key(self):
        """Test that config errors name the offending key."""
        error = InvalidConfigError("multiplier", 0, "must be positive")

        assert isinstance(error, ReplayException)
        assert error.reason == "must be positive"
        assert "multiplier" in error.to_log_format()

    def test_classify_foreign_exception(self):
        """Test that unknown exceptions get a classification."""
        assert isinstance(classify_exception(ValueError("x")), ErrorClassification)
