"""
Core Module - Playback State Manager.

============================================================
RESPONSIBILITY
============================================================
Owns the lifecycle state of one playback engine.

- Tracks playback state (idle, initialized, playing, ...)
- Enforces valid transitions
- Keeps a bounded transition history for diagnostics

============================================================
STATE MACHINE
============================================================
IDLE        -> INITIALIZED
INITIALIZED -> PLAYING | STOPPED | ERRORED | INITIALIZED
PLAYING     -> FINISHED | STOPPED | ERRORED
STOPPED     -> INITIALIZED
FINISHED    -> INITIALIZED
ERRORED     -> INITIALIZED

Underflow (buffer momentarily empty) is not a state; it is a
retry inside PLAYING.

============================================================
"""

from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Set
import logging

from .exceptions import StateTransitionError


# ============================================================
# PLAYBACK STATE
# ============================================================

class PlaybackState(Enum):
    """Playback lifecycle state enumeration."""

    IDLE = "idle"
    """No session has been initialized."""

    INITIALIZED = "initialized"
    """Source attached and buffering, playback not started."""

    PLAYING = "playing"
    """Scheduler loop is emitting rows."""

    STOPPED = "stopped"
    """Stopped by the operator."""

    FINISHED = "finished"
    """Source ended and every buffered row was emitted."""

    ERRORED = "errored"
    """Source failed; the session was torn down."""

    @property
    def is_active(self) -> bool:
        """Check if a session currently owns a source."""
        return self in (PlaybackState.INITIALIZED, PlaybackState.PLAYING)

    @property
    def is_terminal(self) -> bool:
        """Check if the session is over."""
        return self in (
            PlaybackState.STOPPED,
            PlaybackState.FINISHED,
            PlaybackState.ERRORED,
        )


# ============================================================
# STATE TRANSITIONS
# ============================================================

VALID_TRANSITIONS: Dict[PlaybackState, Set[PlaybackState]] = {
    PlaybackState.IDLE: {
        PlaybackState.INITIALIZED,
    },
    PlaybackState.INITIALIZED: {
        PlaybackState.PLAYING,
        PlaybackState.STOPPED,
        PlaybackState.ERRORED,
        PlaybackState.INITIALIZED,
    },
    PlaybackState.PLAYING: {
        PlaybackState.FINISHED,
        PlaybackState.STOPPED,
        PlaybackState.ERRORED,
    },
    PlaybackState.STOPPED: {PlaybackState.INITIALIZED},
    PlaybackState.FINISHED: {PlaybackState.INITIALIZED},
    PlaybackState.ERRORED: {PlaybackState.INITIALIZED},
}


@dataclass(frozen=True)
class StateTransition:
    """One step of the lifecycle, kept for diagnostics."""

    from_state: PlaybackState
    to_state: PlaybackState
    reason: str
    context: Dict[str, Any] = field(default_factory=dict)
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def describe(self) -> str:
        line = f"{self.from_state.value} -> {self.to_state.value} | reason={self.reason}"
        if self.context:
            line += " " + " ".join(f"{k}={v}" for k, v in self.context.items())
        return line


# ============================================================
# STATE MANAGER
# ============================================================

class StateManager:
    """
    Playback state with transition enforcement.

    Synchronous: every caller runs on the same event loop turn,
    so there is nothing to lock.
    """

    def __init__(
        self,
        initial_state: PlaybackState = PlaybackState.IDLE,
        max_history: int = 50,
    ):
        self._current = initial_state
        self._why = "created"
        self._steps: Deque[StateTransition] = deque(maxlen=max_history)
        self._logger = logging.getLogger(__name__)

    @property
    def state(self) -> PlaybackState:
        return self._current

    @property
    def reason(self) -> str:
        """Why the manager is in its current state."""
        return self._why

    @property
    def last_transition(self) -> Optional[StateTransition]:
        return self._steps[-1] if self._steps else None

    def get_history(self, limit: int = 10) -> List[StateTransition]:
        """Most recent transitions, oldest first."""
        return list(self._steps)[-limit:]

    def can_transition_to(self, target_state: PlaybackState) -> bool:
        return target_state in VALID_TRANSITIONS.get(self._current, set())

    def transition_to(
        self,
        target_state: PlaybackState,
        reason: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> StateTransition:
        """
        Move to target_state, recording why.

        Raises:
            StateTransitionError: target_state is not reachable from
                the current state. The current state is unchanged.
        """
        if not self.can_transition_to(target_state):
            raise StateTransitionError(
                f"Playback cannot go from {self._current.value} to {target_state.value}",
                from_state=self._current.value,
                to_state=target_state.value,
                reason=reason,
            )

        step = StateTransition(self._current, target_state, reason, dict(context or {}))
        self._current = target_state
        self._why = reason
        self._steps.append(step)

        self._logger.info(f"Playback state: {step.describe()}")
        return step


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    "PlaybackState",
    "StateTransition",
    "StateManager",
    "VALID_TRANSITIONS",
]
