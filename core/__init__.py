"""
Core Module Package.

This package contains the core infrastructure components
that all other modules depend on.

Components:
- clock: Wall clock and cancellable task scheduling
- state_manager: Playback lifecycle state
- exceptions: Custom exception hierarchy
- constants: System-wide defaults
"""

from .clock import (
    AsyncioTaskScheduler,
    ClockProtocol,
    ManualTaskScheduler,
    MockClock,
    SystemClock,
    TaskHandle,
    TaskScheduler,
)
from .exceptions import (
    ConfigurationError,
    InvalidConfigError,
    ReplayException,
    SourceError,
    TagWriteError,
)
from .state_manager import PlaybackState, StateManager
