"""
Playback - Events.

============================================================
RESPONSIBILITY
============================================================
The closed set of notifications a playback emits, and the
observer registry that delivers them.

- PlaybackStarted
- RowEmitted(payload)
- PlaybackFinished
- PlaybackStopped
- PlaybackFailed(detail)

============================================================
DESIGN PRINCIPLES
============================================================
- Typed variants, no event name strings
- Delivery is synchronous, in registration order
- A failing observer is logged and never breaks playback

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union
import logging

from core.exceptions import ErrorClassification, classify_exception


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PlaybackStarted:
    """The scheduler loop began."""
    at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {"event": "started", "at": self.at.isoformat()}


@dataclass(frozen=True)
class RowEmitted:
    """A row (or its changed fields) was emitted."""
    payload: Dict[str, Any]
    sequence: int = 0
    at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {"event": "row", "sequence": self.sequence, "payload": self.payload}


@dataclass(frozen=True)
class PlaybackFinished:
    """The source ended and every buffered row was emitted."""
    rows_emitted: int = 0
    at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {"event": "finished", "rows_emitted": self.rows_emitted, "at": self.at.isoformat()}


@dataclass(frozen=True)
class PlaybackStopped:
    """Playback was stopped by the operator."""
    rows_emitted: int = 0
    at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {"event": "stopped", "rows_emitted": self.rows_emitted, "at": self.at.isoformat()}


@dataclass(frozen=True)
class PlaybackFailed:
    """The source failed; detail is the failure as reported."""
    detail: BaseException
    at: datetime = field(default_factory=_utcnow)

    @property
    def message(self) -> str:
        return str(self.detail)

    @property
    def classification(self) -> ErrorClassification:
        return classify_exception(self.detail)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "error",
            "error_type": type(self.detail).__name__,
            "message": self.message,
            "classification": self.classification.value,
            "at": self.at.isoformat(),
        }


PlaybackEvent = Union[
    PlaybackStarted,
    RowEmitted,
    PlaybackFinished,
    PlaybackStopped,
    PlaybackFailed,
]

TERMINAL_EVENTS = (PlaybackFinished, PlaybackStopped, PlaybackFailed)

PlaybackObserver = Callable[[PlaybackEvent], None]


class EventDispatcher:
    """Registry of observers for one event producer."""

    def __init__(self, name: str = "playback") -> None:
        self._observers: List[PlaybackObserver] = []
        self._logger = logging.getLogger(f"{name}.events")

    def subscribe(self, observer: PlaybackObserver) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def unsubscribe(self, observer: PlaybackObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def clear(self) -> None:
        self._observers.clear()

    def __len__(self) -> int:
        return len(self._observers)

    def emit(
        self,
        event: PlaybackEvent,
        should_continue: Optional[Callable[[], bool]] = None,
    ) -> None:
        """
        Deliver event to each observer in subscription order.

        should_continue is checked before every observer; once it
        returns False the remaining observers are skipped.
        """
        for observer in list(self._observers):
            if should_continue is not None and not should_continue():
                self._logger.debug(f"Delivery of {type(event).__name__} cut short")
                return
            try:
                observer(event)
            except Exception as e:
                self._logger.error(
                    f"Observer error on {type(event).__name__}: {e}",
                    exc_info=True,
                )


__all__ = [
    "PlaybackStarted",
    "RowEmitted",
    "PlaybackFinished",
    "PlaybackStopped",
    "PlaybackFailed",
    "PlaybackEvent",
    "PlaybackObserver",
    "TERMINAL_EVENTS",
    "EventDispatcher",
]
