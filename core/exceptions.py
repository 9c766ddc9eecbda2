"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Exception hierarchy for the replay system.

- One base class carrying severity, class and context
- Separates surfaced errors from locally absorbed anomalies
- Serializes to dict and to a single log line

============================================================
EXCEPTION HIERARCHY
============================================================
ReplayException (base)
├── ConfigurationError
│   └── InvalidConfigError
├── SourceError
│   └── QueryError
├── StateTransitionError
└── TagSpaceError
    ├── TagWriteError
    └── UnknownTagError

============================================================
SURFACED VS ABSORBED
============================================================
Only source failures and configuration violations reach the
operator. Timestamp parse failures and tag coercion failures
are resolved where they happen and never raised to callers.

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY / CLASSIFICATION
# ============================================================

class Severity(Enum):
    """How loudly an error is reported."""

    LOW = "low"
    """Absorbed locally, replay continues."""

    MEDIUM = "medium"
    """Operator should look, replay continues."""

    HIGH = "high"
    """The session cannot continue."""

    CRITICAL = "critical"
    """The process cannot continue."""


class ErrorClassification(Enum):
    """What the caller can do about an error."""

    RECOVERABLE = "recoverable"
    """Handled in place with a fallback value."""

    TRANSIENT = "transient"
    """Session lost, a fresh session may succeed."""

    NON_RECOVERABLE = "non_recoverable"
    """Input must change before retrying."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class ReplayException(Exception):
    """
    Base exception for the replay system.

    Keyword context passed to the constructor is kept for logs;
    None values are dropped.
    """

    default_severity: Severity = Severity.MEDIUM
    default_classification: ErrorClassification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[BaseException] = None,
        **context: Any,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.classification = classification or self.default_classification
        self.cause = cause
        self.context: Dict[str, Any] = {k: v for k, v in context.items() if v is not None}
        self.timestamp = datetime.now(timezone.utc)

        if cause is not None:
            self.context.setdefault("cause", f"{type(cause).__name__}: {cause}")

    @property
    def recoverable(self) -> bool:
        return self.classification != ErrorClassification.NON_RECOVERABLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "classification": self.classification.value,
            "context": dict(self.context),
            "timestamp": self.timestamp.isoformat(),
        }

    def to_log_format(self) -> str:
        """Single line: [SEVERITY] Type: message | key=value ..."""
        line = f"[{self.severity.value.upper()}] {type(self).__name__}: {self.message}"
        if self.context:
            line += " | " + " ".join(f"{k}={v}" for k, v in self.context.items())
        return line


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(ReplayException):
    """Error in configuration. A session never starts with one."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE


class InvalidConfigError(ConfigurationError):
    """A configuration value was refused."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            f"Invalid configuration for {key}: {reason}",
            config_key=key,
            value=repr(value)[:100],
        )
        self.config_key = key
        self.value = value
        self.reason = reason


# ============================================================
# SOURCE ERRORS
# ============================================================

class SourceError(ReplayException):
    """
    The upstream row sequence failed.

    Terminal for the session: the engine never retries a source.
    """

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.TRANSIENT

    def __init__(self, message: str, source: Optional[str] = None, **kwargs: Any):
        super().__init__(message, source=source, **kwargs)
        self.source = source


class QueryError(SourceError):
    """A query could not be executed against the relational store."""

    def __init__(self, message: str, query: Optional[str] = None, **kwargs: Any):
        super().__init__(message, query=query[:200] if query else None, **kwargs)
        self.query = query


# ============================================================
# LIFECYCLE ERRORS
# ============================================================

class StateTransitionError(ReplayException):
    """Illegal playback state transition."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        from_state: Optional[str] = None,
        to_state: Optional[str] = None,
        reason: Optional[str] = None,
    ):
        super().__init__(message, from_state=from_state, to_state=to_state, reason=reason)
        self.from_state = from_state
        self.to_state = to_state


# ============================================================
# TAG SPACE ERRORS
# ============================================================

class TagSpaceError(ReplayException):
    """Base class for tag space errors. Absorbed by the synchronizer."""

    default_severity = Severity.LOW

    def __init__(self, message: str, tag_name: Optional[str] = None, **kwargs: Any):
        super().__init__(message, tag_name=tag_name, **kwargs)
        self.tag_name = tag_name


class TagWriteError(TagSpaceError):
    """A value is incompatible with the tag's bound type."""

    def __init__(
        self,
        message: str,
        tag_name: Optional[str] = None,
        tag_type: Optional[str] = None,
        value: Any = None,
    ):
        super().__init__(
            message,
            tag_name=tag_name,
            tag_type=tag_type,
            value=repr(value)[:100] if value is not None else None,
        )
        self.value = value


class UnknownTagError(TagSpaceError):
    """The tag is not part of the bound schema."""

    def __init__(self, tag_name: str):
        super().__init__(f"Unknown tag: {tag_name}", tag_name=tag_name)


# ============================================================
# EXCEPTION UTILITIES
# ============================================================

def classify_exception(exc: BaseException) -> ErrorClassification:
    """Classify any exception, ours or foreign."""
    if isinstance(exc, ReplayException):
        return exc.classification

    if isinstance(exc, (ConnectionError, TimeoutError)):
        return ErrorClassification.TRANSIENT

    if isinstance(exc, (SystemExit, KeyboardInterrupt, MemoryError)):
        return ErrorClassification.NON_RECOVERABLE

    return ErrorClassification.RECOVERABLE


__all__ = [
    "Severity",
    "ErrorClassification",
    "ReplayException",
    "ConfigurationError",
    "InvalidConfigError",
    "SourceError",
    "QueryError",
    "StateTransitionError",
    "TagSpaceError",
    "TagWriteError",
    "UnknownTagError",
    "classify_exception",
]
