"""
Typed failures and structured error tracking.

Every external call raises one of the `CompanionError` subclasses below.
The session controller is the only place that catches them; it records a
`ComponentError` with the `ErrorHandler` and moves the session to FAILED.
Nothing here retries.
"""

import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Callable, Dict, Any, List
from datetime import datetime

from .logging_config import get_logger


logger = get_logger("errors")


class CompanionError(Exception):
    """Base class for all voice companion failures."""

    def __init__(self, message: str, cause: Any = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return f"{self.message} (cause: {self.cause})"


class CaptureUnavailable(CompanionError):
    """Microphone permission missing, device unusable, or a capture is already open."""


class NoAudioProduced(CompanionError):
    """Finalizing a capture yielded no audio."""


class ServiceFailure(CompanionError):
    """A call to the generative service failed. `status` is the HTTP status, if any."""

    def __init__(self, message: str, cause: Any = None, status: Optional[int] = None):
        super().__init__(message, cause)
        self.status = status


class TranscriptionFailure(ServiceFailure):
    """The speech-to-text call failed or returned no text."""


class ResponseFailure(ServiceFailure):
    """The text-generation call failed or returned no text."""


class PlaybackFailure(CompanionError):
    """The speech output device failed while speaking."""


class AlreadySpeaking(CompanionError):
    """`speak` was called while an utterance is still playing."""


class PersistenceFailure(CompanionError):
    """Durable storage could not be read or written. Never fatal."""


class SessionStateError(CompanionError):
    """An operation was invoked in a session phase that does not accept it."""


class ErrorSeverity(Enum):
    """Error severity levels."""
    WARNING = "warning"          # Log and continue
    RECOVERABLE = "recoverable"  # Session falls back to IDLE
    FATAL = "fatal"              # Component unusable


@dataclass
class ComponentError:
    """Structured error information."""
    component: str
    severity: ErrorSeverity
    message: str
    exception: Optional[Exception] = None
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=lambda: datetime.now().timestamp())
    traceback_str: Optional[str] = None

    def __post_init__(self):
        """Capture traceback if exception provided."""
        if self.exception and not self.traceback_str:
            self.traceback_str = ''.join(
                traceback.format_exception(
                    type(self.exception),
                    self.exception,
                    self.exception.__traceback__
                )
            )


class ErrorHandler:
    """
    Records component errors and logs them by severity.

    Keeps a bounded history so callers can inspect what went wrong
    during a session without the errors ever escaping as exceptions.
    """

    def __init__(self, max_history: int = 100):
        self._error_log: List[ComponentError] = []
        self._max_history = max_history

    def handle_error(self, error: ComponentError) -> bool:
        """
        Record and log an error.

        Returns:
            True unless the error is FATAL
        """
        self._error_log.append(error)
        if len(self._error_log) > self._max_history:
            self._error_log.pop(0)

        if error.severity == ErrorSeverity.WARNING:
            logger.warning(f"{error.component}: {error.message}")
            if error.exception:
                logger.debug(f"   Exception: {error.exception}")
            return True

        if error.severity == ErrorSeverity.RECOVERABLE:
            logger.error(f"{error.component}: {error.message}")
            if error.exception:
                logger.error(f"   Exception: {error.exception}")
            return True

        logger.critical(f"💀 FATAL ERROR in {error.component}: {error.message}")
        if error.traceback_str:
            logger.critical(error.traceback_str)
        return False

    def record(
        self,
        component: str,
        severity: ErrorSeverity,
        message: str,
        exception: Optional[Exception] = None,
        **context: Any
    ) -> ComponentError:
        """Build a ComponentError, handle it, and return it."""
        error = ComponentError(
            component=component,
            severity=severity,
            message=message,
            exception=exception,
            context=context
        )
        self.handle_error(error)
        return error

    def get_error_history(self, component: Optional[str] = None) -> List[ComponentError]:
        """
        Get error history, optionally filtered by component.
        """
        if component:
            return [e for e in self._error_log if e.component == component]
        return self._error_log.copy()

    def get_error_summary(self) -> Dict[str, Any]:
        """Get summary of errors."""
        summary = {
            'total_errors': len(self._error_log),
            'by_severity': {},
            'by_component': {}
        }

        for error in self._error_log:
            severity = error.severity.value
            summary['by_severity'][severity] = summary['by_severity'].get(severity, 0) + 1

            component = error.component
            summary['by_component'][component] = summary['by_component'].get(component, 0) + 1

        return summary

    def clear(self) -> None:
        self._error_log.clear()


async def safe_cleanup(*cleanup_funcs: Callable):
    """
    Safely run multiple async cleanup functions, ensuring all run even if some fail.

    Returns:
        List of (function name, exception) pairs for the cleanups that failed
    """
    errors = []

    for func in cleanup_funcs:
        try:
            await func()
        except Exception as e:
            name = getattr(func, '__name__', repr(func))
            errors.append((name, e))
            logger.warning(f"Cleanup error in {name}: {e}")

    if errors:
        logger.warning(f"{len(errors)} cleanup errors occurred")

    return errors
