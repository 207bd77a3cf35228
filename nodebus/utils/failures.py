"""
Error taxonomy and failure tracking for nodebus.

Every error is raised synchronously at the call that caused it and is never
retried here; retry policy belongs to the caller.
"""
import threading
import time
from typing import Dict, List, Optional

from nodebus.utils.constants import DEFAULT_FAILURE_THRESHOLD, DEFAULT_FAILURE_WINDOW
from nodebus.utils.logger import Logger


class NodebusError(Exception):
    """Base class for all nodebus exceptions."""
    def __init__(self, message: str, critical: bool = False):
        super().__init__(message)
        self.message = message
        self.critical = critical
        self.timestamp = time.time()


class DuplicateDefinition(NodebusError):
    """A message name is already registered with a different shape."""
    pass


class TypeConflict(NodebusError):
    """A topic is already bound to a different message type."""
    pass


class TypeMismatch(NodebusError):
    """A published message does not match the publisher's bound type."""
    pass


class SchemaMismatch(NodebusError):
    """Encoded bytes do not match the expected message layout."""
    pass


class InvalidPeriod(NodebusError):
    """Timer period is not a positive finite number."""
    pass


class InvalidField(NodebusError):
    """A message field is missing a valid value or uses an unsupported type."""
    pass


class InvalidName(NodebusError):
    """Topic or node name does not follow the naming rules."""
    pass


class UnknownMessageType(NodebusError):
    """No message type is registered under the requested name."""
    pass


class UnknownTopic(NodebusError):
    """No publisher or subscription currently references the topic."""
    pass


class NotInitialized(NodebusError):
    """The runtime context has not been initialised or was shut down."""
    pass


class HandleDestroyed(NodebusError):
    """An operation was attempted through a destroyed handle."""
    pass


class FailureManager:
    """Tracks recurring failures (callback errors) in a sliding time window."""

    def __init__(self, settings: Optional[dict] = None, name: str = "FailureManager"):
        """
        Args:
            settings: Dictionary with 'threshold' and 'window_seconds'.
            name: Logger name, usually the owning node's name.
        """
        self.logger = Logger(name)

        self.settings = settings or {}
        self.threshold = self.settings.get('threshold', DEFAULT_FAILURE_THRESHOLD)
        self.window_seconds = self.settings.get('window_seconds', DEFAULT_FAILURE_WINDOW)

        self.failures: Dict[str, List[float]] = {}
        self.history: List[Exception] = []
        self._max_history = 100
        self._lock = threading.Lock()

    def record_failure(self, error: Exception, context: str = "") -> None:
        """
        Record a failure incident (thread-safe).

        Args:
            error: The exception that occurred.
            context: Short description of where it happened.
        """
        with self._lock:
            error_type = type(error).__name__
            now = time.time()

            cutoff = now - self.window_seconds
            recent = [t for t in self.failures.get(error_type, []) if t > cutoff]
            recent.append(now)
            self.failures[error_type] = recent

            self.history.append(error)
            if len(self.history) > self._max_history:
                self.history = self.history[-self._max_history:]

            where = f" in {context}" if context else ""
            if isinstance(error, NodebusError) and error.critical:
                self.logger.critical(f"{error_type}{where} - {error.message}")
            else:
                self.logger.error(f"{error_type}{where}: {error}")

            if len(recent) >= self.threshold:
                self.logger.warning(
                    f"'{error_type}' exceeded threshold "
                    f"({self.threshold} in {self.window_seconds}s)"
                )

    def is_threshold_exceeded(self, error_type: str) -> bool:
        """Check if a specific error type has exceeded the frequency threshold."""
        with self._lock:
            now = time.time()
            recent = [t for t in self.failures.get(error_type, []) if (now - t) < self.window_seconds]
            self.failures[error_type] = recent
            return len(recent) >= self.threshold

    def count(self, error_type: Optional[str] = None) -> int:
        """Number of recorded failures of one type, or of all types."""
        with self._lock:
            if error_type is None:
                return len(self.history)
            return len(self.failures.get(error_type, []))

    def get_recent_history(self, count: int = 10) -> List[Exception]:
        """Return the most recent failures."""
        with self._lock:
            return self.history[-count:]

    def clear(self) -> None:
        """Reset all tracked failures."""
        with self._lock:
            self.failures = {}
            self.history = []
