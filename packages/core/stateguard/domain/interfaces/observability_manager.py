"""ObservabilityManager interface for events and logging."""

from abc import ABC, abstractmethod
from typing import Any


class ObservabilityManager(ABC):
    """Abstract interface for observability (events, logging).

    The transition engine runs inline inside the caller's save, so the
    interface is synchronous.
    """

    @abstractmethod
    def emit_event(
        self,
        event_type: str,
        payload: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Emit an event for observability.

        Args:
            event_type: Type of event (e.g., "state_transition", "transition_vetoed").
            payload: Event payload data.
            metadata: Optional metadata (timestamp, correlation_id, etc.).

        Raises:
            ObservabilityError: If event emission fails.
        """
        pass

    @abstractmethod
    def log(
        self,
        level: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Log a message with structured context.

        Args:
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            message: Log message.
            context: Optional structured context data.

        Raises:
            ObservabilityError: If logging fails.
        """
        pass


class ObservabilityError(Exception):
    """Raised when observability operations fail."""

    pass
