"""Default observability manager implementation."""

import logging
from datetime import datetime, timezone
from typing import Any

import structlog

from stateguard.domain.interfaces.observability_manager import (
    ObservabilityError,
    ObservabilityManager,
)
from stateguard.infrastructure.config.settings import get_settings

SENSITIVE_KEYS = frozenset({"password", "token", "secret", "api_key", "authorization"})


def sanitize_for_logging(data: Any) -> Any:
    """Sanitize data before logging.

    Redacts values stored under sensitive keys and replaces callables (hook
    handlers) with their qualified names so log renderers never receive
    arbitrary objects.

    Args:
        data: Data structure to sanitize (dict, list, or primitive).

    Returns:
        Sanitized data structure.
    """
    if isinstance(data, dict):
        sanitized = {}
        for key, value in data.items():
            if isinstance(key, str) and key.lower() in SENSITIVE_KEYS:
                sanitized[key] = "[REDACTED]"
            else:
                sanitized[key] = sanitize_for_logging(value)
        return sanitized
    elif isinstance(data, (list, tuple)):
        return [sanitize_for_logging(item) for item in data]
    elif callable(data):
        return getattr(data, "__qualname__", repr(data))
    return data


def configure_logging(log_level: str = "INFO", json_format: bool = True) -> None:
    """Configure structlog on top of the standard logging module.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: If True, render JSON; otherwise human-readable console output.
    """
    processors = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_format:
        # JSON format for production
        processors.append(structlog.processors.JSONRenderer())
    else:
        # Human-readable format for development
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(message)s"
        if json_format
        else "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


class DefaultObservabilityManager(ObservabilityManager):
    """Default implementation of ObservabilityManager using structlog.

    Provides structured logging with JSON output for machine readability,
    while maintaining human-readable output in development mode.
    """

    def __init__(
        self,
        log_level: str = "INFO",
        json_format: bool = True,
        configure: bool = True,
    ) -> None:
        """Initialize DefaultObservabilityManager.

        Args:
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            json_format: If True, use JSON format for structured logging.
                        If False, use human-readable format (development mode).
            configure: If False, reuse whatever structlog configuration the
                       host application already installed.
        """
        self._log_level = log_level
        self._json_format = json_format
        if configure:
            configure_logging(log_level, json_format)
        self._logger = structlog.get_logger("stateguard")

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
        try:
            event_data = {
                **sanitize_for_logging(payload),
            }
            if metadata:
                sanitized_metadata = sanitize_for_logging(metadata)
                event_data["metadata"] = sanitized_metadata
                if "timestamp" not in sanitized_metadata:
                    event_data["metadata"]["timestamp"] = datetime.now(timezone.utc).isoformat()

            self._logger.info(
                "Event emitted",
                event_type=event_type,
                **event_data,
            )
        except Exception as e:
            raise ObservabilityError(f"Failed to emit event: {e}") from e

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
        try:
            sanitized_context = sanitize_for_logging(context) if context else None

            log_method = getattr(self._logger, level.lower(), self._logger.info)
            if sanitized_context:
                log_method(message, **sanitized_context)
            else:
                log_method(message)
        except Exception as e:
            raise ObservabilityError(f"Failed to log message: {e}") from e


_default_manager: ObservabilityManager | None = None


def get_observability_manager() -> ObservabilityManager:
    """Return the process-wide default manager, configured from settings on first use."""
    global _default_manager
    if _default_manager is None:
        settings = get_settings()
        _default_manager = DefaultObservabilityManager(
            log_level=settings.log_level,
            json_format=settings.log_json,
        )
    return _default_manager


def set_observability_manager(manager: ObservabilityManager | None) -> None:
    """Install the manager used by definitions built without an explicit one."""
    global _default_manager
    _default_manager = manager
