"""ObservabilityManager interface for events and logging."""

from abc import ABC, abstractmethod
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class ObservabilityManager(ABC):
    """Abstract interface for observability (events, logging).

    Components report catalog changes, grants, and recorded transitions
    through this interface so hosts can route them to their own sinks.
    """

    @abstractmethod
    async def emit_event(
        self,
        event_type: str,
        payload: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Emit an event for observability.

        Args:
            event_type: Type of event (e.g., "transition_registered", "transition_recorded").
            payload: Event payload data.
            metadata: Optional metadata (timestamp, correlation_id, etc.).

        Raises:
            ObservabilityError: If event emission fails.
        """
        pass

    @abstractmethod
    async def log(
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


async def emit_safely(
    observability: ObservabilityManager,
    event_type: str,
    payload: dict[str, Any],
    metadata: dict[str, Any] | None = None,
) -> None:
    """Emit an event, downgrading emission failures to a WARNING log.

    Event emission never fails the domain operation that triggered it.
    """
    try:
        await observability.emit_event(event_type=event_type, payload=payload, metadata=metadata)
    except Exception as e:
        await log_safely(
            observability,
            level="WARNING",
            message=f"Failed to emit {event_type} event: {e}",
            context=payload,
        )


async def log_safely(
    observability: ObservabilityManager,
    level: str,
    message: str,
    context: dict[str, Any] | None = None,
) -> None:
    """Log through the manager, falling back to the module logger if it fails."""
    try:
        await observability.log(level=level, message=message, context=context)
    except Exception as e:
        logger.warning(
            "observability_log_failed",
            original_level=level,
            original_message=message,
            error=str(e),
        )
