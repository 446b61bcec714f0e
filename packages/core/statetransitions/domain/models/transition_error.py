"""TransitionError hierarchy for standardized error handling."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Categories of transition errors."""

    DuplicateTransition = "duplicate_transition"
    """Catalog insert violates the (model_type, from_state, to_state) uniqueness."""

    UnknownStateToken = "unknown_state_token"
    """A stored token is not a member of the model type's state enum."""

    UnresolvableStateEnum = "unresolvable_state_enum"
    """No state enum is registered for the model type."""

    UnauthorizedActor = "unauthorized_actor"
    """The actor holds no grant for the requested transition."""

    HistoryWriteFailure = "history_write_failure"
    """The audit record could not be written after a committed mutation."""


class TransitionError(Exception):
    """Base error for transition catalog, codec, and recording failures.

    Example:
        ```python
        try:
            await catalog.register("payment", "pending", "approved")
        except TransitionError as e:
            logger.error("catalog_error", category=e.category.value, details=e.details)
        ```
    """

    category: ErrorCategory

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize TransitionError.

        Args:
            message: Human-readable error message.
            details: Additional structured error details.
        """
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __repr__(self) -> str:
        """String representation of the error."""
        return f"{type(self).__name__}(category={self.category.value}, message={self.message!r})"

    def __str__(self) -> str:
        """Human-readable error message."""
        return self.message


class DuplicateTransitionError(TransitionError):
    """Raised when a catalog entry with the same triple already exists."""

    category = ErrorCategory.DuplicateTransition

    def __init__(self, model_type: str, from_state: str, to_state: str) -> None:
        super().__init__(
            f"Transition already registered for {model_type}: {from_state} -> {to_state}",
            details={"model_type": model_type, "from_state": from_state, "to_state": to_state},
        )


class UnknownStateTokenError(TransitionError):
    """Raised when decoding a token absent from the resolved state enum."""

    category = ErrorCategory.UnknownStateToken

    def __init__(self, model_type: str, token: str, allowed: list[str]) -> None:
        super().__init__(
            f"Unknown state '{token}' for {model_type}. Allowed: {', '.join(allowed)}",
            details={"model_type": model_type, "token": token, "allowed": allowed},
        )


class UnresolvableStateEnumError(TransitionError):
    """Raised when a model type has no registered state enum."""

    category = ErrorCategory.UnresolvableStateEnum

    def __init__(self, model_type: str) -> None:
        super().__init__(
            f"State enum not registered for model type: {model_type}",
            details={"model_type": model_type},
        )


class UnauthorizedActorError(TransitionError):
    """Raised by callers that turn an empty authorization result into a denial."""

    category = ErrorCategory.UnauthorizedActor

    def __init__(self, model_type: str, model_id: str, to_state: str, actor: str | None) -> None:
        super().__init__(
            f"Actor {actor or '<anonymous>'} may not move {model_type}:{model_id} to '{to_state}'",
            details={
                "model_type": model_type,
                "model_id": model_id,
                "to_state": to_state,
                "actor": actor,
            },
        )


class HistoryWriteFailureError(TransitionError):
    """Raised when the history row could not be written.

    The triggering state mutation has already been committed; this error is
    secondary and the host decides on compensating action.
    """

    category = ErrorCategory.HistoryWriteFailure

    def __init__(self, model_type: str, model_id: str, reason: str) -> None:
        super().__init__(
            f"Failed to record transition history for {model_type}:{model_id}: {reason}",
            details={"model_type": model_type, "model_id": model_id},
        )
