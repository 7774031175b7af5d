"""StateMachineError hierarchy for standardized error handling."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Categories of state machine errors."""

    ConfigError = "config_error"
    """Transition graph or hook binding references an undeclared state."""

    UnknownState = "unknown_state"
    """The state field holds a value outside the declared set."""

    IllegalTransition = "illegal_transition"
    """The move is not permitted by the transition table."""

    TransitionVetoed = "transition_vetoed"
    """A before hook rejected the transition."""

    PostPersistHookFailure = "post_persist_hook_failure"
    """An after hook failed once the state change was already persisted."""

    StoreError = "store_error"
    """The entity store could not persist or read data."""


class StateMachineError(Exception):
    """Base error for the transition engine.

    Example:
        ```python
        raise StateMachineError(
            category=ErrorCategory.IllegalTransition,
            message="Cannot transition from paid to pending.",
            details={"from_state": "paid", "to_state": "pending"},
        )
        ```
    """

    default_category: ErrorCategory = ErrorCategory.ConfigError

    def __init__(
        self,
        message: str,
        category: ErrorCategory | str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize StateMachineError.

        Args:
            message: Human-readable error message.
            category: Error category (ErrorCategory enum or string). Defaults to
                the category of the concrete error class.
            details: Additional error details.
        """
        if category is None:
            category = self.default_category
        self.category = ErrorCategory(category) if isinstance(category, str) else category
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __repr__(self) -> str:
        """String representation of the error."""
        return f"{type(self).__name__}(category={self.category.value}, message={self.message!r})"

    def __str__(self) -> str:
        """Human-readable error message."""
        return self.message


class ConfigError(StateMachineError):
    """Raised at setup time when a state machine definition is invalid.

    The entity type must not be used until the definition is fixed.
    """

    default_category = ErrorCategory.ConfigError


class TransitionError(StateMachineError):
    """Raised by ``make_or_raise`` when the entity did not end in the target state."""

    default_category = ErrorCategory.IllegalTransition


class PostPersistHookFailure(StateMachineError):
    """Raised when an after hook fails after the state change was persisted.

    Callers should read this as "saved, but the after-effects are incomplete",
    not as "save failed".
    """

    default_category = ErrorCategory.PostPersistHookFailure
