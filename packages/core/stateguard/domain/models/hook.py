"""Hook binding data model with HookPhase and HookDirection enums."""

from collections.abc import Callable
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

TransitionHook = Callable[[Any, str | None, str], Any]
"""Canonical hook signature: ``handler(entity, from_state, to_state)``.

Returning exactly ``False`` marks the hook as failed; any other value passes.
"""


class HookPhase(str, Enum):
    """Lifecycle phase a hook runs in."""

    Before = "before"
    """Before persistence; a failure can veto the transition."""

    After = "after"
    """After persistence, before commit; a failure surfaces as an error."""

    AfterCommit = "after_commit"
    """After the surrounding transaction committed; fire-and-forget."""


class HookDirection(str, Enum):
    """Which end of the transition a hook is bound to."""

    To = "to"
    """Fires when the entity enters the bound state."""

    From = "from"
    """Fires when the entity leaves the bound state."""


class HookEntry(BaseModel):
    """A single hook binding.

    One handler registered against several states produces one entry per
    state, each with its own order index.
    """

    phase: HookPhase = Field(
        ...,
        description="Lifecycle phase the hook runs in",
    )
    direction: HookDirection = Field(
        ...,
        description="Whether the hook is bound to the target or the source state",
    )
    state: str = Field(
        ...,
        description="State the hook is bound to",
        min_length=1,
    )
    handler: Callable[..., Any] = Field(
        ...,
        description="Callable invoked as handler(entity, from_state, to_state)",
    )
    order: int = Field(
        ...,
        description="Global registration order across every phase and direction",
        ge=0,
    )
    rollback_on_failure: bool = Field(
        default=True,
        description="Whether a False return aborts the chain (ignored for after_commit)",
    )

    model_config = ConfigDict(
        frozen=True,
        arbitrary_types_allowed=True,
    )

    @property
    def name(self) -> str:
        """Readable name of the handler, used in log events."""
        return getattr(self.handler, "__qualname__", repr(self.handler))

    def __repr__(self) -> str:
        return (
            f"HookEntry(phase={self.phase.value}, direction={self.direction.value}, "
            f"state={self.state!r}, handler={self.name}, order={self.order})"
        )
