"""StateChange data model for the audit trail."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StateChange(BaseModel):
    """Represents one committed transition attempt of an entity.

    A StateChange is created for every applied transition and for every
    skip re-entry, inside the same persistence unit as the state change
    itself. Records are owned by the entity that produced them and are
    never modified afterwards.
    """

    entity_type: str = Field(
        ...,
        description="Type of entity (e.g., 'Order')",
        min_length=1,
    )
    entity_id: str = Field(
        ...,
        description="Identifier of the entity that changed state",
        min_length=1,
    )
    previous_state: str | None = Field(
        default=None,
        description="State before the transition, or the skip marker for a re-entry",
    )
    next_state: str = Field(
        ...,
        description="State after the transition",
        min_length=1,
    )
    created_by_id: Any = Field(
        default=None,
        description="Actor credited with the transition (falls back to the system id)",
    )
    created_at: datetime = Field(
        default_factory=_utcnow,
        description="Timestamp when the transition was recorded",
    )

    model_config = ConfigDict(
        frozen=True,  # Immutable audit trail
        validate_assignment=True,
    )

    @property
    def is_reentry(self) -> bool:
        """True when the record describes a skip re-entry into the same state."""
        return self.previous_state == self.next_state
