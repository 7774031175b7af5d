"""StateQuery data model for entity store queries."""

from pydantic import BaseModel, ConfigDict, Field, model_validator


class StateQuery(BaseModel):
    """Query parameters for entity store queries.

    Backs the per-state "entities currently in S" and "entities not in S"
    filters of a state machine definition.

    Attributes:
        state: Only return entities currently in this state. If None, no filter.
        exclude_state: Only return entities NOT in this state. If None, no filter.
        limit: Maximum number of results to return. If None, returns all matches.
        offset: Number of results to skip (for pagination). If None, starts from beginning.

    Example:
        ```python
        # Entities currently paid
        query = StateQuery(state="paid")

        # Entities in any state but cancelled, second page of 50
        query = StateQuery(exclude_state="cancelled", limit=50, offset=50)
        ```
    """

    state: str | None = Field(
        default=None,
        description="Filter: entities currently in this state",
    )
    exclude_state: str | None = Field(
        default=None,
        description="Filter: entities not in this state",
    )
    limit: int | None = Field(
        default=None,
        description="Maximum number of results to return (for pagination)",
        ge=1,
    )
    offset: int | None = Field(
        default=None,
        description="Number of results to skip (for pagination)",
        ge=0,
    )

    model_config = ConfigDict(
        frozen=True,
        validate_assignment=True,
        str_strip_whitespace=True,
    )

    @model_validator(mode="after")
    def validate_filters(self) -> "StateQuery":
        """Reject a query that includes and excludes the same state."""
        if self.state is not None and self.state == self.exclude_state:
            raise ValueError("state and exclude_state cannot name the same state")
        return self

    def matches(self, state: str | None) -> bool:
        """Return True if an entity in ``state`` passes the state filters."""
        if self.state is not None and state != self.state:
            return False
        if self.exclude_state is not None and state == self.exclude_state:
            return False
        return True
