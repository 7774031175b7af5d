"""StatefulEntity base model for entities guarded by a state machine."""

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from stateguard.domain.models.state_change import StateChange
from stateguard.domain.models.state_machine_error import ConfigError
from stateguard.domain.models.validation_errors import ValidationErrors


class StatefulEntity(BaseModel):
    """Base class for persistent entities with a single guarded state field.

    Subclasses declare optional per-state slots as ordinary model fields:

    - ``<state>_at``: timestamp of the last entry into the state
    - ``<state>_by_id``: actor credited with the last entry into the state
    - ``overwrite_<state>_at`` / ``overwrite_<state>_by_id``: per-instance
      overwrite policy for those slots

    The entity tracks the persisted value of ``state`` so that both a pending
    change (before save) and a saved change (after save) can be reported to
    the transition engine.

    Example:
        ```python
        class Order(StatefulEntity):
            paid_at: datetime | None = None
            paid_by_id: int | None = None

        StateMachineBuilder(Order).define_states(
            {"pending": ["paid"], "paid": []}
        ).build()

        order = Order()
        assert order.state == "pending"
        ```
    """

    id: str | None = Field(
        default=None,
        description="Stable identifier, assigned by the store on first save if missing",
    )
    state: str | None = Field(
        default=None,
        description="Current state; defaults to the initial state of the bound machine",
    )
    last_edited_by_id: Any = Field(
        default=None,
        description="Last actor that edited the entity, used for attribution",
        exclude=True,
    )
    skipped_transition: str | None = Field(
        default=None,
        description="Skip marker: treat the next save as a re-entry into this state",
        exclude=True,
    )

    __state_machine__: ClassVar[Any] = None

    _persisted: bool = PrivateAttr(default=False)
    _persisted_state: str | None = PrivateAttr(default=None)
    _saved_state_change: tuple[str | None, str | None] | None = PrivateAttr(default=None)
    _errors: ValidationErrors = PrivateAttr(default_factory=ValidationErrors)
    _state_changes: list[StateChange] = PrivateAttr(default_factory=list)

    model_config = ConfigDict(
        validate_assignment=True,
        extra="forbid",
    )

    def model_post_init(self, __context: Any) -> None:
        """Set the initial state of the bound state machine on new instances."""
        definition = type(self).__state_machine__
        if self.state is None and definition is not None:
            self.state = definition.initial_state

    @classmethod
    def bind_state_machine(cls, definition: Any) -> None:
        """Attach a built StateMachineDefinition to this entity type."""
        cls.__state_machine__ = definition

    @classmethod
    def state_machine(cls) -> Any:
        """Return the StateMachineDefinition bound to this entity type.

        Raises:
            ConfigError: If no state machine has been built for this type.
        """
        definition = cls.__state_machine__
        if definition is None:
            raise ConfigError(f"No state machine is bound to {cls.__name__}")
        return definition

    @classmethod
    def from_stored(cls, data: dict[str, Any]) -> "StatefulEntity":
        """Rebuild a persisted entity from the field values a store kept for it."""
        entity = cls.model_validate(data)
        entity._persisted = True
        entity._persisted_state = entity.state
        return entity

    @classmethod
    def entity_type(cls) -> str:
        return cls.__name__

    @classmethod
    def has_slot(cls, name: str) -> bool:
        """Return True if the entity type declares a field with this name."""
        return name in cls.model_fields

    @property
    def identity(self) -> tuple[str, str | None]:
        return (self.entity_type(), self.id)

    @property
    def is_new_record(self) -> bool:
        return not self._persisted

    @property
    def errors(self) -> ValidationErrors:
        return self._errors

    @property
    def state_changes(self) -> tuple[StateChange, ...]:
        """Audit records produced by this instance, oldest first."""
        return tuple(self._state_changes)

    @property
    def state_was(self) -> str | None:
        """Persisted value of the state field (None for a new record)."""
        return self._persisted_state

    def state_changed(self) -> bool:
        """Return True if a state change is pending."""
        return self.is_new_record or self.state != self._persisted_state

    @property
    def saved_state_change(self) -> tuple[str | None, str | None] | None:
        """(previous, next) pair written by the most recent save, if any."""
        return self._saved_state_change

    def mark_persisted(self) -> None:
        """Record that the current field values are durably saved.

        Called by the entity store once a save has been written.
        """
        if self.state_changed():
            self._saved_state_change = (self._persisted_state, self.state)
        else:
            self._saved_state_change = None
        self._persisted_state = self.state
        self._persisted = True

    def append_state_change(self, record: StateChange) -> None:
        self._state_changes.append(record)
