"""State machine definition, its builder, and the per-state operations table.

A definition is built once per entity type and shared by reference by every
instance of that type:

    ```python
    class Order(StatefulEntity):
        paid_at: datetime | None = None
        paid_by_id: int | None = None

    def payment_captured(order, from_state, to_state):
        if not order.captured:
            order.errors.add("state", "Payment was not captured.")
            return False

    definition = (
        StateMachineBuilder(Order)
        .define_states({"pending": ["paid", "cancelled"], "paid": [], "cancelled": []})
        .before_transition_to("paid", payment_captured)
        .build()
    )

    order = Order()
    store.save(order)
    definition["paid"].make(order, store, actor_id=7)
    ```
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict

from stateguard.domain.components.attribution_recorder import AttributionRecorder
from stateguard.domain.components.audit_log_writer import AuditLogWriter
from stateguard.domain.components.hook_dispatcher import HookDispatcher
from stateguard.domain.components.hook_registry import HookRegistry
from stateguard.domain.components.transition_engine import TransitionEngine
from stateguard.domain.components.transition_guard import allowed
from stateguard.domain.components.transition_table import StateDeclaration, TransitionTable
from stateguard.domain.interfaces.capability_checker import CHANGE_STATE, CapabilityChecker
from stateguard.domain.interfaces.observability_manager import ObservabilityManager
from stateguard.domain.models.hook import HookDirection, HookPhase
from stateguard.domain.models.state_machine_error import ConfigError, TransitionError
from stateguard.domain.models.state_query import StateQuery
from stateguard.domain.models.stateful_entity import StatefulEntity
from stateguard.infrastructure.config.file_loader import DefinitionFileLoader
from stateguard.infrastructure.config.settings import get_settings

if TYPE_CHECKING:
    from stateguard.domain.components.commit_relay import CommitContext
    from stateguard.domain.interfaces.entity_store import EntityStore


class StateOperations(BaseModel):
    """Operations generated for one state, bound to the definition by closure.

    Attributes:
        state: The state these operations target.
        is_in: ``is_in(entity) -> bool``, entity currently in the state.
        is_not_in: ``is_not_in(entity) -> bool``.
        has_been_made: ``has_been_made(entity) -> bool``, the ``<state>_at``
            slot is set. Raises NotImplementedError without such a slot.
        has_not_been_made: Negation of ``has_been_made``.
        can_make: ``can_make(entity, actor_id=None, capability_checker=None)``,
            guard check plus optional authorization.
        make: ``make(entity, store, actor_id=None, context=None) -> bool``.
        make_or_raise: Same as ``make`` but raises TransitionError instead of
            returning False.
        in_state: ``in_state(store) -> list``, stored entities in the state.
        not_in_state: ``not_in_state(store) -> list``.
    """

    state: str
    is_in: Callable[..., bool]
    is_not_in: Callable[..., bool]
    has_been_made: Callable[..., bool]
    has_not_been_made: Callable[..., bool]
    can_make: Callable[..., bool]
    make: Callable[..., bool]
    make_or_raise: Callable[..., bool]
    in_state: Callable[..., list[Any]]
    not_in_state: Callable[..., list[Any]]

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class StateMachineDefinition:
    """Immutable state machine of one entity type.

    Holds the transition table, the frozen hook registry, the type-level
    overwrite policies, the engine that runs them, and the per-state
    operations table. Built by StateMachineBuilder; never mutated afterwards.
    """

    def __init__(
        self,
        entity_cls: type[StatefulEntity],
        table: TransitionTable,
        registry: HookRegistry,
        overwrite_policies: Mapping[str, bool],
        engine: TransitionEngine,
    ) -> None:
        self._entity_cls = entity_cls
        self._table = table
        self._registry = registry
        self._overwrite_policies = MappingProxyType(dict(overwrite_policies))
        self._engine = engine
        self._operations = MappingProxyType(
            {state: _build_operations(self, state) for state in table.states}
        )
        self._states_enum = _build_states_enum(entity_cls, table.states)

    @property
    def entity_cls(self) -> type[StatefulEntity]:
        return self._entity_cls

    @property
    def table(self) -> TransitionTable:
        return self._table

    @property
    def registry(self) -> HookRegistry:
        return self._registry

    @property
    def engine(self) -> TransitionEngine:
        return self._engine

    @property
    def overwrite_policies(self) -> Mapping[str, bool]:
        """Type-level overwrite policies keyed by slot name (e.g. ``paid_at``)."""
        return self._overwrite_policies

    @property
    def operations(self) -> Mapping[str, StateOperations]:
        """Per-state dispatch table."""
        return self._operations

    @property
    def states_enum(self) -> type[Enum]:
        """str Enum of the declared states, e.g. ``definition.states_enum.PAID``."""
        return self._states_enum

    @property
    def initial_state(self) -> str:
        return self._table.initial_state

    @property
    def states(self) -> tuple[str, ...]:
        return self._table.states

    def allowed(self, from_state: str | None, to_state: str, skip: str | None = None) -> bool:
        """Guard check against this definition's transition table."""
        return allowed(self._table, from_state, to_state, skip)

    def available_transitions(self, entity: StatefulEntity) -> list[str]:
        """States the entity could legally move to from its current state."""
        return [
            state
            for state in self._table.states
            if allowed(self._table, entity.state, state, entity.skipped_transition)
        ]

    def __getitem__(self, state: str) -> StateOperations:
        try:
            return self._operations[state]
        except KeyError:
            raise KeyError(f"{state!r} is not a state of {self._entity_cls.__name__}") from None

    def __contains__(self, state: object) -> bool:
        return state in self._operations

    def __repr__(self) -> str:
        return (
            f"StateMachineDefinition(entity={self._entity_cls.__name__}, "
            f"states={list(self._table.states)!r}, hooks={len(self._registry)})"
        )


def _build_states_enum(entity_cls: type[StatefulEntity], states: tuple[str, ...]) -> type[Enum]:
    """Build the str Enum of state names, member names upper-cased.

    Raises:
        ConfigError: If two states share a member name or a name is not a
            usable Enum member.
    """
    members: dict[str, str] = {}
    for state in states:
        member = state.upper()
        if member in members:
            raise ConfigError(
                f"States {members[member]} and {state} of {entity_cls.__name__} "
                f"both map to the constant {member}",
                details={"states": [members[member], state], "constant": member},
            )
        members[member] = state

    try:
        states_enum = Enum(f"{entity_cls.__name__}State", members, type=str)
    except (TypeError, ValueError) as e:
        raise ConfigError(
            f"Cannot build state constants for {entity_cls.__name__}: {e}",
            details={"states": list(states)},
        ) from e

    dropped = [state for member, state in members.items() if member not in states_enum.__members__]
    if dropped:
        raise ConfigError(
            f"States {dropped} of {entity_cls.__name__} cannot be used as Enum members",
            details={"states": dropped},
        )
    return states_enum


def _build_operations(definition: StateMachineDefinition, state: str) -> StateOperations:
    entity_cls = definition.entity_cls
    table = definition.table
    timestamp_slot = f"{state}_at"

    def is_in(entity: StatefulEntity) -> bool:
        return entity.state == state

    def is_not_in(entity: StatefulEntity) -> bool:
        return entity.state != state

    def has_been_made(entity: StatefulEntity) -> bool:
        if not entity.has_slot(timestamp_slot):
            raise NotImplementedError(
                f"Must add field {timestamp_slot} to {entity_cls.__name__} "
                f"to use has_been_made for {state}"
            )
        return getattr(entity, timestamp_slot) is not None

    def has_not_been_made(entity: StatefulEntity) -> bool:
        return not has_been_made(entity)

    def can_make(
        entity: StatefulEntity,
        actor_id: Any = None,
        capability_checker: CapabilityChecker | None = None,
    ) -> bool:
        if not allowed(table, entity.state, state, entity.skipped_transition):
            return False
        if capability_checker is None:
            return True
        if actor_id is None:
            actor_id = entity.last_edited_by_id
        return bool(capability_checker.can(actor_id, CHANGE_STATE, entity))

    def make(
        entity: StatefulEntity,
        store: EntityStore,
        actor_id: Any = None,
        context: CommitContext | None = None,
    ) -> bool:
        previous_state = entity.state
        entity.state = state
        if actor_id is not None:
            entity.last_edited_by_id = actor_id
        saved = store.save(entity, context=context)
        if not saved and entity.state == state:
            # rejected by validation; a veto has already reverted the state itself
            entity.state = previous_state
        # the store may have reverted the state (veto), so check what is observed
        return saved and (entity.state == state or entity.skipped_transition == state)

    def make_or_raise(
        entity: StatefulEntity,
        store: EntityStore,
        actor_id: Any = None,
        context: CommitContext | None = None,
    ) -> bool:
        if make(entity, store, actor_id=actor_id, context=context):
            return True
        messages = " | ".join(entity.errors.full_messages())
        raise TransitionError(
            f"Cannot transition to {state}. {messages}".rstrip(),
            details={
                "entity_type": entity.entity_type(),
                "entity_id": entity.id,
                "to_state": state,
                "errors": entity.errors.full_messages(),
            },
        )

    def in_state(store: EntityStore) -> list[Any]:
        return store.query(entity_cls, StateQuery(state=state))

    def not_in_state(store: EntityStore) -> list[Any]:
        return store.query(entity_cls, StateQuery(exclude_state=state))

    return StateOperations(
        state=state,
        is_in=is_in,
        is_not_in=is_not_in,
        has_been_made=has_been_made,
        has_not_been_made=has_not_been_made,
        can_make=can_make,
        make=make,
        make_or_raise=make_or_raise,
        in_state=in_state,
        not_in_state=not_in_state,
    )


class StateMachineBuilder:
    """Setup-time configuration surface of a state machine.

    Every registration method returns the builder so calls can be chained.
    The hook registration methods may also be used as decorators by leaving
    out the handler:

        ```python
        builder = StateMachineBuilder(Order).define_states(STATES)

        @builder.after_commit_transition_to("shipped")
        def notify_customer(order, from_state, to_state):
            mailer.send_shipping_notice(order.id)
        ```
    """

    def __init__(self, entity_cls: type[StatefulEntity]) -> None:
        self._entity_cls = entity_cls
        self._table: TransitionTable | None = None
        self._registry = HookRegistry()
        self._overwrite_policies: dict[str, bool] = {}
        self._skip_runs_from_hooks = False
        self._clock: Callable[[], datetime] | None = None
        self._observability_manager: ObservabilityManager | None = None

    @classmethod
    def from_file(
        cls,
        entity_cls: type[StatefulEntity],
        path: str | Path | None = None,
    ) -> StateMachineBuilder:
        """Create a builder pre-populated from a YAML/JSON definition file.

        Args:
            entity_cls: Entity type the machine is for.
            path: Definition file. Defaults to the ``definition_file`` setting,
                then to STATEGUARD_DEFINITION_FILE.

        Raises:
            ConfigurationError: If the file cannot be loaded or is malformed.
            ConfigError: If the declared graph is invalid.
        """
        loader = DefinitionFileLoader(path or get_settings().definition_file)
        config = loader.load()
        loader.validate_structure(config)

        builder = cls(entity_cls).define_states(loader.parse_states(config))
        for state, policy in loader.parse_overwrite(config).items():
            builder.overwrite_policy(
                state,
                timestamp=policy.get("timestamp"),
                attribution=policy.get("attribution"),
            )
        return builder.skip_runs_from_hooks(loader.parse_skip_runs_from_hooks(config))

    def define_states(self, declaration: StateDeclaration) -> StateMachineBuilder:
        """Declare the transition graph; the first state is the initial state.

        Raises:
            ConfigError: If a successor is undeclared or states were already defined.
        """
        if self._table is not None:
            raise ConfigError(f"States of {self._entity_cls.__name__} are already defined")
        self._table = TransitionTable.build(declaration)
        return self

    def before_transition_to(
        self,
        states: str | Iterable[str],
        handler: Callable[..., Any] | None = None,
        rollback_on_failure: bool = True,
    ) -> Any:
        return self._register(HookPhase.Before, HookDirection.To, states, handler, rollback_on_failure)

    def before_transition_from(
        self,
        states: str | Iterable[str],
        handler: Callable[..., Any] | None = None,
        rollback_on_failure: bool = True,
    ) -> Any:
        return self._register(HookPhase.Before, HookDirection.From, states, handler, rollback_on_failure)

    def after_transition_to(
        self,
        states: str | Iterable[str],
        handler: Callable[..., Any] | None = None,
        rollback_on_failure: bool = True,
    ) -> Any:
        return self._register(HookPhase.After, HookDirection.To, states, handler, rollback_on_failure)

    def after_transition_from(
        self,
        states: str | Iterable[str],
        handler: Callable[..., Any] | None = None,
        rollback_on_failure: bool = True,
    ) -> Any:
        return self._register(HookPhase.After, HookDirection.From, states, handler, rollback_on_failure)

    def after_commit_transition_to(
        self,
        states: str | Iterable[str],
        handler: Callable[..., Any] | None = None,
    ) -> Any:
        return self._register(HookPhase.AfterCommit, HookDirection.To, states, handler, False)

    def after_commit_transition_from(
        self,
        states: str | Iterable[str],
        handler: Callable[..., Any] | None = None,
    ) -> Any:
        return self._register(HookPhase.AfterCommit, HookDirection.From, states, handler, False)

    def overwrite_policy(
        self,
        state: str,
        timestamp: bool | None = None,
        attribution: bool | None = None,
    ) -> StateMachineBuilder:
        """Set type-level overwrite policies for ``<state>_at`` and ``<state>_by_id``.

        None leaves the corresponding policy unset (overwrite by default).
        """
        self._require_states([state])
        if timestamp is not None:
            self._overwrite_policies[f"{state}_at"] = timestamp
        if attribution is not None:
            self._overwrite_policies[f"{state}_by_id"] = attribution
        return self

    def skip_runs_from_hooks(self, enabled: bool = True) -> StateMachineBuilder:
        """Choose whether a skip re-entry also fires hooks bound ``from`` that state."""
        self._skip_runs_from_hooks = enabled
        return self

    def clock(self, clock: Callable[[], datetime]) -> StateMachineBuilder:
        """Use a custom clock for ``<state>_at`` slots and audit records."""
        self._clock = clock
        return self

    def observability(self, manager: ObservabilityManager) -> StateMachineBuilder:
        self._observability_manager = manager
        return self

    def build(self) -> StateMachineDefinition:
        """Freeze the configuration and bind the definition to the entity type.

        Raises:
            ConfigError: If no states were defined.
        """
        if self._table is None:
            raise ConfigError(f"No states defined for {self._entity_cls.__name__}")

        registry = self._registry.freeze()
        engine = TransitionEngine(
            table=self._table,
            dispatcher=HookDispatcher(registry, self._observability_manager),
            recorder=AttributionRecorder(self._overwrite_policies, clock=self._clock),
            audit_writer=AuditLogWriter(clock=self._clock),
            skip_runs_from_hooks=self._skip_runs_from_hooks,
            observability_manager=self._observability_manager,
        )
        definition = StateMachineDefinition(
            entity_cls=self._entity_cls,
            table=self._table,
            registry=registry,
            overwrite_policies=self._overwrite_policies,
            engine=engine,
        )
        self._entity_cls.bind_state_machine(definition)
        return definition

    def _register(
        self,
        phase: HookPhase,
        direction: HookDirection,
        states: str | Iterable[str],
        handler: Callable[..., Any] | None,
        rollback_on_failure: bool,
    ) -> Any:
        state_list = [states] if isinstance(states, str) else list(states)
        self._require_states(state_list)

        if handler is None:

            def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
                self._registry.register(phase, direction, state_list, func, rollback_on_failure)
                return func

            return decorator

        self._registry.register(phase, direction, state_list, handler, rollback_on_failure)
        return self

    def _require_states(self, states: Iterable[str]) -> None:
        if self._table is None:
            raise ConfigError("define_states must be called before registering hooks or policies")
        for state in states:
            if state not in self._table:
                raise ConfigError(
                    f"{state} is not a declared state of {self._entity_cls.__name__}",
                    details={"state": state},
                )
