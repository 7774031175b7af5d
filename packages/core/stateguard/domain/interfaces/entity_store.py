"""EntityStore interface for guarded persistence of stateful entities.

This module defines the abstract EntityStore interface: the persistence
collaborator that runs the transition engine's phases around its own save and
notifies the engine once the surrounding transaction commits. Concrete stores
(in-memory, SQL, document) only have to respect this contract.

Example:
    ```python
    from stateguard.domain.interfaces.entity_store import EntityStore, StateQuery
    from stateguard.infrastructure.state_store.memory_store import InMemoryEntityStore

    store: EntityStore = InMemoryEntityStore()

    order = Order()
    store.save(order)

    with store.transaction() as context:
        Order.state_machine()["paid"].make(order, store, context=context)

    pending = store.query(Order, StateQuery(state="pending"))
    ```
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, TypeVar

from stateguard.domain.models.state_change import StateChange
from stateguard.domain.models.state_machine_error import ErrorCategory, StateMachineError
from stateguard.domain.models.state_query import StateQuery
from stateguard.domain.models.stateful_entity import StatefulEntity

if TYPE_CHECKING:
    from stateguard.domain.components.commit_relay import CommitContext

EntityT = TypeVar("EntityT", bound=StatefulEntity)


class EntityStore(ABC):
    """Abstract interface for guarded entity persistence.

    A store implementation must, inside ``save``:

    1. clear the entity's validation errors and let the engine validate it,
    2. run the before phase and stop (returning False) on a veto,
    3. persist the entity atomically and call ``entity.mark_persisted()``,
    4. run the after phase, which writes the audit record through
       ``save_state_change`` and stashes the pair in the commit context.

    ``transaction`` yields the CommitContext threaded into every ``save``
    and, on commit, notifies the engine once per enlisted entity instance.
    """

    @abstractmethod
    def save(self, entity: StatefulEntity, context: CommitContext | None = None) -> bool:
        """Save an entity, running the transition engine around the write.

        Args:
            entity: The entity to save.
            context: CommitContext of the surrounding transaction. If None, the
                save runs in its own transaction and commits immediately.

        Returns:
            True if the entity was persisted, False if validation failed or a
            before hook vetoed the transition (errors are on ``entity.errors``).

        Raises:
            PostPersistHookFailure: If an after hook failed once the entity was
                already persisted.
            StateStoreError: If the write itself fails.
        """

    @abstractmethod
    def transaction(self) -> AbstractContextManager[CommitContext]:
        """Open a transaction scope.

        Yields:
            The CommitContext to pass to every ``save`` in the scope. After-commit
            hooks fire when the scope exits normally; on an exception the pending
            after-commit work is discarded.
        """

    @abstractmethod
    def get(self, entity_cls: type[EntityT], entity_id: str) -> EntityT | None:
        """Load a fresh in-memory handle for a stored entity.

        Returns:
            A new instance on every call, or None if nothing is stored under
            this id.
        """

    @abstractmethod
    def query(self, entity_cls: type[EntityT], query: StateQuery) -> list[EntityT]:
        """Return stored entities of a type matching the query."""

    @abstractmethod
    def save_state_change(self, record: StateChange) -> None:
        """Append an audit record in the current persistence unit."""

    @abstractmethod
    def list_state_changes(
        self,
        entity_type: str | None = None,
        entity_id: str | None = None,
    ) -> list[StateChange]:
        """List stored audit records, oldest first, optionally filtered."""

    def iter_state_changes(self, entity: StatefulEntity) -> Iterator[StateChange]:
        """Iterate the stored audit records of one entity."""
        yield from self.list_state_changes(entity.entity_type(), entity.id)


class StateStoreError(StateMachineError):
    """Raised when EntityStore operations fail.

    Example:
        ```python
        try:
            store.save(order)
        except StateStoreError as e:
            logger.error("Failed to save order", error=str(e))
        ```
    """

    default_category = ErrorCategory.StoreError
