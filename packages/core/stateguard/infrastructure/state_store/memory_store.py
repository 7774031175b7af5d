"""In-memory entity store implementation.

This module provides an in-memory implementation of the EntityStore interface.
Entities are kept as field snapshots, so every ``get`` returns a fresh,
independent handle the way a database-backed store would.

Example:
    ```python
    from stateguard.infrastructure.state_store.memory_store import InMemoryEntityStore

    store = InMemoryEntityStore()

    order = Order()
    store.save(order)

    with store.transaction() as context:
        Order.state_machine()["paid"].make(order, store, actor_id=7, context=context)

    same_order = store.get(Order, order.id)
    ```
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any
from uuid import uuid4

from stateguard.domain.components.commit_relay import CommitContext
from stateguard.domain.interfaces.entity_store import (
    EntityStore,
    EntityT,
    StateStoreError,
)
from stateguard.domain.models.state_change import StateChange
from stateguard.domain.models.state_query import StateQuery
from stateguard.domain.models.stateful_entity import StatefulEntity
from stateguard.infrastructure.config.settings import get_settings


class InMemoryEntityStore(EntityStore):
    """In-memory implementation of EntityStore.

    Writes are serialized with a re-entrant lock. A transaction here does not
    roll back entity data on failure; it only discards the after-commit work
    that the failed scope had queued.

    Attributes:
        _entities: Field snapshots keyed by (entity_type, entity_id)
        _state_changes: Audit records, oldest first
        _write_lock: threading.RLock guarding both collections
    """

    def __init__(self, max_state_changes: int | None = None) -> None:
        """Initialize InMemoryEntityStore with empty storage.

        Args:
            max_state_changes: Maximum number of audit records to keep. When the
                              limit is reached the oldest records are removed
                              (FIFO). Defaults to the ``max_state_changes``
                              setting. Set to 0 or negative for unlimited storage.
        """
        if max_state_changes is None:
            max_state_changes = get_settings().max_state_changes

        self._entities: dict[tuple[str, str], dict[str, Any]] = {}
        self._state_changes: list[StateChange] = []

        self._max_state_changes = max_state_changes if max_state_changes > 0 else 0  # 0 means unlimited

        self._write_lock = threading.RLock()

    def save(self, entity: StatefulEntity, context: CommitContext | None = None) -> bool:
        """Save an entity, running the transition engine around the write.

        Args:
            entity: The entity to save. Gets a generated id on its first save
                   if it has none.
            context: CommitContext of the surrounding transaction. If None, the
                    save runs in its own transaction.

        Returns:
            True if persisted, False if validation failed or a before hook
            vetoed the transition.

        Raises:
            PostPersistHookFailure: If an after hook failed after the write.
            StateStoreError: If the context is closed or the write fails.
        """
        if context is None:
            with self.transaction() as own_context:
                return self.save(entity, context=own_context)

        if context.closed:
            raise StateStoreError("Cannot save with a commit context whose transaction has ended")

        engine = type(entity).state_machine().engine
        entity.errors.clear()

        transition = engine.pending_transition(entity)
        if not engine.validate(entity, transition):
            return False
        if transition is not None and not engine.run_before(entity, transition):
            return False

        if entity.id is None:
            entity.id = uuid4().hex

        try:
            with self._write_lock:
                self._entities[(entity.entity_type(), entity.id)] = entity.model_dump()
        except Exception as e:
            raise StateStoreError(f"Failed to save {entity.entity_type()} {entity.id}: {e}") from e

        entity.mark_persisted()
        context.enlist(entity)

        if transition is not None:
            engine.run_after(entity, transition, self, context)
        return True

    @contextmanager
    def transaction(self) -> Iterator[CommitContext]:
        """Open a transaction scope yielding its CommitContext.

        On normal exit every enlisted instance is handed to its engine's
        after-commit phase; the context is closed either way.
        """
        context = CommitContext()
        try:
            yield context
            for entity in context.enlisted:
                type(entity).state_machine().engine.run_after_commit(entity, context)
        finally:
            context.close()

    def get(self, entity_cls: type[EntityT], entity_id: str) -> EntityT | None:
        """Load a fresh handle for a stored entity, or None if nothing is stored."""
        data = self._entities.get((entity_cls.entity_type(), entity_id))
        if data is None:
            return None
        return entity_cls.from_stored(data)

    def query(self, entity_cls: type[EntityT], query: StateQuery) -> list[EntityT]:
        """Return fresh handles of stored entities matching the query, in save order."""
        entity_type = entity_cls.entity_type()
        with self._write_lock:
            rows = [
                data
                for (stored_type, _), data in self._entities.items()
                if stored_type == entity_type and query.matches(data.get("state"))
            ]

        if query.offset:
            rows = rows[query.offset :]
        if query.limit is not None:
            rows = rows[: query.limit]
        return [entity_cls.from_stored(row) for row in rows]

    def save_state_change(self, record: StateChange) -> None:
        """Append an audit record, dropping the oldest one past the limit."""
        try:
            with self._write_lock:
                self._state_changes.append(record)
                if self._max_state_changes > 0 and len(self._state_changes) > self._max_state_changes:
                    # Remove oldest records (FIFO)
                    excess = len(self._state_changes) - self._max_state_changes
                    self._state_changes = self._state_changes[excess:]
        except Exception as e:
            raise StateStoreError(f"Failed to save state change: {e}") from e

    def list_state_changes(
        self,
        entity_type: str | None = None,
        entity_id: str | None = None,
    ) -> list[StateChange]:
        """List stored audit records, oldest first, optionally filtered."""
        with self._write_lock:
            records = list(self._state_changes)

        if entity_type is not None:
            records = [record for record in records if record.entity_type == entity_type]
        if entity_id is not None:
            records = [record for record in records if record.entity_id == str(entity_id)]
        return records

    def __len__(self) -> int:
        return len(self._entities)
