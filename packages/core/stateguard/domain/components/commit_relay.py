"""Commit Context: relays transition pairs from the after phase to after-commit."""

from typing import Any

Identity = tuple[str, Any]
"""Persisted identity of an entity: (entity_type, entity_id)."""

StatePair = tuple[str | None, str]
"""(previous_state, next_state) of a pending transition."""


class CommitContext:
    """Transaction-scoped bookkeeping for after-commit hooks.

    The entity store creates one context per transaction and threads it into
    every save of that transaction. The after phase stashes the transition
    pair under the entity's identity; the commit notification drains it, so
    after-commit hooks fire at most once per identity per transaction.

    Several in-memory handles for the same identity share one slot: the most
    recent stash wins and earlier, undrained pairs are dropped. No locking is
    applied, so concurrent stashes for one identity race and which pair
    survives is unspecified.
    """

    def __init__(self) -> None:
        self._pending: dict[Identity, StatePair] = {}
        self._enlisted: list[Any] = []
        self._closed = False

    def stash(self, identity: Identity, previous_state: str | None, next_state: str) -> None:
        """Record the pair to deliver after commit, replacing any earlier one."""
        self._pending[identity] = (previous_state, next_state)

    def drain(self, identity: Identity) -> StatePair | None:
        """Remove and return the pending pair for an identity, if any."""
        return self._pending.pop(identity, None)

    def pending(self, identity: Identity) -> StatePair | None:
        return self._pending.get(identity)

    def enlist(self, entity: Any) -> None:
        """Register an entity instance to be notified on commit (once per instance)."""
        if not any(existing is entity for existing in self._enlisted):
            self._enlisted.append(entity)

    @property
    def enlisted(self) -> tuple[Any, ...]:
        return tuple(self._enlisted)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Discard everything still pending; the context must not outlive its transaction."""
        self._pending.clear()
        self._enlisted.clear()
        self._closed = True

    def __len__(self) -> int:
        return len(self._pending)

    def __repr__(self) -> str:
        return f"CommitContext(pending={len(self._pending)}, enlisted={len(self._enlisted)})"
