"""Entity store implementations."""

from stateguard.infrastructure.state_store.memory_store import InMemoryEntityStore

__all__ = ["InMemoryEntityStore"]
