"""Domain interfaces for dependency injection."""

from stateguard.domain.interfaces.capability_checker import CHANGE_STATE, CapabilityChecker
from stateguard.domain.interfaces.entity_store import EntityStore, StateStoreError
from stateguard.domain.interfaces.observability_manager import (
    ObservabilityError,
    ObservabilityManager,
)

__all__ = [
    "CHANGE_STATE",
    "CapabilityChecker",
    "EntityStore",
    "StateStoreError",
    "ObservabilityError",
    "ObservabilityManager",
]
