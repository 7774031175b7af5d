"""CapabilityChecker protocol for authorizing state changes."""

from typing import Any, Protocol, runtime_checkable

CHANGE_STATE = "change_state"
"""Action name checked before an actor may change an entity's state."""


@runtime_checkable
class CapabilityChecker(Protocol):
    """Protocol for the external authorization collaborator.

    Example:
        ```python
        class AdminOnly:
            def can(self, actor_id, action, entity) -> bool:
                return actor_id in ADMIN_IDS

        ops = Order.state_machine()["shipped"]
        ops.can_make(order, actor_id=7, capability_checker=AdminOnly())
        ```
    """

    def can(self, actor_id: Any, action: str, entity: Any) -> bool:
        """Return True if the actor may perform the action on the entity."""
        ...
