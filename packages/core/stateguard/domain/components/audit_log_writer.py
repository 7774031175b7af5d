"""Audit Log Writer: appends immutable StateChange records."""

from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any

from stateguard.domain.components.attribution_recorder import utcnow
from stateguard.domain.models.state_change import StateChange
from stateguard.infrastructure.config.settings import StateGuardSettings, get_settings

if TYPE_CHECKING:
    from stateguard.domain.interfaces.entity_store import EntityStore


class AuditLogWriter:
    """Writes one StateChange per applied or re-entered transition.

    The record is appended to the entity and handed to the store inside the
    same persistence unit as the state change. Nothing is written while
    ``should_log_state_change`` is off. Settings are read on every call, so
    ``configure()`` takes effect for the next transition.
    """

    def __init__(
        self,
        settings_provider: Callable[[], StateGuardSettings] = get_settings,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings_provider = settings_provider
        self._clock = clock or utcnow

    def record(
        self,
        entity: Any,
        previous_state: str | None,
        next_state: str,
        store: "EntityStore | None" = None,
    ) -> StateChange | None:
        """Append an audit record for ``previous_state -> next_state``.

        Args:
            entity: Entity that changed state (must already have an id).
            previous_state: Prior state, or the skip marker for a re-entry.
            next_state: New state.
            store: Store that persists the record alongside the entity.

        Returns:
            The record written, or None when logging is disabled.
        """
        settings = self._settings_provider()
        if not settings.should_log_state_change:
            return None

        actor_id = entity.last_edited_by_id
        if actor_id is None:
            actor_id = settings.system_id

        record = StateChange(
            entity_type=entity.entity_type(),
            entity_id=str(entity.id),
            previous_state=previous_state,
            next_state=next_state,
            created_by_id=actor_id,
            created_at=self._clock(),
        )
        entity.append_state_change(record)
        if store is not None:
            store.save_state_change(record)
        return record
