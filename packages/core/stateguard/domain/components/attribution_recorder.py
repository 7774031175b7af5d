"""Attribution & Timestamp Recorder: stamps ``<state>_at`` and ``<state>_by_id`` slots."""

from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AttributionRecorder:
    """Stamps entry timestamps and actor ids on an entity entering a state.

    For a target state ``S`` the recorder fills ``S_at`` with the current time
    and ``S_by_id`` with the entity's last actor, each only when the slot is
    declared on the entity. A slot that already holds a value is overwritten
    unless its overwrite policy is exactly ``False``. The policy is resolved
    from the instance field ``overwrite_<slot>`` first (ignored while it is
    None), then from the type-level policies of the definition; with neither
    present the slot is overwritten.

    A skip re-entry stamps ``<skip>_at`` unconditionally, without consulting
    the overwrite policy.
    """

    def __init__(
        self,
        overwrite_policies: Mapping[str, bool] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize AttributionRecorder.

        Args:
            overwrite_policies: Type-level policies keyed by slot name
                (e.g. ``{"paid_at": False}``).
            clock: Callable returning the current time. Defaults to UTC now.
        """
        self._overwrite_policies = dict(overwrite_policies or {})
        self._clock = clock or utcnow

    def now(self) -> datetime:
        return self._clock()

    def should_overwrite(self, entity: Any, slot: str) -> bool:
        """Resolve the overwrite policy of one slot on one entity."""
        override_field = f"overwrite_{slot}"
        if entity.has_slot(override_field):
            override = getattr(entity, override_field)
            if override is not None:
                return override is not False

        policy = self._overwrite_policies.get(slot)
        if policy is not None:
            return policy is not False
        return True

    def stamp(self, entity: Any, to_state: str, skip: str | None = None) -> dict[str, Any]:
        """Stamp the slots for entering ``to_state``.

        Args:
            entity: Entity entering the state.
            to_state: State being entered.
            skip: Skip marker when the save is a re-entry.

        Returns:
            The slots that were written, with their new values.
        """
        now = self.now()
        written: dict[str, Any] = {}

        if skip:
            skip_slot = f"{skip}_at"
            if entity.has_slot(skip_slot):
                setattr(entity, skip_slot, now)
                written[skip_slot] = now

        timestamp_slot = f"{to_state}_at"
        if timestamp_slot not in written and self._writable(entity, timestamp_slot):
            setattr(entity, timestamp_slot, now)
            written[timestamp_slot] = now

        actor_id = entity.last_edited_by_id
        attribution_slot = f"{to_state}_by_id"
        if actor_id is not None and self._writable(entity, attribution_slot):
            setattr(entity, attribution_slot, actor_id)
            written[attribution_slot] = actor_id

        return written

    def _writable(self, entity: Any, slot: str) -> bool:
        if not entity.has_slot(slot):
            return False
        return getattr(entity, slot) is None or self.should_overwrite(entity, slot)
