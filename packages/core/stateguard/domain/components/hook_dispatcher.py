"""Hook Dispatcher: runs one phase of hooks with phase-specific failure semantics."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from stateguard.domain.components.hook_registry import HookRegistry
from stateguard.domain.interfaces.observability_manager import (
    ObservabilityError,
    ObservabilityManager,
)
from stateguard.domain.models.hook import HookDirection, HookEntry, HookPhase
from stateguard.infrastructure.observability.logger import get_observability_manager


class DispatchStatus(str, Enum):
    """Result of running one phase."""

    Completed = "completed"
    """Every hook passed or was skipped by a non-blocking failure."""

    Vetoed = "vetoed"
    """A before hook with rollback returned False; the transition is rejected."""

    Failed = "failed"
    """An after hook with rollback returned False after persistence."""


class DispatchOutcome(BaseModel):
    """What happened while dispatching one phase."""

    phase: HookPhase = Field(..., description="Phase that was dispatched")
    status: DispatchStatus = Field(
        default=DispatchStatus.Completed,
        description="Completed, Vetoed (before) or Failed (after)",
    )
    executed: list[int] = Field(
        default_factory=list,
        description="Order indexes of the hooks that were invoked, in call order",
    )
    failed_hook: HookEntry | None = Field(
        default=None,
        description="The blocking hook that vetoed or failed, if any",
    )
    halted_directions: list[HookDirection] = Field(
        default_factory=list,
        description="Directions whose chain was cut short by a non-blocking failure",
    )

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def ok(self) -> bool:
        return self.status == DispatchStatus.Completed


class HookDispatcher:
    """Executes the hooks of one phase in global registration order.

    Hooks bound to the target state (``to``) and to the source state
    (``from``) are merged by order index; a hook registered earlier always
    runs before one registered later. Each hook is called as
    ``handler(entity, from_state, to_state)``.
    """

    def __init__(
        self,
        registry: HookRegistry,
        observability_manager: ObservabilityManager | None = None,
    ) -> None:
        """Initialize HookDispatcher.

        Args:
            registry: Frozen hook registry of the entity type.
            observability_manager: Where after-commit hook failures are logged.
        """
        self._registry = registry
        self._observability = observability_manager

    def run(
        self,
        phase: HookPhase,
        entity: Any,
        to_state: str,
        from_state: str | None,
        include_from: bool = True,
    ) -> DispatchOutcome:
        """Run every hook of ``phase`` for a ``from_state -> to_state`` move.

        Args:
            phase: Phase to dispatch.
            entity: Entity passed to each hook.
            to_state: Target state (selects ``to``-bound hooks).
            from_state: Source state (selects ``from``-bound hooks).
            include_from: Whether ``from``-bound hooks take part.

        Returns:
            DispatchOutcome describing which hooks ran and how the phase ended.
        """
        hooks = self._registry.hooks_for(phase, to_state, from_state, include_from=include_from)
        if phase == HookPhase.Before:
            return self._run_before(hooks, entity, to_state, from_state)
        if phase == HookPhase.After:
            return self._run_after(hooks, entity, to_state, from_state)
        return self._run_after_commit(hooks, entity, to_state, from_state)

    def _run_before(
        self,
        hooks: list[HookEntry],
        entity: Any,
        to_state: str,
        from_state: str | None,
    ) -> DispatchOutcome:
        outcome = DispatchOutcome(phase=HookPhase.Before)
        timestamp_slot = f"{to_state}_at"
        has_timestamp = entity.has_slot(timestamp_slot)
        timestamp_before = getattr(entity, timestamp_slot) if has_timestamp else None

        for hook in hooks:
            if hook.direction in outcome.halted_directions:
                continue
            outcome.executed.append(hook.order)
            if hook.handler(entity, from_state, to_state) is not False:
                continue

            if hook.rollback_on_failure:
                if entity.state == to_state:
                    entity.state = from_state
                    if has_timestamp:
                        setattr(entity, timestamp_slot, timestamp_before)
                outcome.status = DispatchStatus.Vetoed
                outcome.failed_hook = hook
                return outcome

            # only this hook's own chain stops
            outcome.halted_directions.append(hook.direction)

        return outcome

    def _run_after(
        self,
        hooks: list[HookEntry],
        entity: Any,
        to_state: str,
        from_state: str | None,
    ) -> DispatchOutcome:
        outcome = DispatchOutcome(phase=HookPhase.After)
        for hook in hooks:
            outcome.executed.append(hook.order)
            if hook.handler(entity, from_state, to_state) is not False:
                continue
            if hook.rollback_on_failure:
                outcome.status = DispatchStatus.Failed
                outcome.failed_hook = hook
                return outcome
        return outcome

    def _run_after_commit(
        self,
        hooks: list[HookEntry],
        entity: Any,
        to_state: str,
        from_state: str | None,
    ) -> DispatchOutcome:
        outcome = DispatchOutcome(phase=HookPhase.AfterCommit)
        for hook in hooks:
            outcome.executed.append(hook.order)
            try:
                hook.handler(entity, from_state, to_state)
            except Exception as e:
                self._log_after_commit_failure(hook, entity, to_state, from_state, e)
        return outcome

    def _log_after_commit_failure(
        self,
        hook: HookEntry,
        entity: Any,
        to_state: str,
        from_state: str | None,
        error: Exception,
    ) -> None:
        context = {
            "entity_type": entity.entity_type(),
            "entity_id": entity.id,
            "from_state": from_state,
            "to_state": to_state,
            "hook": hook.name,
            "hook_order": hook.order,
        }
        observability = self._observability or get_observability_manager()
        try:
            observability.emit_event(
                event_type="after_commit_hook_failed",
                payload={**context, "error": str(error)},
            )
            observability.log(
                level="ERROR",
                message=f"After-commit hook {hook.name} failed: {error}",
                context=context,
            )
        except ObservabilityError:
            # nothing else to report to; the commit already happened
            pass
