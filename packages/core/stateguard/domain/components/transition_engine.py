"""TransitionEngine: runs guard, hooks, stamping and audit around an entity save."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from stateguard.domain.components.attribution_recorder import AttributionRecorder
from stateguard.domain.components.audit_log_writer import AuditLogWriter
from stateguard.domain.components.commit_relay import CommitContext
from stateguard.domain.components.hook_dispatcher import DispatchStatus, HookDispatcher
from stateguard.domain.components.transition_guard import allowed
from stateguard.domain.components.transition_table import TransitionTable
from stateguard.domain.interfaces.observability_manager import (
    ObservabilityError,
    ObservabilityManager,
)
from stateguard.domain.models.hook import HookPhase
from stateguard.domain.models.state_machine_error import ErrorCategory, PostPersistHookFailure
from stateguard.infrastructure.observability.logger import get_observability_manager

if TYPE_CHECKING:
    from stateguard.domain.interfaces.entity_store import EntityStore

logger = structlog.get_logger(__name__)


class PendingTransition(BaseModel):
    """The state move a save is about to perform."""

    from_state: str | None = Field(
        default=None,
        description="Persisted state, or the skip marker for a re-entry",
    )
    to_state: str | None = Field(
        default=None,
        description="State the entity is being saved in",
    )
    skip: str | None = Field(
        default=None,
        description="Skip marker of the entity at save time",
    )
    is_reentry: bool = Field(
        default=False,
        description="True when the state did not change but the skip marker names it",
    )
    is_creation: bool = Field(
        default=False,
        description="True for the first save of a new record",
    )

    model_config = ConfigDict(frozen=True)


class TransitionEngine:
    """Guarded transition engine of one entity type.

    The entity store calls the engine in this order inside its save:
    ``pending_transition`` and ``validate``, then ``run_before``, then (after
    writing the entity) ``run_after``; on commit it calls
    ``run_after_commit``. The engine itself performs no I/O besides handing
    audit records to the store.

    The first save of a new record is validated against the initial state but
    is not a transition: no hooks run and no audit record is written.
    """

    def __init__(
        self,
        table: TransitionTable,
        dispatcher: HookDispatcher,
        recorder: AttributionRecorder,
        audit_writer: AuditLogWriter,
        skip_runs_from_hooks: bool = False,
        observability_manager: ObservabilityManager | None = None,
    ) -> None:
        """Initialize TransitionEngine.

        Args:
            table: Transition table of the entity type.
            dispatcher: Dispatcher over the entity type's frozen hook registry.
            recorder: Stamps ``<state>_at`` / ``<state>_by_id`` slots.
            audit_writer: Writes StateChange records.
            skip_runs_from_hooks: Whether a skip re-entry also fires hooks bound
                ``from`` the re-entered state.
            observability_manager: Where events are emitted. Defaults to the
                process-wide manager, resolved at emission time.
        """
        self._table = table
        self._dispatcher = dispatcher
        self._recorder = recorder
        self._audit_writer = audit_writer
        self._skip_runs_from_hooks = skip_runs_from_hooks
        self._observability_manager = observability_manager

    @property
    def table(self) -> TransitionTable:
        return self._table

    @property
    def skip_runs_from_hooks(self) -> bool:
        return self._skip_runs_from_hooks

    def pending_transition(self, entity: Any) -> PendingTransition | None:
        """Describe the move the next save would perform, or None if there is none."""
        skip = entity.skipped_transition
        if entity.state_changed():
            return PendingTransition(
                from_state=entity.state_was,
                to_state=entity.state,
                skip=skip,
                is_creation=entity.is_new_record,
            )
        if skip and skip == entity.state:
            return PendingTransition(
                from_state=skip,
                to_state=entity.state,
                skip=skip,
                is_reentry=True,
            )
        return None

    def validate(self, entity: Any, transition: PendingTransition | None) -> bool:
        """Validate the state field, appending messages to ``entity.errors``.

        Returns:
            True if the save may proceed.
        """
        state = entity.state
        if not state:
            entity.errors.add("state", "can't be blank")
            return False

        if state not in self._table:
            entity.errors.add("state", f"{state} is not a valid state.")
            self._emit(
                "transition_rejected",
                entity,
                {"to_state": state, "reason": ErrorCategory.UnknownState.value},
            )
            return False

        if transition is None or transition.is_reentry:
            return True

        if not allowed(self._table, transition.from_state, state, transition.skip):
            from_label = transition.from_state or ""
            entity.errors.add("state", f"Cannot transition from {from_label} to {state}.")
            self._emit(
                "transition_rejected",
                entity,
                {
                    "from_state": transition.from_state,
                    "to_state": state,
                    "reason": ErrorCategory.IllegalTransition.value,
                },
            )
            return False
        return True

    def run_before(self, entity: Any, transition: PendingTransition) -> bool:
        """Run the before phase and stamp the entered state.

        Returns:
            False if a before hook vetoed the transition. The entity's state
            and ``<to>_at`` slot have then been reverted.
        """
        if transition.is_creation:
            return True

        outcome = self._dispatcher.run(
            HookPhase.Before,
            entity,
            transition.to_state,
            transition.from_state,
            include_from=self._includes_from_hooks(transition),
        )
        if outcome.status == DispatchStatus.Vetoed:
            self._emit(
                "transition_vetoed",
                entity,
                {
                    "from_state": transition.from_state,
                    "to_state": transition.to_state,
                    "hook": outcome.failed_hook.name if outcome.failed_hook else None,
                    "errors": entity.errors.full_messages(),
                },
            )
            return False

        self._recorder.stamp(
            entity,
            transition.to_state,
            skip=transition.skip if transition.is_reentry else None,
        )
        return True

    def run_after(
        self,
        entity: Any,
        transition: PendingTransition,
        store: EntityStore | None,
        context: CommitContext,
    ) -> None:
        """Run the after phase, write the audit record and stash the commit pair.

        Must be called once the entity has been written but before the
        surrounding transaction commits.

        Raises:
            PostPersistHookFailure: If an after hook with rollback failed or an
                after hook raised. The audit record is still written since the
                change is persisted, but no after-commit hooks will fire for
                this attempt.
        """
        if transition.is_creation:
            entity.skipped_transition = None
            return

        try:
            outcome = self._dispatcher.run(
                HookPhase.After,
                entity,
                transition.to_state,
                transition.from_state,
                include_from=self._includes_from_hooks(transition),
            )
        except Exception as e:
            raise PostPersistHookFailure(
                f"After hook raised for transition from "
                f"{transition.from_state} to {transition.to_state}: {e}",
                details={**self._failure_details(entity, transition), "error": str(e)},
            ) from e
        finally:
            self._audit_writer.record(entity, transition.from_state, transition.to_state, store)
            entity.skipped_transition = None

        if outcome.status == DispatchStatus.Failed:
            hook_name = outcome.failed_hook.name if outcome.failed_hook else "unknown"
            raise PostPersistHookFailure(
                f"After hook {hook_name} failed for transition from "
                f"{transition.from_state} to {transition.to_state}",
                details={**self._failure_details(entity, transition), "hook": hook_name},
            )

        context.stash(entity.identity, transition.from_state, transition.to_state)
        self._emit(
            "state_transition",
            entity,
            {
                "from_state": transition.from_state,
                "to_state": transition.to_state,
                "reentry": transition.is_reentry,
                "actor_id": entity.last_edited_by_id,
            },
        )

    def run_after_commit(self, entity: Any, context: CommitContext) -> bool:
        """Fire after-commit hooks for the pair stashed under the entity's identity.

        Returns:
            True if a pair was drained and its hooks dispatched, False if there
            was nothing pending (another handle already drained it).
        """
        pair = context.drain(entity.identity)
        if pair is None:
            return False

        from_state, to_state = pair
        include_from = from_state != to_state or self._skip_runs_from_hooks
        self._dispatcher.run(
            HookPhase.AfterCommit,
            entity,
            to_state,
            from_state,
            include_from=include_from,
        )
        return True

    def _includes_from_hooks(self, transition: PendingTransition) -> bool:
        return not transition.is_reentry or self._skip_runs_from_hooks

    def _failure_details(self, entity: Any, transition: PendingTransition) -> dict[str, Any]:
        return {
            "entity_type": entity.entity_type(),
            "entity_id": entity.id,
            "from_state": transition.from_state,
            "to_state": transition.to_state,
        }

    def _observability(self) -> ObservabilityManager:
        return self._observability_manager or get_observability_manager()

    def _emit(self, event_type: str, entity: Any, payload: dict[str, Any]) -> None:
        try:
            self._observability().emit_event(
                event_type=event_type,
                payload={
                    "entity_type": entity.entity_type(),
                    "entity_id": entity.id,
                    **payload,
                },
            )
        except ObservabilityError as e:
            # Log error but don't fail the transition if event emission fails
            logger.warning(
                "Failed to emit state machine event",
                event_type=event_type,
                error=str(e),
            )
