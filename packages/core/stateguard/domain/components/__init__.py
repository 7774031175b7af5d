"""Domain components for the guarded transition engine."""

from stateguard.domain.components.commit_relay import CommitContext
from stateguard.domain.components.attribution_recorder import AttributionRecorder
from stateguard.domain.components.audit_log_writer import AuditLogWriter
from stateguard.domain.components.hook_dispatcher import (
    DispatchOutcome,
    DispatchStatus,
    HookDispatcher,
)
from stateguard.domain.components.hook_registry import HookRegistry
from stateguard.domain.components.state_machine import (
    StateMachineBuilder,
    StateMachineDefinition,
    StateOperations,
)
from stateguard.domain.components.transition_engine import PendingTransition, TransitionEngine
from stateguard.domain.components.transition_guard import allowed
from stateguard.domain.components.transition_table import TransitionTable

__all__ = [
    "AttributionRecorder",
    "AuditLogWriter",
    "CommitContext",
    "DispatchOutcome",
    "DispatchStatus",
    "HookDispatcher",
    "HookRegistry",
    "PendingTransition",
    "StateMachineBuilder",
    "StateMachineDefinition",
    "StateOperations",
    "TransitionEngine",
    "TransitionTable",
    "allowed",
]
