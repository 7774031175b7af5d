"""Domain models for the guarded transition engine."""

from stateguard.domain.models.hook import HookDirection, HookEntry, HookPhase, TransitionHook
from stateguard.domain.models.state_change import StateChange
from stateguard.domain.models.state_machine_error import (
    ConfigError,
    ErrorCategory,
    PostPersistHookFailure,
    StateMachineError,
    TransitionError,
)
from stateguard.domain.models.state_query import StateQuery
from stateguard.domain.models.stateful_entity import StatefulEntity
from stateguard.domain.models.validation_errors import ValidationErrors

__all__ = [
    "StatefulEntity",
    "StateChange",
    "StateQuery",
    "ValidationErrors",
    "HookDirection",
    "HookEntry",
    "HookPhase",
    "TransitionHook",
    "ErrorCategory",
    "StateMachineError",
    "ConfigError",
    "TransitionError",
    "PostPersistHookFailure",
]
