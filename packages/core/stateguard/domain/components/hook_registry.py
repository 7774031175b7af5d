"""Hook Registry: ordered storage of before/after/after-commit hook bindings."""

import heapq
from collections.abc import Callable, Iterable
from itertools import count
from typing import Any

from stateguard.domain.models.hook import HookDirection, HookEntry, HookPhase
from stateguard.domain.models.state_machine_error import ConfigError


class HookRegistry:
    """Stores hook bindings keyed by (phase, direction, state).

    Every binding receives the next value of one global order counter shared
    by all phases and directions, so hooks bound to the target state and
    hooks bound to the source state can be merged into a single chronological
    order at dispatch time.

    A registry is mutable while a definition is being built; ``freeze()``
    returns an immutable copy that rejects further registration.
    """

    def __init__(self) -> None:
        self._bindings: dict[tuple[HookPhase, HookDirection, str], list[HookEntry]] = {}
        self._counter = count()
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(
        self,
        phase: HookPhase | str,
        direction: HookDirection | str,
        states: str | Iterable[str],
        handler: Callable[..., Any],
        rollback_on_failure: bool = True,
    ) -> list[int]:
        """Register a handler against one or several states.

        Args:
            phase: Phase the hook runs in.
            direction: ``to`` (entering the state) or ``from`` (leaving it).
            states: A state name or a list of state names (fan-out).
            handler: Callable invoked as ``handler(entity, from_state, to_state)``.
            rollback_on_failure: Whether a False return aborts the chain.
                Forced to False for after-commit hooks.

        Returns:
            The order index assigned to each binding, in the order given.

        Raises:
            ConfigError: If the registry is frozen or the handler is not callable.
        """
        if self._frozen:
            raise ConfigError("Cannot register hooks on a frozen registry")
        if not callable(handler):
            raise ConfigError(f"Hook handler must be callable, got {type(handler).__name__}")

        phase = HookPhase(phase)
        direction = HookDirection(direction)
        if phase == HookPhase.AfterCommit:
            rollback_on_failure = False

        if isinstance(states, str):
            states = [states]

        orders: list[int] = []
        for state in states:
            entry = HookEntry(
                phase=phase,
                direction=direction,
                state=str(state),
                handler=handler,
                order=next(self._counter),
                rollback_on_failure=rollback_on_failure,
            )
            self._bindings.setdefault((phase, direction, entry.state), []).append(entry)
            orders.append(entry.order)
        return orders

    def bound(self, phase: HookPhase, direction: HookDirection, state: str | None) -> list[HookEntry]:
        """Hooks of one binding chain, in registration order."""
        if state is None:
            return []
        return list(self._bindings.get((phase, direction, state), ()))

    def hooks_for(
        self,
        phase: HookPhase,
        to_state: str,
        from_state: str | None,
        include_from: bool = True,
    ) -> list[HookEntry]:
        """Merge the ``to`` chain of ``to_state`` and the ``from`` chain of ``from_state``.

        Both chains are already sorted by order index, so a merge keeps the
        global registration order.
        """
        to_chain = self.bound(phase, HookDirection.To, to_state)
        from_chain = self.bound(phase, HookDirection.From, from_state) if include_from else []
        return list(heapq.merge(to_chain, from_chain, key=lambda entry: entry.order))

    def states(self) -> set[str]:
        """Every state referenced by at least one binding."""
        return {state for (_, _, state) in self._bindings}

    def freeze(self) -> "HookRegistry":
        """Return an immutable copy of this registry."""
        frozen = HookRegistry()
        frozen._bindings = {key: list(entries) for key, entries in self._bindings.items()}
        frozen._frozen = True
        return frozen

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._bindings.values())

    def __repr__(self) -> str:
        return f"HookRegistry(bindings={len(self)}, frozen={self._frozen})"
