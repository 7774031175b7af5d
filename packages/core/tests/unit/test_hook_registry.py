"""Tests for HookRegistry."""

import pytest

from stateguard.domain.components.hook_registry import HookRegistry
from stateguard.domain.models.hook import HookDirection, HookPhase
from stateguard.domain.models.state_machine_error import ConfigError


def _noop(entity, from_state, to_state):
    return None


class TestHookRegistry:
    """Tests for hook registration and ordering."""

    def setup_method(self) -> None:
        """Set up test fixtures."""
        self.registry = HookRegistry()

    def test_register_assigns_global_order(self) -> None:
        """Test order indexes increase across phases and directions."""
        first = self.registry.register(HookPhase.Before, HookDirection.To, "paid", _noop)
        second = self.registry.register(HookPhase.After, HookDirection.From, "pending", _noop)
        third = self.registry.register(HookPhase.Before, HookDirection.From, "pending", _noop)

        assert first == [0]
        assert second == [1]
        assert third == [2]
        assert len(self.registry) == 3

    def test_register_fans_out_over_states(self) -> None:
        """Test a list of states produces one entry per state."""
        orders = self.registry.register(HookPhase.Before, "to", ["paid", "shipped"], _noop)

        assert orders == [0, 1]
        assert [entry.state for entry in self.registry.bound(HookPhase.Before, HookDirection.To, "paid")] == ["paid"]
        assert len(self.registry.bound(HookPhase.Before, HookDirection.To, "shipped")) == 1

    def test_accepts_string_phase_and_direction(self) -> None:
        """Test phase and direction may be given by value."""
        self.registry.register("after_commit", "from", "paid", _noop)
        entries = self.registry.bound(HookPhase.AfterCommit, HookDirection.From, "paid")
        assert len(entries) == 1

    def test_after_commit_never_rolls_back(self) -> None:
        """Test after-commit bindings ignore the rollback flag."""
        self.registry.register(HookPhase.AfterCommit, HookDirection.To, "paid", _noop, rollback_on_failure=True)
        entry = self.registry.bound(HookPhase.AfterCommit, HookDirection.To, "paid")[0]
        assert entry.rollback_on_failure is False

    def test_hooks_for_merges_chains_by_order(self) -> None:
        """Test to and from chains interleave in registration order."""
        self.registry.register(HookPhase.Before, HookDirection.From, "pending", _noop)  # 0
        self.registry.register(HookPhase.Before, HookDirection.To, "paid", _noop)  # 1
        self.registry.register(HookPhase.Before, HookDirection.From, "pending", _noop)  # 2
        self.registry.register(HookPhase.Before, HookDirection.To, "shipped", _noop)  # 3
        self.registry.register(HookPhase.Before, HookDirection.To, "paid", _noop)  # 4

        hooks = self.registry.hooks_for(HookPhase.Before, "paid", "pending")

        assert [hook.order for hook in hooks] == [0, 1, 2, 4]

    def test_hooks_for_can_exclude_from_chain(self) -> None:
        """Test include_from=False only returns the to chain."""
        self.registry.register(HookPhase.Before, HookDirection.From, "paid", _noop)
        self.registry.register(HookPhase.Before, HookDirection.To, "paid", _noop)

        hooks = self.registry.hooks_for(HookPhase.Before, "paid", "paid", include_from=False)

        assert [hook.direction for hook in hooks] == [HookDirection.To]

    def test_hooks_for_new_record_has_no_from_chain(self) -> None:
        """Test a None from state selects no from-bound hooks."""
        self.registry.register(HookPhase.Before, HookDirection.To, "pending", _noop)
        assert len(self.registry.hooks_for(HookPhase.Before, "pending", None)) == 1

    def test_phases_are_isolated(self) -> None:
        """Test hooks of another phase are not returned."""
        self.registry.register(HookPhase.After, HookDirection.To, "paid", _noop)
        assert self.registry.hooks_for(HookPhase.Before, "paid", "pending") == []

    def test_non_callable_handler_rejected(self) -> None:
        """Test registration requires a callable."""
        with pytest.raises(ConfigError, match="must be callable"):
            self.registry.register(HookPhase.Before, HookDirection.To, "paid", "not_a_function")

    def test_freeze_returns_immutable_copy(self) -> None:
        """Test the frozen copy keeps bindings and rejects registration."""
        self.registry.register(HookPhase.Before, HookDirection.To, "paid", _noop)
        frozen = self.registry.freeze()

        assert frozen.frozen is True
        assert self.registry.frozen is False
        assert len(frozen) == 1
        with pytest.raises(ConfigError, match="frozen"):
            frozen.register(HookPhase.Before, HookDirection.To, "paid", _noop)

        self.registry.register(HookPhase.Before, HookDirection.To, "paid", _noop)
        assert len(frozen) == 1

    def test_states_lists_bound_states(self) -> None:
        """Test states() reports every referenced state."""
        self.registry.register(HookPhase.Before, HookDirection.To, ["paid", "shipped"], _noop)
        self.registry.register(HookPhase.After, HookDirection.From, "pending", _noop)
        assert self.registry.states() == {"paid", "shipped", "pending"}

    def test_entry_name_uses_handler_qualname(self) -> None:
        """Test the readable hook name used in log events."""
        self.registry.register(HookPhase.Before, HookDirection.To, "paid", _noop)
        entry = self.registry.bound(HookPhase.Before, HookDirection.To, "paid")[0]
        assert entry.name == "_noop"
