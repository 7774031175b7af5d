"""Tests for HookDispatcher phase semantics."""

from datetime import datetime, timezone

from fixtures.test_data import HookSpy, MockObservabilityManager, Widget
from stateguard.domain.components.hook_dispatcher import DispatchStatus, HookDispatcher
from stateguard.domain.components.hook_registry import HookRegistry
from stateguard.domain.models.hook import HookDirection, HookPhase


class TestBeforePhase:
    """Tests for the before phase."""

    def setup_method(self) -> None:
        """Set up test fixtures."""
        self.registry = HookRegistry()
        self.calls: list[tuple[str, str | None, str]] = []

    def _dispatch(self, entity: Widget, to_state: str = "C", from_state: str = "B"):
        dispatcher = HookDispatcher(self.registry.freeze())
        return dispatcher.run(HookPhase.Before, entity, to_state, from_state)

    def test_all_hooks_pass(self) -> None:
        """Test a passing chain completes and calls hooks with (entity, from, to)."""
        self.registry.register(HookPhase.Before, HookDirection.To, "C", HookSpy("to_c", self.calls))
        self.registry.register(HookPhase.Before, HookDirection.From, "B", HookSpy("from_b", self.calls))

        outcome = self._dispatch(Widget(state="C"))

        assert outcome.ok
        assert outcome.executed == [0, 1]
        assert self.calls == [("to_c", "B", "C"), ("from_b", "B", "C")]

    def test_only_exact_false_fails(self) -> None:
        """Test None, 0 and empty values do not count as failure."""
        for index, result in enumerate([None, 0, "", [], True]):
            self.registry.register(HookPhase.Before, HookDirection.To, "C", HookSpy(f"h{index}", self.calls, result))

        outcome = self._dispatch(Widget(state="C"))

        assert outcome.status == DispatchStatus.Completed
        assert len(self.calls) == 5

    def test_rollback_failure_vetoes_and_reverts(self) -> None:
        """Test a blocking failure reverts state and the target timestamp."""
        stamped = datetime(2024, 5, 1, tzinfo=timezone.utc)

        def stamp_then_fail(entity, from_state, to_state):
            entity.C_at = stamped
            return False

        self.registry.register(HookPhase.Before, HookDirection.To, "C", stamp_then_fail)
        self.registry.register(HookPhase.Before, HookDirection.To, "C", HookSpy("later", self.calls))
        widget = Widget(state="C")

        outcome = self._dispatch(widget)

        assert outcome.status == DispatchStatus.Vetoed
        assert outcome.failed_hook.order == 0
        assert widget.state == "B"
        assert widget.C_at is None
        assert self.calls == []

    def test_veto_restores_previous_timestamp(self) -> None:
        """Test an existing target timestamp survives a vetoed re-entry attempt."""
        earlier = datetime(2023, 1, 1, tzinfo=timezone.utc)

        def overwrite_then_fail(entity, from_state, to_state):
            entity.C_at = datetime(2024, 1, 1, tzinfo=timezone.utc)
            return False

        self.registry.register(HookPhase.Before, HookDirection.To, "C", overwrite_then_fail)
        widget = Widget(state="C", C_at=earlier)

        self._dispatch(widget)

        assert widget.C_at == earlier

    def test_veto_leaves_state_alone_if_already_changed(self) -> None:
        """Test the state is only reverted while it still equals the target."""

        def redirect_then_fail(entity, from_state, to_state):
            entity.state = "D"
            return False

        self.registry.register(HookPhase.Before, HookDirection.To, "C", redirect_then_fail)
        widget = Widget(state="C")

        self._dispatch(widget)

        assert widget.state == "D"

    def test_non_rollback_failure_halts_only_its_own_chain(self) -> None:
        """Test a non-blocking failure skips later hooks of its direction only."""
        self.registry.register(HookPhase.Before, HookDirection.To, "C", HookSpy("to_1", self.calls, False), rollback_on_failure=False)
        self.registry.register(HookPhase.Before, HookDirection.From, "B", HookSpy("from_1", self.calls))
        self.registry.register(HookPhase.Before, HookDirection.To, "C", HookSpy("to_2", self.calls))
        self.registry.register(HookPhase.Before, HookDirection.From, "B", HookSpy("from_2", self.calls))
        widget = Widget(state="C")

        outcome = self._dispatch(widget)

        assert outcome.status == DispatchStatus.Completed
        assert outcome.halted_directions == [HookDirection.To]
        assert [name for name, _, _ in self.calls] == ["to_1", "from_1", "from_2"]
        assert widget.state == "C"

    def test_exclude_from_hooks(self) -> None:
        """Test include_from=False skips from-bound hooks."""
        self.registry.register(HookPhase.Before, HookDirection.From, "C", HookSpy("from_c", self.calls))
        self.registry.register(HookPhase.Before, HookDirection.To, "C", HookSpy("to_c", self.calls))
        dispatcher = HookDispatcher(self.registry.freeze())

        dispatcher.run(HookPhase.Before, Widget(state="C"), "C", "C", include_from=False)

        assert [name for name, _, _ in self.calls] == ["to_c"]


class TestAfterPhase:
    """Tests for the after phase."""

    def setup_method(self) -> None:
        """Set up test fixtures."""
        self.registry = HookRegistry()
        self.calls: list[tuple[str, str | None, str]] = []

    def test_rollback_failure_reports_failed(self) -> None:
        """Test a blocking after failure stops the chain with Failed."""
        self.registry.register(HookPhase.After, HookDirection.To, "C", HookSpy("first", self.calls, False))
        self.registry.register(HookPhase.After, HookDirection.To, "C", HookSpy("second", self.calls))
        widget = Widget(state="C")

        outcome = HookDispatcher(self.registry.freeze()).run(HookPhase.After, widget, "C", "B")

        assert outcome.status == DispatchStatus.Failed
        assert outcome.failed_hook.order == 0
        assert [name for name, _, _ in self.calls] == ["first"]
        assert widget.state == "C"

    def test_non_rollback_failure_is_skipped(self) -> None:
        """Test a non-blocking after failure lets the rest of the chain run."""
        self.registry.register(HookPhase.After, HookDirection.To, "C", HookSpy("first", self.calls, False), rollback_on_failure=False)
        self.registry.register(HookPhase.After, HookDirection.To, "C", HookSpy("second", self.calls))

        outcome = HookDispatcher(self.registry.freeze()).run(HookPhase.After, Widget(state="C"), "C", "B")

        assert outcome.ok
        assert [name for name, _, _ in self.calls] == ["first", "second"]


class TestAfterCommitPhase:
    """Tests for the after-commit phase."""

    def setup_method(self) -> None:
        """Set up test fixtures."""
        self.registry = HookRegistry()
        self.calls: list[tuple[str, str | None, str]] = []
        self.observability = MockObservabilityManager()

    def test_return_values_ignored(self) -> None:
        """Test False returns never change the outcome."""
        self.registry.register(HookPhase.AfterCommit, HookDirection.To, "C", HookSpy("first", self.calls, False))
        self.registry.register(HookPhase.AfterCommit, HookDirection.To, "C", HookSpy("second", self.calls))

        outcome = HookDispatcher(self.registry.freeze()).run(HookPhase.AfterCommit, Widget(state="C"), "C", "B")

        assert outcome.ok
        assert len(self.calls) == 2

    def test_exceptions_are_logged_not_raised(self) -> None:
        """Test a raising hook is logged and the chain continues."""

        def explode(entity, from_state, to_state):
            raise RuntimeError("mail server down")

        self.registry.register(HookPhase.AfterCommit, HookDirection.To, "C", explode)
        self.registry.register(HookPhase.AfterCommit, HookDirection.To, "C", HookSpy("after", self.calls))
        dispatcher = HookDispatcher(self.registry.freeze(), self.observability)

        outcome = dispatcher.run(HookPhase.AfterCommit, Widget(id="w1", state="C"), "C", "B")

        assert outcome.ok
        assert len(self.calls) == 1
        assert len(self.observability.logs) == 1
        log = self.observability.logs[0]
        assert log["level"] == "ERROR"
        assert "mail server down" in log["message"]
        assert log["context"]["entity_id"] == "w1"
        assert log["context"]["to_state"] == "C"
        assert self.observability.event_types() == ["after_commit_hook_failed"]
        assert self.observability.events[0]["payload"]["error"] == "mail server down"

    def test_logging_failure_is_tolerated(self) -> None:
        """Test a failing observability sink does not surface from after-commit."""

        def explode(entity, from_state, to_state):
            raise RuntimeError("boom")

        self.registry.register(HookPhase.AfterCommit, HookDirection.To, "C", explode)
        dispatcher = HookDispatcher(self.registry.freeze(), MockObservabilityManager(fail=True))

        outcome = dispatcher.run(HookPhase.AfterCommit, Widget(state="C"), "C", "B")

        assert outcome.ok

    def test_defaults_to_process_wide_manager(self, observability: MockObservabilityManager) -> None:
        """Test failures go to the installed default manager when none is given."""

        def explode(entity, from_state, to_state):
            raise RuntimeError("boom")

        self.registry.register(HookPhase.AfterCommit, HookDirection.To, "C", explode)

        HookDispatcher(self.registry.freeze()).run(HookPhase.AfterCommit, Widget(state="C"), "C", "B")

        assert len(observability.logs) == 1
