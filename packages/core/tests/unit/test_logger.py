"""Tests for the default observability manager and log sanitization."""

import pytest

from fixtures.test_data import MockObservabilityManager
from stateguard.domain.interfaces.observability_manager import ObservabilityError
from stateguard.infrastructure.config.settings import configure
from stateguard.infrastructure.observability.logger import (
    DefaultObservabilityManager,
    get_observability_manager,
    sanitize_for_logging,
    set_observability_manager,
)


def notify_customer(order, from_state, to_state):
    return None


class TestSanitizeForLogging:
    """Tests for sanitize_for_logging."""

    def test_redacts_sensitive_keys(self) -> None:
        """Test sensitive values are redacted at any depth."""
        data = {"entity_id": "o-1", "context": {"Token": "abc", "password": "pw"}}

        assert sanitize_for_logging(data) == {
            "entity_id": "o-1",
            "context": {"Token": "[REDACTED]", "password": "[REDACTED]"},
        }

    def test_callables_become_names(self) -> None:
        """Test hook handlers are logged by qualified name."""
        assert sanitize_for_logging({"hook": notify_customer}) == {"hook": "notify_customer"}

    def test_sequences(self) -> None:
        """Test lists and tuples are sanitized element-wise."""
        assert sanitize_for_logging(({"secret": 1}, 2)) == [{"secret": "[REDACTED]"}, 2]

    def test_primitives_unchanged(self) -> None:
        """Test plain values pass through."""
        assert sanitize_for_logging("paid") == "paid"
        assert sanitize_for_logging(None) is None


class TestDefaultObservabilityManager:
    """Tests for DefaultObservabilityManager."""

    def test_emit_event_logs(self) -> None:
        """Test events are written through structlog without raising."""
        manager = DefaultObservabilityManager(json_format=False)

        manager.emit_event("state_transition", {"entity_id": "o-1", "to_state": "paid"}, {"trace": "t-1"})
        manager.log("WARNING", "slow hook", {"hook": notify_customer})

    def test_emit_event_wraps_failures(self) -> None:
        """Test logging errors surface as ObservabilityError."""
        manager = DefaultObservabilityManager(configure=False)

        class Broken(dict):
            def items(self):
                raise RuntimeError("broken payload")

        with pytest.raises(ObservabilityError, match="Failed to emit event"):
            manager.emit_event("state_transition", Broken())


class TestProcessWideManager:
    """Tests for the process-wide default manager."""

    def test_set_and_get(self) -> None:
        """Test an installed manager is returned."""
        manager = MockObservabilityManager()
        set_observability_manager(manager)
        assert get_observability_manager() is manager

    def test_default_built_from_settings(self) -> None:
        """Test a default manager is created lazily from settings."""
        configure(log_json=False, log_level="DEBUG")
        set_observability_manager(None)

        manager = get_observability_manager()

        assert isinstance(manager, DefaultObservabilityManager)
        assert get_observability_manager() is manager
