"""Tests for StateGuardSettings and the configuration entry point."""

import pytest

from stateguard.domain.models.state_machine_error import ConfigError
from stateguard.infrastructure.config.settings import (
    StateGuardSettings,
    configure,
    get_settings,
    reset_settings,
)


class TestStateGuardSettings:
    """Tests for settings loading."""

    def test_defaults(self) -> None:
        """Test default values."""
        settings = StateGuardSettings()

        assert settings.system_id == 1
        assert settings.should_log_state_change is True
        assert settings.max_state_changes == 1000
        assert settings.definition_file is None
        assert settings.log_level == "INFO"
        assert settings.log_json is True

    def test_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test values are read from STATEGUARD_ environment variables."""
        monkeypatch.setenv("STATEGUARD_SYSTEM_ID", "42")
        monkeypatch.setenv("STATEGUARD_SHOULD_LOG_STATE_CHANGE", "false")

        settings = StateGuardSettings()

        assert str(settings.system_id) == "42"
        assert settings.should_log_state_change is False

    def test_from_dict(self) -> None:
        """Test creation from a dictionary."""
        settings = StateGuardSettings.from_dict({"system_id": "ops-bot", "log_json": False})

        assert settings.system_id == "ops-bot"
        assert settings.log_json is False

    def test_settings_are_frozen(self) -> None:
        """Test settings cannot be mutated in place."""
        settings = StateGuardSettings()
        with pytest.raises(Exception):
            settings.system_id = 2


class TestConfigure:
    """Tests for the process-wide configuration entry point."""

    def test_get_settings_is_cached(self) -> None:
        """Test the same settings object is returned until reconfigured."""
        assert get_settings() is get_settings()

    def test_configure_overrides(self) -> None:
        """Test configure replaces the active settings."""
        configure(system_id=7, should_log_state_change=False)

        assert get_settings().system_id == 7
        assert get_settings().should_log_state_change is False

    def test_configure_keeps_other_values(self) -> None:
        """Test successive calls accumulate overrides."""
        configure(system_id=7)
        configure(max_state_changes=10)

        assert get_settings().system_id == 7
        assert get_settings().max_state_changes == 10

    def test_unknown_setting_rejected(self) -> None:
        """Test configure rejects names that are not settings."""
        with pytest.raises(ConfigError, match="Unknown setting"):
            configure(system=7)

    def test_invalid_value_rejected(self) -> None:
        """Test invalid values surface as ConfigError."""
        with pytest.raises(ConfigError, match="Invalid settings"):
            configure(max_state_changes="many")

    def test_reset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test reset drops overrides and reloads from the environment."""
        configure(system_id=7)
        monkeypatch.setenv("STATEGUARD_SYSTEM_ID", "3")

        reset_settings()

        assert str(get_settings().system_id) == "3"
