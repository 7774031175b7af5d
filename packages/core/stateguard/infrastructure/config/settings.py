"""Configuration settings using pydantic-settings."""

from typing import Any

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from stateguard.domain.models.state_machine_error import ConfigError


class StateGuardSettings(BaseSettings):
    """Process-wide configuration for the transition engine.

    Settings can be loaded from environment variables or passed as a dictionary.
    Environment variables should be prefixed with 'STATEGUARD_' (e.g., STATEGUARD_SYSTEM_ID=42).

    The engine reads the active settings at transition time through
    ``get_settings()``; they change only through ``configure()``.

    Example:
        ```python
        # From environment variables
        settings = StateGuardSettings()

        # Process-wide override
        configure(system_id=42, should_log_state_change=False)
        ```
    """

    model_config = SettingsConfigDict(
        env_prefix="STATEGUARD_",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Audit configuration
    system_id: int | str = Field(
        default=1,
        description="Actor credited in audit records when no actor was supplied",
    )
    should_log_state_change: bool = Field(
        default=True,
        description="Whether every transition writes a StateChange audit record",
    )

    # In-memory store configuration
    max_state_changes: int = Field(
        default=1000,
        description="Maximum number of audit records kept by the in-memory store (0 = unlimited)",
    )

    # Definition file configuration
    definition_file: str | None = Field(
        default=None,
        description="Default path of a YAML/JSON state machine definition file",
    )

    # Observability configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON (False for human-readable console output)",
    )

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "StateGuardSettings":
        """Create settings from a dictionary.

        Args:
            config: Dictionary with configuration values.

        Returns:
            StateGuardSettings instance.
        """
        return cls(**config)


_settings: StateGuardSettings | None = None


def get_settings() -> StateGuardSettings:
    """Return the active process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = StateGuardSettings()
    return _settings


def configure(**overrides: Any) -> StateGuardSettings:
    """Replace the active settings with a copy carrying ``overrides``.

    This is the only entry point that changes process-wide configuration.

    Raises:
        ConfigError: If an unknown setting is named or a value is invalid.
    """
    global _settings
    unknown = sorted(set(overrides) - set(StateGuardSettings.model_fields))
    if unknown:
        raise ConfigError(f"Unknown setting(s): {', '.join(unknown)}")

    current = get_settings().model_dump()
    try:
        _settings = StateGuardSettings.from_dict({**current, **overrides})
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}") from e
    return _settings


def reset_settings() -> None:
    """Drop configured overrides; the next ``get_settings()`` reloads from the environment."""
    global _settings
    _settings = None
