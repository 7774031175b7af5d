"""Configuration infrastructure module."""

from stateguard.infrastructure.config.file_loader import (
    ConfigurationError,
    DefinitionFileLoader,
)
from stateguard.infrastructure.config.settings import (
    StateGuardSettings,
    configure,
    get_settings,
    reset_settings,
)

__all__ = [
    "StateGuardSettings",
    "DefinitionFileLoader",
    "ConfigurationError",
    "configure",
    "get_settings",
    "reset_settings",
]
