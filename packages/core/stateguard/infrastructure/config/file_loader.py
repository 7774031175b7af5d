"""Definition file loader for YAML and JSON state machine declarations."""

import json
import os
from pathlib import Path
from typing import Any

import yaml

from stateguard.domain.models.state_machine_error import ConfigError


class ConfigurationError(ConfigError):
    """Raised when a definition file cannot be loaded or validated."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize ConfigurationError.

        Args:
            message: Human-readable error message.
            field: Optional field name that failed validation.
        """
        self.field = field
        super().__init__(message, details={"field": field} if field else None)

    def __str__(self) -> str:
        """Return error message with field name if available."""
        if self.field:
            return f"Configuration error in field '{self.field}': {self.message}"
        return self.message


class DefinitionFileLoader:
    """Loads a state machine declaration from a YAML or JSON file.

    A definition file holds the transition graph and the type-level policies;
    hooks are always registered in code. Expected layout (YAML):

        states:
          pending: [paid, cancelled]
          paid: shipped
          shipped: []
          cancelled: []
        overwrite:
          paid:
            timestamp: false
            attribution: false
        skip_runs_from_hooks: false
    """

    ALLOWED_KEYS = frozenset({"states", "overwrite", "skip_runs_from_hooks"})

    def __init__(self, config_file_path: str | Path | None = None) -> None:
        """Initialize DefinitionFileLoader.

        Args:
            config_file_path: Path to the definition file. If None, attempts to
                            load from STATEGUARD_DEFINITION_FILE environment variable.
                            If not set, raises ConfigurationError.

        Raises:
            ConfigurationError: If config_file_path is not provided and
                              STATEGUARD_DEFINITION_FILE is not set, or the file
                              does not exist.
        """
        if config_file_path is None:
            config_file_path = os.getenv("STATEGUARD_DEFINITION_FILE")
            if not config_file_path:
                raise ConfigurationError(
                    "Definition file path not provided and STATEGUARD_DEFINITION_FILE "
                    "environment variable is not set"
                )

        self._config_path = Path(config_file_path)
        if not self._config_path.exists():
            raise ConfigurationError(f"Definition file not found: {self._config_path}")

        # Validate file path to prevent directory traversal
        try:
            self._config_path.resolve().relative_to(Path.cwd().resolve())
        except ValueError:
            if not self._config_path.is_absolute():
                raise ConfigurationError(
                    f"Definition file path must be within current directory or absolute: {self._config_path}"
                ) from None

    @property
    def path(self) -> Path:
        return self._config_path

    def load(self) -> dict[str, Any]:
        """Load the raw definition from file.

        Automatically detects file format (YAML or JSON) based on file extension.

        Raises:
            ConfigurationError: If file format is invalid or file cannot be parsed.
        """
        suffix = self._config_path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            return self._load_yaml()
        elif suffix == ".json":
            return self._load_json()
        else:
            raise ConfigurationError(
                f"Unsupported definition file format: {suffix}. "
                "Supported formats: .yaml, .yml, .json"
            )

    def _load_yaml(self) -> dict[str, Any]:
        try:
            with self._config_path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
                if data is None:
                    return {}
                if not isinstance(data, dict):
                    raise ConfigurationError("YAML file must contain a dictionary/mapping")
                return data
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML format: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to read definition file: {e}") from e

    def _load_json(self) -> dict[str, Any]:
        try:
            with self._config_path.open("r", encoding="utf-8") as f:
                data = json.load(f)
                if not isinstance(data, dict):
                    raise ConfigurationError("JSON file must contain an object")
                return data
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON format: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to read definition file: {e}") from e

    def parse_states(self, config: dict[str, Any]) -> dict[str, list[str]]:
        """Parse the ``states`` section into a state -> successors mapping.

        Successor lists are normalized; undeclared successors are left for
        the transition table to reject.

        Raises:
            ConfigurationError: If the section is missing or malformed.
        """
        states_config = config.get("states")
        if not isinstance(states_config, dict) or not states_config:
            raise ConfigurationError(
                "Definition 'states' must be a non-empty mapping", field="states"
            )

        parsed: dict[str, list[str]] = {}
        for state, successors in states_config.items():
            if not isinstance(state, str) or not state.strip():
                raise ConfigurationError(
                    f"State name {state!r} must be a non-empty string",
                    field="states",
                )
            if successors is None:
                successors = []
            elif isinstance(successors, str):
                successors = [successors]
            if not isinstance(successors, list) or not all(
                isinstance(successor, str) for successor in successors
            ):
                raise ConfigurationError(
                    f"Successors of '{state}' must be a string or a list of strings",
                    field=f"states.{state}",
                )
            parsed[state.strip()] = [successor.strip() for successor in successors]
        return parsed

    def parse_overwrite(self, config: dict[str, Any]) -> dict[str, dict[str, bool]]:
        """Parse the ``overwrite`` section of type-level overwrite policies.

        Returns:
            Mapping of state -> {"timestamp": bool, "attribution": bool}, only
            the keys present in the file.

        Raises:
            ConfigurationError: If the section is malformed.
        """
        overwrite_config = config.get("overwrite", {})
        if not isinstance(overwrite_config, dict):
            raise ConfigurationError(
                "Definition 'overwrite' must be a mapping", field="overwrite"
            )

        parsed: dict[str, dict[str, bool]] = {}
        for state, policy in overwrite_config.items():
            if not isinstance(policy, dict):
                raise ConfigurationError(
                    f"Overwrite policy of '{state}' must be a mapping",
                    field=f"overwrite.{state}",
                )
            unknown = set(policy) - {"timestamp", "attribution"}
            if unknown:
                raise ConfigurationError(
                    f"Unknown overwrite option(s) for '{state}': {', '.join(sorted(unknown))}",
                    field=f"overwrite.{state}",
                )
            for option, value in policy.items():
                if not isinstance(value, bool):
                    raise ConfigurationError(
                        f"Overwrite option '{option}' of '{state}' must be a boolean",
                        field=f"overwrite.{state}.{option}",
                    )
            parsed[str(state)] = dict(policy)
        return parsed

    def parse_skip_runs_from_hooks(self, config: dict[str, Any]) -> bool:
        value = config.get("skip_runs_from_hooks", False)
        if not isinstance(value, bool):
            raise ConfigurationError(
                "Definition 'skip_runs_from_hooks' must be a boolean",
                field="skip_runs_from_hooks",
            )
        return value

    def validate_structure(self, config: dict[str, Any]) -> None:
        """Validate definition file structure.

        Raises:
            ConfigurationError: If the definition structure is invalid.
        """
        if not isinstance(config, dict):
            raise ConfigurationError("Definition must be a dictionary")

        for key in config:
            if key not in self.ALLOWED_KEYS:
                raise ConfigurationError(
                    f"Unknown definition key: '{key}'. Allowed keys: {', '.join(sorted(self.ALLOWED_KEYS))}",
                    field=key,
                )

        self.parse_states(config)
        self.parse_overwrite(config)
        self.parse_skip_runs_from_hooks(config)
