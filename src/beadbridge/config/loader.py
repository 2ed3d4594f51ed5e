"""
Configuration Loader.

Loads and validates configuration from YAML files with environment
variable substitution.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from beadbridge.config.environment import load_environment
from beadbridge.config.models import BridgeConfig

logger = logging.getLogger(__name__)

# Default configuration file locations
DEFAULT_CONFIG_PATHS = [
    "beadbridge.yaml",
    "beadbridge.yml",
    ".beadbridge.yaml",
    "config.yaml",
]

# Environment variable for config path
CONFIG_ENV_VAR = "BEADBRIDGE_CONFIG"

# Environment variable overrides for configuration settings
# Maps env var name to config path (dot-separated)
ENV_VAR_OVERRIDES = {
    # Beads daemon (later entries win)
    "BEADS_HTTP_ADDR": "beads.http_addr",
    "BEADBRIDGE_BEADS_HTTP_ADDR": "beads.http_addr",
    # JIRA
    "BEADBRIDGE_JIRA_ENABLED": "jira.enabled",
    "JIRA_BASE_URL": "jira.base_url",
    "JIRA_EMAIL": "jira.email",
    "JIRA_PROJECTS": "jira.projects",
    "JIRA_STATUSES": "jira.statuses",
    "JIRA_ISSUE_TYPES": "jira.issue_types",
    "JIRA_POLL_INTERVAL": "jira.poll_interval_seconds",
    "JIRA_DISABLE_TRANSITIONS": "jira.disable_transitions",
    "BOAT_PROJECTS": "jira.project_map",
    # Slack
    "BEADBRIDGE_SLACK_ENABLED": "slack.enabled",
    "BEADBRIDGE_DEFAULT_CHANNEL": "router.default_channel",
    # Logging settings
    "BEADBRIDGE_LOG_LEVEL": "logging.level",
    "BEADBRIDGE_LOG_FILE": "logging.file",
    # Runtime flags
    "BEADBRIDGE_DEBUG": "debug",
    "BEADBRIDGE_DRY_RUN": "dry_run",
}

# Overrides whose value is a list or free text and must not be coerced
_STRING_OVERRIDES = frozenset(
    {
        "JIRA_PROJECTS",
        "JIRA_STATUSES",
        "JIRA_ISSUE_TYPES",
        "BEADBRIDGE_DEFAULT_CHANNEL",
        "BOAT_PROJECTS",
        "JIRA_EMAIL",
    }
)


class ConfigurationError(Exception):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        errors: list[dict] | None = None,
        path: Path | None = None,
    ) -> None:
        """Initialize configuration error.

        Args:
            message: Error message
            errors: List of validation errors (from Pydantic)
            path: Path to the config file that caused the error
        """
        super().__init__(message)
        self.errors = errors or []
        self.path = path

    def __str__(self) -> str:
        """Format error message with details."""
        msg = super().__str__()
        if self.path:
            msg = f"{msg} (file: {self.path})"
        if self.errors:
            error_details = []
            for err in self.errors[:5]:
                loc = ".".join(str(x) for x in err.get("loc", []))
                error_msg = err.get("msg", "Unknown error")
                error_details.append(f"  - {loc}: {error_msg}")
            if len(self.errors) > 5:
                error_details.append(f"  ... and {len(self.errors) - 5} more errors")
            msg = f"{msg}\n" + "\n".join(error_details)
        return msg


class ConfigLoader:
    """Loads configuration from YAML files.

    Supports:
    - YAML configuration files
    - Environment variable substitution (${VAR} and ${VAR:-default} syntax)
    - Explicit environment overrides (ENV_VAR_OVERRIDES)
    - Validation via Pydantic

    Usage:
        loader = ConfigLoader("beadbridge.yaml")
        config = loader.load()

        # Load from BEADBRIDGE_CONFIG or default locations
        config = ConfigLoader().load_from_env()
    """

    # Matches: ${VAR_NAME} or ${VAR_NAME:-default_value} or ${VAR_NAME:default_value}
    ENV_PATTERN = re.compile(r"\$\{(\w+)(?::-?([^}]*))?\}")

    def __init__(
        self,
        config_path: str | Path | None = None,
        env_file: str = ".env",
    ) -> None:
        """Initialize the config loader.

        Args:
            config_path: Path to YAML config file (optional).
                If not provided, use load_from_env() to auto-discover.
            env_file: Path to .env file for environment loading
        """
        self._config_path = Path(config_path) if config_path else None
        self._env_file = env_file
        self._config: BridgeConfig | None = None
        self._loaded_from_path: Path | None = None

    @property
    def config_path(self) -> Path | None:
        """Get config file path."""
        return self._config_path

    @property
    def loaded_from_path(self) -> Path | None:
        """Get the path the config was actually loaded from (None = defaults)."""
        return self._loaded_from_path

    def get(self) -> BridgeConfig:
        """Get the loaded configuration.

        Raises:
            RuntimeError: If configuration has not been loaded yet.
        """
        if self._config is None:
            raise RuntimeError("Configuration not loaded. Call load() or load_from_env() first.")
        return self._config

    def load(self, path: str | Path | None = None) -> BridgeConfig:
        """Load and validate configuration from a specific path.

        Args:
            path: Optional path to config file. If neither this nor the
                constructor path is set, defaults plus environment
                overrides are used.

        Returns:
            Validated BridgeConfig

        Raises:
            ConfigurationError: If config is invalid
            FileNotFoundError: If config file not found
        """
        if path is not None:
            self._config_path = Path(path)

        # Load environment first (loads .env file if present)
        load_environment(self._env_file)

        if self._config_path:
            raw_config = self._load_yaml()
            self._loaded_from_path = self._config_path
        else:
            raw_config = {}
            self._loaded_from_path = None

        processed = self._substitute_env_vars(raw_config)
        processed = self._apply_env_overrides(processed)
        # YAML parses empty sections as None; Pydantic wants them omitted
        processed = self._clean_none_values(processed)

        try:
            self._config = BridgeConfig(**processed)
        except ValidationError as e:
            raise ConfigurationError(
                f"Configuration validation failed: {e.error_count()} errors",
                errors=e.errors(),
                path=self._loaded_from_path,
            ) from e

        logger.debug(f"Configuration loaded from {self._loaded_from_path or '(defaults)'}")
        return self._config

    def load_from_env(self) -> BridgeConfig:
        """Load configuration from environment variable or default locations.

        Search order:
        1. BEADBRIDGE_CONFIG environment variable (if set)
        2. DEFAULT_CONFIG_PATHS in the current directory
        3. Built-in defaults

        Raises:
            ConfigurationError: If config is invalid
            FileNotFoundError: If BEADBRIDGE_CONFIG points at a missing file
        """
        load_environment(self._env_file)

        env_config_path = os.environ.get(CONFIG_ENV_VAR)
        if env_config_path:
            config_path = Path(env_config_path)
            if not config_path.exists():
                raise FileNotFoundError(
                    f"Config file specified by {CONFIG_ENV_VAR} not found: {env_config_path}"
                )
            self._config_path = config_path
            return self.load()

        for default_path in DEFAULT_CONFIG_PATHS:
            path = Path(default_path)
            if path.exists():
                self._config_path = path
                return self.load()

        logger.debug("No configuration file found, using defaults")
        self._config_path = None
        return self.load()

    def _load_yaml(self) -> dict[str, Any]:
        """Load YAML configuration file.

        Raises:
            FileNotFoundError: If file doesn't exist
            ConfigurationError: If YAML is invalid
        """
        if not self._config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self._config_path}")

        try:
            with open(self._config_path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML: {e}", path=self._config_path) from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                "Configuration root must be a mapping", path=self._config_path
            )
        return data

    def _substitute_env_vars(self, data: Any) -> Any:
        """Recursively substitute environment variables in config.

        Supports syntax:
        - ${VAR_NAME} - substitute with env var, left as-is if not set
        - ${VAR_NAME:-default} - substitute with default if not set
        """
        if isinstance(data, dict):
            return {k: self._substitute_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [self._substitute_env_vars(item) for item in data]
        elif isinstance(data, str):
            return self._substitute_string(data)
        else:
            return data

    def _clean_none_values(self, data: Any) -> Any:
        """Recursively remove None values from nested dicts."""
        if isinstance(data, dict):
            return {k: self._clean_none_values(v) for k, v in data.items() if v is not None}
        elif isinstance(data, list):
            return [self._clean_none_values(item) for item in data]
        else:
            return data

    def _substitute_string(self, value: str) -> Any:
        """Substitute environment variables in a string.

        A string that is exactly one ``${VAR}`` reference is type-coerced
        (see _coerce_type); embedded references are spliced as text.
        """
        full_match = self.ENV_PATTERN.fullmatch(value)
        if full_match:
            var_name = full_match.group(1)
            default = full_match.group(2)

            env_value = os.environ.get(var_name)
            resolved = env_value if env_value is not None else default

            if resolved is not None:
                return self._coerce_type(resolved)
            # Left as-is; validation reports it if it matters
            return value

        def replace(match: re.Match[str]) -> str:
            env_value = os.environ.get(match.group(1))
            if env_value is not None:
                return env_value
            if match.group(2) is not None:
                return match.group(2)
            return match.group(0)

        return self.ENV_PATTERN.sub(replace, value)

    def _coerce_type(self, value: str) -> Any:
        """Coerce string value to appropriate Python type.

        Returns:
            Coerced value (bool, int, float, None, or original string)
        """
        if value == "":
            return None

        lower_value = value.lower()
        if lower_value in ("true", "yes", "on"):
            return True
        if lower_value in ("false", "no", "off"):
            return False

        try:
            if "." not in value and "e" not in lower_value:
                return int(value)
            return float(value)
        except ValueError:
            pass

        return value

    def _apply_env_overrides(self, config_dict: dict[str, Any]) -> dict[str, Any]:
        """Apply ENV_VAR_OVERRIDES on top of the file values."""
        for env_var, config_path in ENV_VAR_OVERRIDES.items():
            env_value = os.environ.get(env_var)
            if env_value is None:
                continue
            if env_var in _STRING_OVERRIDES:
                value: Any = env_value
            else:
                value = self._coerce_type(env_value)
            self._set_nested_value(config_dict, config_path, value)

        return config_dict

    def _set_nested_value(
        self,
        config_dict: dict[str, Any],
        path: str,
        value: Any,
    ) -> None:
        """Set a nested value in a dictionary using dot notation.

        Args:
            config_dict: Configuration dictionary
            path: Dot-separated path (e.g., "jira.base_url")
            value: Value to set
        """
        parts = path.split(".")
        current = config_dict

        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        current[parts[-1]] = value


_global_loader: ConfigLoader | None = None
_global_config: BridgeConfig | None = None


def load_config(
    config_path: str | Path | None = None,
    env_file: str = ".env",
) -> BridgeConfig:
    """Load configuration from file.

    Args:
        config_path: Path to YAML config file. If None, defaults plus
            environment overrides are used.
        env_file: Path to .env file

    Returns:
        Validated BridgeConfig

    Raises:
        ConfigurationError: If config validation fails
        FileNotFoundError: If config file not found
    """
    global _global_loader, _global_config

    _global_loader = ConfigLoader(config_path, env_file)
    _global_config = _global_loader.load()
    return _global_config


def load_config_from_env(env_file: str = ".env") -> BridgeConfig:
    """Load configuration from BEADBRIDGE_CONFIG or default locations.

    Args:
        env_file: Path to .env file

    Returns:
        Validated BridgeConfig
    """
    global _global_loader, _global_config

    _global_loader = ConfigLoader(env_file=env_file)
    _global_config = _global_loader.load_from_env()
    return _global_config


def get_config() -> BridgeConfig:
    """Get the global configuration.

    Raises:
        RuntimeError: If configuration not loaded
    """
    if _global_config is None:
        raise RuntimeError(
            "Configuration not loaded. Call load_config() or load_config_from_env() first."
        )
    return _global_config


def reset_config() -> None:
    """Reset global configuration.

    Clears the cached configuration. Useful for testing.
    """
    global _global_loader, _global_config
    _global_loader = None
    _global_config = None
