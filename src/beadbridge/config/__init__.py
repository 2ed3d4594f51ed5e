"""
beadbridge - Configuration Management

This module provides configuration management including:
- YAML configuration loading and validation
- Environment variable handling for secrets
- Configuration defaults and overrides
"""

from beadbridge.config.environment import (
    EnvironmentConfig,
    ensure_dotenv_loaded,
    get_secret,
    load_environment,
    reset_environment,
    validate_environment,
)
from beadbridge.config.loader import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_PATHS,
    ENV_VAR_OVERRIDES,
    ConfigLoader,
    ConfigurationError,
    get_config,
    load_config,
    load_config_from_env,
    reset_config,
)
from beadbridge.config.models import (
    BeadsConfig,
    BridgeConfig,
    JiraConfig,
    LoggingConfig,
    LogLevel,
    RouterConfig,
    SlackConfig,
    WatchersConfig,
)

__all__ = [
    # Config models
    "BeadsConfig",
    "JiraConfig",
    "SlackConfig",
    "RouterConfig",
    "WatchersConfig",
    "LogLevel",
    "LoggingConfig",
    "BridgeConfig",
    # Loader
    "ConfigLoader",
    "ConfigurationError",
    "load_config",
    "load_config_from_env",
    "get_config",
    "reset_config",
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_PATHS",
    "ENV_VAR_OVERRIDES",
    # Environment
    "EnvironmentConfig",
    "load_environment",
    "ensure_dotenv_loaded",
    "get_secret",
    "validate_environment",
    "reset_environment",
]
