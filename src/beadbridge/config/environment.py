"""
Environment Variable Handling.

Manages secrets and credentials using python-dotenv.

Call ensure_dotenv_loaded() early in application startup so that .env
variables are visible to the config loader's ${VAR} substitution.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr

# Track whether dotenv has been loaded
_dotenv_loaded: bool = False


def ensure_dotenv_loaded(env_file: str = ".env") -> bool:
    """Ensure .env file is loaded into os.environ.

    Args:
        env_file: Path to .env file (relative or absolute)

    Returns:
        True if a .env file was loaded, False otherwise
    """
    global _dotenv_loaded

    if _dotenv_loaded:
        return True

    env_paths = [
        Path(env_file),
        Path.cwd() / env_file,
    ]
    for env_path in env_paths:
        if env_path.exists():
            load_dotenv(env_path, override=False)
            _dotenv_loaded = True
            return True

    # No .env file found, that's okay - use the process environment
    _dotenv_loaded = True
    return False


class EnvironmentConfig(BaseModel):
    """Secrets and credentials from the environment.

    Attributes:
        jira_api_token: JIRA API token
        jira_email: JIRA account email
        slack_bot_token: Slack bot token
        env_file: Path to .env file
    """

    jira_api_token: SecretStr | None = Field(
        default=None,
        description="JIRA API token",
    )
    jira_email: str | None = Field(
        default=None,
        description="JIRA account email",
    )
    slack_bot_token: SecretStr | None = Field(
        default=None,
        description="Slack bot token",
    )
    env_file: str = Field(
        default=".env",
        description="Path to .env file",
    )


# Environment variable names
ENV_VARS = {
    "jira_api_token": "JIRA_API_TOKEN",
    "jira_email": "JIRA_EMAIL",
    "slack_bot_token": "SLACK_BOT_TOKEN",
}

_config: EnvironmentConfig | None = None


def load_environment(env_file: str = ".env") -> EnvironmentConfig:
    """Load environment configuration.

    Loads from .env file and caches the result.

    Args:
        env_file: Path to .env file

    Returns:
        EnvironmentConfig with loaded values
    """
    global _config

    ensure_dotenv_loaded(env_file)

    if _config is None or _config.env_file != env_file:
        values: dict = {"env_file": env_file}
        for config_key, env_var in ENV_VARS.items():
            value = os.environ.get(env_var)
            if value:
                if "token" in config_key:
                    values[config_key] = SecretStr(value)
                else:
                    values[config_key] = value
        _config = EnvironmentConfig(**values)

    return _config


def get_secret(name: str) -> str | None:
    """Read a secret by environment variable name.

    Used for the configurable ``api_token_env`` / ``bot_token_env``
    settings, which may point at any variable.

    Args:
        name: Environment variable name

    Returns:
        Secret value or None if unset or empty
    """
    ensure_dotenv_loaded()
    value = os.environ.get(name)
    return value or None


def validate_environment(
    require_jira: bool = False,
    require_slack: bool = False,
    jira_token_env: str = ENV_VARS["jira_api_token"],
    slack_token_env: str = ENV_VARS["slack_bot_token"],
    jira_email: str = "",
) -> list[str]:
    """Validate that required credentials are set.

    Args:
        require_jira: Whether JIRA credentials are required
        require_slack: Whether a Slack token is required
        jira_token_env: Variable holding the JIRA API token
        slack_token_env: Variable holding the Slack bot token
        jira_email: Email from the config file; JIRA_EMAIL is the fallback

    Returns:
        Names of the missing variables
    """
    missing = []

    if require_jira:
        if not get_secret(jira_token_env):
            missing.append(jira_token_env)
        if not (jira_email or get_secret(ENV_VARS["jira_email"])):
            missing.append(ENV_VARS["jira_email"])
    if require_slack and not get_secret(slack_token_env):
        missing.append(slack_token_env)

    return missing


def reset_environment() -> None:
    """Reset cached environment configuration.

    Useful for testing or reloading after .env changes.
    """
    global _config, _dotenv_loaded
    _config = None
    _dotenv_loaded = False
