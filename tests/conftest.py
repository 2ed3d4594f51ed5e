"""
beadbridge Test Configuration and Fixtures

This module provides pytest fixtures for testing the bridge. All fixtures
avoid real network calls and provide deterministic behavior.

Fixture Categories:
- Environment isolation: config/env caches reset, .env loading disabled
- Clock: a manually advanced monotonic time source
- Fakes: recording collaborators from tests/fakes.py
"""

from pathlib import Path

import pytest
from fakes import (
    FakeBeadStore,
    FakeDecisionNotifier,
    FakeIssueTracker,
    FakeJackNotifier,
    FakeNudger,
)

# Environment variables read by the config loader or client factories
_BRIDGE_ENV_VARS = [
    "BEADBRIDGE_CONFIG",
    "BEADS_HTTP_ADDR",
    "BEADBRIDGE_BEADS_HTTP_ADDR",
    "BEADBRIDGE_JIRA_ENABLED",
    "JIRA_BASE_URL",
    "JIRA_EMAIL",
    "JIRA_API_TOKEN",
    "JIRA_PROJECTS",
    "JIRA_STATUSES",
    "JIRA_ISSUE_TYPES",
    "JIRA_POLL_INTERVAL",
    "JIRA_DISABLE_TRANSITIONS",
    "BOAT_PROJECTS",
    "BEADBRIDGE_SLACK_ENABLED",
    "BEADBRIDGE_DEFAULT_CHANNEL",
    "SLACK_BOT_TOKEN",
    "BEADBRIDGE_LOG_LEVEL",
    "BEADBRIDGE_LOG_FILE",
    "BEADBRIDGE_DEBUG",
    "BEADBRIDGE_DRY_RUN",
]


# =============================================================================
# Path Fixtures
# =============================================================================


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


# =============================================================================
# Environment Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Reset cached config and keep .env values out of every test."""
    import beadbridge.config.environment as env_module
    from beadbridge.config import reset_config, reset_environment

    reset_config()
    reset_environment()
    for var in _BRIDGE_ENV_VARS:
        monkeypatch.delenv(var, raising=False)

    # Prevent ensure_dotenv_loaded() from reading a developer's .env
    monkeypatch.setattr(env_module, "_dotenv_loaded", True)

    yield

    reset_config()
    reset_environment()


# =============================================================================
# Clock
# =============================================================================


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """Manually advanced monotonic clock."""
    return FakeClock()


# =============================================================================
# Collaborator Fakes
# =============================================================================


@pytest.fixture
def store() -> FakeBeadStore:
    return FakeBeadStore()


@pytest.fixture
def jack_notifier() -> FakeJackNotifier:
    return FakeJackNotifier()


@pytest.fixture
def decision_notifier() -> FakeDecisionNotifier:
    return FakeDecisionNotifier()


@pytest.fixture
def tracker() -> FakeIssueTracker:
    return FakeIssueTracker()


@pytest.fixture
def nudger() -> FakeNudger:
    return FakeNudger()
