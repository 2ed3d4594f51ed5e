"""Tests for configuration models."""

import pytest
from pydantic import ValidationError

from beadbridge.config.models import (
    BeadsConfig,
    BridgeConfig,
    JiraConfig,
    LoggingConfig,
    LogLevel,
    RouterConfig,
    parse_duration,
    parse_project_map,
)


class TestParseDuration:
    """Tests for duration parsing."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("90s", 90.0),
            ("2m", 120.0),
            ("1h30m", 5400.0),
            ("500ms", 0.5),
            (" 5M ", 300.0),
            (45, 45),
        ],
    )
    def test_valid(self, value, expected):
        assert parse_duration(value) == expected

    def test_unparseable_passes_through(self):
        assert parse_duration("soon") == "soon"
        assert parse_duration("5m later") == "5m later"

    def test_invalid_interval_rejected(self):
        with pytest.raises(ValidationError):
            JiraConfig(poll_interval_seconds="soon")


class TestParseProjectMap:
    """Tests for BOAT_PROJECTS parsing."""

    def test_entries(self):
        assert parse_project_map(
            "gasboat=https://github.com/org/gasboat.git:kd, infra=git@host:org/infra.git:OPS"
        ) == {"KD": "gasboat", "OPS": "infra"}

    def test_malformed_entries_skipped(self):
        assert parse_project_map("noequals,=url:X,name=nocolon") == {}

    def test_mapping_keys_uppercased(self):
        assert parse_project_map({"pe": "gasboat"}) == {"PE": "gasboat"}


class TestBeadsConfig:
    """Tests for BeadsConfig."""

    def test_default(self):
        assert BeadsConfig().http_addr == "http://localhost:8080"

    def test_trailing_slash_dropped(self):
        assert BeadsConfig(http_addr=" http://beads:8080/ ").http_addr == "http://beads:8080"

    def test_empty_rejected(self):
        with pytest.raises(ValidationError):
            BeadsConfig(http_addr="  ")


class TestJiraConfig:
    """Tests for JiraConfig."""

    def test_disabled_needs_nothing(self):
        config = JiraConfig()

        assert config.enabled is False
        assert config.statuses == ["To Do", "Ready for Development"]
        assert config.issue_types == ["Bug", "Task", "Story"]

    def test_enabled_requires_projects(self):
        with pytest.raises(ValidationError, match="projects"):
            JiraConfig(enabled=True, base_url="https://x.atlassian.net", projects="")

    def test_page_size_bounds(self):
        with pytest.raises(ValidationError):
            JiraConfig(page_size=0)
        with pytest.raises(ValidationError):
            JiraConfig(page_size=101)


class TestRouterConfig:
    """Tests for RouterConfig."""

    def test_patterns(self):
        config = RouterConfig(channels={"gasboat/*": "C1", "gasboat/crews/k8s": "C2"})

        assert config.channels["gasboat/*"] == "C1"

    @pytest.mark.parametrize("pattern", ["", "a//b", "/a", "a/"])
    def test_empty_segments_rejected(self, pattern):
        with pytest.raises(ValidationError):
            RouterConfig(channels={pattern: "C1"})


class TestLoggingConfig:
    """Tests for LoggingConfig."""

    def test_defaults(self):
        config = LoggingConfig()

        assert config.level == LogLevel.INFO
        assert config.file is None
        assert config.rich is True

    def test_level_case_insensitive(self):
        assert LoggingConfig(level="error").level == LogLevel.ERROR


class TestBridgeConfig:
    """Tests for the root configuration."""

    def test_defaults(self):
        config = BridgeConfig()

        assert config.slack.enabled is False
        assert config.watchers.catch_up_decisions is True
        assert config.dry_run is False

    def test_to_yaml_dict(self):
        data = BridgeConfig(router={"default_channel": "C1"}).to_yaml_dict()

        assert data["router"]["default_channel"] == "C1"
        assert data["logging"]["level"] == "INFO"
        assert "file" not in data["logging"]
