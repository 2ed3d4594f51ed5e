"""
Channel Router.

Resolves the Slack channel for an agent identity ("project/role/name").

Resolution priority:
1. Exact override (a dedicated channel for one agent)
2. Wildcard patterns, ranked by specificity
3. Default channel

Patterns are "/"-delimited; "*" matches exactly one segment. Ranking:
more segments first, then fewer wildcards, then pattern text.
"""

import threading
from dataclasses import dataclass
from typing import Optional

from beadbridge.config.models import RouterConfig

WILDCARD = "*"
OVERRIDE_MATCH = "(override)"
DEFAULT_MATCH = "(default)"


@dataclass(frozen=True)
class RouteResult:
    """Resolved destination.

    Attributes:
        channel: Destination channel ID
        matched_by: Pattern that matched, "(override)" or "(default)"
        is_default: True when falling back to the default channel
    """

    channel: str
    matched_by: str
    is_default: bool = False


@dataclass(frozen=True)
class _CompiledRule:
    pattern: str
    segments: tuple[str, ...]
    channel: str

    @property
    def wildcards(self) -> int:
        return sum(1 for s in self.segments if s == WILDCARD)

    def sort_key(self) -> tuple[int, int, str]:
        return (-len(self.segments), self.wildcards, self.pattern)

    def matches(self, identity_segments: list[str]) -> bool:
        if len(self.segments) != len(identity_segments):
            return False
        return all(p == WILDCARD or p == s for p, s in zip(self.segments, identity_segments))


class ChannelRouter:
    """Maps agent identities to channels.

    Rules are ranked once per change, so ``resolve`` is a linear scan.
    Thread-safe for concurrent access.
    """

    def __init__(self, config: Optional[RouterConfig] = None) -> None:
        config = config or RouterConfig()
        self._lock = threading.RLock()
        self._default_channel = config.default_channel
        self._rules: dict[str, str] = dict(config.channels)
        self._overrides: dict[str, str] = dict(config.overrides)
        self._ranked: list[_CompiledRule] = []
        self._rank_rules()

    @property
    def default_channel(self) -> str:
        return self._default_channel

    def resolve(self, identity: str) -> RouteResult:
        """Find the channel for an agent identity.

        Args:
            identity: Agent identity, e.g. "gasboat/crew/test-bot"

        Returns:
            The resolved route
        """
        with self._lock:
            channel = self._overrides.get(identity)
            if channel is not None:
                return RouteResult(channel=channel, matched_by=OVERRIDE_MATCH)

            segments = identity.split("/")
            for rule in self._ranked:
                if rule.matches(segments):
                    return RouteResult(channel=rule.channel, matched_by=rule.pattern)

            return RouteResult(
                channel=self._default_channel,
                matched_by=DEFAULT_MATCH,
                is_default=True,
            )

    def has_override(self, identity: str) -> bool:
        with self._lock:
            return identity in self._overrides

    def add_override(self, identity: str, channel: str) -> None:
        """Route one identity to a dedicated channel."""
        with self._lock:
            self._overrides[identity] = channel

    def remove_override(self, identity: str) -> None:
        """Drop an identity's dedicated channel. Missing identities are ignored."""
        with self._lock:
            self._overrides.pop(identity, None)

    def get_identity_by_destination(self, channel: str) -> Optional[str]:
        """Reverse lookup over overrides only.

        Returns:
            The first identity overridden to channel, or None
        """
        with self._lock:
            for identity, target in self._overrides.items():
                if target == channel:
                    return identity
            return None

    def set_rule(self, pattern: str, channel: str) -> None:
        """Add or replace a pattern rule."""
        with self._lock:
            self._rules[pattern] = channel
            self._rank_rules()

    def remove_rule(self, pattern: str) -> None:
        """Remove a pattern rule if present."""
        with self._lock:
            if self._rules.pop(pattern, None) is not None:
                self._rank_rules()

    def ranked_patterns(self) -> list[str]:
        """Patterns in match order."""
        with self._lock:
            return [rule.pattern for rule in self._ranked]

    def _rank_rules(self) -> None:
        with self._lock:
            compiled = [
                _CompiledRule(pattern=p, segments=tuple(p.split("/")), channel=c)
                for p, c in self._rules.items()
            ]
            compiled.sort(key=_CompiledRule.sort_key)
            self._ranked = compiled
