"""
Bead Event Models.

Work-item ("bead") shapes as they arrive on the event stream and as the
beads daemon returns them, plus the payload parsing helpers shared by
every watcher.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BeadEvent:
    """A bead as carried by a lifecycle event.

    Immutable once constructed; handlers receive their own instance.

    Attributes:
        id: Bead identifier (e.g., kd-a1b2)
        type: Bead type tag (task, jack, decision, agent, ...)
        title: Bead title
        status: Current status
        assignee: Claiming agent identity, empty if unclaimed
        labels: Ordered labels
        fields: Named string fields
        priority: Priority (0=highest)
        created_by: Creator identity
    """

    id: str
    type: str = ""
    title: str = ""
    status: str = ""
    assignee: str = ""
    labels: tuple[str, ...] = ()
    fields: Mapping[str, str] = field(default_factory=dict)
    priority: int = 0
    created_by: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "labels", tuple(self.labels))
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def has_label(self, label: str) -> bool:
        """Check whether the bead carries an exact label."""
        return label in self.labels

    def field_value(self, name: str) -> str:
        """Get a named field, empty string when absent."""
        return self.fields.get(name, "")


@dataclass
class BeadDetail:
    """Full bead as returned by the beads daemon.

    Attributes:
        id: Bead identifier
        title: Bead title
        type: Bead type tag
        status: Current status
        assignee: Claiming agent identity
        priority: Priority (0=highest)
        labels: Labels (the list endpoint may leave these empty)
        notes: Free-text notes (``key: value`` lines)
        fields: Named string fields
        description: Markdown description
        created_by: Creator identity
        due_at: Optional due timestamp as sent by the daemon
        updated_at: Last update timestamp
    """

    id: str
    title: str = ""
    type: str = ""
    status: str = ""
    assignee: str = ""
    priority: int = 0
    labels: list[str] = field(default_factory=list)
    notes: str = ""
    fields: dict[str, str] = field(default_factory=dict)
    description: str = ""
    created_by: str = ""
    due_at: str = ""
    updated_at: datetime | None = None

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> BeadDetail:
        """Build a BeadDetail from a daemon JSON object."""
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title") or "",
            type=data.get("type") or "",
            status=data.get("status") or "",
            assignee=data.get("assignee") or "",
            priority=_as_int(data.get("priority")),
            labels=list(data.get("labels") or []),
            notes=data.get("notes") or "",
            fields=parse_fields_json(data.get("fields")),
            description=data.get("description") or "",
            created_by=data.get("created_by") or "",
            due_at=data.get("due_at") or "",
            updated_at=_parse_timestamp(data.get("updated_at")),
        )

    def to_event(self) -> BeadEvent:
        """Convert to a BeadEvent for notification."""
        return BeadEvent(
            id=self.id,
            type=self.type,
            title=self.title,
            status=self.status,
            assignee=self.assignee,
            labels=tuple(self.labels),
            fields=self.fields,
            priority=self.priority,
            created_by=self.created_by,
        )


@dataclass
class CreateBeadRequest:
    """Request to create a new bead.

    Attributes:
        title: Bead title
        type: Bead type tag
        description: Markdown description
        labels: Labels to attach
        priority: Priority (0=highest)
        created_by: Creator identity
        fields: Named string fields
    """

    title: str
    type: str = "task"
    description: str = ""
    labels: list[str] = field(default_factory=list)
    priority: int = 2
    created_by: str = ""
    fields: dict[str, str] = field(default_factory=dict)

    def to_json(self) -> dict[str, Any]:
        """Convert to the daemon's JSON request body."""
        body: dict[str, Any] = {
            "title": self.title,
            "type": self.type,
            "priority": self.priority,
        }
        if self.description:
            body["description"] = self.description
        if self.labels:
            body["labels"] = list(self.labels)
        if self.created_by:
            body["created_by"] = self.created_by
        if self.fields:
            body["fields"] = dict(self.fields)
        return body


def parse_fields_json(raw: Any) -> dict[str, str]:
    """Decode a bead ``fields`` value into a string map.

    Accepts a mapping, or a JSON string/bytes holding one. Non-string
    values are re-encoded as JSON strings. Anything else yields an empty
    map.
    """
    if raw is None or raw == "" or raw == b"":
        return {}
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            raw = json.loads(raw)
        except (ValueError, TypeError):
            return {}
    if not isinstance(raw, Mapping):
        return {}

    result: dict[str, str] = {}
    for key, value in raw.items():
        if isinstance(value, str):
            result[str(key)] = value
        else:
            result[str(key)] = json.dumps(value)
    return result


def parse_notes(notes: str | None) -> dict[str, str]:
    """Parse ``key: value`` lines from free-text bead notes.

    Args:
        notes: Notes text

    Returns:
        Parsed pairs; empty when nothing parses
    """
    if not notes:
        return {}
    result: dict[str, str] = {}
    for line in notes.splitlines():
        line = line.strip()
        if not line or ":" not in line:
            continue
        key, value = line.split(":", 1)
        result[key.strip()] = value.strip()
    return result


def parse_bead_event(data: bytes | str | Mapping[str, Any] | None) -> BeadEvent | None:
    """Extract a BeadEvent from an event-stream payload.

    Payload shape: ``{"bead": {...}}`` (closed events also carry
    ``closed_by``). Returns None for anything malformed; never raises.
    """
    if data is None:
        return None
    if isinstance(data, Mapping):
        wrapper: Any = data
    else:
        try:
            wrapper = json.loads(data)
        except (ValueError, TypeError) as e:
            logger.debug(f"Undecodable bead payload: {e}")
            return None

    if not isinstance(wrapper, Mapping):
        return None
    bead = wrapper.get("bead")
    if not isinstance(bead, Mapping) or not bead.get("id"):
        return None

    labels = bead.get("labels") or []
    if not isinstance(labels, list):
        labels = []

    return BeadEvent(
        id=str(bead["id"]),
        type=_as_str(bead.get("type")),
        title=_as_str(bead.get("title")),
        status=_as_str(bead.get("status")),
        assignee=_as_str(bead.get("assignee")),
        labels=tuple(str(label) for label in labels),
        fields=parse_fields_json(bead.get("fields")),
        priority=_as_int(bead.get("priority")),
        created_by=_as_str(bead.get("created_by")),
    )


_TIMESTAMP_FORMATS = ("%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S")


def _parse_timestamp(value: Any) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in _TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return 0


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""
