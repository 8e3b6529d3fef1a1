"""
Event Schema.

Defines the Event dataclass published for floor and kitchen consumers.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class Event:
    """
    Unified event schema.

    'entity' carries event-specific data (line ids, totals, states);
    'actor' identifies the staff member or system process behind it.
    """

    type: str
    table_id: int | None = None
    session_id: int | None = None
    entity: dict[str, Any] = field(default_factory=dict)
    actor: dict[str, Any] = field(default_factory=dict)
    ts: str | None = None
    v: int = 1  # Schema version

    def __post_init__(self) -> None:
        """Reject malformed events before they reach Redis."""
        if not self.type or not isinstance(self.type, str):
            raise ValueError("Event type must be a non-empty string")

        if self.table_id is not None and (not isinstance(self.table_id, int) or self.table_id <= 0):
            raise ValueError("Event table_id must be a positive integer or None")

        if self.session_id is not None and (not isinstance(self.session_id, int) or self.session_id <= 0):
            raise ValueError("Event session_id must be a positive integer or None")

        if self.entity is not None and not isinstance(self.entity, dict):
            raise ValueError("Event entity must be a dict or None")

        if self.actor is not None and not isinstance(self.actor, dict):
            raise ValueError("Event actor must be a dict or None")

    def to_json(self) -> str:
        data = asdict(self)
        data["entity"] = data["entity"] or {}
        data["actor"] = data["actor"] or {}
        data["ts"] = data["ts"] or datetime.now(timezone.utc).isoformat()
        return json.dumps(data, ensure_ascii=False, default=str)

    @classmethod
    def from_json(cls, json_str: str) -> "Event":
        return cls(**json.loads(json_str))
