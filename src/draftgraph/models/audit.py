"""Audit event model."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AuditEvent(BaseModel):
    """One immutable entry in an audit log.

    Stored records also carry ``timestamp``/``action``/``eventType`` copies
    of ``createdAt``/``type``, which older log readers expect.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    id: str
    type: str
    created_at: str
    payload: dict[str, Any] = Field(default_factory=dict)
    actor: str = "ai"

    def to_record(self) -> dict[str, Any]:
        data = self.model_dump(by_alias=True, mode="json")
        data["timestamp"] = self.created_at
        data["action"] = self.type
        data["eventType"] = self.type
        return data

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> AuditEvent:
        """Normalise a stored entry, including ones written by older readers."""
        event_type = _first_str(record, "type", "action", "eventType") or "UNKNOWN_EVENT"
        created_at = _first_str(record, "createdAt", "timestamp") or "unknown-time"
        payload = record.get("payload")
        return cls(
            id=_first_str(record, "id") or f"{created_at}-{event_type}",
            type=event_type,
            created_at=created_at,
            payload=payload if isinstance(payload, dict) else {},
            actor=_first_str(record, "actor") or "unknown",
        )


def _first_str(record: dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = record.get(key)
        if isinstance(value, str) and value:
            return value
    return ""
