"""Wire models for the AI draft service.

The draft service takes a free-text prompt and a mode and returns a bundle
of candidate nodes/edges. Bundle entries are kept as raw dicts: the service
may omit ids, types or any lifecycle field, and callers decide how to map
them.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DraftMode = Literal["requirements", "decisions", "business"]
DraftLevel = Literal["baseline", "detailed"]


class DraftRequest(BaseModel):
    """Request sent to the draft service."""

    prompt: str = Field(min_length=1)
    mode: DraftMode = "requirements"
    level: DraftLevel = "detailed"
    nonce: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class DraftBundle(BaseModel):
    """Candidate records returned by the draft service."""

    nodes: list[dict[str, Any]] = Field(default_factory=list)
    edges: list[dict[str, Any]] = Field(default_factory=list)

    def titles(self) -> list[str]:
        """Non-empty, stripped node titles in bundle order."""
        titles = []
        for node in self.nodes:
            title = node.get("title") if isinstance(node, dict) else None
            if isinstance(title, str) and title.strip():
                titles.append(title.strip())
        return titles

    def titles_of_type(self, node_type: str) -> list[str]:
        titles = []
        for node in self.nodes:
            if not isinstance(node, dict) or node.get("type") != node_type:
                continue
            title = node.get("title")
            if isinstance(title, str) and title.strip():
                titles.append(title.strip())
        return titles


class DraftResponse(BaseModel):
    """Response returned by the draft service."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    ok: bool
    bundle: DraftBundle | None = None
    source: Literal["ai", "mock"] = "mock"
    fallback_reason: str | None = None
    error: str | None = None
