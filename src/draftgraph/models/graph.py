"""Pydantic models for graph records.

Nodes and edges are persisted as camelCase JSON records. Stored records
carry a ``stage`` string plus a legacy boolean ``archived`` overlay; the
models collapse the pair into a single :class:`Lifecycle` value and write
both fields back out for readers of the stored format.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, get_args

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator
from pydantic.alias_generators import to_camel

RELATIONSHIP_TYPES = ("depends_on", "enables", "relates_to")
DEFAULT_RELATIONSHIP_TYPE = "relates_to"
RISK_LEVELS = ("low", "medium", "high")
EDITABLE_STATUSES = ("queued", "in_progress", "review", "complete")


class Lifecycle(str, Enum):
    """Lifecycle stage of a node or edge."""

    PROPOSED = "proposed"
    COMMITTED = "committed"
    ARCHIVED = "archived"

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Lifecycle:
        """Read the lifecycle of a stored record.

        ``archived: true`` wins over whatever ``stage`` says. Stage names
        compare case-insensitively; anything unrecognised reads as proposed.
        """
        if record.get("archived") is True:
            return cls.ARCHIVED
        stage = record.get("stage")
        value = stage.strip().lower() if isinstance(stage, str) else ""
        if value == cls.COMMITTED.value:
            return cls.COMMITTED
        if value == cls.ARCHIVED.value:
            return cls.ARCHIVED
        return cls.PROPOSED


def _accepts_text(annotation: Any) -> bool:
    return annotation is str or str in get_args(annotation)


def _coerce_scalars(model: type[BaseModel], data: dict[str, Any]) -> dict[str, Any]:
    """Tolerate older record shapes on the declared fields.

    A null field falls back to its default and a number stored in a text
    field (e.g. an epoch-ms ``createdAt``) is read as its decimal string.
    Unknown keys are left alone.
    """
    for name, info in model.model_fields.items():
        for key in {name, info.alias or name}:
            if key not in data:
                continue
            value = data[key]
            if value is None:
                del data[key]
            elif (
                isinstance(value, int | float)
                and not isinstance(value, bool)
                and _accepts_text(info.annotation)
            ):
                data[key] = str(value)
    return data


class _Record(BaseModel):
    """Base for stored records: camelCase aliases, unknown keys preserved."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    stage: Lifecycle = Lifecycle.PROPOSED

    @model_validator(mode="before")
    @classmethod
    def _collapse_lifecycle(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = _coerce_scalars(cls, dict(data))
            data["stage"] = Lifecycle.from_record(data)
            data.pop("archived", None)
        return data

    @computed_field  # type: ignore[prop-decorator]
    @property
    def archived(self) -> bool:
        return self.stage is Lifecycle.ARCHIVED

    def to_record(self) -> dict[str, Any]:
        """Serialize to the stored JSON shape, including the ``archived`` flag."""
        return self.model_dump(by_alias=True, mode="json")

    def get_extra(self, key: str, default: Any = None) -> Any:
        """Value of a key stored verbatim on the record (e.g. ``focusAreas``)."""
        return (self.model_extra or {}).get(key, default)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Any:
        return cls.model_validate(record)


class Node(_Record):
    """A typed graph node.

    ``type`` is an open tag (Decision, Requirement, Task, Project, Concept,
    Expert, Baseline, Risk, Metric, ...). ``parent_id`` is a weak reference
    and may point outside the partition.
    """

    id: str
    type: str
    title: str
    status: str = "queued"
    version: int = 1
    created_at: str = ""
    created_by: str = "ai"
    owner: str = "founder"
    risk: str = "medium"
    parent_id: str | None = None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Node:
        node: Node = super().from_record(record)
        return node


class Edge(_Record):
    """A directed relationship between two node ids (weak references)."""

    id: str
    from_id: str = Field(alias="from")
    to_id: str = Field(alias="to")
    relationship_type: str = DEFAULT_RELATIONSHIP_TYPE
    created_at: str = ""
    created_by: str = "ai"

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Edge:
        edge: Edge = super().from_record(record)
        return edge


def record_lifecycle(record: dict[str, Any]) -> Lifecycle:
    """Shorthand for :meth:`Lifecycle.from_record`."""
    return Lifecycle.from_record(record)


def is_active_record(record: Any) -> bool:
    """True for a dict record that is not archived."""
    return isinstance(record, dict) and record_lifecycle(record) is not Lifecycle.ARCHIVED
