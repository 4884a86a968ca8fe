"""Entity factory for nodes and edges.

Builds records with lifecycle defaults filled in. The factory does not
validate: empty ids, types or titles are caller bugs, not runtime errors.
"""

from __future__ import annotations

import re
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from draftgraph.models.graph import DEFAULT_RELATIONSHIP_TYPE, Edge, Lifecycle, Node

if TYPE_CHECKING:
    from collections.abc import Sequence

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

DEFAULT_OWNER = "founder"
DEFAULT_RISK = "medium"
DEFAULT_CREATED_BY = "ai"
MAX_CHAIN_EDGES = 5


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_ms() -> int:
    return int(time.time() * 1000)


def slugify(value: Any) -> str:
    """Lower-case *value*, collapse non-alphanumerics to ``-`` and trim them.

    >>> slugify("Land Registry Lawyer!")
    'land-registry-lawyer'
    """
    return _NON_ALNUM_RE.sub("-", str(value or "").lower()).strip("-")


def make_node_id(
    prefix: str,
    run_id: str,
    title: str = "",
    *,
    at_ms: int | None = None,
    index: int | None = None,
) -> str:
    """Derive a node id from a run id, a slugified title and the time.

    The engine treats ids as opaque identity keys; this helper only makes
    accidental collisions unlikely.
    """
    parts = [prefix, slugify(run_id)[:24] or "run"]
    slug = slugify(title)[:48]
    if slug:
        parts.append(slug)
    parts.append(str(at_ms if at_ms is not None else now_ms()))
    if index is not None:
        parts.append(str(index))
    return ":".join(parts)


def make_node(
    node_id: str,
    node_type: str,
    title: str,
    *,
    parent_id: str | None = None,
    risk: str | None = None,
    owner: str | None = None,
    created_by: str | None = None,
    version: int = 1,
    status: str = "queued",
    created_at: str | None = None,
    **extra: Any,
) -> Node:
    """Build a proposed node with lifecycle defaults.

    Args:
        node_id: Identity key of the node.
        node_type: Open-ended node type tag.
        title: Display title.
        parent_id: Optional weak reference to a parent node.
        risk: Risk level (default ``medium``).
        owner: Owner (default ``founder``).
        created_by: Author (default ``ai``).
        version: Record version (default 1).
        status: Work status (default ``queued``).
        created_at: ISO timestamp (default now).
        **extra: Additional keys stored on the record verbatim
            (e.g. ``focusAreas``).

    Returns:
        The new Node.
    """
    return Node(
        id=node_id,
        type=node_type,
        title=title,
        stage=Lifecycle.PROPOSED,
        status=status,
        version=version,
        created_at=created_at or utc_now_iso(),
        created_by=created_by or DEFAULT_CREATED_BY,
        owner=owner or DEFAULT_OWNER,
        risk=risk or DEFAULT_RISK,
        parent_id=parent_id,
        **extra,
    )


def make_edge(
    edge_id: str,
    from_id: str,
    to_id: str,
    *,
    relationship_type: str | None = None,
    created_by: str | None = None,
    created_at: str | None = None,
) -> Edge:
    """Build a proposed edge; ``relationship_type`` defaults to ``relates_to``."""
    return Edge(
        id=edge_id,
        from_id=from_id,
        to_id=to_id,
        relationship_type=relationship_type or DEFAULT_RELATIONSHIP_TYPE,
        stage=Lifecycle.PROPOSED,
        created_at=created_at or utc_now_iso(),
        created_by=created_by or DEFAULT_CREATED_BY,
    )


def chain_edges(nodes: Sequence[Node], key: str, *, limit: int | None = None) -> list[Edge]:
    """Link node *i* to node *i+1* with ``relates_to`` edges.

    Preserves generation order in the graph. *limit* caps the number of
    edges; None chains every node.
    """
    count = max(len(nodes) - 1, 0)
    if limit is not None:
        count = min(count, limit)
    return [
        make_edge(
            f"edge:{key}:chain:{index + 1}",
            nodes[index].id,
            nodes[index + 1].id,
        )
        for index in range(count)
    ]
