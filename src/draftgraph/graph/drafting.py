"""Founder-authored changes to the draft partition.

Nodes and links written by hand go through the same append-only merge as
AI proposals and are recorded in the audit log. Nothing is deleted:
archiving a node also archives the active edges that touch it, and
unlinking archives the edge.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from draftgraph.graph.errors import InputValidationError
from draftgraph.graph.factory import make_edge, make_node, now_ms, slugify
from draftgraph.graph.merge import MergeResult, merge_graph
from draftgraph.graph.store import DRAFT, edges_key, nodes_key
from draftgraph.models.graph import RELATIONSHIP_TYPES, RISK_LEVELS, Lifecycle, Node
from draftgraph.observability.logging import get_logger

if TYPE_CHECKING:
    from draftgraph.graph.audit import AuditLog
    from draftgraph.graph.store import PartitionStore

log = get_logger(__name__)

FOUNDER = "founder"


def _active_node(store: PartitionStore, node_id: str, field: str = "node_id") -> dict[str, Any]:
    for record in store.get(nodes_key(DRAFT)):
        if isinstance(record, dict) and record.get("id") == node_id:
            if Lifecycle.from_record(record) is not Lifecycle.PROPOSED:
                raise InputValidationError(field, f"Draft node '{node_id}' is not proposed")
            return record
    raise InputValidationError(field, f"No draft node with id '{node_id}'")


def _archived(record: dict[str, Any]) -> dict[str, Any]:
    return {**record, "stage": Lifecycle.ARCHIVED.value, "archived": True}


def add_draft_node(
    store: PartitionStore,
    node_type: str,
    title: str,
    *,
    risk: str | None = None,
    parent_id: str | None = None,
    audit: AuditLog | None = None,
) -> Node:
    """Create a proposed node authored by the founder.

    Args:
        store: Storage backend.
        node_type: Node type tag, e.g. ``Decision`` or ``Requirement``.
        title: Title; stripped, must be non-empty.
        risk: Optional risk level (``low``, ``medium``, ``high``).
        parent_id: Optional weak reference to a parent node.
        audit: Audit log receiving ``DRAFT_NODE_CREATED``.

    Returns:
        The node as merged into the draft partition.

    Raises:
        InputValidationError: Blank type or title, or unknown risk level.
    """
    clean_title = title.strip()
    clean_type = node_type.strip()
    if not clean_title:
        raise InputValidationError("title", "Title cannot be empty")
    if not clean_type:
        raise InputValidationError("type", "Node type cannot be empty")
    if risk is not None and risk not in RISK_LEVELS:
        raise InputValidationError("risk", f"Risk must be one of {', '.join(RISK_LEVELS)}")

    node = make_node(
        f"node:{now_ms()}:{slugify(clean_title)[:32] or 'untitled'}",
        clean_type,
        clean_title,
        parent_id=parent_id,
        risk=risk,
        created_by=FOUNDER,
    )
    result = merge_graph(store, DRAFT, [node])
    if audit is not None and result.added_nodes:
        audit.append(
            "DRAFT_NODE_CREATED",
            {"nodeId": node.id, "nodeType": node.type, "title": node.title},
            actor=FOUNDER,
        )
    log.info("draft_node_created", node_id=node.id, node_type=node.type)
    return node


def archive_draft_node(
    store: PartitionStore,
    node_id: str,
    *,
    audit: AuditLog | None = None,
) -> int:
    """Archive a proposed draft node and the active edges that touch it.

    Returns:
        Number of edges archived alongside the node.

    Raises:
        InputValidationError: No such draft node, or it is not proposed.
    """
    _active_node(store, node_id)
    n_key = nodes_key(DRAFT)
    e_key = edges_key(DRAFT)
    nodes = [
        _archived(record) if isinstance(record, dict) and record.get("id") == node_id else record
        for record in store.get(n_key)
    ]
    edges = store.get(e_key)
    touching = 0
    for index, record in enumerate(edges):
        if not isinstance(record, dict) or node_id not in (record.get("from"), record.get("to")):
            continue
        if Lifecycle.from_record(record) is Lifecycle.ARCHIVED:
            continue
        edges[index] = _archived(record)
        touching += 1

    store.put(n_key, nodes)
    if touching:
        store.put(e_key, edges)
    if audit is not None:
        audit.append(
            "DRAFT_NODE_ARCHIVED",
            {"nodeId": node_id, "archivedEdgeCount": touching},
            actor=FOUNDER,
        )
    log.info("draft_node_archived", node_id=node_id, archived_edges=touching)
    return touching


def link_edge_id(store: PartitionStore, from_id: str, to_id: str, relationship_type: str) -> str:
    """Id for a founder-drawn edge of one type and direction.

    The id stays the same while the link is active and moves to the next
    generation once the previous one has been archived.
    """
    base = f"edge:link:{relationship_type}:{from_id}:{to_id}:"
    archived = sum(
        1
        for record in store.get(edges_key(DRAFT))
        if isinstance(record, dict)
        and str(record.get("id", "")).startswith(base)
        and Lifecycle.from_record(record) is Lifecycle.ARCHIVED
    )
    return f"{base}{archived + 1}"


def link_draft_nodes(
    store: PartitionStore,
    from_id: str,
    to_id: str,
    *,
    relationship_type: str = "relates_to",
    audit: AuditLog | None = None,
) -> MergeResult:
    """Relate two proposed draft nodes with a founder-drawn edge.

    Linking the same pair again with the same type adds nothing while the
    earlier link is active.

    Raises:
        InputValidationError: Unknown or non-proposed endpoint, a self
            link, or an unknown relationship type.
    """
    if relationship_type not in RELATIONSHIP_TYPES:
        raise InputValidationError(
            "relationship_type",
            f"Relationship type must be one of {', '.join(RELATIONSHIP_TYPES)}",
        )
    if from_id == to_id:
        raise InputValidationError("to_id", "A node cannot be related to itself")
    _active_node(store, from_id, "from_id")
    _active_node(store, to_id, "to_id")

    edge = make_edge(
        link_edge_id(store, from_id, to_id, relationship_type),
        from_id,
        to_id,
        relationship_type=relationship_type,
        created_by=FOUNDER,
    )
    result = merge_graph(store, DRAFT, [], [edge])
    if audit is not None and result.added_edges:
        audit.append(
            "DRAFT_EDGE_CREATED",
            {
                "edgeId": edge.id,
                "from": from_id,
                "to": to_id,
                "relationshipType": relationship_type,
            },
            actor=FOUNDER,
        )
    return result


def unlink_draft_nodes(
    store: PartitionStore,
    from_id: str,
    to_id: str,
    *,
    audit: AuditLog | None = None,
) -> int:
    """Archive every active draft edge from *from_id* to *to_id*.

    Returns:
        Number of edges archived; zero writes nothing.
    """
    key = edges_key(DRAFT)
    edges = store.get(key)
    archived_ids = []
    for index, record in enumerate(edges):
        if (
            isinstance(record, dict)
            and record.get("from") == from_id
            and record.get("to") == to_id
            and Lifecycle.from_record(record) is not Lifecycle.ARCHIVED
        ):
            edges[index] = _archived(record)
            archived_ids.append(record.get("id"))
    if not archived_ids:
        return 0

    store.put(key, edges)
    if audit is not None:
        audit.append(
            "DRAFT_EDGE_ARCHIVED",
            {"edgeIds": archived_ids, "from": from_id, "to": to_id},
            actor=FOUNDER,
        )
    return len(archived_ids)


def related_ids(store: PartitionStore, node_id: str) -> list[str]:
    """Ids of draft nodes linked to *node_id* by an active edge, either direction.

    Older node records list their relations inline as ``relatedIds``; those
    ids come first.
    """
    node = next(
        (r for r in store.get(nodes_key(DRAFT)) if isinstance(r, dict) and r.get("id") == node_id),
        {},
    )
    inline = node.get("relatedIds")
    related = [i for i in inline if isinstance(i, str)] if isinstance(inline, list) else []
    for record in store.get(edges_key(DRAFT)):
        if not isinstance(record, dict) or Lifecycle.from_record(record) is Lifecycle.ARCHIVED:
            continue
        if record.get("from") == node_id:
            other = record.get("to")
        elif record.get("to") == node_id:
            other = record.get("from")
        else:
            continue
        if isinstance(other, str) and other not in related:
            related.append(other)
    return related
