"""Graph merge engine.

Folds candidate nodes and edges into a partition without ever touching an
existing record. Identity is the ``id`` field alone: an incoming record whose
id is already present is skipped, whatever its content. Repeating a merge is
therefore a no-op.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from draftgraph.graph.commit import is_commit_eligible
from draftgraph.graph.errors import InputValidationError
from draftgraph.graph.store import DRAFT, edges_key, nodes_key
from draftgraph.models.graph import EDITABLE_STATUSES, RISK_LEVELS
from draftgraph.models.wizard import LastSaved
from draftgraph.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from draftgraph.graph.audit import AuditLog
    from draftgraph.graph.store import PartitionStore

log = get_logger(__name__)

SAMPLE_TITLE_LIMIT = 5


@dataclass
class MergeResult:
    """Outcome of one merge.

    Attributes:
        added_nodes: Nodes actually appended.
        added_edges: Edges actually appended.
        total_nodes: Partition node count after the merge.
        total_edges: Partition edge count after the merge.
        last_saved: Ids of the appended records.
        sample_titles: Up to five titles of appended nodes.
    """

    added_nodes: int = 0
    added_edges: int = 0
    total_nodes: int = 0
    total_edges: int = 0
    last_saved: LastSaved = field(default_factory=LastSaved)
    sample_titles: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added_nodes or self.added_edges)


def _as_record(item: Any) -> dict[str, Any] | None:
    if isinstance(item, dict):
        return item
    to_record = getattr(item, "to_record", None)
    if callable(to_record):
        record = to_record()
        return record if isinstance(record, dict) else None
    return None


def _record_id(record: dict[str, Any]) -> str:
    value = record.get("id")
    return value if isinstance(value, str) else ""


def _is_valid_edge(record: dict[str, Any]) -> bool:
    endpoints = (record.get("from"), record.get("to"))
    return bool(_record_id(record)) and all(isinstance(v, str) and v for v in endpoints)


def merge_graph(
    store: PartitionStore,
    partition: str,
    incoming_nodes: Iterable[Any],
    incoming_edges: Iterable[Any] = (),
) -> MergeResult:
    """Append incoming records whose ids are not yet in *partition*.

    Args:
        store: Storage backend.
        partition: ``draft`` or ``committed``.
        incoming_nodes: Node models or raw node records.
        incoming_edges: Edge models or raw edge records. Edges without an
            id or with an empty ``from``/``to`` are dropped.

    Returns:
        MergeResult with counts and the ids that were appended.

    Raises:
        ValueError: If *partition* is unknown.
    """
    n_key = nodes_key(partition)
    e_key = edges_key(partition)
    existing_nodes = store.get(n_key)
    existing_edges = store.get(e_key)

    node_ids = {_record_id(record) for record in existing_nodes if isinstance(record, dict)}
    edge_ids = {_record_id(record) for record in existing_edges if isinstance(record, dict)}

    added_nodes: list[dict[str, Any]] = []
    for item in incoming_nodes:
        record = _as_record(item)
        if record is None:
            continue
        record_id = _record_id(record)
        if not record_id or record_id in node_ids:
            continue
        node_ids.add(record_id)
        added_nodes.append(record)

    added_edges: list[dict[str, Any]] = []
    for item in incoming_edges:
        record = _as_record(item)
        if record is None or not _is_valid_edge(record):
            continue
        record_id = _record_id(record)
        if record_id in edge_ids:
            continue
        edge_ids.add(record_id)
        added_edges.append(record)

    merged_nodes = existing_nodes + added_nodes
    merged_edges = existing_edges + added_edges
    store.put(n_key, merged_nodes)
    store.put(e_key, merged_edges)

    result = MergeResult(
        added_nodes=len(added_nodes),
        added_edges=len(added_edges),
        total_nodes=len(merged_nodes),
        total_edges=len(merged_edges),
        last_saved=LastSaved(
            node_ids=[_record_id(record) for record in added_nodes],
            edge_ids=[_record_id(record) for record in added_edges],
        ),
        sample_titles=[
            str(record.get("title", "")) for record in added_nodes[:SAMPLE_TITLE_LIMIT]
        ],
    )
    log.debug(
        "graph_merged",
        partition=partition,
        added_nodes=result.added_nodes,
        added_edges=result.added_edges,
        total_nodes=result.total_nodes,
        total_edges=result.total_edges,
    )
    return result


def update_proposed_node(
    store: PartitionStore,
    node_id: str,
    *,
    title: str | None = None,
    risk: str | None = None,
    status: str | None = None,
    audit: AuditLog | None = None,
) -> dict[str, Any]:
    """Edit a proposed draft Requirement in place.

    Only nodes of type ``Requirement`` that are still proposed can be
    edited; committed and archived records are immutable.

    Args:
        store: Storage backend.
        node_id: Id of the draft node.
        title: New title (stripped, must be non-empty).
        risk: New risk level, one of ``low``, ``medium``, ``high``.
        status: New status, one of ``queued``, ``in_progress``, ``review``,
            ``complete``.
        audit: Audit log receiving ``PROPOSED_NODE_EDITED``.

    Returns:
        Mapping of changed field names to new values. Empty when nothing
        changed, in which case nothing is written.

    Raises:
        InputValidationError: Unknown node, wrong lifecycle or bad value.
    """
    key = nodes_key(DRAFT)
    nodes = store.get(key)
    index = next(
        (
            i
            for i, record in enumerate(nodes)
            if isinstance(record, dict) and record.get("id") == node_id
        ),
        None,
    )
    if index is None:
        raise InputValidationError("node_id", f"No draft node with id '{node_id}'")

    record = nodes[index]
    if not is_commit_eligible(record):
        raise InputValidationError("node_id", "Only proposed Requirement nodes can be edited")

    changes: dict[str, Any] = {}
    if title is not None:
        cleaned = title.strip()
        if not cleaned:
            raise InputValidationError("title", "Title cannot be empty")
        if cleaned != record.get("title"):
            changes["title"] = cleaned
    if risk is not None:
        if risk not in RISK_LEVELS:
            raise InputValidationError("risk", f"Risk must be one of {', '.join(RISK_LEVELS)}")
        if risk != record.get("risk"):
            changes["risk"] = risk
    if status is not None:
        if status not in EDITABLE_STATUSES:
            raise InputValidationError(
                "status", f"Status must be one of {', '.join(EDITABLE_STATUSES)}"
            )
        if status != record.get("status"):
            changes["status"] = status

    if not changes:
        return changes

    nodes[index] = {**record, **changes}
    store.put(key, nodes)
    if audit is not None:
        audit.append(
            "PROPOSED_NODE_EDITED",
            {"nodeId": node_id, "fieldsChanged": sorted(changes)},
            actor="founder",
        )
    log.info("proposed_node_edited", node_id=node_id, fields=sorted(changes))
    return changes
