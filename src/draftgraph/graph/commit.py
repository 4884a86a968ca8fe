"""Commit promotion: draft Requirements to the committed graph.

Promotion is the only irreversible operation. Selected draft records are
archived in place and copied into the committed partition; nothing can move
them back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from draftgraph.graph.errors import ConfirmationError, NoProposedRequirementsError
from draftgraph.graph.store import COMMITTED, DRAFT, edges_key, nodes_key
from draftgraph.models.graph import Lifecycle
from draftgraph.models.wizard import PartitionCounts
from draftgraph.observability.logging import get_logger

if TYPE_CHECKING:
    from draftgraph.graph.audit import AuditLog
    from draftgraph.graph.store import PartitionStore

log = get_logger(__name__)

CONFIRM_TEXT = "CONFIRMED"
COMMIT_NOTE = f"Committed proposed requirements via exact {CONFIRM_TEXT}"


@dataclass
class CommitResult:
    """Outcome of a successful commit."""

    committed_requirement_count: int = 0
    archived_proposed_count: int = 0
    committed_edge_count: int = 0
    archived_edge_count: int = 0
    committed_node_ids: list[str] = field(default_factory=list)
    committed_edge_ids: list[str] = field(default_factory=list)
    before: PartitionCounts = field(default_factory=PartitionCounts)
    after: PartitionCounts = field(default_factory=PartitionCounts)

    def to_payload(self) -> dict[str, Any]:
        """Audit payload in the stored camelCase shape."""
        return {
            "committedRequirementCount": self.committed_requirement_count,
            "archivedProposedCount": self.archived_proposed_count,
            "committedEdgeCount": self.committed_edge_count,
            "archivedEdgeCount": self.archived_edge_count,
            "note": COMMIT_NOTE,
        }


def partition_counts(store: PartitionStore) -> PartitionCounts:
    """Record counts of both partitions, archived records included."""
    return PartitionCounts(
        draft_nodes=len(store.get(nodes_key(DRAFT))),
        draft_edges=len(store.get(edges_key(DRAFT))),
        committed_nodes=len(store.get(nodes_key(COMMITTED))),
        committed_edges=len(store.get(edges_key(COMMITTED))),
    )


def is_commit_eligible(record: Any) -> bool:
    """A Requirement node whose lifecycle reads as proposed.

    Uses :meth:`Lifecycle.from_record`, so editing, views and commit agree:
    a missing or legacy stage (e.g. ``draft``) counts as proposed and
    ``archived: true`` always excludes the record.
    """
    return (
        isinstance(record, dict)
        and record.get("type") == "Requirement"
        and Lifecycle.from_record(record) is Lifecycle.PROPOSED
    )


def _with_lifecycle(record: dict[str, Any], lifecycle: Lifecycle) -> dict[str, Any]:
    return {**record, "stage": lifecycle.value, "archived": lifecycle is Lifecycle.ARCHIVED}


def _ids(records: list[Any]) -> set[str]:
    return {
        record["id"]
        for record in records
        if isinstance(record, dict) and isinstance(record.get("id"), str)
    }


def commit_requirements(
    store: PartitionStore,
    confirmation: str,
    *,
    audit: AuditLog | None = None,
    audit_event: str = "FOUNDER_COMMIT_CONFIRMED",
) -> CommitResult:
    """Promote every proposed draft Requirement to the committed partition.

    Args:
        store: Storage backend.
        confirmation: Must equal ``CONFIRMED`` exactly.
        audit: If given, *audit_event* is appended after a successful commit.
        audit_event: Event type written to *audit*.

    Returns:
        CommitResult with counts, ids and before/after partition totals.

    Raises:
        ConfirmationError: The confirmation literal does not match. Nothing
            is written.
        NoProposedRequirementsError: No draft node is eligible. Nothing is
            written.
    """
    if confirmation != CONFIRM_TEXT:
        raise ConfirmationError(expected=CONFIRM_TEXT)

    draft_nodes = store.get(nodes_key(DRAFT))
    draft_edges = store.get(edges_key(DRAFT))
    committed_nodes = store.get(nodes_key(COMMITTED))
    committed_edges = store.get(edges_key(COMMITTED))

    selected = [
        record
        for record in draft_nodes
        if is_commit_eligible(record) and isinstance(record.get("id"), str)
    ]
    if not selected:
        raise NoProposedRequirementsError(draft_node_count=len(draft_nodes))

    before = PartitionCounts(
        draft_nodes=len(draft_nodes),
        draft_edges=len(draft_edges),
        committed_nodes=len(committed_nodes),
        committed_edges=len(committed_edges),
    )
    selected_ids = _ids(selected)

    next_draft_nodes = [
        _with_lifecycle(record, Lifecycle.ARCHIVED)
        if isinstance(record, dict) and record.get("id") in selected_ids
        else record
        for record in draft_nodes
    ]
    known_nodes = _ids(committed_nodes)
    node_adds = [
        _with_lifecycle(record, Lifecycle.COMMITTED)
        for record in selected
        if record["id"] not in known_nodes
    ]

    touching = [
        record
        for record in draft_edges
        if isinstance(record, dict)
        and isinstance(record.get("from"), str)
        and isinstance(record.get("to"), str)
        and (record["from"] in selected_ids or record["to"] in selected_ids)
    ]
    touching_ids = _ids(touching)
    next_draft_edges = [
        _with_lifecycle(record, Lifecycle.ARCHIVED)
        if isinstance(record, dict) and record.get("id") in touching_ids
        else record
        for record in draft_edges
    ]
    known_edges = _ids(committed_edges)
    edge_adds = [
        _with_lifecycle(record, Lifecycle.COMMITTED)
        for record in touching
        if isinstance(record.get("id"), str) and record["id"] not in known_edges
    ]

    store.put(nodes_key(DRAFT), next_draft_nodes)
    store.put(edges_key(DRAFT), next_draft_edges)
    store.put(nodes_key(COMMITTED), committed_nodes + node_adds)
    store.put(edges_key(COMMITTED), committed_edges + edge_adds)

    result = CommitResult(
        committed_requirement_count=len(node_adds),
        archived_proposed_count=len(selected),
        committed_edge_count=len(edge_adds),
        archived_edge_count=sum(
            1
            for record in draft_edges
            if isinstance(record, dict) and record.get("id") in touching_ids
        ),
        committed_node_ids=[record["id"] for record in node_adds],
        committed_edge_ids=[record["id"] for record in edge_adds],
        before=before,
        after=PartitionCounts(
            draft_nodes=len(next_draft_nodes),
            draft_edges=len(next_draft_edges),
            committed_nodes=len(committed_nodes) + len(node_adds),
            committed_edges=len(committed_edges) + len(edge_adds),
        ),
    )
    if audit is not None:
        audit.append(audit_event, result.to_payload(), actor="founder")
    log.info(
        "commit_promoted",
        committed_nodes=result.committed_requirement_count,
        committed_edges=result.committed_edge_count,
        archived_nodes=result.archived_proposed_count,
    )
    return result
