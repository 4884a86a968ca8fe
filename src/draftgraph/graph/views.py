"""Read-side projections over stored partitions.

Nothing here writes. Views tolerate whatever the partitions hold: malformed
records are skipped, dangling and archived edges are filtered out, and
unknown relationship types are ignored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import ValidationError

from draftgraph.graph.factory import utc_now_iso
from draftgraph.graph.store import COMMITTED, edges_key, nodes_key
from draftgraph.models.graph import RELATIONSHIP_TYPES, Edge, Lifecycle, Node
from draftgraph.observability.logging import get_logger

if TYPE_CHECKING:
    from draftgraph.graph.store import PartitionStore

log = get_logger(__name__)

_RecordT = TypeVar("_RecordT", Node, Edge)

MEMO_ACTOR = "founder"
EXECUTION_NODE_TYPES = ("KPI", "Metric", "Risk", "Task")


@dataclass(frozen=True)
class Relationship:
    """An edge with both endpoints resolved to live nodes."""

    source_id: str
    source_title: str
    source_type: str
    target_id: str
    target_title: str
    target_type: str
    type: str


@dataclass
class MiniMap:
    """Compact overview of one partition.

    Attributes:
        scope: Partition the map was built from.
        groups: Active nodes grouped by type, types sorted by name.
        relationships: Resolved edges.
        dangling_edges: Active edges whose endpoints are missing.
    """

    scope: str
    groups: dict[str, list[Node]] = field(default_factory=dict)
    relationships: list[Relationship] = field(default_factory=list)
    dangling_edges: int = 0

    @property
    def node_count(self) -> int:
        return sum(len(nodes) for nodes in self.groups.values())

    @property
    def counts(self) -> dict[str, int]:
        return {node_type: len(nodes) for node_type, nodes in self.groups.items()}


def _valid_node(record: Any) -> bool:
    return isinstance(record, dict) and all(
        isinstance(record.get(key), str) and record.get(key) for key in ("id", "type", "title")
    )


def _valid_edge(record: Any) -> bool:
    return isinstance(record, dict) and all(
        isinstance(record.get(key), str) and record.get(key) for key in ("id", "from", "to")
    )


def _parse(model: type[_RecordT], records: list[dict[str, Any]]) -> list[_RecordT]:
    parsed = []
    for record in records:
        try:
            parsed.append(model.model_validate(record))
        except ValidationError as e:
            log.warning(
                "partition_record_skipped",
                record_id=record.get("id"),
                errors=e.error_count(),
            )
    return parsed


def load_partition(
    store: PartitionStore,
    partition: str,
    *,
    include_archived: bool = False,
) -> tuple[list[Node], list[Edge]]:
    """Load a partition as models, skipping malformed records.

    Args:
        store: Storage backend.
        partition: ``draft`` or ``committed``.
        include_archived: Keep archived records.

    Returns:
        Tuple of (nodes, edges) in stored order.
    """
    nodes = _parse(Node, [r for r in store.get(nodes_key(partition)) if _valid_node(r)])
    edges = _parse(Edge, [r for r in store.get(edges_key(partition)) if _valid_edge(r)])
    if not include_archived:
        nodes = [node for node in nodes if not node.archived]
        edges = [edge for edge in edges if not edge.archived]
    return nodes, edges


def build_relationships(nodes: list[Node], edges: list[Edge]) -> list[Relationship]:
    """Resolve edges against *nodes*.

    Archived edges, edges with an unknown relationship type and edges whose
    endpoints are not in *nodes* are dropped.
    """
    by_id = {node.id: node for node in nodes}
    relationships: list[Relationship] = []
    for edge in edges:
        if edge.archived or edge.relationship_type not in RELATIONSHIP_TYPES:
            continue
        source = by_id.get(edge.from_id)
        target = by_id.get(edge.to_id)
        if source is None or target is None:
            continue
        relationships.append(
            Relationship(
                source_id=source.id,
                source_title=source.title,
                source_type=source.type,
                target_id=target.id,
                target_title=target.title,
                target_type=target.type,
                type=edge.relationship_type,
            )
        )
    return relationships


def build_mini_map(store: PartitionStore, scope: str = "draft") -> MiniMap:
    """Build the mini-map of the *scope* partition (active records only)."""
    nodes, edges = load_partition(store, scope)
    groups: dict[str, list[Node]] = {}
    for node in nodes:
        groups.setdefault(node.type, []).append(node)
    node_ids = {node.id for node in nodes}
    dangling = sum(
        1 for edge in edges if edge.from_id not in node_ids or edge.to_id not in node_ids
    )
    return MiniMap(
        scope=scope,
        groups=dict(sorted(groups.items())),
        relationships=build_relationships(nodes, edges),
        dangling_edges=dangling,
    )


@dataclass
class _CommittedGraph:
    nodes: list[Node]
    edges: list[Edge]
    by_id: dict[str, Node]


def _committed_graph(store: PartitionStore) -> _CommittedGraph:
    nodes, edges = load_partition(store, COMMITTED)
    nodes = [node for node in nodes if node.stage is Lifecycle.COMMITTED]
    by_id = {node.id: node for node in nodes}
    edges = [
        edge
        for edge in edges
        if edge.relationship_type in RELATIONSHIP_TYPES
        and edge.from_id in by_id
        and edge.to_id in by_id
    ]
    return _CommittedGraph(nodes=nodes, edges=edges, by_id=by_id)


def _unique(nodes: list[Node]) -> list[Node]:
    seen: set[str] = set()
    unique = []
    for node in nodes:
        if node.id not in seen:
            seen.add(node.id)
            unique.append(node)
    return unique


def _linked_requirements(graph: _CommittedGraph, decision: Node) -> list[Node]:
    return _unique(
        [
            graph.by_id[edge.from_id]
            for edge in graph.edges
            if edge.to_id == decision.id and graph.by_id[edge.from_id].type == "Requirement"
        ]
    )


def _neighbours(graph: _CommittedGraph, node: Node) -> list[tuple[str, Node]]:
    pairs = []
    for edge in graph.edges:
        if edge.from_id == node.id:
            pairs.append((edge.relationship_type, graph.by_id[edge.to_id]))
        elif edge.to_id == node.id:
            pairs.append((edge.relationship_type, graph.by_id[edge.from_id]))
    return pairs


def build_decision_memo(store: PartitionStore, decision_id: str) -> str:
    """Markdown memo for one committed node and its committed neighbourhood.

    Returns a one-line notice when *decision_id* is not a committed node.
    """
    graph = _committed_graph(store)
    decision = graph.by_id.get(decision_id)
    if decision is None:
        return "No committed Decision selected."

    lines = [
        "# Decision Memo",
        "",
        f"GeneratedAt: {utc_now_iso()}",
        f"Actor: {MEMO_ACTOR}",
        f"DecisionId: {decision.id}",
        f"DecisionTitle: {decision.title}",
        f"DecisionType: {decision.type}",
        f"DecisionCreatedAt: {decision.created_at or 'unknown'}",
        "",
        "## Linked Requirements",
    ]
    requirements = _linked_requirements(graph, decision)
    lines.extend(f"- {req.title} ({req.id})" for req in requirements)
    if not requirements:
        lines.append("- None")

    lines.extend(["", "## Related Nodes By Relationship Type"])
    grouped: dict[str, list[Node]] = {}
    for rel_type, other in _neighbours(graph, decision):
        grouped.setdefault(rel_type, []).append(other)
    if not grouped:
        lines.append("- None")
    for rel_type, others in grouped.items():
        lines.append(f"- {rel_type}:")
        lines.extend(f"  - {node.title} ({node.type}, {node.id})" for node in _unique(others))
    return "\n".join(lines)


def build_execution_pack(store: PartitionStore) -> str:
    """Markdown release pack covering every committed Decision."""
    graph = _committed_graph(store)
    decisions = [node for node in graph.nodes if node.type == "Decision"]
    lines = [
        "# Release/Execution Pack",
        "",
        f"GeneratedAt: {utc_now_iso()}",
        f"Actor: {MEMO_ACTOR}",
        f"CommittedDecisions: {len(decisions)}",
        "",
    ]
    if not decisions:
        lines.append("No committed Decisions found.")
        return "\n".join(lines)

    for decision in decisions:
        requirements = _linked_requirements(graph, decision)
        execution = _unique(
            [node for _, node in _neighbours(graph, decision) if node.type in EXECUTION_NODE_TYPES]
        )
        lines.append(f"## Decision: {decision.title} ({decision.id})")
        lines.append(f"CreatedAt: {decision.created_at or 'unknown'}")
        lines.append("Requirements:")
        lines.extend(f"- {req.title} ({req.id})" for req in requirements)
        if not requirements:
            lines.append("- None")
        lines.append("KPIs/Risks/Tasks:")
        lines.extend(f"- {node.title} ({node.type}, {node.id})" for node in execution)
        if not execution:
            lines.append("- None")
        lines.append("")
    return "\n".join(lines)
