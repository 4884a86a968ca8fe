"""Child proposals under a proposed Requirement.

The draft service suggests Projects and Tasks that would satisfy one
proposed draft Requirement. The suggestions come back as a preview; only
``apply_child_proposals`` writes them, through the merge engine, with every
child linked to its parent.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from draftgraph.graph.commit import is_commit_eligible
from draftgraph.graph.errors import InputValidationError
from draftgraph.graph.factory import make_edge, now_ms
from draftgraph.graph.merge import MergeResult, merge_graph
from draftgraph.graph.store import (
    BASELINE_SNAPSHOTS_KEY,
    DRAFT,
    RECRUITED_EXPERTS_KEY,
    nodes_key,
)
from draftgraph.models.draft import DraftRequest
from draftgraph.models.graph import DEFAULT_RELATIONSHIP_TYPE, Lifecycle
from draftgraph.observability.logging import get_logger
from draftgraph.pipeline.config import DEFAULT_DRAFT_TIMEOUT
from draftgraph.providers.base import request_bundle

if TYPE_CHECKING:
    from draftgraph.graph.audit import AuditLog
    from draftgraph.graph.store import PartitionStore
    from draftgraph.models.draft import DraftBundle
    from draftgraph.providers.base import DraftService

log = get_logger(__name__)

MAX_CHILDREN = 6
CHILD_TYPES = ("Project", "Task")


@dataclass
class ChildProposalPreview:
    """Normalised child proposals waiting to be applied."""

    parent_id: str
    parent_title: str
    nonce: str
    source: str
    nodes: list[dict[str, Any]] = field(default_factory=list)
    edges: list[dict[str, Any]] = field(default_factory=list)

    @property
    def titles(self) -> list[str]:
        return [str(node.get("title", "")) for node in self.nodes]


def find_parent_requirement(store: PartitionStore, requirement_id: str) -> dict[str, Any]:
    """The proposed draft Requirement with *requirement_id*.

    Raises:
        InputValidationError: No such node, or it is not a proposed
            Requirement.
    """
    for record in store.get(nodes_key(DRAFT)):
        if isinstance(record, dict) and record.get("id") == requirement_id:
            if not is_commit_eligible(record):
                raise InputValidationError(
                    "requirement_id", "Child proposals need a proposed Requirement"
                )
            return record
    raise InputValidationError("requirement_id", f"No draft node with id '{requirement_id}'")


def child_proposal_prompt(store: PartitionStore, parent: dict[str, Any]) -> str:
    """Prompt naming the parent, the latest baseline summary and the experts."""
    expert_lines = []
    for expert in store.get(RECRUITED_EXPERTS_KEY):
        if not isinstance(expert, dict):
            continue
        focus = ", ".join(a for a in expert.get("focusAreas") or [] if a)
        title = expert.get("title") or "Expert"
        expert_lines.append(f"- {title}" + (f" (focus: {focus})" if focus else ""))
    baselines = [b for b in store.get(BASELINE_SNAPSHOTS_KEY) if isinstance(b, dict)]
    summary = baselines[-1].get("brainstormSummary") if baselines else None

    return "\n\n".join(
        [
            "Requirement-driven child proposal drafting task.",
            f"Parent requirement id: {parent['id']}",
            f"Parent requirement title: {parent.get('title') or 'Untitled requirement'}",
            f"Parent requirement risk: {parent.get('risk') or 'medium'}",
            f"Parent requirement status: {parent.get('status') or 'queued'}",
            f"Parent requirement owner: {parent.get('owner') or 'founder'}",
            f"Parent requirement version: {parent.get('version') or 1}",
            f"Baseline summary:\n{summary or 'No baseline summary available.'}",
            "Recruited experts:\n" + "\n".join(expert_lines)
            if expert_lines
            else "Recruited experts: none",
            "Generate 3-6 child proposals that satisfy this requirement.",
            "Use node types Project and Task only. Keep all outputs proposed-only.",
            "Include edges linking child proposals to the parent requirement.",
        ]
    )


def _parent_edge(parent_id: str, child_id: str, nonce: str) -> dict[str, Any]:
    edge_id = f"edge:child-parent:{nonce}:{parent_id}:{child_id}"
    return make_edge(edge_id, child_id, parent_id).to_record()


def normalize_child_bundle(
    bundle: DraftBundle, parent: dict[str, Any], nonce: str
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """Shape a raw bundle into proposed children of *parent*.

    Up to six nodes with a string id other than the parent's are kept. Each
    becomes a Project or Task (the first defaults to Project, the rest to
    Task), hangs off the parent and starts proposed. Edges survive when both
    ends are children or the parent. Every child gets a ``relates_to`` edge
    to the parent unless the bundle already links it.
    """
    parent_id = parent["id"]
    nodes = []
    for index, raw in enumerate(
        n
        for n in bundle.nodes
        if isinstance(n, dict) and isinstance(n.get("id"), str) and n["id"] != parent_id
    ):
        if index >= MAX_CHILDREN:
            break
        node_type = raw.get("type")
        if node_type not in CHILD_TYPES:
            node_type = "Project" if index == 0 else "Task"
        status = raw.get("status")
        nodes.append(
            {
                **raw,
                "type": node_type,
                "stage": Lifecycle.PROPOSED.value,
                "archived": False,
                "status": status if isinstance(status, str) and status else "queued",
                "parentId": parent_id,
            }
        )

    allowed = {node["id"] for node in nodes} | {parent_id}
    edges = []
    for raw in bundle.edges:
        if not isinstance(raw, dict) or not isinstance(raw.get("id"), str):
            continue
        if raw.get("from") not in allowed or raw.get("to") not in allowed:
            continue
        rel_type = raw.get("relationshipType")
        edges.append(
            {
                **raw,
                "relationshipType": rel_type
                if isinstance(rel_type, str) and rel_type
                else DEFAULT_RELATIONSHIP_TYPE,
                "stage": Lifecycle.PROPOSED.value,
                "archived": False,
            }
        )

    linked = {(edge["from"], edge["to"]) for edge in edges}
    for node in nodes:
        if (node["id"], parent_id) not in linked:
            edges.append(_parent_edge(parent_id, node["id"], nonce))
    return nodes, edges


async def generate_child_proposals(
    store: PartitionStore,
    service: DraftService,
    requirement_id: str,
    *,
    audit: AuditLog | None = None,
    timeout: float = DEFAULT_DRAFT_TIMEOUT,
) -> ChildProposalPreview:
    """Ask the draft service for children of a proposed Requirement.

    Nothing is written to the graph; the audit log receives
    ``CHILD_PROPOSALS_GENERATED``.

    Raises:
        InputValidationError: *requirement_id* is not a proposed draft
            Requirement.
        DraftServiceError: The draft service failed or timed out.
    """
    parent = find_parent_requirement(store, requirement_id)
    nonce = str(now_ms())
    request = DraftRequest(
        prompt=child_proposal_prompt(store, parent),
        mode="business",
        level="detailed",
        nonce=nonce,
    )
    bundle, response = await request_bundle(service, request, timeout)
    nodes, edges = normalize_child_bundle(bundle, parent, nonce)
    preview = ChildProposalPreview(
        parent_id=requirement_id,
        parent_title=str(parent.get("title", "")),
        nonce=nonce,
        source=response.source,
        nodes=nodes,
        edges=edges,
    )
    if audit is not None:
        audit.append(
            "CHILD_PROPOSALS_GENERATED",
            {
                "parentRequirementId": requirement_id,
                "parentTitle": preview.parent_title,
                "source": preview.source,
                "nodeCount": len(nodes),
                "edgeCount": len(edges),
            },
        )
    log.info("child_proposals_generated", parent_id=requirement_id, nodes=len(nodes))
    return preview


def apply_child_proposals(
    store: PartitionStore,
    preview: ChildProposalPreview,
    *,
    audit: AuditLog | None = None,
) -> MergeResult:
    """Merge a child proposal preview into the draft partition.

    The parent must still be a proposed Requirement. Children whose ids are
    already drafted are skipped by the merge.

    Raises:
        InputValidationError: The parent was committed, archived or removed
            since the preview was generated.
    """
    find_parent_requirement(store, preview.parent_id)
    result = merge_graph(store, DRAFT, preview.nodes, preview.edges)
    if audit is not None:
        audit.append(
            "CHILD_PROPOSALS_APPLIED",
            {
                "parentRequirementId": preview.parent_id,
                "addedNodes": result.added_nodes,
                "addedEdges": result.added_edges,
                "totalNodes": result.total_nodes,
                "totalEdges": result.total_edges,
            },
            actor="founder",
        )
    return result
