"""Deterministic mock draft service.

The same prompt, mode, level and nonce always produce the same bundle,
ids and timestamps included. Used when no live service is configured and
throughout the tests.
"""

from __future__ import annotations

import hashlib
import re
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from draftgraph.graph.factory import MAX_CHAIN_EDGES, make_edge, make_node, slugify
from draftgraph.models.draft import DraftBundle, DraftResponse

if TYPE_CHECKING:
    from draftgraph.models.draft import DraftRequest
    from draftgraph.models.graph import Edge, Node

MOCK_BASE_TIME = datetime(2026, 1, 1, tzinfo=UTC)
MINUTES_PER_YEAR = 365 * 24 * 60
DEFAULT_SNIPPET = "founder governance os"
SNIPPET_LENGTH = 44
NONCE_LENGTH = 120

_WHITESPACE_RE = re.compile(r"\s+")

_MODE_TEMPLATES: dict[str, list[tuple[str, str]]] = {
    "requirements": [
        ("Requirement", "Requirements draft for: {snippet}"),
        ("Requirement", "Founder-only commit at boundary"),
        ("Requirement", "Require exact CONFIRMED for commit"),
        ("Task", "Validate audit append-only integrity"),
        ("Task", "Verify archive-only deletion path"),
        ("Risk", "Detect unauthorized commit attempts"),
    ],
    "decisions": [
        ("Decision", "Decision lane for: {snippet}"),
        ("Decision", "Founder review cadence definition"),
        ("Requirement", "Decision confidence tracking fields"),
        ("Task", "Draft weekly council brief"),
        ("Task", "Review dependency impacts"),
        ("Risk", "Monitor drift before commit"),
    ],
    "business": [
        ("Project", "Business graph for: {snippet}"),
        ("Requirement", "Maintain founder-confirmed commits"),
        ("Decision", "Adopt mock-first AI drafting"),
        ("Task", "Publish council status snapshots"),
        ("Metric", "Proposal throughput per week"),
        ("Risk", "Unreviewed proposal backlog"),
    ],
}

_BASELINE_REQUIREMENTS = [
    "Core requirement set for: {snippet}",
    "Baseline requirement: founder-confirmed commit boundary",
    "Baseline requirement: archive-only lifecycle handling",
    "Baseline requirement: append-only audit consistency",
    "Baseline requirement: deterministic draft generation inputs",
    "Baseline requirement: requirements traceability by baseline",
]


def normalize_prompt(prompt: str) -> str:
    return _WHITESPACE_RE.sub(" ", prompt.strip())


def prompt_snippet(prompt: str) -> str:
    clean = normalize_prompt(prompt)
    return clean[:SNIPPET_LENGTH] if clean else DEFAULT_SNIPPET


def draft_seed(prompt: str, mode: str, level: str, nonce: str | None = None) -> str:
    """Hex sha256 of ``prompt|mode|level`` (plus ``|nonce`` when given)."""
    parts = [normalize_prompt(prompt), mode, level]
    clean_nonce = (nonce or "").strip()[:NONCE_LENGTH]
    if clean_nonce:
        parts.append(clean_nonce)
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


class _Clock:
    """Timestamps derived from the seed so bundles are reproducible."""

    def __init__(self, seed: str) -> None:
        self._offset = int(seed[:8], 16) % MINUTES_PER_YEAR

    def at(self, index: int) -> str:
        moment = MOCK_BASE_TIME + timedelta(minutes=self._offset + index)
        return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _chain(nodes: list[Node], key: str, clock: _Clock) -> list[Edge]:
    return [
        make_edge(
            f"edge:{key}:chain:{index + 1}",
            nodes[index].id,
            nodes[index + 1].id,
            created_at=clock.at(100 + index + 1),
        )
        for index in range(min(len(nodes) - 1, MAX_CHAIN_EDGES))
    ]


def build_mock_bundle(
    prompt: str,
    mode: str = "requirements",
    level: str = "detailed",
    nonce: str | None = None,
) -> DraftBundle:
    """Build the deterministic bundle for a request.

    The ``requirements`` mode at ``baseline`` level yields one Concept node
    plus six Requirement nodes linked from it; every other combination
    yields the six mode templates chained in order.
    """
    seed = draft_seed(prompt, mode, level, nonce)
    key = seed[:10]
    snippet = prompt_snippet(prompt)
    clock = _Clock(seed)

    if mode == "requirements" and level == "baseline":
        concept = make_node(
            f"concept:{key}:1",
            "Concept",
            f"Baseline Concept: {snippet}",
            created_at=clock.at(1),
        )
        requirements = [
            make_node(
                f"requirement:{key}:{index + 1}",
                "Requirement",
                title.format(snippet=snippet),
                parent_id=concept.id,
                created_at=clock.at(index + 2),
            )
            for index, title in enumerate(_BASELINE_REQUIREMENTS)
        ]
        edges = [
            make_edge(
                f"edge:{key}:baseline:concept:{index + 1}",
                concept.id,
                node.id,
                created_at=clock.at(100 + index + 1),
            )
            for index, node in enumerate(requirements)
        ]
        edges += _chain(requirements, f"{key}:baseline", clock)
        return _bundle([concept, *requirements], edges)

    templates = _MODE_TEMPLATES.get(mode, _MODE_TEMPLATES["requirements"])
    nodes = [
        make_node(
            f"{slugify(node_type)}:{key}:{index + 1}",
            node_type,
            title.format(snippet=snippet),
            created_at=clock.at(index + 1),
        )
        for index, (node_type, title) in enumerate(templates)
    ]
    return _bundle(nodes, _chain(nodes, key, clock))


def _bundle(nodes: list[Node], edges: list[Edge]) -> DraftBundle:
    node_records: list[dict[str, Any]] = [node.to_record() for node in nodes]
    edge_records: list[dict[str, Any]] = [edge.to_record() for edge in edges]
    return DraftBundle(nodes=node_records, edges=edge_records)


class MockDraftService:
    """Draft service returning :func:`build_mock_bundle` output."""

    def __init__(self, fallback_reason: str | None = "forced_mock") -> None:
        self._fallback_reason = fallback_reason
        self.calls: list[DraftRequest] = []

    async def generate(self, request: DraftRequest) -> DraftResponse:
        self.calls.append(request)
        return DraftResponse(
            ok=True,
            source="mock",
            fallback_reason=self._fallback_reason,
            bundle=build_mock_bundle(request.prompt, request.mode, request.level, request.nonce),
        )
