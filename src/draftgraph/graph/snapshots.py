"""Draft partition snapshots.

Exports the draft partition to a JSON file and imports such files back.
Importing is additive: only records whose ids are absent from the draft
partition are merged, so re-importing the same file changes nothing.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from draftgraph.graph.errors import SnapshotError
from draftgraph.graph.factory import utc_now_iso
from draftgraph.graph.merge import MergeResult, merge_graph
from draftgraph.graph.store import DRAFT, edges_key, nodes_key
from draftgraph.observability.logging import get_logger

if TYPE_CHECKING:
    from pathlib import Path

    from draftgraph.graph.audit import AuditLog
    from draftgraph.graph.store import PartitionStore

log = get_logger(__name__)

SNAPSHOT_SCHEMA_VERSION = 1
SNAPSHOT_PREFIX = "draft-snapshot-"


class DraftSnapshot(BaseModel):
    """On-disk snapshot file. Non-list ``nodes``/``edges`` read as empty."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    schema_version: int = SNAPSHOT_SCHEMA_VERSION
    created_at: str = ""
    nodes: list[Any] = Field(default_factory=list)
    edges: list[Any] = Field(default_factory=list)


@dataclass
class SnapshotPreview:
    """What an import would add, computed without writing anything."""

    path: Path
    file_node_count: int = 0
    file_edge_count: int = 0
    addable_nodes: list[dict[str, Any]] = field(default_factory=list)
    addable_edges: list[dict[str, Any]] = field(default_factory=list)


def snapshot_file_name(now: datetime | None = None) -> str:
    stamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    return f"{SNAPSHOT_PREFIX}{stamp}.json"


def export_draft_snapshot(
    store: PartitionStore,
    dest_dir: Path,
    *,
    audit: AuditLog | None = None,
) -> Path:
    """Write the full draft partition, archived records included.

    Args:
        store: Storage backend.
        dest_dir: Directory receiving the snapshot (created if missing).
        audit: Receives ``DRAFT_SNAPSHOT_EXPORTED``.

    Returns:
        Path to the written snapshot file.
    """
    nodes = store.get(nodes_key(DRAFT))
    edges = store.get(edges_key(DRAFT))
    snapshot = DraftSnapshot(created_at=utc_now_iso(), nodes=nodes, edges=edges)

    dest_dir.mkdir(parents=True, exist_ok=True)
    path = dest_dir / snapshot_file_name()
    path.write_text(
        json.dumps(snapshot.model_dump(by_alias=True), indent=2) + "\n",
        encoding="utf-8",
    )
    if audit is not None:
        audit.append(
            "DRAFT_SNAPSHOT_EXPORTED",
            {"nodeCount": len(nodes), "edgeCount": len(edges)},
            actor="founder",
        )
    log.info("snapshot_exported", path=str(path), nodes=len(nodes), edges=len(edges))
    return path


def read_snapshot(path: Path) -> DraftSnapshot:
    """Parse a snapshot file.

    Raises:
        SnapshotError: If the file is unreadable or not a snapshot object.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise SnapshotError(path, str(e)) from e
    if not isinstance(data, dict):
        raise SnapshotError(path, "top-level value must be an object")
    for key in ("nodes", "edges"):
        if not isinstance(data.get(key), list):
            data[key] = []
    try:
        return DraftSnapshot.model_validate(data)
    except ValidationError as e:
        raise SnapshotError(path, str(e)) from e


def preview_snapshot_import(store: PartitionStore, path: Path) -> SnapshotPreview:
    """Compute the records of *path* whose ids are absent from the draft partition."""
    snapshot = read_snapshot(path)
    node_ids = {r.get("id") for r in store.get(nodes_key(DRAFT)) if isinstance(r, dict)}
    edge_ids = {r.get("id") for r in store.get(edges_key(DRAFT)) if isinstance(r, dict)}
    return SnapshotPreview(
        path=path,
        file_node_count=len(snapshot.nodes),
        file_edge_count=len(snapshot.edges),
        addable_nodes=[
            r
            for r in snapshot.nodes
            if isinstance(r, dict) and isinstance(r.get("id"), str) and r["id"] not in node_ids
        ],
        addable_edges=[
            r
            for r in snapshot.edges
            if isinstance(r, dict) and isinstance(r.get("id"), str) and r["id"] not in edge_ids
        ],
    )


def apply_snapshot_import(
    store: PartitionStore,
    preview: SnapshotPreview,
    *,
    audit: AuditLog | None = None,
) -> MergeResult:
    """Merge a previewed snapshot into the draft partition."""
    result = merge_graph(store, DRAFT, preview.addable_nodes, preview.addable_edges)
    if audit is not None:
        audit.append(
            "DRAFT_SNAPSHOT_IMPORTED",
            {
                "addedNodes": result.added_nodes,
                "addedEdges": result.added_edges,
                "totalNodes": result.total_nodes,
                "totalEdges": result.total_edges,
            },
            actor="founder",
        )
    log.info(
        "snapshot_imported",
        path=str(preview.path),
        added_nodes=result.added_nodes,
        added_edges=result.added_edges,
    )
    return result


def list_snapshots(dest_dir: Path) -> list[Path]:
    """Snapshot files in *dest_dir*, oldest first."""
    if not dest_dir.is_dir():
        return []
    return sorted(dest_dir.glob(f"{SNAPSHOT_PREFIX}*.json"))
