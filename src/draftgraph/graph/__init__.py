"""Graph package - draft/committed partitions and the operations on them.

Everything the engine persists lives in a PartitionStore as named JSON
arrays. This package holds the storage backends and the operations that
read and write them: entity construction, merging, commit promotion,
auditing, snapshots and read-side views.
"""

from draftgraph.graph.audit import AuditLog
from draftgraph.graph.commit import (
    CONFIRM_TEXT,
    CommitResult,
    commit_requirements,
    is_commit_eligible,
    partition_counts,
)
from draftgraph.graph.drafting import (
    add_draft_node,
    archive_draft_node,
    link_draft_nodes,
    related_ids,
    unlink_draft_nodes,
)
from draftgraph.graph.errors import (
    ConfirmationError,
    InputValidationError,
    NoProposedRequirementsError,
    SnapshotError,
    StagingError,
    StepGateError,
    WizardStateError,
)
from draftgraph.graph.factory import (
    chain_edges,
    make_edge,
    make_node,
    make_node_id,
    slugify,
    utc_now_iso,
)
from draftgraph.graph.merge import MergeResult, merge_graph, update_proposed_node
from draftgraph.graph.snapshots import (
    SnapshotPreview,
    apply_snapshot_import,
    export_draft_snapshot,
    list_snapshots,
    preview_snapshot_import,
)
from draftgraph.graph.sqlite_store import SqlitePartitionStore
from draftgraph.graph.store import (
    AUDIT_LOG_KEY,
    BASELINE_SNAPSHOTS_KEY,
    COMMITTED,
    DRAFT,
    LEGACY_AUDIT_LOG_KEY,
    RECRUITED_EXPERTS_KEY,
    WIZARD_RUNS_KEY,
    DictPartitionStore,
    PartitionStore,
    edges_key,
    nodes_key,
)
from draftgraph.graph.views import (
    MiniMap,
    Relationship,
    build_decision_memo,
    build_execution_pack,
    build_mini_map,
    build_relationships,
    load_partition,
)

__all__ = [
    "AUDIT_LOG_KEY",
    "BASELINE_SNAPSHOTS_KEY",
    "COMMITTED",
    "CONFIRM_TEXT",
    "DRAFT",
    "LEGACY_AUDIT_LOG_KEY",
    "RECRUITED_EXPERTS_KEY",
    "WIZARD_RUNS_KEY",
    "AuditLog",
    "CommitResult",
    "ConfirmationError",
    "DictPartitionStore",
    "InputValidationError",
    "MergeResult",
    "MiniMap",
    "NoProposedRequirementsError",
    "PartitionStore",
    "Relationship",
    "SnapshotError",
    "SnapshotPreview",
    "SqlitePartitionStore",
    "StagingError",
    "StepGateError",
    "WizardStateError",
    "add_draft_node",
    "apply_snapshot_import",
    "archive_draft_node",
    "build_decision_memo",
    "build_execution_pack",
    "build_mini_map",
    "build_relationships",
    "chain_edges",
    "commit_requirements",
    "edges_key",
    "export_draft_snapshot",
    "is_commit_eligible",
    "link_draft_nodes",
    "list_snapshots",
    "load_partition",
    "make_edge",
    "make_node",
    "make_node_id",
    "merge_graph",
    "nodes_key",
    "partition_counts",
    "preview_snapshot_import",
    "related_ids",
    "slugify",
    "unlink_draft_nodes",
    "update_proposed_node",
    "utc_now_iso",
]
