"""Pydantic models for stored records and service wire types."""

from draftgraph.models.audit import AuditEvent
from draftgraph.models.draft import DraftBundle, DraftRequest, DraftResponse
from draftgraph.models.graph import (
    DEFAULT_RELATIONSHIP_TYPE,
    EDITABLE_STATUSES,
    RELATIONSHIP_TYPES,
    RISK_LEVELS,
    Edge,
    Lifecycle,
    Node,
    is_active_record,
    record_lifecycle,
)
from draftgraph.models.wizard import (
    WIZARD_STEP_COUNT,
    Answer,
    Baseline,
    HistoryEntry,
    LastSaved,
    PartitionCounts,
    Question,
    RequirementDecision,
    SaveCounts,
    SaveStatus,
    StepPreview,
    WizardRun,
)

__all__ = [
    "DEFAULT_RELATIONSHIP_TYPE",
    "EDITABLE_STATUSES",
    "RELATIONSHIP_TYPES",
    "RISK_LEVELS",
    "WIZARD_STEP_COUNT",
    "Answer",
    "AuditEvent",
    "Baseline",
    "DraftBundle",
    "DraftRequest",
    "DraftResponse",
    "Edge",
    "HistoryEntry",
    "LastSaved",
    "Lifecycle",
    "Node",
    "PartitionCounts",
    "Question",
    "RequirementDecision",
    "SaveCounts",
    "SaveStatus",
    "StepPreview",
    "WizardRun",
    "is_active_record",
    "record_lifecycle",
]
