"""Wizard pipeline: configuration, step rules and run orchestration."""

from draftgraph.pipeline.children import (
    ChildProposalPreview,
    apply_child_proposals,
    generate_child_proposals,
)
from draftgraph.pipeline.config import (
    DraftServiceConfig,
    WorkspaceConfig,
    WorkspaceConfigError,
    create_default_config,
    load_workspace_config,
    open_store,
    write_default_config,
)
from draftgraph.pipeline.gates import AutoApproveGate, RequireSavedGate, StepGate
from draftgraph.pipeline.wizard import (
    STEP_TITLES,
    GenerationResult,
    WizardRunRepository,
    WizardSession,
    advance,
    can_advance,
    go_back,
    new_run,
)

__all__ = [
    "STEP_TITLES",
    "AutoApproveGate",
    "ChildProposalPreview",
    "DraftServiceConfig",
    "GenerationResult",
    "RequireSavedGate",
    "StepGate",
    "WizardRunRepository",
    "WizardSession",
    "WorkspaceConfig",
    "WorkspaceConfigError",
    "advance",
    "apply_child_proposals",
    "can_advance",
    "create_default_config",
    "generate_child_proposals",
    "go_back",
    "load_workspace_config",
    "new_run",
    "open_store",
    "write_default_config",
]
