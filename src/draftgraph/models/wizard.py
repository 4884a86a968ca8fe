"""Pydantic models for wizard runs.

A wizard run is one traversal of the seven-step guided workflow. Runs are
stored as camelCase JSON objects inside the ``wizard_runs`` array.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from draftgraph.models.graph import Node, is_active_record

WIZARD_STEP_COUNT = 7

RequirementDecision = Literal["pending", "accepted", "discarded"]


class _WizardModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class Question(_WizardModel):
    """A clarifying question asked during brainstorm."""

    question_id: str
    text: str


class Answer(_WizardModel):
    """The founder's answer to one question, keyed by question id."""

    question_id: str
    answer: str = ""


class Baseline(_WizardModel):
    """Versioned concept snapshot.

    Revisions never overwrite: the previous version moves to the run's
    ``baseline_history`` with ``archived=True``.
    """

    id: str
    title: str
    summary: str = ""
    constraints: list[str] = Field(default_factory=list)
    non_goals: list[str] = Field(default_factory=list)
    version: int = Field(default=1, ge=1)
    created_at: str = ""
    archived: bool = False


class LastSaved(_WizardModel):
    """Ids actually added by the most recent merge."""

    node_ids: list[str] = Field(default_factory=list)
    edge_ids: list[str] = Field(default_factory=list)


class SaveCounts(_WizardModel):
    added_nodes: int = 0
    added_edges: int = 0
    total_nodes: int = 0
    total_edges: int = 0


class PartitionCounts(_WizardModel):
    """Node/edge totals of the draft and committed partitions."""

    draft_nodes: int = 0
    draft_edges: int = 0
    committed_nodes: int = 0
    committed_edges: int = 0


class SaveStatus(_WizardModel):
    """Outcome of saving one step's content to the graph."""

    saved: bool = False
    saved_at: str = ""
    storage: str = "draft"
    last_saved: LastSaved = Field(default_factory=LastSaved)
    last_saved_counts: SaveCounts = Field(default_factory=SaveCounts)
    sample_titles: list[str] = Field(default_factory=list)
    before: PartitionCounts | None = None
    after: PartitionCounts | None = None


class StepPreview(_WizardModel):
    """Generated, not yet persisted candidate records for steps 4-6."""

    nodes: list[dict[str, Any]] = Field(default_factory=list)
    edges: list[dict[str, Any]] = Field(default_factory=list)
    source: str = "mock"
    generated_at: str = ""

    @property
    def titles(self) -> list[str]:
        return [str(node.get("title", "")) for node in self.active_nodes]

    @property
    def active_nodes(self) -> list[dict[str, Any]]:
        """Candidate nodes that have not been discarded or revised away."""
        return [node for node in self.nodes if is_active_record(node)]

    @property
    def active_edges(self) -> list[dict[str, Any]]:
        """Candidate edges between active nodes."""
        ids = {node.get("id") for node in self.active_nodes}
        return [
            edge
            for edge in self.edges
            if is_active_record(edge) and edge.get("from") in ids and edge.get("to") in ids
        ]

    def find(self, node_id: str) -> dict[str, Any] | None:
        return next((node for node in self.nodes if node.get("id") == node_id), None)


class HistoryEntry(_WizardModel):
    """One entry of a run's history; extra keys carry action details."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    created_at: str
    step: int
    action: str


class WizardRun(_WizardModel):
    """Persisted state of one wizard run."""

    id: str
    created_at: str
    stage: Literal["in_progress", "complete"] = "in_progress"
    current_step: int = Field(default=1, ge=1, le=WIZARD_STEP_COUNT)
    idea: str = ""
    experts: list[Node] = Field(default_factory=list)
    questions: list[Question] = Field(default_factory=list)
    answers: list[Answer] = Field(default_factory=list)
    brainstorm_summary: str = ""
    brainstorm_key: str = ""
    baseline: Baseline | None = None
    baseline_history: list[Baseline] = Field(default_factory=list)
    step_previews: dict[int, StepPreview] = Field(default_factory=dict)
    accept_state: dict[str, RequirementDecision] = Field(default_factory=dict)
    last_saved: LastSaved = Field(default_factory=LastSaved)
    last_saved_step: int | None = None
    graph_save_status: dict[int, SaveStatus] = Field(default_factory=dict)
    history: list[HistoryEntry] = Field(default_factory=list)
    archived: bool = False

    @property
    def is_complete(self) -> bool:
        return self.stage == "complete"

    def is_step_saved(self, step: int) -> bool:
        status = self.graph_save_status.get(step)
        return status is not None and status.saved is True

    def answer_for(self, question_id: str) -> str:
        for item in self.answers:
            if item.question_id == question_id:
                return item.answer
        return ""
