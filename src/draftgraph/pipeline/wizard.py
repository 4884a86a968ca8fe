"""Wizard run state machine.

A wizard run walks a founder through seven fixed steps, from recruiting
an expert panel to committing requirements. Each step follows the same
protocol:

1. Generate: ask the draft service for content and keep it on the run as
   a preview. Nothing reaches the graph yet.
2. Save: merge the preview into the draft partition and record the
   outcome as the step's SaveStatus.
3. Advance: the run moves on only when the step gate approves, which by
   default means the current step has been saved.

Runs are persisted in the ``wizard_runs`` array after every action, so a
process can stop at any point and resume the latest in-progress run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from draftgraph.graph.audit import AuditLog
from draftgraph.graph.commit import CommitResult, commit_requirements
from draftgraph.graph.errors import InputValidationError, StepGateError, WizardStateError
from draftgraph.graph.factory import now_ms, utc_now_iso
from draftgraph.graph.merge import MergeResult, merge_graph
from draftgraph.graph.store import (
    BASELINE_SNAPSHOTS_KEY,
    DRAFT,
    RECRUITED_EXPERTS_KEY,
    WIZARD_RUNS_KEY,
)
from draftgraph.models.draft import DraftRequest
from draftgraph.models.graph import Lifecycle, is_active_record
from draftgraph.models.wizard import (
    WIZARD_STEP_COUNT,
    HistoryEntry,
    SaveCounts,
    SaveStatus,
    WizardRun,
)
from draftgraph.observability.logging import get_logger
from draftgraph.pipeline import steps
from draftgraph.pipeline.config import DEFAULT_ACTOR, DEFAULT_DRAFT_TIMEOUT
from draftgraph.pipeline.gates import RequireSavedGate
from draftgraph.providers.base import DraftServiceError, request_bundle

if TYPE_CHECKING:
    from draftgraph.graph.store import PartitionStore
    from draftgraph.models.draft import DraftBundle, DraftResponse
    from draftgraph.models.wizard import RequirementDecision
    from draftgraph.pipeline.gates import StepGate
    from draftgraph.providers.base import DraftService

log = get_logger(__name__)

STEP_TITLES: dict[int, str] = {
    1: "Recruit Experts",
    2: "Brainstorm Q&A",
    3: "Baseline",
    4: "Basic Requirements",
    5: "Detailed Requirements",
    6: "Projects/Tasks",
    7: "Commit",
}

# Audit event written when a step's content is saved to the graph.
SAVE_EVENTS: dict[int, str] = {
    1: "AI_EXPERTS_CONFIRMED",
    2: "BRAINSTORM_SAVED",
    3: "BASELINE_ACCEPTED",
    4: "REQUIREMENTS_APPLIED_FROM_BASELINE",
    5: "DETAILED_REQUIREMENTS_APPLIED",
    6: "PROJECTS_TASKS_APPLIED",
}

PREVIEW_EVENTS: dict[int, str] = {
    4: "REQUIREMENTS_GENERATED_FROM_BASELINE",
    5: "DETAILED_REQUIREMENTS_GENERATED",
    6: "PROJECTS_TASKS_GENERATED",
}

REQUIREMENT_DECISION_EVENTS: dict[str, str] = {
    "accepted": "REQUIREMENT_ACCEPTED",
    "discarded": "REQUIREMENT_DISCARDED",
    "pending": "REQUIREMENT_PENDING",
}


# -- Run repository ---------------------------------------------------------------


def new_run() -> WizardRun:
    """A fresh run on step 1 with its creation recorded in history."""
    at_ms = now_ms()
    created_at = utc_now_iso()
    return WizardRun(
        id=f"wizard:{at_ms}",
        created_at=created_at,
        history=[
            HistoryEntry(
                id=f"hist:{at_ms}:created",
                created_at=created_at,
                step=1,
                action="WIZARD_RUN_CREATED",
            )
        ],
    )


class WizardRunRepository:
    """Reads and upserts runs in the ``wizard_runs`` array."""

    def __init__(self, store: PartitionStore) -> None:
        self._store = store

    def list_runs(self) -> list[WizardRun]:
        """All parseable runs in stored order."""
        runs = []
        for record in self._store.get(WIZARD_RUNS_KEY):
            if not isinstance(record, dict):
                continue
            try:
                runs.append(WizardRun.model_validate(record))
            except ValueError as e:
                log.warning("wizard_run_unreadable", run_id=record.get("id"), error=str(e))
        return runs

    def get(self, run_id: str) -> WizardRun | None:
        return next((run for run in self.list_runs() if run.id == run_id), None)

    def find_active(self) -> WizardRun | None:
        """The most recently stored in-progress, non-archived run."""
        for run in reversed(self.list_runs()):
            if run.stage == "in_progress" and not run.archived:
                return run
        return None

    def open_run(self) -> WizardRun:
        """Resume the active run or create and persist a new one."""
        active = self.find_active()
        if active is not None:
            log.debug("wizard_run_resumed", run_id=active.id, step=active.current_step)
            return active
        run = new_run()
        self.save(run)
        log.info("wizard_run_created", run_id=run.id)
        return run

    def save(self, run: WizardRun, history: dict[str, Any] | None = None) -> WizardRun:
        """Upsert *run* by id, optionally appending a history entry first.

        Args:
            run: Run to persist.
            history: History details; must contain ``action`` and may carry
                any camelCase extra keys. ``step`` defaults to the run's
                current step.

        Returns:
            The run as persisted.
        """
        if history is not None:
            action = str(history.get("action", "update"))
            entry = HistoryEntry.model_validate(
                {
                    "step": run.current_step,
                    **history,
                    "id": f"hist:{now_ms()}:{action}",
                    "createdAt": utc_now_iso(),
                    "action": action,
                }
            )
            run = run.model_copy(update={"history": [*run.history, entry]})

        records = self._store.get(WIZARD_RUNS_KEY)
        record = run.to_record()
        index = next(
            (
                i
                for i, item in enumerate(records)
                if isinstance(item, dict) and item.get("id") == run.id
            ),
            None,
        )
        if index is None:
            records.append(record)
        else:
            records[index] = record
        self._store.put(WIZARD_RUNS_KEY, records)
        return run


# -- Pure transitions ------------------------------------------------------------


def can_advance(run: WizardRun, gate: StepGate | None = None) -> bool:
    """Whether ``Next`` is enabled for the run's current step."""
    if run.is_complete or run.current_step >= WIZARD_STEP_COUNT:
        return False
    gate = gate or RequireSavedGate()
    return gate.on_step_advance(run, run.current_step) == "approve"


def advance(run: WizardRun, gate: StepGate | None = None) -> WizardRun:
    """Return a copy of *run* moved to the next step.

    Raises:
        StepGateError: If the run is complete, on the last step, or the
            gate rejects the transition. *run* is not modified.
    """
    step = run.current_step
    if run.is_complete:
        raise StepGateError(step, "the run is complete")
    if step >= WIZARD_STEP_COUNT:
        raise StepGateError(step, "this is the last step; commit to finish the run")
    if not can_advance(run, gate):
        raise StepGateError(step, f"save '{STEP_TITLES[step]}' to the graph first")
    return run.model_copy(update={"current_step": step + 1})


def go_back(run: WizardRun) -> WizardRun:
    """Return a copy of *run* moved to the previous step.

    Save status of every step is kept.

    Raises:
        StepGateError: If the run is on step 1 or complete.
    """
    step = run.current_step
    if run.is_complete:
        raise StepGateError(step, "the run is complete")
    if step <= 1:
        raise StepGateError(step, "already on the first step")
    return run.model_copy(update={"current_step": step - 1})


# -- Session ----------------------------------------------------------------------


@dataclass
class GenerationResult:
    """Outcome of one generate action.

    Attributes:
        step: Step the content was generated for.
        source: ``ai``, ``mock`` or ``fallback`` (local heuristics after a
            draft service failure).
        titles: Titles of the generated items.
        fallback_reason: Why the draft service or local heuristics stood in
            for a live model, if they did.
    """

    step: int
    source: str
    titles: list[str] = field(default_factory=list)
    fallback_reason: str | None = None

    @property
    def count(self) -> int:
        return len(self.titles)


class WizardSession:
    """Drives one wizard run against a store and a draft service.

    Every action persists the run before returning. Actions that do not
    apply to the run's current step raise WizardStateError and change
    nothing.
    """

    def __init__(
        self,
        store: PartitionStore,
        draft_service: DraftService,
        *,
        audit: AuditLog | None = None,
        gate: StepGate | None = None,
        timeout: float = DEFAULT_DRAFT_TIMEOUT,
        actor: str = DEFAULT_ACTOR,
    ) -> None:
        """Open (resume or create) the active run.

        Args:
            store: Storage backend.
            draft_service: AI draft service.
            audit: Audit log; defaults to the log the workspace already uses.
            gate: Step gate; defaults to RequireSavedGate.
            timeout: Seconds allowed for each draft service call.
            actor: Name recorded on founder-initiated audit events.
        """
        self._store = store
        self._service = draft_service
        self._audit = audit or AuditLog.from_legacy_store(store)
        self._gate = gate or RequireSavedGate()
        self._timeout = timeout
        self._actor = actor
        self._runs = WizardRunRepository(store)
        self.run = self._runs.open_run()

    @property
    def audit(self) -> AuditLog:
        return self._audit

    @property
    def current_step(self) -> int:
        return self.run.current_step

    def can_advance(self) -> bool:
        return can_advance(self.run, self._gate)

    # -- helpers --------------------------------------------------------------

    def _persist(self, run: WizardRun, history: dict[str, Any] | None = None) -> WizardRun:
        self.run = self._runs.save(run, history)
        return self.run

    def _require_step(self, action: str, *allowed: int) -> None:
        if self.run.is_complete:
            raise WizardStateError(action, "The wizard run is already complete.")
        if self.run.current_step not in allowed:
            expected = " or ".join(str(step) for step in allowed)
            raise WizardStateError(
                action,
                f"Only available on step {expected}; the run is on step {self.run.current_step}.",
            )

    def _require_idea(self, action: str) -> None:
        if not self.run.idea.strip():
            raise InputValidationError("idea", "Enter a high-level idea first.")

    def _unsaved(self, step: int) -> dict[int, SaveStatus]:
        statuses = dict(self.run.graph_save_status)
        statuses.pop(step, None)
        return statuses

    async def _request(self, request: DraftRequest) -> tuple[DraftBundle, DraftResponse]:
        return await request_bundle(self._service, request, self._timeout)

    async def _request_with_fallback(
        self, request: DraftRequest, step: int
    ) -> tuple[DraftBundle | None, str, str | None]:
        try:
            bundle, response = await self._request(request)
        except DraftServiceError as e:
            log.warning("draft_service_fallback", step=step, reason=e.reason, error=e.message)
            return None, "fallback", e.message
        return bundle, response.source, response.fallback_reason

    # -- step 1 --------------------------------------------------------------------

    def set_idea(self, text: str) -> WizardRun:
        """Set the run's high-level idea (step 1).

        Raises:
            InputValidationError: If *text* is blank.
        """
        self._require_step("set_idea", 1)
        idea = text.strip()
        if not idea:
            raise InputValidationError("idea", "Enter a high-level idea first.")
        return self._persist(
            self.run.model_copy(update={"idea": idea}),
            {"step": 1, "action": "IDEA_SET", "ideaLength": len(idea)},
        )

    async def recruit_experts(self) -> GenerationResult:
        """Generate the expert panel, falling back to the local roster."""
        self._require_step("recruit_experts", 1)
        self._require_idea("recruit_experts")
        request = DraftRequest(prompt=steps.experts_prompt(self.run.idea), mode="business")
        bundle, source, reason = await self._request_with_fallback(request, 1)
        experts = steps.build_experts(bundle, self.run.idea, self.run.id)

        self._persist(
            self.run.model_copy(update={"experts": experts, "graph_save_status": self._unsaved(1)}),
            {"step": 1, "action": "AI_EXPERTS_GENERATED", "expertCount": len(experts)},
        )
        self._audit.append(
            "AI_EXPERTS_GENERATED",
            {
                "wizardRunId": self.run.id,
                "idea": self.run.idea,
                "expertCount": len(experts),
                "source": source,
            },
        )
        return GenerationResult(1, source, [expert.title for expert in experts], reason)

    # -- step 2 --------------------------------------------------------------------

    async def generate_questions(self) -> GenerationResult:
        """Generate clarifying questions; previous answers are discarded."""
        self._require_step("generate_questions", 2)
        self._require_idea("generate_questions")
        request = DraftRequest(
            prompt=steps.questions_prompt(self.run.idea, self.run.experts), mode="business"
        )
        bundle, source, reason = await self._request_with_fallback(request, 2)
        questions = steps.build_questions(bundle, self.run.idea, self.run.experts)

        self._persist(
            self.run.model_copy(
                update={
                    "questions": questions,
                    "answers": [],
                    "brainstorm_summary": "",
                    "graph_save_status": self._unsaved(2),
                }
            ),
            {"step": 2, "action": "AI_QUESTIONS_GENERATED", "questionCount": len(questions)},
        )
        self._audit.append(
            "AI_QUESTIONS_GENERATED",
            {"wizardRunId": self.run.id, "questionCount": len(questions), "source": source},
        )
        return GenerationResult(2, source, [q.text for q in questions], reason)

    def answer_question(self, question_id: str, text: str) -> WizardRun:
        """Record the answer to one question; other answers are kept.

        Raises:
            InputValidationError: If *question_id* is not one of the run's
                questions.
        """
        self._require_step("answer_question", 2)
        if all(q.question_id != question_id for q in self.run.questions):
            raise InputValidationError("question_id", f"Unknown question '{question_id}'")
        answers = steps.upsert_answer(self.run.answers, question_id, text)
        return self._persist(
            self.run.model_copy(update={"answers": answers}),
            {"step": 2, "action": "QUESTION_ANSWERED", "questionId": question_id},
        )

    async def finish_brainstorm(self) -> GenerationResult:
        """Summarise the Q&A, falling back to the deterministic summary."""
        self._require_step("finish_brainstorm", 2)
        if not self.run.questions:
            raise WizardStateError("finish_brainstorm", "Generate questions first.")
        request = DraftRequest(
            prompt=steps.summary_prompt(self.run), mode="requirements", level="baseline"
        )
        bundle, source, reason = await self._request_with_fallback(request, 2)
        summary = steps.build_summary(bundle, self.run)

        self._persist(
            self.run.model_copy(
                update={
                    "brainstorm_summary": summary,
                    "brainstorm_key": str(now_ms()),
                    "graph_save_status": self._unsaved(2),
                }
            ),
            {"step": 2, "action": "BRAINSTORM_SUMMARY_CREATED", "summaryLength": len(summary)},
        )
        self._audit.append(
            "BRAINSTORM_SUMMARY_CREATED",
            {"wizardRunId": self.run.id, "summaryLength": len(summary), "source": source},
        )
        return GenerationResult(2, source, summary.splitlines(), reason)

    # -- step 3 --------------------------------------------------------------------

    async def generate_baseline(self) -> GenerationResult:
        """Generate the baseline, or a new version of it.

        The previous baseline, if any, is archived into the run's baseline
        history and the new one gets the next version number.
        """
        self._require_step("generate_baseline", 3)
        self._require_idea("generate_baseline")
        previous = self.run.baseline
        revise = previous is not None
        version = previous.version + 1 if previous is not None else 1
        request = DraftRequest(
            prompt=steps.baseline_prompt(self.run, revise), mode="requirements", level="baseline"
        )
        bundle, source, reason = await self._request_with_fallback(request, 3)
        baseline = steps.build_baseline(bundle, self.run, version)

        history = list(self.run.baseline_history)
        if previous is not None:
            history.append(previous.model_copy(update={"archived": True}))
        action = "BASELINE_REVISED" if revise else "BASELINE_GENERATED"
        self._persist(
            self.run.model_copy(
                update={
                    "baseline": baseline,
                    "baseline_history": history,
                    "graph_save_status": self._unsaved(3),
                }
            ),
            {"step": 3, "action": action, "baselineVersion": version},
        )
        self._audit.append(
            "BASELINE_GENERATED",
            {"wizardRunId": self.run.id, "baselineVersion": version, "source": source},
        )
        return GenerationResult(3, source, [baseline.title], reason)

    # -- steps 4-6 -----------------------------------------------------------------

    async def generate_step_preview(self, step: int | None = None) -> GenerationResult:
        """Generate the preview for a requirements or projects step.

        There is no local fallback here: a draft service failure raises and
        leaves the run, including any earlier preview, untouched.

        Args:
            step: 4, 5 or 6; defaults to the current step.

        Raises:
            WizardStateError: Wrong step, or step 4 without a baseline.
            DraftServiceError: The draft service failed or timed out.
        """
        step = step or self.run.current_step
        self._require_step("generate_step_preview", step)
        if step not in steps.STEP_RULES:
            raise WizardStateError(
                "generate_step_preview", f"Step {step} has no generated preview."
            )
        if step == 4 and self.run.baseline is None:
            raise WizardStateError(
                "generate_step_preview", "Accept baseline before generating requirements."
            )
        rule = steps.STEP_RULES[step]
        request = DraftRequest(
            prompt=steps.step_prompt(self.run, step), mode=rule.mode, level=rule.level
        )
        bundle, response = await self._request(request)
        preview = steps.build_step_preview(bundle, self.run, step, response.source)

        previews = {**self.run.step_previews, step: preview}
        event = PREVIEW_EVENTS[step]
        self._persist(
            self.run.model_copy(
                update={
                    "step_previews": previews,
                    "accept_state": {} if step == 4 else self.run.accept_state,
                    "graph_save_status": self._unsaved(step),
                }
            ),
            {
                "step": step,
                "action": event,
                "nodeCount": len(preview.nodes),
                "edgeCount": len(preview.edges),
            },
        )
        self._audit.append(
            event,
            {
                "wizardRunId": self.run.id,
                "nodeCount": len(preview.nodes),
                "edgeCount": len(preview.edges),
                "source": response.source,
            },
        )
        return GenerationResult(step, response.source, preview.titles, response.fallback_reason)

    # -- step 4 review ----------------------------------------------------------------

    def _preview_requirement(self, action: str, requirement_id: str) -> dict[str, Any]:
        self._require_step(action, 4)
        preview = self.run.step_previews.get(4)
        requirement = preview.find(requirement_id) if preview is not None else None
        if requirement is None:
            raise InputValidationError(
                "requirement_id", f"No generated requirement with id '{requirement_id}'"
            )
        if not is_active_record(requirement):
            raise InputValidationError(
                "requirement_id", f"Requirement '{requirement_id}' was already discarded"
            )
        return requirement

    def _replace_preview(
        self,
        nodes: list[dict[str, Any]],
        accept_state: dict[str, RequirementDecision],
        history: dict[str, Any],
    ) -> WizardRun:
        preview = self.run.step_previews[4].model_copy(update={"nodes": nodes})
        return self._persist(
            self.run.model_copy(
                update={
                    "step_previews": {**self.run.step_previews, 4: preview},
                    "accept_state": accept_state,
                    "graph_save_status": self._unsaved(4),
                }
            ),
            history,
        )

    def decide_requirement(self, requirement_id: str, decision: RequirementDecision) -> WizardRun:
        """Accept, discard or reset one generated basic requirement (step 4).

        A discarded requirement is archived in the preview and left out when
        the step is saved. Any decision clears the step's saved status.

        Raises:
            InputValidationError: Unknown or already discarded requirement,
                or an unknown decision.
        """
        if decision not in REQUIREMENT_DECISION_EVENTS:
            raise InputValidationError(
                "decision", f"Decision must be one of {', '.join(REQUIREMENT_DECISION_EVENTS)}"
            )
        requirement = self._preview_requirement("decide_requirement", requirement_id)
        discard = decision == "discarded"
        nodes = [
            _with_archived(node) if discard and node.get("id") == requirement_id else node
            for node in self.run.step_previews[4].nodes
        ]
        event = REQUIREMENT_DECISION_EVENTS[decision]
        run = self._replace_preview(
            nodes,
            {**self.run.accept_state, requirement_id: decision},
            {"step": 4, "action": event, "requirementId": requirement_id},
        )
        self._audit.append(
            event,
            {
                "wizardRunId": run.id,
                "requirementId": requirement_id,
                "title": requirement.get("title"),
            },
            actor=self._actor,
        )
        return run

    async def revise_requirement(self, requirement_id: str) -> GenerationResult:
        """Ask the draft service for a better version of one basic requirement.

        The original is archived in the preview and marked discarded; the
        revision is appended as pending. A draft service failure raises and
        changes nothing.

        Raises:
            InputValidationError: Unknown or already discarded requirement.
            DraftServiceError: The draft service failed or timed out.
        """
        requirement = self._preview_requirement("revise_requirement", requirement_id)
        request = DraftRequest(
            prompt=steps.revision_prompt(requirement),
            mode="requirements",
            level="baseline",
            nonce=str(now_ms()),
        )
        bundle, response = await self._request(request)
        revised = steps.build_revision(bundle, requirement, self.run)

        nodes = [
            _with_archived(node) if node.get("id") == requirement_id else node
            for node in self.run.step_previews[4].nodes
        ]
        run = self._replace_preview(
            [*nodes, revised],
            {**self.run.accept_state, requirement_id: "discarded", revised["id"]: "pending"},
            {
                "step": 4,
                "action": "REQUIREMENT_REVISED",
                "requirementId": requirement_id,
                "newRequirementId": revised["id"],
            },
        )
        self._audit.append(
            "REQUIREMENT_REVISED",
            {
                "wizardRunId": run.id,
                "requirementId": requirement_id,
                "title": requirement.get("title"),
                "newRequirementId": revised["id"],
                "source": response.source,
            },
            actor=self._actor,
        )
        return GenerationResult(4, response.source, [revised["title"]], response.fallback_reason)

    # -- save ------------------------------------------------------------------------

    def _candidates(self, step: int) -> tuple[list[Any], list[Any], dict[str, Any]]:
        run = self.run
        if step == 1:
            if not run.experts:
                raise WizardStateError("save_step", "Generate experts before confirming.")
            return list(run.experts), [], {"expertCount": len(run.experts)}
        if step == 2:
            if not run.brainstorm_summary:
                raise WizardStateError("save_step", "Finish the brainstorm before saving it.")
            nodes, edges = steps.brainstorm_records(run)
            details = {"questionCount": len(run.questions), "answerCount": len(run.answers)}
            return nodes, edges, details
        if step == 3:
            if run.baseline is None:
                raise WizardStateError("save_step", "Generate baseline before accepting.")
            record = steps.baseline_record(run, run.baseline)
            return (
                [record],
                [],
                {"baselineId": run.baseline.id, "baselineVersion": run.baseline.version},
            )
        preview = run.step_previews.get(step)
        if preview is None:
            raise WizardStateError("save_step", f"Generate '{STEP_TITLES[step]}' before saving.")
        nodes, edges = preview.active_nodes, preview.active_edges
        return nodes, edges, {"nodeCount": len(nodes), "edgeCount": len(edges)}

    def _record_side_keys(self, step: int, nodes: list[Any]) -> None:
        if step == 1:
            _union_by_id(self._store, RECRUITED_EXPERTS_KEY, [n.to_record() for n in nodes])
        elif step == 3:
            _union_by_id(self._store, BASELINE_SNAPSHOTS_KEY, nodes)

    def save_step(self) -> SaveStatus:
        """Merge the current step's content into the draft partition.

        Step 1 also records the experts in ``recruited_experts``; step 3
        appends the baseline to ``baseline_snapshots``.

        Returns:
            The SaveStatus recorded for the step.

        Raises:
            WizardStateError: Nothing to save yet, or on step 7.
        """
        step = self.run.current_step
        self._require_step("save_step", *SAVE_EVENTS)
        nodes, edges, details = self._candidates(step)

        result = merge_graph(self._store, DRAFT, nodes, edges)
        self._record_side_keys(step, nodes)
        status = _save_status(result)

        event = SAVE_EVENTS[step]
        self._persist(
            self.run.model_copy(
                update={
                    "graph_save_status": {**self.run.graph_save_status, step: status},
                    "last_saved": result.last_saved,
                    "last_saved_step": step,
                }
            ),
            {"step": step, "action": event, "addedNodes": result.added_nodes, **details},
        )
        self._audit.append(
            event,
            {
                "wizardRunId": self.run.id,
                "addedNodes": result.added_nodes,
                "addedEdges": result.added_edges,
                **details,
            },
            actor=self._actor,
        )
        log.info(
            "wizard_step_saved",
            run_id=self.run.id,
            step=step,
            added_nodes=result.added_nodes,
            added_edges=result.added_edges,
        )
        return status

    # -- navigation ------------------------------------------------------------------

    def next(self) -> WizardRun:
        """Advance to the next step.

        Raises:
            StepGateError: The gate rejected the transition.
        """
        from_step = self.run.current_step
        run = advance(self.run, self._gate)
        return self._persist(
            run,
            {
                "step": from_step,
                "action": "STEP_NEXT",
                "fromStep": from_step,
                "toStep": run.current_step,
            },
        )

    def back(self) -> WizardRun:
        """Return to the previous step without touching any save status."""
        from_step = self.run.current_step
        run = go_back(self.run)
        return self._persist(
            run,
            {
                "step": from_step,
                "action": "STEP_BACK",
                "fromStep": from_step,
                "toStep": run.current_step,
            },
        )

    # -- step 7 ----------------------------------------------------------------------

    def commit(self, confirmation: str) -> CommitResult:
        """Promote proposed draft Requirements and complete the run.

        Raises:
            WizardStateError: The run is not on step 7.
            ConfirmationError: *confirmation* is not exactly ``CONFIRMED``.
            NoProposedRequirementsError: Nothing to commit.
        """
        self._require_step("commit", WIZARD_STEP_COUNT)
        result = commit_requirements(self._store, confirmation)

        status = SaveStatus(
            saved=True,
            saved_at=utc_now_iso(),
            storage="committed",
            last_saved={
                "node_ids": result.committed_node_ids,
                "edge_ids": result.committed_edge_ids,
            },
            last_saved_counts=SaveCounts(
                added_nodes=result.committed_requirement_count,
                added_edges=result.committed_edge_count,
                total_nodes=result.after.committed_nodes,
                total_edges=result.after.committed_edges,
            ),
            before=result.before,
            after=result.after,
        )
        self._persist(
            self.run.model_copy(
                update={
                    "stage": "complete",
                    "graph_save_status": {**self.run.graph_save_status, WIZARD_STEP_COUNT: status},
                    "last_saved": status.last_saved,
                    "last_saved_step": WIZARD_STEP_COUNT,
                }
            ),
            {
                "step": WIZARD_STEP_COUNT,
                "action": "WIZARD_COMMITTED",
                "committedRequirementCount": result.committed_requirement_count,
            },
        )
        self._audit.append(
            "WIZARD_COMMITTED",
            {"wizardRunId": self.run.id, **result.to_payload()},
            actor=self._actor,
        )
        log.info(
            "wizard_committed",
            run_id=self.run.id,
            committed=result.committed_requirement_count,
        )
        return result


def _save_status(result: MergeResult) -> SaveStatus:
    return SaveStatus(
        saved=True,
        saved_at=utc_now_iso(),
        storage=DRAFT,
        last_saved=result.last_saved,
        last_saved_counts=SaveCounts(
            added_nodes=result.added_nodes,
            added_edges=result.added_edges,
            total_nodes=result.total_nodes,
            total_edges=result.total_edges,
        ),
        sample_titles=result.sample_titles,
    )


def _with_archived(record: dict[str, Any]) -> dict[str, Any]:
    return {**record, "stage": Lifecycle.ARCHIVED.value, "archived": True}


def _union_by_id(store: PartitionStore, key: str, records: list[dict[str, Any]]) -> None:
    existing = store.get(key)
    known = {item.get("id") for item in existing if isinstance(item, dict)}
    additions = [record for record in records if record.get("id") not in known]
    if additions:
        store.put(key, existing + additions)
