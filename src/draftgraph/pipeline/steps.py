"""Per-step generation rules for the wizard.

Pure functions: they turn a draft bundle (or nothing, when the draft
service failed) plus the run's state into experts, questions, summaries,
baselines and step previews. Nothing here touches storage.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from draftgraph.graph.factory import (
    chain_edges,
    make_edge,
    make_node,
    now_ms,
    slugify,
    utc_now_iso,
)
from draftgraph.models.wizard import Answer, Baseline, Question, StepPreview

if TYPE_CHECKING:
    from draftgraph.models.draft import DraftBundle, DraftLevel, DraftMode
    from draftgraph.models.graph import Node
    from draftgraph.models.wizard import WizardRun

MIN_EXPERTS = 6
MAX_EXPERTS = 8
MIN_QUESTIONS = 5
MAX_QUESTIONS = 8
SUMMARY_LINES = 5
RUN_KEY_LENGTH = 24

_REAL_ESTATE_KEYWORDS = ("land", "registry", "property")

_REAL_ESTATE_EXPERTS = [
    "Land Registry Lawyer",
    "Property Data Engineer",
    "Title Risk Analyst",
    "Conveyancing Workflow Designer",
    "Planning Policy Specialist",
    "Investor Due Diligence Lead",
    "Governance Architect",
    "Revenue Operations Strategist",
]

_DEFAULT_EXPERTS = [
    "Domain Strategy Lead",
    "Governance Architect",
    "Risk Modeling Specialist",
    "Workflow Automation Engineer",
    "Data Integrity Analyst",
    "Market Operations Strategist",
    "Regulatory Compliance Advisor",
    "Revenue Systems Planner",
]

DEFAULT_CONSTRAINT = "Keep governance boundaries strict and explicit."
DEFAULT_NON_GOAL = "No automatic commit or deployment in wizard v1."
BOUNDARIES_LINE = "- Boundaries: proposed-only, append-only audit, founder-confirmed commit only."


def run_key(run_id: str) -> str:
    return slugify(run_id)[:RUN_KEY_LENGTH] or "run"


def _titles(bundle: DraftBundle | None) -> list[str]:
    return bundle.titles() if bundle is not None else []


# -- Step 1: experts -----------------------------------------------------------


def fallback_expert_titles(idea: str) -> list[str]:
    """Fixed expert roster picked by domain keywords in *idea*."""
    lower = idea.lower()
    if any(keyword in lower for keyword in _REAL_ESTATE_KEYWORDS):
        return list(_REAL_ESTATE_EXPERTS)
    return list(_DEFAULT_EXPERTS)


def derive_focus_areas(idea: str, title: str) -> list[str]:
    areas = []
    trimmed = idea.strip()
    if trimmed:
        areas.append(trimmed[:72])
    title_words = " ".join(title.split()[:3])
    if title_words:
        areas.append(title_words)
    return areas


def build_experts(bundle: DraftBundle | None, idea: str, run_id: str) -> list[Node]:
    """Merge AI titles with the fallback roster into 6-8 unique experts.

    AI titles come first; duplicates are dropped by exact title. The list
    is capped at eight and padded with ``Council Expert N`` up to six.
    """
    unique: list[str] = []
    for title in [*_titles(bundle), *fallback_expert_titles(idea)]:
        if title not in unique:
            unique.append(title)
        if len(unique) >= MAX_EXPERTS:
            break
    while len(unique) < MIN_EXPERTS:
        unique.append(f"Council Expert {len(unique) + 1}")

    created_at = utc_now_iso()
    key = run_key(run_id)
    return [
        make_node(
            f"expert:{key}:{slugify(title) or f'role-{index + 1}'}",
            "Expert",
            title,
            created_at=created_at,
            focusAreas=derive_focus_areas(idea, title),
        )
        for index, title in enumerate(unique[:MAX_EXPERTS])
    ]


def experts_prompt(idea: str) -> str:
    return f"{idea}\nReturn 6-8 expert roles with focus areas for recruitment."


# -- Step 2: questions, answers, summary --------------------------------------


def fallback_questions(idea: str, experts: list[Node]) -> list[str]:
    first_expert = experts[0].title if experts else "Domain expert"
    return [
        f'What is the core outcome expected from "{idea}" in the next 90 days?',
        "Which user group is highest priority in phase one?",
        "What is the strictest governance boundary for this workflow?",
        f"What key risk should {first_expert} monitor first?",
        "What data source is mandatory before launch?",
        "What should never be automated in this flow?",
    ]


def build_questions(bundle: DraftBundle | None, idea: str, experts: list[Node]) -> list[Question]:
    """AI questions first, then the fallback list; 5 to 8 questions."""
    texts = [*_titles(bundle)[:MAX_QUESTIONS], *fallback_questions(idea, experts)][:MAX_QUESTIONS]
    while len(texts) < MIN_QUESTIONS:
        texts.append(f"Clarify priority #{len(texts) + 1} for this workflow.")
    return [Question(question_id=f"q:{index + 1}", text=text) for index, text in enumerate(texts)]


def questions_prompt(idea: str, experts: list[Node]) -> str:
    expert_context = ", ".join(expert.title for expert in experts)
    return "\n\n".join(
        [
            f"Idea: {idea or 'Untitled idea'}",
            f"Experts: {expert_context}" if expert_context else "Experts: none",
            "Generate 5-8 clarifying questions for founder brainstorm.",
            "Each question should be concise and actionable.",
        ]
    )


def upsert_answer(answers: list[Answer], question_id: str, text: str) -> list[Answer]:
    """Replace the answer for *question_id* or append it; others are kept."""
    clean = text.strip()
    updated = list(answers)
    for index, item in enumerate(updated):
        if item.question_id == question_id:
            updated[index] = Answer(question_id=question_id, answer=clean)
            return updated
    updated.append(Answer(question_id=question_id, answer=clean))
    return updated


def deterministic_summary(run: WizardRun) -> str:
    """Five-line summary built from the run alone."""
    idea = run.idea.strip()
    highlights = [item.answer.strip() for item in run.answers if item.answer.strip()][:2]
    focus = [expert.title for expert in run.experts[:2] if expert.title]
    lines = [
        f"- Core idea focus: {idea or 'Untitled baseline idea'}",
        f"- Recruited experts in scope: {len(run.experts)}",
        (
            f"- Key answer highlights: {' | '.join(highlights)}"
            if highlights
            else "- Key answer highlights: pending clarifications from founder"
        ),
        f"- Expert focus anchors: {', '.join(focus) if focus else 'none selected'}",
        BOUNDARIES_LINE,
    ]
    return "\n".join(lines[:SUMMARY_LINES])


def build_summary(bundle: DraftBundle | None, run: WizardRun) -> str:
    lines = [f"- {title}" for title in _titles(bundle)[:SUMMARY_LINES]]
    return "\n".join(lines) if lines else deterministic_summary(run)


def summary_prompt(run: WizardRun) -> str:
    qa_lines = [
        f"Q: {question.text}\nA: {run.answer_for(question.question_id) or '(no answer yet)'}"
        for question in run.questions
    ]
    return "\n\n".join(
        [
            f"Idea: {run.idea or 'Untitled idea'}",
            "Create a 5-line brainstorm summary from the following Q&A.",
            "\n\n".join(qa_lines),
        ]
    )


# -- Step 3: baseline ----------------------------------------------------------


def build_baseline(bundle: DraftBundle | None, run: WizardRun, version: int) -> Baseline:
    """Parse a baseline from *bundle*; an empty bundle gives the fallback.

    Requirement titles 1-3 become constraints and 4-5 non-goals.
    """
    nodes = bundle.nodes if bundle is not None else []
    concept = next((n for n in nodes if isinstance(n, dict) and n.get("type") == "Concept"), None)
    if concept is None:
        concept = next((n for n in nodes if isinstance(n, dict) and n.get("title")), None)
    concept_title = concept.get("title") if concept else None
    requirement_titles = (bundle.titles_of_type("Requirement") if bundle is not None else [])[:6]

    return Baseline(
        id=f"wiz:baseline:{run.id}:v{version}:{now_ms()}",
        title=concept_title
        if isinstance(concept_title, str) and concept_title
        else f"Baseline Concept: {(run.idea or 'Untitled')[:48]}",
        summary=run.brainstorm_summary or deterministic_summary(run),
        constraints=requirement_titles[:3] or [DEFAULT_CONSTRAINT],
        non_goals=requirement_titles[3:5] or [DEFAULT_NON_GOAL],
        version=version,
        created_at=utc_now_iso(),
    )


def baseline_prompt(run: WizardRun, revise: bool) -> str:
    expert_lines = []
    for expert in run.experts:
        focus = ", ".join(a for a in (expert.get_extra("focusAreas") or []) if a)
        expert_lines.append(f"- {expert.title}" + (f" (focus: {focus})" if focus else ""))
    return "\n\n".join(
        [
            f"Idea: {run.idea or 'Untitled idea'}",
            "Experts:\n" + "\n".join(expert_lines) if expert_lines else "Experts: none",
            f"Brainstorm summary:\n{run.brainstorm_summary or 'No summary yet.'}",
            "Revise the baseline concept and tighten constraints and non-goals."
            if revise
            else "Generate a baseline concept with concise constraints and non-goals.",
        ]
    )


def baseline_record(run: WizardRun, baseline: Baseline) -> dict[str, Any]:
    """Baseline-typed node record carrying the context it was accepted in."""
    node = make_node(
        baseline.id,
        "Baseline",
        baseline.title,
        version=baseline.version,
        created_at=baseline.created_at or None,
        idea=run.idea or "Untitled baseline",
        experts=[
            {
                "id": expert.id,
                "title": expert.title,
                "focusAreas": list(expert.get_extra("focusAreas") or []),
            }
            for expert in run.experts
        ],
        brainstormSummary=baseline.summary or run.brainstorm_summary,
        constraints=list(baseline.constraints),
        nonGoals=list(baseline.non_goals),
        gravitySnapshot={
            "questionCount": len(run.questions),
            "answerCount": len(run.answers),
        },
    )
    return node.to_record()


# -- Step 2 save: brainstorm records --------------------------------------------


def brainstorm_records(run: WizardRun) -> tuple[list[Node], list[Any]]:
    """Concept node holding the summary plus one Question node per question.

    Each Question node carries the founder's answer and links to the
    Concept with a ``relates_to`` edge. Ids derive from the run and the
    key stamped when the summary was made, so saving again adds nothing.
    """
    key = run_key(run.id)
    stamp = run.brainstorm_key or "summary"
    concept = make_node(
        f"wiz:brainstorm:{key}:{stamp}",
        "Concept",
        f"Brainstorm: {(run.idea or 'Untitled idea')[:60]}",
        summary=run.brainstorm_summary,
    )
    questions = [
        make_node(
            f"wiz:question:{key}:{stamp}:{index + 1}",
            "Question",
            question.text,
            parent_id=concept.id,
            questionId=question.question_id,
            answer=run.answer_for(question.question_id),
        )
        for index, question in enumerate(run.questions)
    ]
    edges = [
        make_edge(f"edge:wiz:brainstorm:{key}:{stamp}:{index + 1}", node.id, concept.id)
        for index, node in enumerate(questions)
    ]
    return [concept, *questions], edges


# -- Steps 4-6: previews ---------------------------------------------------------


@dataclass(frozen=True)
class StepRule:
    """How one preview step maps a bundle into candidate records."""

    step: int
    prefix: str
    mode: DraftMode
    level: DraftLevel
    minimum: int
    maximum: int
    pad_title: str
    instruction: str

    def node_type(self, index: int) -> str:
        if self.step == 6:
            return "Project" if index % 2 == 0 else "Task"
        return "Requirement"

    def source_titles(self, bundle: DraftBundle) -> list[str]:
        if self.step == 6:
            return bundle.titles()
        return bundle.titles_of_type("Requirement")


STEP_RULES: dict[int, StepRule] = {
    4: StepRule(
        step=4,
        prefix="wiz:req",
        mode="requirements",
        level="baseline",
        minimum=5,
        maximum=10,
        pad_title="Baseline requirement {n}",
        instruction="Generate 5-10 basic requirements only.",
    ),
    5: StepRule(
        step=5,
        prefix="wiz:detail",
        mode="requirements",
        level="detailed",
        minimum=5,
        maximum=10,
        pad_title="Detailed requirement {n}",
        instruction="Generate 5-10 detailed, testable requirements.",
    ),
    6: StepRule(
        step=6,
        prefix="wiz:work",
        mode="business",
        level="detailed",
        minimum=4,
        maximum=8,
        pad_title="Delivery item {n}",
        instruction="Generate 4-8 projects and tasks that deliver these requirements.",
    ),
}


def step_prompt(run: WizardRun, step: int) -> str:
    """Prompt for a preview step, built from the baseline and earlier previews."""
    rule = STEP_RULES[step]
    baseline = run.baseline
    parts = []
    if baseline is None:
        parts.append("Baseline: none")
    else:
        parts.extend(
            [
                f"Baseline title: {baseline.title}",
                f"Baseline summary:\n{baseline.summary or 'No summary.'}",
                "Constraints:\n" + "\n".join(f"- {line}" for line in baseline.constraints),
                "Non-goals:\n" + "\n".join(f"- {line}" for line in baseline.non_goals),
            ]
        )
    expert_lines = "\n".join(f"- {expert.title}" for expert in run.experts)
    parts.append(f"Experts:\n{expert_lines}" if expert_lines else "Experts: none")
    previous = run.step_previews.get(step - 1)
    if previous is not None and step > 4:
        parts.append("Requirements:\n" + "\n".join(f"- {title}" for title in previous.titles))
    parts.append(rule.instruction)
    return "\n\n".join(parts)


def _parent_ids(run: WizardRun, step: int) -> list[str]:
    if step == 4:
        return [run.baseline.id] if run.baseline is not None else []
    previous = run.step_previews.get(step - 1)
    if previous is None:
        return []
    return [str(node["id"]) for node in previous.active_nodes if node.get("id")]


def build_step_preview(bundle: DraftBundle, run: WizardRun, step: int, source: str) -> StepPreview:
    """Relabel, pad, cap and chain a bundle into a preview for *step*.

    Step 4 nodes hang off the baseline; step 5 and 6 nodes are spread
    round-robin over the previous step's nodes. In step 6 Tasks hang off
    the Project just before them.
    """
    rule = STEP_RULES[step]
    titles = rule.source_titles(bundle)[: rule.maximum]
    while len(titles) < rule.minimum:
        titles.append(rule.pad_title.format(n=len(titles) + 1))

    at_ms = now_ms()
    key = run_key(run.id)
    parents = _parent_ids(run, step)
    nodes: list[Node] = []
    for index, title in enumerate(titles):
        node_type = rule.node_type(index)
        if node_type == "Task" and nodes:
            parent_id: str | None = nodes[-1].id
        elif parents:
            parent_id = parents[index % len(parents)]
        else:
            parent_id = None
        nodes.append(
            make_node(
                f"{rule.prefix}:{key}:{at_ms}:{index + 1}",
                node_type,
                title,
                parent_id=parent_id,
            )
        )
    edges = chain_edges(nodes, f"wiz:{step}:{key}:{at_ms}")
    return StepPreview(
        nodes=[node.to_record() for node in nodes],
        edges=[edge.to_record() for edge in edges],
        source=source,
        generated_at=utc_now_iso(),
    )


# -- Step 4 review: per-requirement revision -------------------------------------

_PREVIEW_NODE_KEYS = frozenset(
    {
        "id",
        "type",
        "title",
        "stage",
        "archived",
        "status",
        "version",
        "createdAt",
        "createdBy",
        "owner",
        "risk",
        "parentId",
    }
)


def revision_prompt(requirement: dict[str, Any]) -> str:
    return "\n\n".join(
        [
            f"Revise requirement for baseline workflow: {requirement.get('title', '')}",
            f"Current risk: {requirement.get('risk') or 'medium'}",
            "Return one improved Requirement title.",
        ]
    )


def build_revision(
    bundle: DraftBundle, requirement: dict[str, Any], run: WizardRun
) -> dict[str, Any]:
    """New version of a preview requirement, titled from the first AI Requirement.

    The copy keeps the original's extra keys, bumps ``version`` and points
    back at the original through ``revisedFrom``. Without an AI title it is
    named ``<title> (Revised)``.
    """
    titles = bundle.titles_of_type("Requirement")
    title = titles[0] if titles else f"{requirement.get('title', 'Requirement')} (Revised)"
    version = requirement.get("version")
    next_version = (version if isinstance(version, int) and version > 0 else 1) + 1
    extra = {key: value for key, value in requirement.items() if key not in _PREVIEW_NODE_KEYS}
    node = make_node(
        f"wiz:req:{run_key(run.id)}:{now_ms()}:v{next_version}",
        "Requirement",
        title,
        parent_id=requirement.get("parentId"),
        risk=requirement.get("risk"),
        version=next_version,
        **{**extra, "revisedFrom": requirement.get("id")},
    )
    return node.to_record()
