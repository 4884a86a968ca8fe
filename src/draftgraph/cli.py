"""draftgraph CLI - typer application entry point."""

from __future__ import annotations

import asyncio
import atexit
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, TypeVar

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from draftgraph.observability import close_file_logging, configure_logging

# Load environment variables from .env file
load_dotenv()

if TYPE_CHECKING:
    from draftgraph.graph.store import PartitionStore
    from draftgraph.models.wizard import RequirementDecision
    from draftgraph.pipeline import GenerationResult, WizardSession, WorkspaceConfig
    from draftgraph.providers.base import DraftService

app = typer.Typer(
    name="dg",
    help="draftgraph: stage AI-drafted requirements in a draft graph, commit them on confirmation.",
    no_args_is_help=True,
)
node_app = typer.Typer(
    help="Add, archive and relate proposed draft nodes by hand.",
    no_args_is_help=True,
)
app.add_typer(node_app, name="node")
snapshot_app = typer.Typer(
    help="Export and import draft partition snapshots.",
    no_args_is_help=True,
)
app.add_typer(snapshot_app, name="snapshot")

_T = TypeVar("_T")

console = Console()

DEFAULT_WORKSPACE = Path()
SNAPSHOTS_DIR_NAME = "snapshots"

# Global state for logging flags (set by callback, used by commands)
_verbose: int = 0
_log_enabled: bool = False
_workspace: Path = DEFAULT_WORKSPACE


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log_file: Annotated[
        bool,
        typer.Option("--log", help="Enable file logging to {workspace}/logs/debug.jsonl."),
    ] = False,
    workspace: Annotated[
        Path,
        typer.Option(
            "--workspace",
            "-w",
            help="Workspace directory (default: current directory).",
            envvar="DG_WORKSPACE",
        ),
    ] = DEFAULT_WORKSPACE,
) -> None:
    """draftgraph: stage AI-drafted requirements, commit on confirmation."""
    global _verbose, _log_enabled, _workspace
    _verbose = verbose
    _log_enabled = log_file
    _workspace = workspace

    # Console logging only; file logging needs a known workspace
    configure_logging(verbosity=verbose)


def _fail(message: str) -> typer.Exit:
    console.print(f"[red]Error:[/red] {message}")
    return typer.Exit(1)


def _load_config(workspace_path: Path) -> WorkspaceConfig:
    """Load workspace.yaml, exiting with a readable error if it is missing or bad."""
    from draftgraph.pipeline.config import (
        CONFIG_FILE_NAME,
        WorkspaceConfigError,
        load_workspace_config,
    )

    if not (workspace_path / CONFIG_FILE_NAME).exists():
        raise _fail(
            f"No {CONFIG_FILE_NAME} found in '{workspace_path}'. Run 'dg init <name>' first."
        )
    try:
        return load_workspace_config(workspace_path)
    except WorkspaceConfigError as e:
        raise _fail(str(e)) from e


@contextmanager
def _open_workspace() -> Iterator[tuple[WorkspaceConfig, PartitionStore]]:
    """Load config and open the store for the selected workspace."""
    from draftgraph.graph.sqlite_store import SqlitePartitionStore
    from draftgraph.pipeline.config import open_store

    config = _load_config(_workspace)
    if _log_enabled:
        configure_logging(verbosity=_verbose, log_to_file=True, workspace_path=_workspace)
        atexit.register(close_file_logging)

    store = open_store(config, _workspace)
    try:
        yield config, store
    finally:
        if isinstance(store, SqlitePartitionStore):
            store.close()


def _session(
    config: WorkspaceConfig,
    store: PartitionStore,
    service: DraftService | None = None,
) -> WizardSession:
    from draftgraph.pipeline.wizard import WizardSession
    from draftgraph.providers import create_draft_service

    return WizardSession(
        store,
        service or create_draft_service(config.draft_service),
        timeout=config.draft_service.timeout,
        actor=config.actor,
    )


def _run_draft_call(service: DraftService, call: Callable[[], Awaitable[_T]]) -> _T:
    """Run one async draft call, closing an HTTP client afterwards."""
    from draftgraph.providers.http import HttpDraftService

    async def _run() -> _T:
        try:
            return await call()
        finally:
            if isinstance(service, HttpDraftService):
                await service.close()

    return asyncio.run(_run())


@contextmanager
def _reported_errors() -> Iterator[None]:
    """Turn engine errors into a red message and exit code 1."""
    from draftgraph.graph.errors import StagingError
    from draftgraph.providers.base import DraftServiceError

    try:
        yield
    except (StagingError, DraftServiceError) as e:
        raise _fail(e.to_user_message()) from e


def _step_label(step: int) -> str:
    from draftgraph.pipeline.wizard import STEP_TITLES

    return f"Step {step}: {STEP_TITLES[step]}"


# =============================================================================
# Commands
# =============================================================================


@app.command()
def version() -> None:
    """Show version information."""
    from draftgraph import __version__

    console.print(f"draftgraph v{__version__}")


@app.command()
def init(
    name: Annotated[str, typer.Argument(help="Workspace name")],
    path: Annotated[
        Path | None,
        typer.Option("--path", "-p", help="Parent directory for the workspace (default: .)."),
    ] = None,
) -> None:
    """Initialize a new workspace.

    Creates a workspace directory holding workspace.yaml. The database is
    created on first use.
    """
    from draftgraph.pipeline.config import write_default_config

    workspace_path = (path if path is not None else Path()) / name
    if workspace_path.exists():
        raise _fail(f"Directory '{workspace_path}' already exists")

    write_default_config(workspace_path, name)
    console.print(f"[green]✓[/green] Created workspace: [bold]{name}[/bold]")
    console.print(f"  Location: {workspace_path.absolute()}")
    console.print()
    console.print("Next steps:")
    console.print(f"  cd {name}")
    console.print('  dg idea "Your product idea..."')


@app.command()
def status() -> None:
    """Show the active wizard run and partition totals."""
    from draftgraph.graph.commit import partition_counts
    from draftgraph.pipeline.wizard import STEP_TITLES

    with _open_workspace() as (config, store):
        session = _session(config, store)
        run = session.run
        counts = partition_counts(store)

    table = Table(title=f"Wizard Run: {run.id}")
    table.add_column("Step", style="cyan")
    table.add_column("Status", style="bold")
    table.add_column("Saved At", style="dim")

    for step, title in STEP_TITLES.items():
        save_status = run.graph_save_status.get(step)
        if save_status is not None and save_status.saved:
            state = "[green]✓[/green] saved"
        elif step == run.current_step:
            state = "[yellow]▶[/yellow] current"
        else:
            state = "[dim]○[/dim] pending"
        saved_at = save_status.saved_at if save_status is not None else "-"
        table.add_row(f"{step}. {title}", state, saved_at or "-")

    console.print()
    console.print(f"Workspace: [bold]{config.name}[/bold]  Idea: {run.idea or '[dim](none)[/dim]'}")
    console.print(table)
    if run.current_step == 2 and run.questions:
        for question in run.questions:
            answer = run.answer_for(question.question_id) or "[dim](no answer)[/dim]"
            console.print(f"  [cyan]{question.question_id}[/cyan] {question.text}")
            console.print(f"      {answer}")
    if run.current_step == 4 and 4 in run.step_previews:
        for node in run.step_previews[4].active_nodes:
            if node.get("type") != "Requirement":
                continue
            node_id = str(node.get("id"))
            decision = run.accept_state.get(node_id, "pending")
            console.print(f"  [cyan]{node_id}[/cyan] {node.get('title')} [dim]{decision}[/dim]")
    console.print(
        f"Draft: {counts.draft_nodes} nodes / {counts.draft_edges} edges   "
        f"Committed: {counts.committed_nodes} nodes / {counts.committed_edges} edges"
    )
    if run.is_complete:
        console.print("[green]Run complete.[/green]")
    elif session.can_advance():
        console.print("[dim]Next: dg next[/dim]")
    console.print()


@app.command()
def idea(text: Annotated[str, typer.Argument(help="High-level product idea")]) -> None:
    """Set the idea for the active run (step 1)."""
    with _open_workspace() as (config, store), _reported_errors():
        run = _session(config, store).set_idea(text)
    console.print(f"[green]✓[/green] Idea set for {run.id}")


def _print_generation(result: GenerationResult) -> None:
    console.print(
        f"[green]✓[/green] {_step_label(result.step)}: "
        f"{result.count} item(s) [dim]({result.source})[/dim]"
    )
    for title in result.titles:
        console.print(f"  • {title}")
    if result.fallback_reason:
        console.print(f"[yellow]Note:[/yellow] {result.fallback_reason}")


def _generator_for_step(session: WizardSession) -> Callable[[], Awaitable[GenerationResult]]:
    step = session.current_step
    if step == 1:
        return session.recruit_experts
    if step == 2:
        return session.generate_questions
    if step == 3:
        return session.generate_baseline
    return lambda: session.generate_step_preview(step)


@app.command()
def generate() -> None:
    """Generate content for the current step (experts, questions, baseline or preview)."""
    from draftgraph.providers import create_draft_service

    with _open_workspace() as (config, store), _reported_errors():
        service = create_draft_service(config.draft_service)
        session = _session(config, store, service)
        if session.current_step == 7:
            raise _fail("Step 7 has nothing to generate. Run 'dg commit --confirm CONFIRMED'.")
        with console.status(f"Generating {_step_label(session.current_step)}..."):
            result = _run_draft_call(service, _generator_for_step(session))
    _print_generation(result)


@app.command()
def answer(
    question_id: Annotated[str, typer.Argument(help="Question id, e.g. q:1")],
    text: Annotated[str, typer.Argument(help="Answer text")],
) -> None:
    """Answer one brainstorm question (step 2)."""
    with _open_workspace() as (config, store), _reported_errors():
        _session(config, store).answer_question(question_id, text)
    console.print(f"[green]✓[/green] Answer recorded for {question_id}")


@app.command("finish-brainstorm")
def finish_brainstorm() -> None:
    """Summarise the brainstorm Q&A (step 2)."""
    from draftgraph.providers import create_draft_service

    with _open_workspace() as (config, store), _reported_errors():
        service = create_draft_service(config.draft_service)
        session = _session(config, store, service)
        result = _run_draft_call(service, session.finish_brainstorm)
    _print_generation(result)


@app.command()
def save() -> None:
    """Save the current step's content to the draft graph."""
    with _open_workspace() as (config, store), _reported_errors():
        session = _session(config, store)
        step = session.current_step
        save_status = session.save_step()

    counts = save_status.last_saved_counts
    console.print(
        f"[green]✓[/green] Saved {_step_label(step)}: "
        f"+{counts.added_nodes} nodes, +{counts.added_edges} edges "
        f"(draft now {counts.total_nodes} nodes / {counts.total_edges} edges)"
    )
    for title in save_status.sample_titles:
        console.print(f"  • {title}")


@app.command("next")
def next_step() -> None:
    """Advance to the next step (the current step must be saved)."""
    with _open_workspace() as (config, store), _reported_errors():
        run = _session(config, store).next()
    console.print(f"[green]✓[/green] Now on {_step_label(run.current_step)}")


@app.command()
def back() -> None:
    """Return to the previous step."""
    with _open_workspace() as (config, store), _reported_errors():
        run = _session(config, store).back()
    console.print(f"[green]✓[/green] Now on {_step_label(run.current_step)}")


@app.command()
def commit(
    confirm: Annotated[
        str,
        typer.Option("--confirm", help="Type CONFIRMED exactly to promote proposed requirements."),
    ] = "",
) -> None:
    """Promote proposed draft Requirements into the committed graph.

    On step 7 of an active run this completes the run; otherwise it is a
    stand-alone founder commit.
    """
    from draftgraph.graph.audit import AuditLog
    from draftgraph.graph.commit import commit_requirements
    from draftgraph.pipeline.wizard import WizardRunRepository

    with _open_workspace() as (config, store), _reported_errors():
        active = WizardRunRepository(store).find_active()
        if active is not None and active.current_step == 7:
            result = _session(config, store).commit(confirm)
        else:
            audit_log = AuditLog.from_legacy_store(store, actor=config.actor)
            result = commit_requirements(store, confirm, audit=audit_log)

    console.print(
        f"[green]✓[/green] Committed {result.committed_requirement_count} requirement(s) "
        f"and {result.committed_edge_count} edge(s)"
    )
    console.print(
        f"  Draft: {result.before.draft_nodes} → {result.after.draft_nodes} nodes   "
        f"Committed: {result.before.committed_nodes} → {result.after.committed_nodes} nodes"
    )


@app.command()
def edit(
    node_id: Annotated[str, typer.Argument(help="Id of a proposed draft Requirement")],
    title: Annotated[str | None, typer.Option("--title", help="New title")] = None,
    risk: Annotated[str | None, typer.Option("--risk", help="low, medium or high")] = None,
    status_: Annotated[
        str | None,
        typer.Option("--status", help="queued, in_progress, review or complete"),
    ] = None,
) -> None:
    """Edit a proposed draft Requirement before it is committed."""
    from draftgraph.graph.audit import AuditLog
    from draftgraph.graph.merge import update_proposed_node

    with _open_workspace() as (config, store), _reported_errors():
        audit_log = AuditLog.from_legacy_store(store, actor=config.actor)
        changes = update_proposed_node(
            store, node_id, title=title, risk=risk, status=status_, audit=audit_log
        )

    if not changes:
        console.print("[dim]No changes.[/dim]")
        return
    console.print(f"[green]✓[/green] Updated {node_id}: {', '.join(sorted(changes))}")


def _decide(requirement_id: str, decision: RequirementDecision) -> None:
    with _open_workspace() as (config, store), _reported_errors():
        _session(config, store).decide_requirement(requirement_id, decision)
    console.print(f"[green]✓[/green] {requirement_id}: {decision}")


@app.command()
def accept(
    requirement_id: Annotated[str, typer.Argument(help="Generated basic requirement id")],
) -> None:
    """Accept one generated basic requirement (step 4)."""
    _decide(requirement_id, "accepted")


@app.command()
def discard(
    requirement_id: Annotated[str, typer.Argument(help="Generated basic requirement id")],
) -> None:
    """Discard one generated basic requirement; it will not be saved (step 4)."""
    _decide(requirement_id, "discarded")


@app.command()
def revise(
    requirement_id: Annotated[str, typer.Argument(help="Generated basic requirement id")],
) -> None:
    """Ask the draft service to rewrite one generated basic requirement (step 4)."""
    from draftgraph.providers import create_draft_service

    with _open_workspace() as (config, store), _reported_errors():
        service = create_draft_service(config.draft_service)
        session = _session(config, store, service)
        with console.status(f"Revising {requirement_id}..."):
            result = _run_draft_call(
                service, lambda: session.revise_requirement(requirement_id)
            )
    _print_generation(result)


@app.command()
def children(
    requirement_id: Annotated[str, typer.Argument(help="Id of a proposed draft Requirement")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Apply without asking.")] = False,
) -> None:
    """Draft Project and Task proposals under a proposed Requirement."""
    from draftgraph.graph.audit import AuditLog
    from draftgraph.pipeline.children import apply_child_proposals, generate_child_proposals
    from draftgraph.providers import create_draft_service

    with _open_workspace() as (config, store), _reported_errors():
        service = create_draft_service(config.draft_service)
        audit_log = AuditLog.from_legacy_store(store, actor=config.actor)
        with console.status(f"Drafting children of {requirement_id}..."):
            preview = _run_draft_call(
                service,
                lambda: generate_child_proposals(
                    store,
                    service,
                    requirement_id,
                    audit=audit_log,
                    timeout=config.draft_service.timeout,
                ),
            )
        console.print(
            f"{len(preview.nodes)} child proposal(s) for [bold]{preview.parent_title}[/bold] "
            f"[dim]({preview.source})[/dim]"
        )
        for node in preview.nodes:
            console.print(f"  • [cyan]{node['type']}[/cyan] {node.get('title', '')}")
        if not preview.nodes:
            return
        if not yes and not typer.confirm("Apply child proposals?", default=False):
            raise typer.Exit(0)
        result = apply_child_proposals(store, preview, audit=audit_log)
    console.print(
        f"[green]✓[/green] Applied +{result.added_nodes} nodes, +{result.added_edges} edges"
    )


@node_app.command("add")
def node_add(
    node_type: Annotated[str, typer.Argument(help="Node type, e.g. Decision or Requirement")],
    title: Annotated[str, typer.Argument(help="Node title")],
    risk: Annotated[str | None, typer.Option("--risk", help="low, medium or high")] = None,
    parent: Annotated[str | None, typer.Option("--parent", help="Parent node id")] = None,
) -> None:
    """Add a proposed node to the draft graph."""
    from draftgraph.graph.audit import AuditLog
    from draftgraph.graph.drafting import add_draft_node

    with _open_workspace() as (config, store), _reported_errors():
        audit_log = AuditLog.from_legacy_store(store, actor=config.actor)
        node = add_draft_node(store, node_type, title, risk=risk, parent_id=parent, audit=audit_log)
    console.print(f"[green]✓[/green] Added {node.type} {node.id}")


@node_app.command("archive")
def node_archive(node_id: Annotated[str, typer.Argument(help="Proposed draft node id")]) -> None:
    """Archive a proposed draft node and the edges touching it."""
    from draftgraph.graph.audit import AuditLog
    from draftgraph.graph.drafting import archive_draft_node

    with _open_workspace() as (config, store), _reported_errors():
        audit_log = AuditLog.from_legacy_store(store, actor=config.actor)
        edge_count = archive_draft_node(store, node_id, audit=audit_log)
    console.print(f"[green]✓[/green] Archived {node_id} and {edge_count} edge(s)")


@node_app.command("link")
def node_link(
    from_id: Annotated[str, typer.Argument(help="Source node id")],
    to_id: Annotated[str, typer.Argument(help="Target node id")],
    relationship_type: Annotated[
        str, typer.Option("--type", help="depends_on, enables or relates_to")
    ] = "relates_to",
) -> None:
    """Relate two proposed draft nodes."""
    from draftgraph.graph.audit import AuditLog
    from draftgraph.graph.drafting import link_draft_nodes

    with _open_workspace() as (config, store), _reported_errors():
        audit_log = AuditLog.from_legacy_store(store, actor=config.actor)
        result = link_draft_nodes(
            store, from_id, to_id, relationship_type=relationship_type, audit=audit_log
        )
    if not result.added_edges:
        console.print("[dim]Already linked.[/dim]")
        return
    console.print(f"[green]✓[/green] Linked {from_id} --{relationship_type}-> {to_id}")


@node_app.command("unlink")
def node_unlink(
    from_id: Annotated[str, typer.Argument(help="Source node id")],
    to_id: Annotated[str, typer.Argument(help="Target node id")],
) -> None:
    """Archive the draft edges from one node to another."""
    from draftgraph.graph.audit import AuditLog
    from draftgraph.graph.drafting import unlink_draft_nodes

    with _open_workspace() as (config, store), _reported_errors():
        audit_log = AuditLog.from_legacy_store(store, actor=config.actor)
        count = unlink_draft_nodes(store, from_id, to_id, audit=audit_log)
    if not count:
        console.print("[dim]No active link.[/dim]")
        return
    console.print(f"[green]✓[/green] Archived {count} edge(s)")


@node_app.command("related")
def node_related(node_id: Annotated[str, typer.Argument(help="Draft node id")]) -> None:
    """List the draft nodes related to a node."""
    from draftgraph.graph.drafting import related_ids

    with _open_workspace() as (_config, store):
        ids = related_ids(store, node_id)
    if not ids:
        console.print("[dim]No related nodes.[/dim]")
    for related in ids:
        console.print(f"  • {related}")


@app.command()
def audit(
    event_type: Annotated[str | None, typer.Option("--type", help="Only this event type")] = None,
    search: Annotated[str | None, typer.Option("--search", help="Text to look for")] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Maximum events to show")] = 20,
) -> None:
    """Show audit events, newest first."""
    from draftgraph.graph.audit import AuditLog

    with _open_workspace() as (_config, store):
        log_ = AuditLog.from_legacy_store(store)
        events = log_.query(event_type=event_type, search=search, limit=limit)
        summary = log_.summary()

    table = Table(title=f"Audit Log ({summary['total']} events)")
    table.add_column("Time", style="dim")
    table.add_column("Event", style="cyan")
    table.add_column("Actor")
    table.add_column("Payload", overflow="fold")
    for event in events:
        payload = ", ".join(f"{key}={value}" for key, value in event.payload.items())
        table.add_row(event.created_at, event.type, event.actor, payload)
    console.print(table)


@app.command()
def minimap(
    scope: Annotated[str, typer.Option("--scope", help="draft or committed")] = "draft",
) -> None:
    """Show nodes grouped by type and their resolved relationships."""
    from draftgraph.graph.views import build_mini_map

    if scope not in ("draft", "committed"):
        raise _fail(f"--scope must be draft or committed, got '{scope}'")
    with _open_workspace() as (_config, store):
        mini_map = build_mini_map(store, scope)

    console.print(f"[bold]Mini-map ({scope})[/bold]: {mini_map.node_count} nodes")
    for node_type, nodes in mini_map.groups.items():
        console.print(f"[cyan]{node_type}[/cyan] ({len(nodes)})")
        for node in nodes:
            console.print(f"  • {node.title} [dim]{node.id}[/dim]")
    if mini_map.relationships:
        console.print("[bold]Relationships[/bold]")
        for rel in mini_map.relationships:
            console.print(f"  {rel.source_title} [dim]--{rel.type}->[/dim] {rel.target_title}")
    if mini_map.dangling_edges:
        console.print(f"[yellow]{mini_map.dangling_edges} edge(s) point at missing nodes[/yellow]")


@app.command()
def memo(decision_id: Annotated[str, typer.Argument(help="Committed Decision node id")]) -> None:
    """Render a decision memo from the committed graph."""
    from draftgraph.graph.views import build_decision_memo

    with _open_workspace() as (_config, store), _reported_errors():
        text = build_decision_memo(store, decision_id)
    console.print(Markdown(text))


@app.command()
def pack() -> None:
    """Render the execution pack (KPIs, metrics, risks, tasks) of the committed graph."""
    from draftgraph.graph.views import build_execution_pack

    with _open_workspace() as (_config, store):
        text = build_execution_pack(store)
    console.print(Markdown(text))


@snapshot_app.command("export")
def snapshot_export(
    dest: Annotated[
        Path | None,
        typer.Option("--dir", "-d", help="Destination directory (default: {workspace}/snapshots)."),
    ] = None,
) -> None:
    """Write the draft partition to a JSON snapshot file."""
    from draftgraph.graph.audit import AuditLog
    from draftgraph.graph.snapshots import export_draft_snapshot

    with _open_workspace() as (config, store):
        audit_log = AuditLog.from_legacy_store(store, actor=config.actor)
        dest_dir = dest or _workspace / SNAPSHOTS_DIR_NAME
        path = export_draft_snapshot(store, dest_dir, audit=audit_log)
    console.print(f"[green]✓[/green] Snapshot written: {path}")


@snapshot_app.command("import")
def snapshot_import(
    path: Annotated[Path, typer.Argument(help="Snapshot file to import")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Apply without asking.")] = False,
) -> None:
    """Merge a snapshot into the draft partition; existing ids are kept."""
    from draftgraph.graph.audit import AuditLog
    from draftgraph.graph.snapshots import apply_snapshot_import, preview_snapshot_import

    with _open_workspace() as (config, store), _reported_errors():
        preview = preview_snapshot_import(store, path)
        console.print(
            f"Snapshot holds {preview.file_node_count} nodes / {preview.file_edge_count} edges; "
            f"{len(preview.addable_nodes)} nodes and {len(preview.addable_edges)} edges are new."
        )
        if not preview.addable_nodes and not preview.addable_edges:
            console.print("[dim]Nothing to import.[/dim]")
            return
        if not yes and not typer.confirm("Apply import?", default=False):
            raise typer.Exit(0)
        audit_log = AuditLog.from_legacy_store(store, actor=config.actor)
        result = apply_snapshot_import(store, preview, audit=audit_log)
    console.print(
        f"[green]✓[/green] Imported +{result.added_nodes} nodes, +{result.added_edges} edges"
    )
