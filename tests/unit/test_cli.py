"""Test CLI commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from typer.testing import CliRunner

from draftgraph import __version__
from draftgraph.cli import app
from draftgraph.graph.sqlite_store import SqlitePartitionStore

if TYPE_CHECKING:
    from pathlib import Path

runner = CliRunner()


def _invoke(workspace: Path, *args: str, **kwargs: object):
    return runner.invoke(app, ["--workspace", str(workspace), *args], **kwargs)


def _open_db(workspace: Path) -> SqlitePartitionStore:
    return SqlitePartitionStore(workspace / "workspace.db")


def test_version_command() -> None:
    """Test dg version command."""
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert f"v{__version__}" in result.stdout


def test_no_args_shows_help() -> None:
    """no_args_is_help=True exits with code 2."""
    result = runner.invoke(app, [])
    assert result.exit_code == 2
    assert "draftgraph" in result.stdout


# --- Init Command Tests ---


def test_init_creates_workspace(tmp_path: Path) -> None:
    result = runner.invoke(app, ["init", "acme", "--path", str(tmp_path)])

    assert result.exit_code == 0
    assert "Created workspace" in result.stdout
    assert (tmp_path / "acme" / "workspace.yaml").exists()


def test_init_existing_directory(tmp_path: Path) -> None:
    (tmp_path / "acme").mkdir()
    result = runner.invoke(app, ["init", "acme", "--path", str(tmp_path)])

    assert result.exit_code == 1
    assert "exists" in result.stdout


def test_missing_workspace(tmp_path: Path) -> None:
    """Commands outside a workspace fail with a hint."""
    result = _invoke(tmp_path, "status")

    assert result.exit_code == 1
    assert "Error:" in result.stdout
    assert "workspace.yaml" in result.stdout


# --- Wizard Command Tests ---


def test_idea_generate_save_next(workspace: Path) -> None:
    """Step 1 can be completed from the command line with the mock service."""
    assert _invoke(workspace, "idea", "Founder governance OS").exit_code == 0

    generated = _invoke(workspace, "generate")
    assert generated.exit_code == 0
    assert "8 item(s)" in generated.stdout
    assert "(mock)" in generated.stdout

    saved = _invoke(workspace, "save")
    assert saved.exit_code == 0
    assert "+8 nodes" in saved.stdout

    moved = _invoke(workspace, "next")
    assert moved.exit_code == 0
    assert "Step 2" in moved.stdout

    store = _open_db(workspace)
    try:
        assert len(store.get("draft_nodes")) == 8
        assert store.get("wizard_runs")[0]["currentStep"] == 2
    finally:
        store.close()


def test_next_before_save(workspace: Path) -> None:
    result = _invoke(workspace, "next")

    assert result.exit_code == 1
    assert "Error:" in result.stdout


def test_generate_without_idea(workspace: Path) -> None:
    result = _invoke(workspace, "generate")

    assert result.exit_code == 1
    assert "idea" in result.stdout


def test_brainstorm_answers(workspace: Path) -> None:
    for args in (("idea", "Founder OS"), ("generate",), ("save",), ("next",), ("generate",)):
        assert _invoke(workspace, *args).exit_code == 0

    answered = _invoke(workspace, "answer", "q:1", "Studio owners")
    status = _invoke(workspace, "status")

    assert answered.exit_code == 0
    assert status.exit_code == 0
    assert "Studio owners" in status.stdout
    assert _invoke(workspace, "finish-brainstorm").exit_code == 0


def test_status(workspace: Path) -> None:
    result = _invoke(workspace, "status")

    assert result.exit_code == 0
    assert "Recruit Experts" in result.stdout
    assert "Draft: 0 nodes" in result.stdout


# --- Commit and Review Command Tests ---


def _seed_requirement(workspace: Path) -> None:
    store = _open_db(workspace)
    try:
        store.put(
            "draft_nodes",
            [{"id": "r1", "type": "Requirement", "title": "Audit trail", "stage": "proposed"}],
        )
    finally:
        store.close()


def test_commit_wrong_confirmation(workspace: Path) -> None:
    _seed_requirement(workspace)

    result = _invoke(workspace, "commit", "--confirm", "confirmed")

    assert result.exit_code == 1
    assert "CONFIRMED" in result.stdout


def test_commit_standalone(workspace: Path) -> None:
    _seed_requirement(workspace)

    result = _invoke(workspace, "commit", "--confirm", "CONFIRMED")

    assert result.exit_code == 0
    assert "Committed 1 requirement(s)" in result.stdout
    store = _open_db(workspace)
    try:
        assert [r["id"] for r in store.get("committed_nodes")] == ["r1"]
        assert store.get("audit_events")[-1]["type"] == "FOUNDER_COMMIT_CONFIRMED"
    finally:
        store.close()


def test_edit_and_audit(workspace: Path) -> None:
    _seed_requirement(workspace)

    edited = _invoke(workspace, "edit", "r1", "--title", "Signed audit trail", "--risk", "high")
    audit = _invoke(workspace, "audit", "--type", "PROPOSED_NODE_EDITED")

    assert edited.exit_code == 0
    assert "risk" in edited.stdout
    assert audit.exit_code == 0
    assert "Audit Log" in audit.stdout
    store = _open_db(workspace)
    try:
        event = store.get("audit_events")[-1]
        assert event["type"] == "PROPOSED_NODE_EDITED"
        assert store.get("draft_nodes")[0]["title"] == "Signed audit trail"
    finally:
        store.close()


def test_edit_bad_risk(workspace: Path) -> None:
    _seed_requirement(workspace)

    result = _invoke(workspace, "edit", "r1", "--risk", "extreme")

    assert result.exit_code == 1


def test_minimap(workspace: Path) -> None:
    _seed_requirement(workspace)

    result = _invoke(workspace, "minimap")

    assert result.exit_code == 0
    assert "Audit trail" in result.stdout
    assert _invoke(workspace, "minimap", "--scope", "nowhere").exit_code == 1


def test_pack_without_decisions(workspace: Path) -> None:
    result = _invoke(workspace, "pack")

    assert result.exit_code == 0
    assert "No committed Decisions found" in result.stdout


# --- Snapshot Command Tests ---


def test_snapshot_export_import(workspace: Path, tmp_path: Path) -> None:
    """An exported snapshot imports into another workspace."""
    _seed_requirement(workspace)
    exported = _invoke(workspace, "snapshot", "export", "--dir", str(tmp_path / "snaps"))
    assert exported.exit_code == 0
    snapshot = next((tmp_path / "snaps").glob("draft-snapshot-*.json"))
    assert json.loads(snapshot.read_text(encoding="utf-8"))["nodes"][0]["id"] == "r1"

    other = tmp_path / "other"
    assert runner.invoke(app, ["init", "other", "--path", str(tmp_path)]).exit_code == 0
    imported = _invoke(other, "snapshot", "import", str(snapshot), "--yes")

    assert imported.exit_code == 0
    assert "+1 nodes" in imported.stdout
    store = _open_db(other)
    try:
        assert [r["id"] for r in store.get("draft_nodes")] == ["r1"]
    finally:
        store.close()


def test_snapshot_import_declined(workspace: Path, tmp_path: Path) -> None:
    snapshot = tmp_path / "snap.json"
    snapshot.write_text(
        json.dumps({"schemaVersion": 1, "nodes": [{"id": "x", "type": "Task", "title": "X"}]}),
        encoding="utf-8",
    )

    result = _invoke(workspace, "snapshot", "import", str(snapshot), input="n\n")

    assert result.exit_code == 0
    store = _open_db(workspace)
    try:
        assert store.get("draft_nodes") == []
    finally:
        store.close()


def test_snapshot_import_invalid(workspace: Path, tmp_path: Path) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text("{", encoding="utf-8")

    result = _invoke(workspace, "snapshot", "import", str(bad), "--yes")

    assert result.exit_code == 1
    assert "Invalid snapshot JSON." in result.stdout


# --- Requirement Review Command Tests ---


def _preview_requirement_ids(workspace: Path) -> list[str]:
    """Walk the run to step 4 with the mock service and return the generated ids."""
    steps = [
        ("idea", "Founder OS"),
        ("generate",),
        ("save",),
        ("next",),
        ("generate",),
        ("finish-brainstorm",),
        ("save",),
        ("next",),
        ("generate",),
        ("save",),
        ("next",),
        ("generate",),
    ]
    for args in steps:
        assert _invoke(workspace, *args).exit_code == 0, args
    store = _open_db(workspace)
    try:
        run = store.get("wizard_runs")[-1]
        return [node["id"] for node in run["stepPreviews"]["4"]["nodes"]]
    finally:
        store.close()


def test_accept_discard_revise(workspace: Path) -> None:
    ids = _preview_requirement_ids(workspace)

    accepted = _invoke(workspace, "accept", ids[0])
    discarded = _invoke(workspace, "discard", ids[1])
    revised = _invoke(workspace, "revise", ids[2])
    status = _invoke(workspace, "status")

    assert accepted.exit_code == 0
    assert f"{ids[0]}: accepted" in accepted.stdout
    assert discarded.exit_code == 0
    assert revised.exit_code == 0
    assert "Core requirement set for" in revised.stdout
    assert ids[1] not in status.stdout
    store = _open_db(workspace)
    try:
        types = [event["type"] for event in store.get("audit_events")]
        assert types[-3:] == [
            "REQUIREMENT_ACCEPTED",
            "REQUIREMENT_DISCARDED",
            "REQUIREMENT_REVISED",
        ]
        accept_state = store.get("wizard_runs")[-1]["acceptState"]
        assert accept_state[ids[0]] == "accepted"
        assert accept_state[ids[2]] == "discarded"
    finally:
        store.close()


def test_discard_twice(workspace: Path) -> None:
    ids = _preview_requirement_ids(workspace)
    assert _invoke(workspace, "discard", ids[0]).exit_code == 0

    result = _invoke(workspace, "discard", ids[0])

    assert result.exit_code == 1
    assert "already discarded" in result.stdout


# --- Draft Node Command Tests ---


def test_node_add_link_unlink_archive(workspace: Path) -> None:
    _seed_requirement(workspace)

    added = _invoke(workspace, "node", "add", "Task", "Build log", "--risk", "low")
    assert added.exit_code == 0
    store = _open_db(workspace)
    try:
        task_id = store.get("draft_nodes")[-1]["id"]
    finally:
        store.close()

    linked = _invoke(workspace, "node", "link", "r1", task_id, "--type", "enables")
    again = _invoke(workspace, "node", "link", "r1", task_id, "--type", "enables")
    related = _invoke(workspace, "node", "related", "r1")
    unlinked = _invoke(workspace, "node", "unlink", "r1", task_id)
    archived = _invoke(workspace, "node", "archive", task_id)

    assert linked.exit_code == 0
    assert "Already linked." in again.stdout
    assert task_id in related.stdout
    assert "Archived 1 edge(s)" in unlinked.stdout
    assert archived.exit_code == 0
    store = _open_db(workspace)
    try:
        types = [event["type"] for event in store.get("audit_events")]
        assert types == [
            "DRAFT_NODE_CREATED",
            "DRAFT_EDGE_CREATED",
            "DRAFT_EDGE_ARCHIVED",
            "DRAFT_NODE_ARCHIVED",
        ]
        assert store.get("draft_nodes")[-1]["archived"] is True
    finally:
        store.close()


def test_node_link_bad_type(workspace: Path) -> None:
    _seed_requirement(workspace)

    result = _invoke(workspace, "node", "link", "r1", "r1", "--type", "blocks")

    assert result.exit_code == 1
    assert "Error:" in result.stdout


def test_children_applied(workspace: Path) -> None:
    _seed_requirement(workspace)

    result = _invoke(workspace, "children", "r1", "--yes")

    assert result.exit_code == 0
    assert "6 child proposal(s)" in result.stdout
    assert "+6 nodes, +11 edges" in result.stdout
    store = _open_db(workspace)
    try:
        types = [event["type"] for event in store.get("audit_events")]
        assert types == ["CHILD_PROPOSALS_GENERATED", "CHILD_PROPOSALS_APPLIED"]
        assert len(store.get("draft_nodes")) == 7
    finally:
        store.close()


def test_children_declined(workspace: Path) -> None:
    _seed_requirement(workspace)

    result = _invoke(workspace, "children", "r1", input="n\n")

    assert result.exit_code == 0
    store = _open_db(workspace)
    try:
        assert len(store.get("draft_nodes")) == 1
    finally:
        store.close()
