"""Tests for commit promotion."""

from __future__ import annotations

import pytest

from draftgraph.graph.audit import AuditLog
from draftgraph.graph.commit import (
    CONFIRM_TEXT,
    commit_requirements,
    is_commit_eligible,
    partition_counts,
)
from draftgraph.graph.errors import ConfirmationError, NoProposedRequirementsError
from draftgraph.graph.store import DictPartitionStore


def _seeded_store() -> DictPartitionStore:
    """Draft with one eligible Requirement r1, one archived r2 and a Task t1."""
    return DictPartitionStore(
        {
            "draft_nodes": [
                {"id": "r1", "type": "Requirement", "title": "R1", "stage": "proposed"},
                {
                    "id": "r2",
                    "type": "Requirement",
                    "title": "R2",
                    "stage": "proposed",
                    "archived": True,
                },
                {"id": "t1", "type": "Task", "title": "T1", "stage": "proposed"},
            ],
            "draft_edges": [
                {"id": "e1", "from": "r1", "to": "t1", "stage": "proposed"},
                {"id": "e2", "from": "t1", "to": "r2", "stage": "proposed"},
            ],
        }
    )


class TestEligibility:
    """Test which draft records may be committed."""

    def test_proposed_requirement(self) -> None:
        """A proposed Requirement is eligible, whatever the stage's case."""
        assert is_commit_eligible({"type": "Requirement", "stage": "proposed"})
        assert is_commit_eligible({"type": "Requirement", "stage": "Proposed"})

    def test_missing_or_legacy_stage(self) -> None:
        """Records without a known stage read as proposed, as everywhere else."""
        assert is_commit_eligible({"type": "Requirement"})
        assert is_commit_eligible({"type": "Requirement", "stage": "draft"})

    def test_excluded_records(self) -> None:
        """Archived, committed, non-Requirement and non-dict records are not."""
        assert not is_commit_eligible(
            {"type": "Requirement", "stage": "proposed", "archived": True}
        )
        assert not is_commit_eligible({"type": "Requirement", "stage": "committed"})
        assert not is_commit_eligible({"type": "Requirement", "stage": "archived"})
        assert not is_commit_eligible({"type": "Task", "stage": "proposed"})
        assert not is_commit_eligible("r1")

    def test_legacy_stage_committed(self) -> None:
        """A Requirement saved with an older stage label is committed like a proposed one."""
        store = DictPartitionStore(
            {"draft_nodes": [{"id": "r9", "type": "Requirement", "title": "R9", "stage": "draft"}]}
        )

        result = commit_requirements(store, CONFIRM_TEXT)

        assert result.committed_requirement_count == 1
        assert store.get("committed_nodes")[0]["stage"] == "committed"
        assert store.get("draft_nodes")[0]["archived"] is True


class TestConfirmationGate:
    """Test the exact confirmation literal."""

    @pytest.mark.parametrize("text", ["confirmed", "", " CONFIRMED", "CONFIRMED.", "yes"])
    def test_wrong_literal_writes_nothing(self, text: str) -> None:
        """Anything but exact CONFIRMED raises and leaves storage untouched."""
        store = _seeded_store()
        before = store.to_dict()

        with pytest.raises(ConfirmationError) as exc_info:
            commit_requirements(store, text)

        assert store.to_dict() == before
        assert "CONFIRMED" in exc_info.value.to_user_message()

    def test_no_eligible_requirements(self) -> None:
        """With nothing to commit the call fails and writes nothing."""
        store = DictPartitionStore(
            {"draft_nodes": [{"id": "t1", "type": "Task", "title": "T", "stage": "proposed"}]}
        )
        before = store.to_dict()

        with pytest.raises(NoProposedRequirementsError) as exc_info:
            commit_requirements(store, CONFIRM_TEXT)

        assert exc_info.value.draft_node_count == 1
        assert store.to_dict() == before


class TestPromotion:
    """Test a successful commit."""

    def test_promotes_only_eligible(self) -> None:
        """r1 moves to committed and is archived in draft; r2 and t1 stay put."""
        store = _seeded_store()

        result = commit_requirements(store, CONFIRM_TEXT)

        assert result.committed_requirement_count == 1
        assert result.committed_node_ids == ["r1"]
        committed = store.get("committed_nodes")
        assert [r["id"] for r in committed] == ["r1"]
        assert committed[0]["stage"] == "committed"
        assert committed[0]["archived"] is False

        draft = {r["id"]: r for r in store.get("draft_nodes")}
        assert draft["r1"]["stage"] == "archived"
        assert draft["r1"]["archived"] is True
        assert draft["t1"]["stage"] == "proposed"
        assert "r2" in draft

    def test_promotes_touching_edges(self) -> None:
        """Edges with an endpoint among the committed requirements follow them."""
        store = _seeded_store()

        result = commit_requirements(store, CONFIRM_TEXT)

        assert result.committed_edge_ids == ["e1"]
        assert result.archived_edge_count == 1
        draft_edges = {r["id"]: r for r in store.get("draft_edges")}
        assert draft_edges["e1"]["archived"] is True
        assert draft_edges["e2"].get("archived") is not True
        assert store.get("committed_edges")[0]["stage"] == "committed"

    def test_never_deletes(self) -> None:
        """Draft record counts are unchanged after a commit."""
        store = _seeded_store()
        result = commit_requirements(store, CONFIRM_TEXT)

        assert result.before.draft_nodes == result.after.draft_nodes == 3
        assert result.before.draft_edges == result.after.draft_edges == 2
        assert result.after.committed_nodes == 1
        assert partition_counts(store) == result.after

    def test_existing_committed_ids_not_duplicated(self) -> None:
        """An id already in committed is archived in draft but not copied twice."""
        store = _seeded_store()
        store.put(
            "committed_nodes",
            [{"id": "r1", "type": "Requirement", "title": "R1", "stage": "committed"}],
        )

        result = commit_requirements(store, CONFIRM_TEXT)

        assert result.committed_requirement_count == 0
        assert result.archived_proposed_count == 1
        assert len(store.get("committed_nodes")) == 1

    def test_second_commit_finds_nothing(self) -> None:
        """Committed requirements are archived in draft, so they cannot be committed again."""
        store = _seeded_store()
        commit_requirements(store, CONFIRM_TEXT)

        with pytest.raises(NoProposedRequirementsError):
            commit_requirements(store, CONFIRM_TEXT)

    def test_audit_event(self) -> None:
        """An audit log, when given, receives the founder commit event."""
        store = _seeded_store()
        audit = AuditLog(store)

        commit_requirements(store, CONFIRM_TEXT, audit=audit)

        event = audit.events()[-1]
        assert event.type == "FOUNDER_COMMIT_CONFIRMED"
        assert event.actor == "founder"
        assert event.payload["committedRequirementCount"] == 1
        assert event.payload["archivedEdgeCount"] == 1
