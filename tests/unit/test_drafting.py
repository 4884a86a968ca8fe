"""Tests for founder-authored draft nodes and links."""

from __future__ import annotations

import pytest

from draftgraph.graph.audit import AuditLog
from draftgraph.graph.commit import CONFIRM_TEXT, commit_requirements
from draftgraph.graph.drafting import (
    add_draft_node,
    archive_draft_node,
    link_draft_nodes,
    related_ids,
    unlink_draft_nodes,
)
from draftgraph.graph.errors import InputValidationError
from draftgraph.graph.factory import make_node
from draftgraph.graph.merge import merge_graph
from draftgraph.graph.store import DictPartitionStore
from draftgraph.graph.views import build_mini_map


def _seeded() -> DictPartitionStore:
    """Draft with proposed r1 and t1, and an archived a1."""
    store = DictPartitionStore()
    merge_graph(
        store,
        "draft",
        [
            make_node("r1", "Requirement", "Audit trail"),
            make_node("t1", "Task", "Build log"),
            {**make_node("a1", "Task", "Old").to_record(), "archived": True},
        ],
    )
    return store


class TestAddDraftNode:
    """Test creating nodes by hand."""

    def test_creates_proposed_node(self, store: DictPartitionStore) -> None:
        audit = AuditLog(store)

        node = add_draft_node(store, "Decision", "  Hire a lawyer ", risk="high", audit=audit)

        record = store.get("draft_nodes")[0]
        assert record["id"] == node.id
        assert node.id.startswith("node:")
        assert node.id.endswith(":hire-a-lawyer")
        assert record["title"] == "Hire a lawyer"
        assert record["stage"] == "proposed"
        assert record["createdBy"] == "founder"
        assert record["risk"] == "high"
        event = audit.events()[-1]
        assert event.type == "DRAFT_NODE_CREATED"
        assert event.actor == "founder"
        assert event.payload == {
            "nodeId": node.id,
            "nodeType": "Decision",
            "title": "Hire a lawyer",
        }

    def test_requirement_is_committable(self, store: DictPartitionStore) -> None:
        """A hand-written Requirement goes through the same commit as drafted ones."""
        node = add_draft_node(store, "Requirement", "Founder sign-off")

        result = commit_requirements(store, CONFIRM_TEXT)

        assert result.committed_node_ids == [node.id]

    @pytest.mark.parametrize(
        ("node_type", "title", "risk", "field"),
        [
            ("Task", "   ", None, "title"),
            (" ", "Title", None, "type"),
            ("Task", "Title", "extreme", "risk"),
        ],
    )
    def test_rejects_bad_input(
        self, store: DictPartitionStore, node_type: str, title: str, risk: str | None, field: str
    ) -> None:
        with pytest.raises(InputValidationError) as exc_info:
            add_draft_node(store, node_type, title, risk=risk)

        assert exc_info.value.field == field
        assert store.get("draft_nodes") == []


class TestArchiveDraftNode:
    """Test archiving nodes by hand."""

    def test_archives_node_and_touching_edges(self) -> None:
        store = _seeded()
        link_draft_nodes(store, "r1", "t1")
        audit = AuditLog(store)

        count = archive_draft_node(store, "t1", audit=audit)

        assert count == 1
        records = {r["id"]: r for r in store.get("draft_nodes")}
        assert records["t1"]["archived"] is True
        assert records["t1"]["stage"] == "archived"
        assert all(edge["archived"] for edge in store.get("draft_edges"))
        assert build_mini_map(store).counts == {"Requirement": 1}
        event = audit.events()[-1]
        assert event.type == "DRAFT_NODE_ARCHIVED"
        assert event.payload == {"nodeId": "t1", "archivedEdgeCount": 1}

    def test_nothing_is_removed(self) -> None:
        store = _seeded()

        archive_draft_node(store, "r1")

        assert [r["id"] for r in store.get("draft_nodes")] == ["r1", "t1", "a1"]

    def test_rejects_archived_or_unknown(self) -> None:
        store = _seeded()

        with pytest.raises(InputValidationError, match="not proposed"):
            archive_draft_node(store, "a1")
        with pytest.raises(InputValidationError, match="No draft node"):
            archive_draft_node(store, "missing")


class TestLinks:
    """Test relating nodes by hand."""

    def test_link_and_related_ids(self) -> None:
        store = _seeded()
        audit = AuditLog(store)

        result = link_draft_nodes(store, "r1", "t1", relationship_type="enables", audit=audit)

        assert result.added_edges == 1
        edge = store.get("draft_edges")[0]
        assert (edge["from"], edge["to"], edge["relationshipType"]) == ("r1", "t1", "enables")
        assert edge["createdBy"] == "founder"
        assert related_ids(store, "r1") == ["t1"]
        assert related_ids(store, "t1") == ["r1"]
        assert audit.events()[-1].type == "DRAFT_EDGE_CREATED"
        rel = build_mini_map(store).relationships[0]
        assert (rel.source_title, rel.target_title) == ("Audit trail", "Build log")
        assert rel.type == "enables"

    def test_linking_twice_adds_nothing(self) -> None:
        store = _seeded()
        audit = AuditLog(store)
        link_draft_nodes(store, "r1", "t1", audit=audit)

        again = link_draft_nodes(store, "r1", "t1", audit=audit)

        assert again.added_edges == 0
        assert len(store.get("draft_edges")) == 1
        assert [e.type for e in audit.events()] == ["DRAFT_EDGE_CREATED"]

    def test_unlink_then_relink(self) -> None:
        """Unlinking archives the edge; linking again adds a fresh one."""
        store = _seeded()
        audit = AuditLog(store)
        link_draft_nodes(store, "r1", "t1")

        assert unlink_draft_nodes(store, "r1", "t1", audit=audit) == 1
        assert related_ids(store, "r1") == []
        assert audit.events()[-1].type == "DRAFT_EDGE_ARCHIVED"

        relinked = link_draft_nodes(store, "r1", "t1")

        assert relinked.added_edges == 1
        edges = store.get("draft_edges")
        assert [e["archived"] for e in edges] == [True, False]
        assert edges[0]["id"] != edges[1]["id"]
        assert related_ids(store, "r1") == ["t1"]

    def test_unlink_without_link_writes_nothing(self) -> None:
        store = _seeded()
        audit = AuditLog(store)

        assert unlink_draft_nodes(store, "r1", "t1", audit=audit) == 0
        assert audit.events() == []

    @pytest.mark.parametrize(
        ("from_id", "to_id", "rel", "field"),
        [
            ("r1", "r1", "relates_to", "to_id"),
            ("r1", "a1", "relates_to", "to_id"),
            ("missing", "t1", "relates_to", "from_id"),
            ("r1", "t1", "blocks", "relationship_type"),
        ],
    )
    def test_rejects_bad_links(self, from_id: str, to_id: str, rel: str, field: str) -> None:
        store = _seeded()

        with pytest.raises(InputValidationError) as exc_info:
            link_draft_nodes(store, from_id, to_id, relationship_type=rel)

        assert exc_info.value.field == field
        assert store.get("draft_edges") == []

    def test_inline_related_ids_come_first(self) -> None:
        """Older records list their relations inline."""
        store = _seeded()
        nodes = store.get("draft_nodes")
        nodes[0]["relatedIds"] = ["x9", 3]
        store.put("draft_nodes", nodes)
        link_draft_nodes(store, "t1", "r1")

        assert related_ids(store, "r1") == ["x9", "t1"]
        assert related_ids(store, "missing") == []
