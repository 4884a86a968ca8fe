"""Tests for graph and wizard record models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from draftgraph.models.audit import AuditEvent
from draftgraph.models.graph import Edge, Lifecycle, Node, is_active_record
from draftgraph.models.wizard import SaveStatus, WizardRun


class TestLifecycle:
    """Test reading the lifecycle of stored records."""

    def test_archived_flag_wins_over_stage(self) -> None:
        """archived: true means archived whatever the stage says."""
        assert Lifecycle.from_record({"stage": "committed", "archived": True}) is Lifecycle.ARCHIVED

    def test_stage_is_case_insensitive(self) -> None:
        """Stage names compare case-insensitively."""
        assert Lifecycle.from_record({"stage": "Committed"}) is Lifecycle.COMMITTED
        assert Lifecycle.from_record({"stage": " ARCHIVED "}) is Lifecycle.ARCHIVED

    def test_unknown_stage_reads_proposed(self) -> None:
        """Missing or unknown stages read as proposed."""
        assert Lifecycle.from_record({}) is Lifecycle.PROPOSED
        assert Lifecycle.from_record({"stage": "draft"}) is Lifecycle.PROPOSED

    def test_is_active_record(self) -> None:
        """Only non-archived dicts are active."""
        assert is_active_record({"stage": "proposed"})
        assert not is_active_record({"stage": "proposed", "archived": True})
        assert not is_active_record("n1")


class TestNodeRecord:
    """Test Node round-trips through the stored shape."""

    def test_from_record_collapses_archived(self) -> None:
        """The archived overlay becomes the lifecycle and is written back out."""
        node = Node.from_record(
            {"id": "n1", "type": "Requirement", "title": "A", "stage": "proposed", "archived": True}
        )

        assert node.stage is Lifecycle.ARCHIVED
        assert node.archived is True
        record = node.to_record()
        assert record["stage"] == "archived"
        assert record["archived"] is True

    def test_unknown_keys_preserved(self) -> None:
        """Keys the model does not know survive a round-trip verbatim."""
        record = {
            "id": "n1",
            "type": "Baseline",
            "title": "B",
            "stage": "proposed",
            "nonGoals": ["x"],
            "gravitySnapshot": {"questionCount": 2},
        }
        out = Node.from_record(record).to_record()

        assert out["nonGoals"] == ["x"]
        assert out["gravitySnapshot"] == {"questionCount": 2}

    def test_edge_aliases(self) -> None:
        """Edges read and write from/to."""
        edge = Edge.from_record({"id": "e1", "from": "a", "to": "b", "stage": "committed"})

        assert edge.from_id == "a"
        assert edge.to_id == "b"
        assert edge.stage is Lifecycle.COMMITTED
        assert edge.to_record()["from"] == "a"

    def test_null_and_numeric_fields(self) -> None:
        """Nulls fall back to defaults; numbers on text fields become text."""
        node = Node.from_record(
            {
                "id": "n1",
                "type": "Requirement",
                "title": "A",
                "risk": None,
                "stage": None,
                "createdAt": 1700000000000,
                "parentId": None,
            }
        )

        assert node.risk == "medium"
        assert node.stage is Lifecycle.PROPOSED
        assert node.created_at == "1700000000000"
        assert node.parent_id is None

    def test_booleans_not_coerced(self) -> None:
        """Only real numbers are read as text; a boolean title is still invalid."""
        assert Node.from_record({"id": 7, "type": "Task", "title": "A"}).id == "7"
        with pytest.raises(ValidationError):
            Node.from_record({"id": "n1", "type": "Task", "title": True})


class TestWizardRunRecord:
    """Test WizardRun serialization."""

    def test_defaults(self) -> None:
        """A new run starts in progress on step 1 with nothing saved."""
        run = WizardRun(id="wizard:1", created_at="now")

        assert run.current_step == 1
        assert run.stage == "in_progress"
        assert not run.is_complete
        assert not run.is_step_saved(1)

    def test_round_trip_with_string_step_keys(self) -> None:
        """Step-keyed maps written as JSON (string keys) read back as ints."""
        record = WizardRun(
            id="wizard:1",
            created_at="now",
            graph_save_status={2: SaveStatus(saved=True)},
        ).to_record()
        record["graphSaveStatus"] = {str(k): v for k, v in record["graphSaveStatus"].items()}

        run = WizardRun.model_validate(record)
        assert run.is_step_saved(2)

    def test_answer_for(self) -> None:
        """answer_for returns an empty string for unanswered questions."""
        run = WizardRun.model_validate(
            {
                "id": "wizard:1",
                "createdAt": "now",
                "answers": [{"questionId": "q:1", "answer": "Buyers"}],
            }
        )
        assert run.answer_for("q:1") == "Buyers"
        assert run.answer_for("q:2") == ""


class TestAuditEventRecord:
    """Test reading audit entries in older shapes."""

    def test_to_record_writes_aliases(self) -> None:
        """Stored events carry type, action and eventType."""
        record = AuditEvent(id="1-X", type="X", created_at="t").to_record()

        assert record["type"] == record["action"] == record["eventType"] == "X"
        assert record["timestamp"] == record["createdAt"] == "t"

    def test_from_record_legacy_shape(self) -> None:
        """An entry with only action and timestamp still reads."""
        event = AuditEvent.from_record({"action": "COMMIT", "timestamp": "t", "payload": "bad"})

        assert event.type == "COMMIT"
        assert event.created_at == "t"
        assert event.payload == {}
        assert event.actor == "unknown"
        assert event.id == "t-COMMIT"
