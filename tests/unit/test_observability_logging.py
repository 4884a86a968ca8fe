"""Tests for structured logging configuration."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import pytest

import draftgraph.observability.logging as log_module
from draftgraph.observability import (
    close_file_logging,
    configure_logging,
    get_logger,
    get_logs_dir,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    yield
    close_file_logging()
    configure_logging(verbosity=0)


@pytest.mark.parametrize(
    ("verbosity", "level"),
    [(0, logging.WARNING), (1, logging.INFO), (2, logging.DEBUG), (5, logging.DEBUG)],
)
def test_verbosity_sets_root_level(verbosity: int, level: int) -> None:
    configure_logging(verbosity=verbosity)
    assert logging.getLogger().level == level


def test_get_logger_auto_configures() -> None:
    """get_logger configures defaults when nothing has been configured yet."""
    log_module._configured = False

    logger = get_logger("draftgraph.test")

    assert log_module._configured is True
    assert hasattr(logger, "info")


def test_quiet_loggers_stay_at_warning() -> None:
    configure_logging(verbosity=2)
    assert logging.getLogger("httpx").level == logging.WARNING


def test_file_logging_requires_workspace() -> None:
    with pytest.raises(ValueError, match="workspace_path"):
        configure_logging(log_to_file=True)


def test_file_logging_writes_jsonl(tmp_path: Path) -> None:
    """Events land in logs/debug.jsonl as JSON objects with their fields."""
    configure_logging(verbosity=0, log_to_file=True, workspace_path=tmp_path)
    assert get_logs_dir() == tmp_path / "logs"

    get_logger("draftgraph.test").debug("graph_merged", added_nodes=3)
    close_file_logging()

    lines = (tmp_path / "logs" / "debug.jsonl").read_text(encoding="utf-8").splitlines()
    entries = [json.loads(line) for line in lines]
    entry = next(e for e in entries if e["event"] == "graph_merged")
    assert entry["added_nodes"] == 3
    assert entry["level"] == "debug"
    assert entry["logger"] == "draftgraph.test"
    assert "timestamp" in entry


def test_reconfigure_without_file_clears_logs_dir(tmp_path: Path) -> None:
    configure_logging(log_to_file=True, workspace_path=tmp_path)
    configure_logging(verbosity=1)

    assert get_logs_dir() is None
