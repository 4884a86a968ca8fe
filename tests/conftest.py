"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest

from draftgraph.graph.store import DictPartitionStore
from draftgraph.providers.base import DraftServiceError
from draftgraph.providers.mock import MockDraftService

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(autouse=True)
def clean_draft_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep draft service overrides from the developer's shell out of tests."""
    for name in ("DG_DRAFT_URL", "DG_DRAFT_TIMEOUT", "DG_FORCE_MOCK", "DG_WORKSPACE"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def store() -> DictPartitionStore:
    """Empty in-memory partition store."""
    return DictPartitionStore()


@pytest.fixture
def mock_service() -> MockDraftService:
    """Deterministic draft service."""
    return MockDraftService()


@pytest.fixture
def failing_service() -> AsyncMock:
    """Draft service whose every call fails."""
    service = AsyncMock()
    service.generate.side_effect = DraftServiceError("connection", "Draft service unreachable")
    return service


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Workspace directory with a default workspace.yaml (mock drafting)."""
    from draftgraph.pipeline.config import write_default_config

    path = tmp_path / "ws"
    write_default_config(path, "ws")
    return path
