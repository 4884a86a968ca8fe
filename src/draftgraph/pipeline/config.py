"""Workspace configuration loading."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path  # noqa: TC003 - used at runtime
from typing import TYPE_CHECKING, Any

from ruamel.yaml import YAML

if TYPE_CHECKING:
    from draftgraph.graph.store import PartitionStore

CONFIG_FILE_NAME = "workspace.yaml"

# Default configuration values
DEFAULT_STORAGE = "sqlite"
DEFAULT_DATABASE = "workspace.db"
DEFAULT_DRAFT_TIMEOUT = 15.0
DEFAULT_ACTOR = "founder"
STORAGE_BACKENDS = ("sqlite", "memory")

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


@dataclass
class DraftServiceConfig:
    """Configuration for the AI draft service.

    Resolution order for each field:
    1. Environment variable (``DG_DRAFT_URL``, ``DG_DRAFT_TIMEOUT``,
       ``DG_FORCE_MOCK``)
    2. Workspace config (``draft_service.*``)
    3. Default

    Attributes:
        url: Endpoint of the HTTP draft service. None selects the mock.
        timeout: Seconds before a draft call is abandoned.
        force_mock: Always use the deterministic mock.
    """

    url: str | None = None
    timeout: float = DEFAULT_DRAFT_TIMEOUT
    force_mock: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DraftServiceConfig:
        """Create config from dictionary, applying environment overrides.

        Args:
            data: Dictionary with url, timeout, force_mock fields.

        Returns:
            DraftServiceConfig instance.

        Raises:
            ValueError: If timeout is not a positive number.
        """
        url = os.getenv("DG_DRAFT_URL") or data.get("url") or None
        raw_timeout = os.getenv("DG_DRAFT_TIMEOUT") or data.get("timeout", DEFAULT_DRAFT_TIMEOUT)
        timeout = float(raw_timeout)
        if timeout <= 0:
            raise ValueError(f"draft_service.timeout must be positive, got {raw_timeout}")
        env_force = os.getenv("DG_FORCE_MOCK")
        if env_force is not None:
            force_mock = env_force.strip().lower() in _TRUE_VALUES
        else:
            force_mock = bool(data.get("force_mock", False))
        return cls(url=url, timeout=timeout, force_mock=force_mock)


@dataclass
class WorkspaceConfig:
    """Configuration for a draftgraph workspace."""

    name: str
    storage: str = DEFAULT_STORAGE
    database: str = DEFAULT_DATABASE
    actor: str = DEFAULT_ACTOR
    draft_service: DraftServiceConfig = field(default_factory=DraftServiceConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkspaceConfig:
        """Create config from dictionary.

        Args:
            data: Dictionary containing config fields.

        Returns:
            WorkspaceConfig instance.

        Raises:
            ValueError: If a field has an unsupported value.
        """
        storage = data.get("storage", DEFAULT_STORAGE)
        if storage not in STORAGE_BACKENDS:
            choices = ", ".join(STORAGE_BACKENDS)
            raise ValueError(f"storage must be one of {choices}, got {storage!r}")
        draft_data = data.get("draft_service") or {}
        if not isinstance(draft_data, dict):
            raise ValueError("draft_service must be a mapping")
        return cls(
            name=str(data.get("name", "unnamed")),
            storage=storage,
            database=str(data.get("database", DEFAULT_DATABASE)),
            actor=str(data.get("actor", DEFAULT_ACTOR)),
            draft_service=DraftServiceConfig.from_dict(dict(draft_data)),
        )

    def to_dict(self) -> dict[str, Any]:
        draft: dict[str, Any] = {
            "timeout": self.draft_service.timeout,
            "force_mock": self.draft_service.force_mock,
        }
        if self.draft_service.url:
            draft["url"] = self.draft_service.url
        return {
            "name": self.name,
            "storage": self.storage,
            "database": self.database,
            "actor": self.actor,
            "draft_service": draft,
        }


class WorkspaceConfigError(Exception):
    """Raised when workspace configuration cannot be loaded."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load workspace config at {path}: {reason}")


def load_workspace_config(workspace_path: Path) -> WorkspaceConfig:
    """Load workspace configuration from workspace.yaml.

    Args:
        workspace_path: Path to the workspace directory.

    Returns:
        WorkspaceConfig instance.

    Raises:
        WorkspaceConfigError: If config cannot be loaded.
    """
    config_path = workspace_path / CONFIG_FILE_NAME

    if not config_path.exists():
        raise WorkspaceConfigError(config_path, "File not found")

    yaml = YAML()
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)

        if data is None:
            raise WorkspaceConfigError(config_path, "Empty file")
        if not isinstance(data, dict):
            raise WorkspaceConfigError(config_path, "Top-level value must be a mapping")

        return WorkspaceConfig.from_dict(dict(data))
    except Exception as e:
        if isinstance(e, WorkspaceConfigError):
            raise
        raise WorkspaceConfigError(config_path, str(e)) from e


def create_default_config(name: str) -> WorkspaceConfig:
    """Create a default workspace configuration.

    Environment overrides are applied the same way as when loading.
    """
    return WorkspaceConfig(name=name, draft_service=DraftServiceConfig.from_dict({}))


def write_default_config(workspace_path: Path, name: str) -> Path:
    """Write a default workspace.yaml into *workspace_path*.

    Args:
        workspace_path: Workspace directory (created if missing).
        name: Workspace name.

    Returns:
        Path to the written config file.
    """
    workspace_path.mkdir(parents=True, exist_ok=True)
    config_path = workspace_path / CONFIG_FILE_NAME
    data = WorkspaceConfig(name=name).to_dict()
    yaml = YAML()
    yaml.default_flow_style = False
    with config_path.open("w", encoding="utf-8") as f:
        yaml.dump(data, f)
    return config_path


def open_store(config: WorkspaceConfig, workspace_path: Path) -> PartitionStore:
    """Open the storage backend named by *config*.

    ``sqlite`` opens (or creates) ``{workspace}/{database}``; ``memory``
    returns an empty in-memory store.
    """
    from draftgraph.graph.sqlite_store import SqlitePartitionStore
    from draftgraph.graph.store import DictPartitionStore

    if config.storage == "memory":
        return DictPartitionStore()
    return SqlitePartitionStore(workspace_path / config.database)
