"""Partition storage protocol and dict-based implementation.

The PartitionStore protocol is the key-value repository every engine
component is handed. Each key holds one JSON array (draft nodes, committed
edges, wizard runs, audit log, ...). Reads and writes are all-or-nothing per
key; there are no transactions across keys.

DictPartitionStore keeps everything in memory and is what tests use.
SqlitePartitionStore provides durable storage in a single ``.db`` file.
"""

from __future__ import annotations

import copy
from typing import Any, Protocol, runtime_checkable

# -- Storage keys --------------------------------------------------------------

DRAFT = "draft"
COMMITTED = "committed"
PARTITIONS = (DRAFT, COMMITTED)

WIZARD_RUNS_KEY = "wizard_runs"
RECRUITED_EXPERTS_KEY = "recruited_experts"
BASELINE_SNAPSHOTS_KEY = "baseline_snapshots"
AUDIT_LOG_KEY = "draft_audit_log"
LEGACY_AUDIT_LOG_KEY = "audit_events"


def nodes_key(partition: str) -> str:
    """Storage key of a partition's node sequence (e.g. ``draft_nodes``)."""
    _check_partition(partition)
    return f"{partition}_nodes"


def edges_key(partition: str) -> str:
    """Storage key of a partition's edge sequence (e.g. ``committed_edges``)."""
    _check_partition(partition)
    return f"{partition}_edges"


def _check_partition(partition: str) -> None:
    if partition not in PARTITIONS:
        raise ValueError(f"Unknown partition '{partition}' (expected one of {PARTITIONS})")


@runtime_checkable
class PartitionStore(Protocol):
    """Storage backend protocol.

    Implementations hold named JSON arrays. ``get`` of a missing key returns
    an empty list. Methods raise no domain-specific errors: backend failures
    (``OSError``, ``sqlite3.Error``) propagate to the caller unchanged.
    """

    def get(self, key: str) -> list[Any]:
        """Return a copy of the array stored under *key* (empty if absent)."""
        ...

    def put(self, key: str, values: list[Any]) -> None:
        """Replace the array stored under *key*."""
        ...

    def has(self, key: str) -> bool:
        """Check whether *key* has ever been written."""
        ...

    def keys(self) -> list[str]:
        """Return all stored keys."""
        ...


class DictPartitionStore:
    """In-memory store.

    Values are deep-copied on the way in and out so callers can never mutate
    stored state without a ``put``.
    """

    def __init__(self, data: dict[str, list[Any]] | None = None) -> None:
        self._data: dict[str, list[Any]] = copy.deepcopy(data) if data else {}

    def get(self, key: str) -> list[Any]:
        return copy.deepcopy(self._data.get(key, []))

    def put(self, key: str, values: list[Any]) -> None:
        self._data[key] = copy.deepcopy(list(values))

    def has(self, key: str) -> bool:
        return key in self._data

    def keys(self) -> list[str]:
        return list(self._data.keys())

    def to_dict(self) -> dict[str, list[Any]]:
        """Serialize the entire store (deep copy)."""
        return copy.deepcopy(self._data)
