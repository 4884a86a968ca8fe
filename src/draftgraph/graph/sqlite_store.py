"""SQLite-backed partition storage.

SqlitePartitionStore implements the PartitionStore protocol using stdlib
sqlite3. Each key is one row holding a JSON array, so every ``put`` is a
single statement: a key is either fully written or left as it was.
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS partitions (
    key        TEXT PRIMARY KEY,
    value      JSON NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);
"""


class SqlitePartitionStore:
    """SQLite key/value store of JSON arrays."""

    def __init__(
        self,
        db_path: str | Path = ":memory:",
        *,
        _conn: sqlite3.Connection | None = None,
    ) -> None:
        """Open or create a workspace database.

        Args:
            db_path: Path to ``.db`` file, or ``":memory:"`` for in-memory.
            _conn: Pre-existing connection (for testing). If provided,
                   *db_path* is ignored.
        """
        if _conn is not None:
            self._conn = _conn
            self._db_path: str = ":memory:"
        else:
            self._db_path = str(db_path) if isinstance(db_path, Path) else db_path
            if self._db_path != ":memory:":
                Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self._db_path, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.executescript(_SCHEMA)

    @property
    def db_path(self) -> str:
        return self._db_path

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def get(self, key: str) -> list[Any]:
        row = self._conn.execute(
            "SELECT value FROM partitions WHERE key = ?", (key,)
        ).fetchone()
        if row is None:
            return []
        value = json.loads(row["value"])
        return value if isinstance(value, list) else []

    def put(self, key: str, values: list[Any]) -> None:
        self._conn.execute(
            "INSERT INTO partitions (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
            "updated_at = strftime('%Y-%m-%dT%H:%M:%f','now')",
            (key, json.dumps(list(values))),
        )

    def has(self, key: str) -> bool:
        row = self._conn.execute("SELECT 1 FROM partitions WHERE key = ?", (key,)).fetchone()
        return row is not None

    def keys(self) -> list[str]:
        rows = self._conn.execute("SELECT key FROM partitions ORDER BY key").fetchall()
        return [row["key"] for row in rows]

