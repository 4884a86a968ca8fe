"""Append-only audit log.

Every event is appended as one immutable record under a single storage key.
The key is chosen once when the log is opened; :meth:`AuditLog.from_legacy_store`
reproduces the rule older workspaces rely on (keep writing to whichever
key already holds entries).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from draftgraph.graph.factory import now_ms, utc_now_iso
from draftgraph.graph.store import AUDIT_LOG_KEY, LEGACY_AUDIT_LOG_KEY
from draftgraph.models.audit import AuditEvent
from draftgraph.observability.logging import get_logger

if TYPE_CHECKING:
    from draftgraph.graph.store import PartitionStore

log = get_logger(__name__)


class AuditLog:
    """Append-only event log stored as one JSON array."""

    def __init__(self, store: PartitionStore, key: str = AUDIT_LOG_KEY, actor: str = "ai") -> None:
        self._store = store
        self._key = key
        self._actor = actor

    @classmethod
    def from_legacy_store(cls, store: PartitionStore, actor: str = "ai") -> AuditLog:
        """Open the log on the key an existing workspace already uses.

        ``draft_audit_log`` wins when it has been written; otherwise the log
        lives under ``audit_events``, whether or not that key exists yet.
        """
        key = AUDIT_LOG_KEY if store.has(AUDIT_LOG_KEY) else LEGACY_AUDIT_LOG_KEY
        log.debug("audit_log_opened", key=key)
        return cls(store, key=key, actor=actor)

    @property
    def key(self) -> str:
        return self._key

    def append(
        self,
        event_type: str,
        payload: dict[str, Any] | None = None,
        *,
        actor: str | None = None,
    ) -> AuditEvent:
        """Append one event and persist the whole log.

        Args:
            event_type: Event type tag (e.g. ``WIZARD_COMMITTED``).
            payload: Arbitrary JSON-serialisable details.
            actor: Who triggered the event (defaults to the log's actor).

        Returns:
            The recorded event.
        """
        event = AuditEvent(
            id=f"{now_ms()}-{event_type}",
            type=event_type,
            created_at=utc_now_iso(),
            payload=dict(payload or {}),
            actor=actor or self._actor,
        )
        entries = self._store.get(self._key)
        entries.append(event.to_record())
        self._store.put(self._key, entries)
        log.debug("audit_event_appended", event_type=event_type, key=self._key)
        return event

    def events(self) -> list[AuditEvent]:
        """All events in insertion order. Non-object entries are skipped."""
        return [
            AuditEvent.from_record(entry)
            for entry in self._store.get(self._key)
            if isinstance(entry, dict)
        ]

    def query(
        self,
        *,
        event_type: str | None = None,
        search: str | None = None,
        limit: int | None = None,
    ) -> list[AuditEvent]:
        """Filter events, newest first.

        Args:
            event_type: Keep only this event type.
            search: Case-insensitive substring matched against type, actor
                and the JSON payload.
            limit: Maximum number of results.

        Returns:
            Matching events, most recent first.
        """
        needle = search.lower() if search else None
        matched: list[AuditEvent] = []
        for event in reversed(self.events()):
            if event_type is not None and event.type != event_type:
                continue
            if needle is not None:
                haystack = " ".join(
                    [event.type, event.actor, event.model_dump_json(include={"payload"})]
                ).lower()
                if needle not in haystack:
                    continue
            matched.append(event)
            if limit is not None and len(matched) >= limit:
                break
        return matched

    def summary(self) -> dict[str, Any]:
        """Total event count and counts per type, most frequent first."""
        counts: dict[str, int] = {}
        events = self.events()
        for event in events:
            counts[event.type] = counts.get(event.type, 0) + 1
        return {
            "total": len(events),
            "by_type": dict(sorted(counts.items(), key=lambda item: (-item[1], item[0]))),
        }
