"""Append-only event log — claim journal and disbursement notifications.

Two streams share one JSONL file:
- Journal (CLAIM_STARTED, CLAIM_REVERTED): written around a claim's
  transfer. CLAIM_STARTED is durable before any value leaves custody, so a
  process that dies mid-claim restarts with the recipient still claimed.
- Notifications (CLAIMED, RECOVERED): written after value has moved, for
  off-line observers.

Every record carries a SHA-256 hash of its canonical JSON and is re-checked
on load. IDs are allocated by the log itself, so several distributors or
processes appending to one file never collide.
"""

from __future__ import annotations

import enum
import hashlib
import json
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

_HASHED_FIELDS = ("event_id", "event_kind", "timestamp_utc", "actor_id", "payload")


class EventKind(str, enum.Enum):
    CLAIM_STARTED = "claim_started"
    CLAIM_REVERTED = "claim_reverted"
    CLAIMED = "claimed"
    RECOVERED = "recovered"


def _canonical_hash(fields: dict[str, Any]) -> str:
    canonical = json.dumps(fields, sort_keys=True, ensure_ascii=False).encode("utf-8")
    return f"sha256:{hashlib.sha256(canonical).hexdigest()}"


@dataclass(frozen=True)
class EventRecord:
    """A single immutable log record."""
    event_id: str
    event_kind: EventKind
    timestamp_utc: str
    actor_id: str
    payload: dict[str, Any]
    event_hash: str

    @staticmethod
    def create(
        event_id: str,
        event_kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
        timestamp_utc: Optional[datetime] = None,
    ) -> EventRecord:
        ts = (timestamp_utc or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H:%M:%SZ")
        return EventRecord(
            event_id=event_id,
            event_kind=event_kind,
            timestamp_utc=ts,
            actor_id=actor_id,
            payload=payload,
            event_hash=_canonical_hash({
                "event_id": event_id,
                "event_kind": event_kind.value,
                "timestamp_utc": ts,
                "actor_id": actor_id,
                "payload": payload,
            }),
        )

    @staticmethod
    def from_dict(data: dict[str, Any]) -> EventRecord:
        """Rebuild a stored record, rejecting it if its hash does not match."""
        expected = _canonical_hash({name: data[name] for name in _HASHED_FIELDS})
        if data["event_hash"] != expected:
            raise ValueError(
                f"event {data['event_id']} stored hash {data['event_hash']} "
                f"!= computed {expected}"
            )
        return EventRecord(
            event_id=data["event_id"],
            event_kind=EventKind(data["event_kind"]),
            timestamp_utc=data["timestamp_utc"],
            actor_id=data["actor_id"],
            payload=data["payload"],
            event_hash=data["event_hash"],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_kind": self.event_kind.value,
            "timestamp_utc": self.timestamp_utc,
            "actor_id": self.actor_id,
            "payload": self.payload,
            "event_hash": self.event_hash,
        }


class EventLog:
    """Append-only record store with optional JSONL persistence.

    Usage:
        log = EventLog(storage_path=Path("data/events.jsonl"))
        log.record(EventKind.CLAIMED, recipient, {"recipient": ..., "merkle_root": ...})
        log.for_root(root_hex)        # every record of one distribution

    A record is written to disk before it becomes visible in memory; a
    failed write leaves the log unchanged and raises OSError.
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._events: list[EventRecord] = []
        self._storage_path = storage_path
        self._event_ids: set[str] = set()
        self._lock = threading.Lock()

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)

    def record(
        self,
        kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
    ) -> EventRecord:
        """Create a record with a fresh ID and append it."""
        event = EventRecord.create(
            event_id=f"EVT-{uuid.uuid4()}",
            event_kind=kind,
            actor_id=actor_id,
            payload=payload,
        )
        self.append(event)
        return event

    def append(self, event: EventRecord) -> None:
        """Append a prebuilt record.

        Raises ValueError if event_id is already in the log.
        """
        with self._lock:
            if event.event_id in self._event_ids:
                raise ValueError(f"Duplicate event ID: {event.event_id}")
            if self._storage_path:
                self._append_to_file(event)
            self._events.append(event)
            self._event_ids.add(event.event_id)

    def events(self, kind: Optional[EventKind] = None) -> list[EventRecord]:
        """Return events in append order, optionally filtered by kind."""
        if kind is None:
            return list(self._events)
        return [e for e in self._events if e.event_kind == kind]

    def for_root(self, merkle_root: str) -> list[EventRecord]:
        """Return the records written under one distribution root."""
        return [e for e in self._events if e.payload.get("merkle_root") == merkle_root]

    @property
    def count(self) -> int:
        return len(self._events)

    def _append_to_file(self, event: EventRecord) -> None:
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        with self._storage_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(event.to_dict(), sort_keys=True, ensure_ascii=False) + "\n")

    def _load_from_file(self, path: Path) -> None:
        """Load records, failing closed on a tampered or repeated record."""
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                data = json.loads(line)
                if data["event_id"] in self._event_ids:
                    raise ValueError(
                        f"Duplicate event ID on recovery (line {line_num}): {data['event_id']}"
                    )
                try:
                    event = EventRecord.from_dict(data)
                except ValueError as e:
                    raise ValueError(f"Integrity check failed (line {line_num}): {e}") from e
                self._events.append(event)
                self._event_ids.add(event.event_id)
