"""Append-only event log — the observable record of every ledger change.

Every committed operation on a ledger or factory produces one or more
event records appended here. Events are immutable once written. The log
serves as:
1. The subscription surface for external indexers.
2. The audit trail for third-party verification.
3. The source of truth for state reconstruction (ledger replay).

Records from a failed operation never reach the log: the ledger buffers
them and appends only after the operation commits.
"""

from __future__ import annotations

import enum
import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional, Sequence


class EventKind(str, enum.Enum):
    """Classification of distributor events."""
    ROOT_PROPOSED = "root_proposed"
    ROOT_UPDATED = "root_updated"
    PENDING_ROOT_REVOKED = "pending_root_revoked"
    CLAIMED = "claimed"
    TRANSFER_UNCONFIRMED = "transfer_unconfirmed"
    TIMELOCK_UPDATED = "timelock_updated"
    UPDATER_SET = "updater_set"
    OWNER_CHANGED = "owner_changed"
    INSTANCE_CREATED = "instance_created"


def _canonical_hash(
    event_id: str,
    event_kind: str,
    timestamp_utc: str,
    emitter: str,
    actor_id: str,
    payload: dict[str, Any],
) -> str:
    canonical = json.dumps(
        {
            "event_id": event_id,
            "event_kind": event_kind,
            "timestamp_utc": timestamp_utc,
            "emitter": emitter,
            "actor_id": actor_id,
            "payload": payload,
        },
        sort_keys=True,
        ensure_ascii=False,
    ).encode("utf-8")
    return f"sha256:{hashlib.sha256(canonical).hexdigest()}"


@dataclass(frozen=True)
class EventRecord:
    """A single immutable event.

    emitter is the ledger (or factory) address the event belongs to;
    actor_id is the caller whose operation produced it. event_hash is
    computed at creation time over the canonical JSON of all other fields.
    """
    event_id: str
    event_kind: EventKind
    timestamp_utc: str
    emitter: str
    actor_id: str
    payload: dict[str, Any]
    event_hash: str

    @staticmethod
    def create(
        event_id: str,
        event_kind: EventKind,
        emitter: str,
        actor_id: str,
        payload: dict[str, Any],
        timestamp_utc: Optional[datetime] = None,
    ) -> EventRecord:
        """Create a new event record with computed hash."""
        ts = timestamp_utc or datetime.now(timezone.utc)
        ts_str = ts.strftime("%Y-%m-%dT%H:%M:%SZ")
        return EventRecord(
            event_id=event_id,
            event_kind=event_kind,
            timestamp_utc=ts_str,
            emitter=emitter,
            actor_id=actor_id,
            payload=payload,
            event_hash=_canonical_hash(
                event_id, event_kind.value, ts_str, emitter, actor_id, payload,
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_kind": self.event_kind.value,
            "timestamp_utc": self.timestamp_utc,
            "emitter": self.emitter,
            "actor_id": self.actor_id,
            "payload": self.payload,
            "event_hash": self.event_hash,
        }


Subscriber = Callable[[EventRecord], None]


class EventLog:
    """Append-only event log with optional file persistence.

    Events can only be appended, never modified or deleted.
    The log can be persisted to a JSONL file (one JSON object per line)
    and loaded back for recovery.
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._events: list[EventRecord] = []
        self._storage_path = storage_path
        self._event_ids: set[str] = set()
        self._subscribers: list[Subscriber] = []
        self._subscriber_errors: list[tuple[str, Exception]] = []

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)

    def append(self, event: EventRecord) -> None:
        """Append an event to the log and notify subscribers.

        Raises ValueError if event_id is a duplicate (replay protection).
        """
        self.append_all([event])

    def append_all(self, events: Sequence[EventRecord]) -> None:
        """Append events as one unit, then notify subscribers.

        Nothing is appended if any event_id is a duplicate or the file
        write fails. Subscriber failures never propagate: once events are
        in the log they are committed, so errors raised by subscribers are
        kept in subscriber_errors instead.
        """
        batch_ids: set[str] = set()
        for event in events:
            if event.event_id in self._event_ids or event.event_id in batch_ids:
                raise ValueError(f"Duplicate event ID: {event.event_id}")
            batch_ids.add(event.event_id)

        if self._storage_path:
            self._append_to_file(events)

        self._events.extend(events)
        self._event_ids.update(batch_ids)

        for event in events:
            self._notify(event)

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register a callback for newly appended events.

        Returns a function that removes the subscription.
        """
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    @property
    def subscriber_errors(self) -> list[tuple[str, Exception]]:
        """(event_id, exception) for every subscriber call that raised."""
        return list(self._subscriber_errors)

    def _notify(self, event: EventRecord) -> None:
        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception as exc:
                self._subscriber_errors.append((event.event_id, exc))

    def events(
        self,
        kind: Optional[EventKind] = None,
        emitter: Optional[str] = None,
    ) -> list[EventRecord]:
        """Return events, optionally filtered by kind and emitter."""
        result = self._events
        if kind is not None:
            result = [e for e in result if e.event_kind == kind]
        if emitter is not None:
            result = [e for e in result if e.emitter == emitter]
        return list(result)

    def events_since(
        self,
        since_utc: str,
        kind: Optional[EventKind] = None,
    ) -> list[EventRecord]:
        """Return events at or after a timestamp, optionally filtered by kind."""
        result = [e for e in self._events if e.timestamp_utc >= since_utc]
        if kind is not None:
            result = [e for e in result if e.event_kind == kind]
        return result

    @property
    def count(self) -> int:
        return len(self._events)

    @property
    def last_event(self) -> Optional[EventRecord]:
        return self._events[-1] if self._events else None

    def _append_to_file(self, events: Sequence[EventRecord]) -> None:
        """Append events to the JSONL file in a single write."""
        lines = "".join(
            json.dumps(event.to_dict(), sort_keys=True, ensure_ascii=False) + "\n"
            for event in events
        )
        with self._storage_path.open("a", encoding="utf-8") as f:
            f.write(lines)

    def _load_from_file(self, path: Path) -> None:
        """Load events from a JSONL file with integrity verification.

        Fail-closed: rejects tampered records (hash mismatch) and
        duplicate event IDs (replay protection on recovery).
        """
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                data = json.loads(line)

                event_id = data["event_id"]
                if event_id in self._event_ids:
                    raise ValueError(
                        f"Duplicate event ID on recovery (line {line_num}): {event_id}"
                    )

                expected_hash = _canonical_hash(
                    data["event_id"],
                    data["event_kind"],
                    data["timestamp_utc"],
                    data["emitter"],
                    data["actor_id"],
                    data["payload"],
                )
                if data["event_hash"] != expected_hash:
                    raise ValueError(
                        f"Integrity check failed (line {line_num}): event {event_id} "
                        f"stored hash {data['event_hash']} != computed {expected_hash}"
                    )

                event = EventRecord(
                    event_id=data["event_id"],
                    event_kind=EventKind(data["event_kind"]),
                    timestamp_utc=data["timestamp_utc"],
                    emitter=data["emitter"],
                    actor_id=data["actor_id"],
                    payload=data["payload"],
                    event_hash=data["event_hash"],
                )
                self._events.append(event)
                self._event_ids.add(event.event_id)
