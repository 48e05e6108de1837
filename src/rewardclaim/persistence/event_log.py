"""Append-only event log — the durable record of every committed notification.

Each committed engine notification (root added/deprecated, fee contract
updated, claim settled) becomes one immutable event record. The log serves as:
1. The audit trail for settlements and owner actions.
2. The source of truth for rebuilding engine state after a restart.

One engine transaction is written as one batch, so a restart never sees half
of a transaction. The only removal is ``truncate``, which the service uses to
take back the batch of a transaction that aborted after it was written.
Persisted logs are verified on load: a tampered record (hash mismatch), a
duplicate event id or a torn final line fails closed.
"""

from __future__ import annotations

import enum
import hashlib
import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Sequence

logger = logging.getLogger(__name__)


class EventKind(str, enum.Enum):
    """Classification of engine notifications."""
    ROOT_ADDED = "root_added"
    ROOT_DEPRECATED = "root_deprecated"
    FEE_CONTRACT_UPDATED = "fee_contract_updated"
    CLAIM_SETTLED = "claim_settled"


def _canonical_hash(
    event_id: str,
    event_kind: str,
    timestamp_utc: str,
    actor_id: str,
    payload: dict[str, Any],
) -> str:
    canonical = json.dumps(
        {
            "event_id": event_id,
            "event_kind": event_kind,
            "timestamp_utc": timestamp_utc,
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

    ``event_hash`` is computed at creation time over the canonical JSON of
    every other field.
    """
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
        """Create a new event record with computed hash."""
        ts = timestamp_utc or datetime.now(timezone.utc)
        ts_str = ts.strftime("%Y-%m-%dT%H:%M:%SZ")
        return EventRecord(
            event_id=event_id,
            event_kind=event_kind,
            timestamp_utc=ts_str,
            actor_id=actor_id,
            payload=payload,
            event_hash=_canonical_hash(
                event_id, event_kind.value, ts_str, actor_id, payload,
            ),
        )

    def to_json_line(self) -> bytes:
        """Serialize as one newline-terminated JSONL line."""
        record = {
            "event_id": self.event_id,
            "event_kind": self.event_kind.value,
            "timestamp_utc": self.timestamp_utc,
            "actor_id": self.actor_id,
            "payload": self.payload,
            "event_hash": self.event_hash,
        }
        return (json.dumps(record, sort_keys=True, ensure_ascii=False) + "\n").encode("utf-8")

    @staticmethod
    def from_json(data: dict[str, Any]) -> EventRecord:
        return EventRecord(
            event_id=data["event_id"],
            event_kind=EventKind(data["event_kind"]),
            timestamp_utc=data["timestamp_utc"],
            actor_id=data["actor_id"],
            payload=data["payload"],
            event_hash=data["event_hash"],
        )

    def computed_hash(self) -> str:
        return _canonical_hash(
            self.event_id, self.event_kind.value, self.timestamp_utc,
            self.actor_id, self.payload,
        )


class EventLog:
    """Append-only event log with optional JSONL persistence.

    Writes are batch-atomic. ``append_batch`` writes all lines of a batch in
    a single write and fsyncs them; if anything fails the file is cut back to
    the length it had before the batch. ``truncate`` drops the newest events
    again, in memory and on disk, when the transaction that recorded them
    aborts.

    Usage:
        log = EventLog(storage_path=Path("data/events.jsonl"))
        log.append_batch([EventRecord.create("EVT-00000001", EventKind.ROOT_ADDED,
                                             owner, {"root": "0x..."})])
        settled = log.events(EventKind.CLAIM_SETTLED)
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._storage_path = storage_path
        self._records: list[EventRecord] = []
        self._record_ids: set[str] = set()
        # Byte offset at which each record's line starts in the file.
        self._line_starts: list[int] = []
        self._file_size = 0

        if storage_path is not None and storage_path.exists():
            self._recover(storage_path)

    @property
    def storage_path(self) -> Optional[Path]:
        return self._storage_path

    @property
    def count(self) -> int:
        return len(self._records)

    @property
    def last_event(self) -> Optional[EventRecord]:
        return self._records[-1] if self._records else None

    def events(self, kind: Optional[EventKind] = None) -> list[EventRecord]:
        """Return events in append order, optionally only those of ``kind``."""
        return [r for r in self._records if kind is None or r.event_kind == kind]

    def append(self, event: EventRecord) -> None:
        self.append_batch([event])

    def append_batch(self, batch: Sequence[EventRecord]) -> None:
        """Persist every event of ``batch`` or none of them.

        Raises ValueError if an event id is already logged or repeats inside
        the batch, and OSError if the file write fails. Either way the log is
        left exactly as it was.
        """
        batch = list(batch)
        seen: set[str] = set()
        for event in batch:
            if event.event_id in self._record_ids or event.event_id in seen:
                raise ValueError(f"Duplicate event ID: {event.event_id}")
            seen.add(event.event_id)
        if not batch:
            return

        starts = []
        if self._storage_path is not None:
            lines = []
            position = self._file_size
            for event in batch:
                line = event.to_json_line()
                starts.append(position)
                position += len(line)
                lines.append(line)
            self._write_all(b"".join(lines))
            self._file_size = position
        else:
            starts = [0] * len(batch)

        self._records.extend(batch)
        self._record_ids.update(seen)
        self._line_starts.extend(starts)

    def truncate(self, count: int) -> None:
        """Keep only the first ``count`` events."""
        if not 0 <= count <= len(self._records):
            raise ValueError(f"Cannot truncate {len(self._records)} events to {count}")
        if count == len(self._records):
            return
        if self._storage_path is not None:
            cut = self._line_starts[count]
            with self._storage_path.open("r+b") as f:
                f.truncate(cut)
                f.flush()
                os.fsync(f.fileno())
            self._file_size = cut
        dropped = self._records[count:]
        del self._records[count:]
        del self._line_starts[count:]
        self._record_ids.difference_update(r.event_id for r in dropped)
        logger.info("event log truncated to %d events (%d dropped)", count, len(dropped))

    def _write_all(self, data: bytes) -> None:
        path = self._storage_path
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with path.open("ab") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
        except OSError:
            self._cut_back(self._file_size)
            raise

    def _cut_back(self, size: int) -> None:
        path = self._storage_path
        if path.exists() and path.stat().st_size > size:
            with path.open("r+b") as f:
                f.truncate(size)
            logger.warning("event log write failed; %s cut back to %d bytes", path, size)

    def _recover(self, path: Path) -> None:
        """Load a persisted log, verifying every record's hash."""
        position = 0
        with path.open("rb") as f:
            for line_num, raw in enumerate(f, 1):
                start = position
                position += len(raw)
                text = raw.decode("utf-8").strip()
                if not text:
                    continue
                record = EventRecord.from_json(json.loads(text))
                if record.event_id in self._record_ids:
                    raise ValueError(
                        f"Duplicate event ID on recovery (line {line_num}): {record.event_id}"
                    )
                expected = record.computed_hash()
                if record.event_hash != expected:
                    raise ValueError(
                        f"Integrity check failed (line {line_num}): event {record.event_id} "
                        f"stored hash {record.event_hash} != computed {expected}"
                    )
                self._records.append(record)
                self._record_ids.add(record.event_id)
                self._line_starts.append(start)
        if position and not raw.endswith(b"\n"):
            raise ValueError(f"Event log {path} ends in a partial line")
        self._file_size = position
