"""JSON-file-backed implementation of InventoryRepository.

Snapshots live in one file and the committed event stream in another.
Writes are version-checked and serialized by a lock per file, so two
repositories opened on the same path within a process never interleave.
Concurrent writers in separate processes are not coordinated.

The event stream is authoritative.  A crash between the two writes of
``apply_events`` leaves the stream ahead of its snapshot; the next write
to that record notices, rebuilds the snapshot from the stream and fails
with ``VersionConflict`` so the caller retries on the rebuilt state.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import structlog

from stockengine.domain.exceptions import VersionConflict
from stockengine.domain.model.events import DomainEvent
from stockengine.domain.model.inventory import InventoryAggregate
from stockengine.domain.repository.inventory_repository import InventoryRepository
from stockengine.infrastructure.persistence.json_files import (
    ensure_file,
    load_json,
    lock_for,
    persist_json,
)

logger = structlog.get_logger(__name__)


class JsonInventoryRepository(InventoryRepository):

    def __init__(self, snapshot_path: Path, events_path: Path) -> None:
        self._snapshot_path = snapshot_path
        self._events_path = events_path
        ensure_file(self._snapshot_path, "{}")
        ensure_file(self._events_path, "[]")
        self._lock = lock_for(self._snapshot_path)

    # --- InventoryRepository interface ----------------------------------------

    def load_or_create(self, inventory_id: str) -> InventoryAggregate:
        with self._lock:
            raw = load_json(self._snapshot_path).get(inventory_id)
        if raw is None:
            return InventoryAggregate(id=inventory_id)
        return self._to_domain(raw)

    def apply_events(self, aggregate: InventoryAggregate) -> None:
        if not aggregate.uncommitted_events:
            return

        with self._lock:
            snapshots = load_json(self._snapshot_path)
            events = load_json(self._events_path)
            stored = snapshots.get(aggregate.id)
            stored_version = stored["version"] if stored else 0

            stream = [e for e in events if e["aggregate_id"] == aggregate.id]
            stream_version = max((e["version"] for e in stream), default=0)
            if stream_version > stored_version:
                self._rebuild_snapshot(snapshots, aggregate.id, stream, stored_version)
                stored_version = stream_version

            if stored_version != aggregate.persisted_version:
                raise VersionConflict(aggregate.id, aggregate.persisted_version, stored_version)

            events.extend(e.to_dict() for e in aggregate.uncommitted_events)
            snapshots[aggregate.id] = self._to_raw(aggregate)

            # Events first: a crash between the two writes leaves a stream
            # that is ahead of its snapshot, never behind it.
            persist_json(self._events_path, events)
            persist_json(self._snapshot_path, snapshots)

        committed = aggregate.mark_events_committed()
        logger.debug(
            "Inventory events committed",
            inventory_id=aggregate.id,
            count=len(committed),
            version=aggregate.version,
        )

    def list_all(self) -> list[InventoryAggregate]:
        with self._lock:
            snapshots = load_json(self._snapshot_path)
        return [self._to_domain(raw) for raw in snapshots.values()]

    def events_for(self, inventory_id: str) -> list[DomainEvent]:
        with self._lock:
            raw_events = load_json(self._events_path)
        events = [
            DomainEvent.from_dict(raw)
            for raw in raw_events
            if raw["aggregate_id"] == inventory_id
        ]
        return sorted(events, key=lambda e: e.version)

    # --- Recovery -------------------------------------------------------------

    def _rebuild_snapshot(
        self,
        snapshots: dict[str, dict],
        inventory_id: str,
        stream: list[dict],
        stale_version: int,
    ) -> None:
        # Caller holds the lock.
        rebuilt = InventoryAggregate.from_events(
            inventory_id,
            sorted((DomainEvent.from_dict(raw) for raw in stream), key=lambda e: e.version),
        )
        snapshots[inventory_id] = self._to_raw(rebuilt)
        persist_json(self._snapshot_path, snapshots)
        logger.warning(
            "Inventory snapshot out of step with event stream; rebuilt",
            inventory_id=inventory_id,
            snapshot_version=stale_version,
            stream_version=rebuilt.version,
        )

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(aggregate: InventoryAggregate) -> dict:
        return {
            "id": aggregate.id,
            "on_hand_quantity": aggregate.on_hand_quantity,
            "reserved_quantity": aggregate.reserved_quantity,
            "version": aggregate.version,
            "created_at": aggregate.created_at.isoformat(),
            "updated_at": aggregate.updated_at.isoformat(),
        }

    @staticmethod
    def _to_domain(raw: dict) -> InventoryAggregate:
        return InventoryAggregate(
            id=raw["id"],
            on_hand_quantity=raw["on_hand_quantity"],
            reserved_quantity=raw.get("reserved_quantity", 0),
            version=raw["version"],
            created_at=datetime.fromisoformat(raw["created_at"]),
            updated_at=datetime.fromisoformat(raw["updated_at"]),
        )
