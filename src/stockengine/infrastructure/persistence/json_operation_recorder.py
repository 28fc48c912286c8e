"""JSON-file-backed implementation of OperationRecorder.

The audit trail is kept in memory together with an index of successes
by replay key.  The file is re-read only when its modification stamp
changes, i.e. when another recorder on the same path wrote to it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from stockengine.domain.model.operation import (
    OperationKind,
    OperationOutcome,
    OperationRecord,
    SupplyChainEvent,
)
from stockengine.domain.repository.operation_recorder import OperationRecorder
from stockengine.infrastructure.persistence.json_files import (
    ensure_file,
    file_stamp,
    load_json,
    lock_for,
    persist_json,
)


class JsonOperationRecorder(OperationRecorder):

    def __init__(self, operations_path: Path, supply_chain_path: Path) -> None:
        self._operations_path = operations_path
        self._supply_chain_path = supply_chain_path
        ensure_file(self._operations_path, "[]")
        ensure_file(self._supply_chain_path, "[]")
        self._operations_lock = lock_for(self._operations_path)
        self._supply_chain_lock = lock_for(self._supply_chain_path)

        self._records: list[OperationRecord] = []
        self._successes: dict[tuple[str, OperationKind, str], OperationRecord] = {}
        self._stamp: tuple[int, int] | None = None

    # --- OperationRecorder interface ------------------------------------------

    def record_successful_operation(
        self, kind: OperationKind, inventory_id: str, amount: int, operation_id: str
    ) -> None:
        self._append(
            OperationRecord(
                kind=kind,
                inventory_id=inventory_id,
                amount=amount,
                outcome=OperationOutcome.SUCCESS,
                operation_id=operation_id,
            )
        )

    def record_failed_operation(
        self,
        kind: OperationKind,
        inventory_id: str,
        amount: int,
        reason: str,
        operation_id: str,
        detail: str | None = None,
    ) -> None:
        self._append(
            OperationRecord(
                kind=kind,
                inventory_id=inventory_id,
                amount=amount,
                outcome=OperationOutcome.FAILURE,
                operation_id=operation_id,
                reason=reason,
                detail=detail,
            )
        )

    def record_circuit_breaker_failure(
        self,
        kind: OperationKind,
        inventory_id: str,
        amount: int,
        error: Exception,
        operation_id: str,
    ) -> None:
        self._append(
            OperationRecord(
                kind=kind,
                inventory_id=inventory_id,
                amount=amount,
                outcome=OperationOutcome.CIRCUIT_OPEN,
                operation_id=operation_id,
                reason="circuit_open",
                detail=str(error),
            )
        )

    def record_supply_chain_event(
        self, kind: str, amount: int, source: str, metadata: dict[str, Any]
    ) -> None:
        event = SupplyChainEvent(kind=kind, amount=amount, source=source, metadata=metadata)
        with self._supply_chain_lock:
            events = load_json(self._supply_chain_path)
            events.append(event.to_dict())
            persist_json(self._supply_chain_path, events)

    def find_successful_operation(
        self, operation_id: str, kind: OperationKind, inventory_id: str
    ) -> OperationRecord | None:
        with self._operations_lock:
            self._refresh()
            return self._successes.get((operation_id, kind, inventory_id))

    def list_operations(self) -> list[OperationRecord]:
        with self._operations_lock:
            self._refresh()
            return list(self._records)

    def list_supply_chain_events(self) -> list[SupplyChainEvent]:
        with self._supply_chain_lock:
            raw = load_json(self._supply_chain_path)
        return [SupplyChainEvent.from_dict(r) for r in raw]

    # --- Internal helpers -----------------------------------------------------

    def _append(self, record: OperationRecord) -> None:
        with self._operations_lock:
            self._refresh()
            persist_json(
                self._operations_path,
                [r.to_dict() for r in self._records] + [record.to_dict()],
            )
            self._stamp = file_stamp(self._operations_path)
            self._index(record)

    def _refresh(self) -> None:
        # Caller holds the operations lock.
        stamp = file_stamp(self._operations_path)
        if stamp == self._stamp:
            return
        self._records = []
        self._successes = {}
        for raw in load_json(self._operations_path):
            self._index(OperationRecord.from_dict(raw))
        self._stamp = stamp

    def _index(self, record: OperationRecord) -> None:
        self._records.append(record)
        if record.outcome is OperationOutcome.SUCCESS:
            self._successes.setdefault(record.replay_key, record)
