import json
import threading

import pytest

from stockengine.domain.exceptions import CircuitOpenError
from stockengine.domain.model.operation import OperationKind, OperationOutcome
from stockengine.infrastructure.persistence import json_files, json_operation_recorder
from stockengine.infrastructure.persistence.json_operation_recorder import (
    JsonOperationRecorder,
)


def _open(tmp_path):
    return JsonOperationRecorder(tmp_path / "operations.json", tmp_path / "supply.json")


@pytest.fixture
def recorder(tmp_path):
    return _open(tmp_path)


class TestJsonOperationRecorder:

    def test_records_every_outcome_in_order(self, recorder):
        recorder.record_successful_operation(OperationKind.RESERVE, "sku-1", 5, "op-1")
        recorder.record_failed_operation(
            OperationKind.ALLOCATE,
            "sku-1",
            3,
            "insufficient_reserved",
            "op-2",
            detail="requested 3, reserved 0",
        )
        recorder.record_circuit_breaker_failure(
            OperationKind.RESERVE, "sku-2", 2, CircuitOpenError("inventory_reservation", 12.0), "op-3"
        )

        records = recorder.list_operations()
        assert [r.outcome for r in records] == [
            OperationOutcome.SUCCESS,
            OperationOutcome.FAILURE,
            OperationOutcome.CIRCUIT_OPEN,
        ]
        assert [r.inventory_id for r in records] == ["sku-1", "sku-1", "sku-2"]
        assert records[1].reason == "insufficient_reserved"
        assert records[2].reason == "circuit_open"
        assert records[2].detail == "inventory_reservation: circuit breaker is OPEN (retry in 12.0s)"

    def test_persists_across_instances(self, tmp_path, recorder):
        recorder.record_successful_operation(OperationKind.REPLENISH, "sku-1", 10, "op-1")

        reopened = _open(tmp_path)
        assert [r.operation_id for r in reopened.list_operations()] == ["op-1"]
        assert reopened.find_successful_operation("op-1", OperationKind.REPLENISH, "sku-1")

    def test_supply_chain_events(self, recorder):
        recorder.record_supply_chain_event("replenishment", 40, "po-1", {"inventory_id": "sku-1"})

        [event] = recorder.list_supply_chain_events()
        assert event.kind == "replenishment"
        assert event.amount == 40
        assert event.source == "po-1"
        assert event.metadata == {"inventory_id": "sku-1"}
        assert recorder.list_operations() == []


class TestFindSuccessfulOperation:

    def test_only_successes_count(self, recorder):
        recorder.record_failed_operation(
            OperationKind.RESERVE, "sku-1", 5, "insufficient_stock", "op-1"
        )
        assert recorder.find_successful_operation("op-1", OperationKind.RESERVE, "sku-1") is None

        recorder.record_successful_operation(OperationKind.RESERVE, "sku-1", 5, "op-1")
        found = recorder.find_successful_operation("op-1", OperationKind.RESERVE, "sku-1")
        assert found.amount == 5
        assert recorder.find_successful_operation("op-2", OperationKind.RESERVE, "sku-1") is None

    def test_scoped_to_kind_and_inventory(self, recorder):
        recorder.record_successful_operation(OperationKind.RESERVE, "sku-1", 5, "order-1")

        assert recorder.find_successful_operation("order-1", OperationKind.ALLOCATE, "sku-1") is None
        assert recorder.find_successful_operation("order-1", OperationKind.RESERVE, "sku-2") is None

    def test_sees_writes_from_another_recorder_on_same_file(self, tmp_path, recorder):
        recorder.list_operations()
        _open(tmp_path).record_successful_operation(OperationKind.RELEASE, "sku-1", 1, "op-9")

        assert recorder.find_successful_operation("op-9", OperationKind.RELEASE, "sku-1")

    def test_unchanged_file_is_not_reparsed(self, recorder, monkeypatch):
        recorder.record_successful_operation(OperationKind.RESERVE, "sku-1", 5, "op-1")
        reads = []
        original = json_operation_recorder.load_json

        def counting_load(path):
            reads.append(path)
            return original(path)

        monkeypatch.setattr(json_operation_recorder, "load_json", counting_load)

        for _ in range(5):
            recorder.find_successful_operation("op-1", OperationKind.RESERVE, "sku-1")
        recorder.record_failed_operation(OperationKind.RESERVE, "sku-1", 1, "invalid_amount", "op-2")
        recorder.list_operations()

        assert reads == []


class TestDurability:

    def test_failed_write_leaves_previous_trail_intact(self, tmp_path, recorder, monkeypatch):
        recorder.record_successful_operation(OperationKind.RESERVE, "sku-1", 5, "op-1")

        def crash(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(json_files.os, "replace", crash)
        with pytest.raises(OSError):
            recorder.record_successful_operation(OperationKind.RESERVE, "sku-1", 6, "op-2")
        monkeypatch.undo()

        raw = json.loads((tmp_path / "operations.json").read_text())
        assert [r["operation_id"] for r in raw] == ["op-1"]
        assert [r.operation_id for r in recorder.list_operations()] == ["op-1"]
        assert [r.operation_id for r in _open(tmp_path).list_operations()] == ["op-1"]

    def test_recorders_sharing_a_file_keep_every_append(self, tmp_path):
        first, second = _open(tmp_path), _open(tmp_path)

        def write(rec, prefix):
            for n in range(25):
                rec.record_successful_operation(OperationKind.REPLENISH, "sku-1", 1, f"{prefix}-{n}")

        threads = [
            threading.Thread(target=write, args=(first, "a")),
            threading.Thread(target=write, args=(second, "b")),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(_open(tmp_path).list_operations()) == 50
        assert len(first.list_operations()) == 50
