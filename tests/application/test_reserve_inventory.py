"""Integration tests for the ReserveInventory use case."""

import threading
from datetime import datetime, timezone

from stockengine.application.reserve_inventory import (
    RESERVATION_CIRCUIT,
    InventoryReservationService,
)
from stockengine.application.resilience.circuit_breaker import CircuitBreaker, CircuitState
from stockengine.application.resilience.retry_policy import NoBackoff, RetryPolicy
from stockengine.domain.model.events import EventKind
from stockengine.domain.model.inventory import InventoryAggregate
from stockengine.domain.model.operation import OperationKind, OperationOutcome
from tests.fakes import (
    ConflictingInventoryRepository,
    FailingInventoryRepository,
    FakeBroadcaster,
    FakeClock,
    FakeInventoryRepository,
    FakeOperationRecorder,
)


def _setup(repo=None, broadcaster=None, max_attempts=3, failure_threshold=5):
    repo = repo or FakeInventoryRepository(
        [InventoryAggregate(id="sku-1", on_hand_quantity=100)]
    )
    recorder = FakeOperationRecorder()
    broadcaster = broadcaster or FakeBroadcaster()
    clock = FakeClock()
    breaker = CircuitBreaker(
        RESERVATION_CIRCUIT,
        failure_threshold=failure_threshold,
        recovery_timeout=30,
        clock=clock,
    )
    service = InventoryReservationService(
        repo,
        recorder,
        broadcaster,
        breaker,
        retry_policy=RetryPolicy(max_attempts=max_attempts, backoff=NoBackoff()),
    )
    return service, repo, recorder, broadcaster, breaker, clock


class TestReserveHappyPath:

    def test_reserve_persists_records_and_broadcasts(self):
        service, repo, recorder, broadcaster, _, _ = _setup()

        assert service.reserve("sku-1", 30, order_id="1", correlation_id="op-1")

        stored = repo.get("sku-1")
        assert stored.reserved_quantity == 30
        assert stored.version == 1
        assert [e.kind for e in repo.events_for("sku-1")] == [EventKind.RESERVED]
        assert recorder.last.outcome is OperationOutcome.SUCCESS
        assert recorder.last.kind is OperationKind.RESERVE
        assert recorder.last.operation_id == "op-1"
        assert broadcaster.updates == [("sku-1", 1)]

    def test_unknown_inventory_starts_empty(self):
        service, repo, recorder, _, _, _ = _setup()

        assert not service.reserve("sku-new", 1, order_id="1")
        assert recorder.last.reason == "insufficient_stock"

    def test_explicit_expiry_is_kept(self):
        service, repo, _, _, _, _ = _setup()
        expires = datetime(2030, 6, 1, tzinfo=timezone.utc)

        service.reserve("sku-1", 5, order_id="1", expires_at=expires)

        [event] = repo.events_for("sku-1")
        assert event.payload["expires_at"] == expires.isoformat()

    def test_correlation_id_generated_when_missing(self):
        service, _, recorder, _, _, _ = _setup()
        service.reserve("sku-1", 5, order_id="1")
        assert recorder.last.operation_id


class TestReserveRejections:

    def test_scenario_a_over_reservation_fails_and_is_recorded(self):
        service, repo, recorder, broadcaster, _, _ = _setup()

        assert service.reserve("sku-1", 30, order_id="1")
        assert not service.reserve("sku-1", 80, order_id="2")

        assert repo.get("sku-1").reserved_quantity == 30
        assert recorder.last.outcome is OperationOutcome.FAILURE
        assert recorder.last.reason == "insufficient_stock"
        assert recorder.last.detail == "requested 80, available 70"
        assert len(broadcaster.updates) == 1

    def test_invalid_amount(self):
        service, repo, recorder, _, _, _ = _setup()

        assert not service.reserve("sku-1", 0, order_id="1")
        assert not service.reserve("sku-1", -5, order_id="1")

        assert recorder.last.reason == "invalid_amount"
        assert repo.writes == 0

    def test_rejections_do_not_trip_the_breaker(self):
        service, _, _, _, breaker, _ = _setup(failure_threshold=1)

        for _ in range(3):
            assert not service.reserve("sku-1", 500, order_id="1")

        assert breaker.state is CircuitState.CLOSED


class TestReserveConcurrency:

    def test_conflict_is_retried_against_fresh_state(self):
        repo = ConflictingInventoryRepository(
            [InventoryAggregate(id="sku-1", on_hand_quantity=100)],
            conflicts=1,
            interloper=lambda stored: stored.reserve(90, "other"),
        )
        service, _, recorder, _, _, _ = _setup(repo=repo)

        assert not service.reserve("sku-1", 20, order_id="1")

        assert repo.loads == 2
        assert recorder.last.reason == "insufficient_stock"
        assert repo.get("sku-1").reserved_quantity == 90

    def test_conflict_then_success(self):
        repo = ConflictingInventoryRepository(
            [InventoryAggregate(id="sku-1", on_hand_quantity=100)], conflicts=2
        )
        service, _, recorder, _, _, _ = _setup(repo=repo)

        assert service.reserve("sku-1", 20, order_id="1")
        assert repo.loads == 3
        assert recorder.last.outcome is OperationOutcome.SUCCESS

    def test_exhausted_retries_recorded_as_conflict(self):
        repo = ConflictingInventoryRepository(
            [InventoryAggregate(id="sku-1", on_hand_quantity=100)], conflicts=10
        )
        service, _, recorder, broadcaster, breaker, _ = _setup(repo=repo, max_attempts=3)

        assert not service.reserve("sku-1", 20, order_id="1")

        assert repo.loads == 3
        assert recorder.last.reason == "concurrency_conflict"
        assert recorder.last.detail.startswith("exhausted after 3 attempt(s)")
        assert broadcaster.updates == []
        assert breaker.state is CircuitState.CLOSED

    def test_parallel_reservations_never_oversell(self):
        repo = FakeInventoryRepository([InventoryAggregate(id="sku-1", on_hand_quantity=100)])
        service, _, recorder, _, _, _ = _setup(repo=repo, max_attempts=50)
        results = []
        lock = threading.Lock()

        def worker(n):
            ok = service.reserve("sku-1", 15, order_id=str(n))
            with lock:
                results.append(ok)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        stored = repo.get("sku-1")
        successes = results.count(True)
        assert len(results) == 10
        assert stored.reserved_quantity == 15 * successes
        assert stored.reserved_quantity <= stored.on_hand_quantity
        assert successes <= 6
        assert stored.version == successes
        for record in recorder.operations:
            if record.outcome is OperationOutcome.FAILURE:
                assert record.reason in {"insufficient_stock", "concurrency_conflict"}


class TestReserveCircuitBreaker:

    def test_scenario_c_open_breaker_fails_fast(self):
        repo = FailingInventoryRepository([InventoryAggregate(id="sku-1", on_hand_quantity=100)])
        service, _, recorder, _, breaker, _ = _setup(repo=repo, failure_threshold=2)

        assert not service.reserve("sku-1", 5, order_id="1")
        assert not service.reserve("sku-1", 5, order_id="2")
        assert [r.reason for r in recorder.operations] == ["exception", "exception"]
        assert recorder.last.detail == "ConnectionError: inventory store unavailable"
        assert breaker.state is CircuitState.OPEN

        assert not service.reserve("sku-1", 5, order_id="3")

        assert repo.loads == 2
        assert recorder.last.outcome is OperationOutcome.CIRCUIT_OPEN
        assert recorder.last.reason == "circuit_open"

    def test_scenario_d_recovery_after_timeout(self):
        repo = FailingInventoryRepository([InventoryAggregate(id="sku-1", on_hand_quantity=100)])
        service, _, recorder, _, breaker, clock = _setup(repo=repo, failure_threshold=2)
        service.reserve("sku-1", 5, order_id="1")
        service.reserve("sku-1", 5, order_id="2")

        repo.healthy = True
        clock.advance(30)

        # first call after the timeout only moves the breaker to half-open
        assert not service.reserve("sku-1", 5, order_id="3")
        assert recorder.last.outcome is OperationOutcome.CIRCUIT_OPEN
        assert "HALF_OPEN" in recorder.last.detail
        assert breaker.state is CircuitState.HALF_OPEN

        assert service.reserve("sku-1", 5, order_id="4")
        assert breaker.state is CircuitState.CLOSED
        assert repo.get("sku-1").reserved_quantity == 5

    def test_failed_trial_reopens(self):
        repo = FailingInventoryRepository([InventoryAggregate(id="sku-1", on_hand_quantity=100)])
        service, _, _, _, breaker, clock = _setup(repo=repo, failure_threshold=1)
        service.reserve("sku-1", 5, order_id="1")
        clock.advance(30)
        service.reserve("sku-1", 5, order_id="2")

        assert not service.reserve("sku-1", 5, order_id="3")
        assert breaker.state is CircuitState.OPEN


class TestReserveSideEffects:

    def test_broadcast_failure_does_not_fail_operation(self):
        service, repo, recorder, _, _, _ = _setup(broadcaster=FakeBroadcaster(fail=True))

        assert service.reserve("sku-1", 10, order_id="1")

        assert repo.get("sku-1").reserved_quantity == 10
        assert recorder.last.outcome is OperationOutcome.SUCCESS

    def test_replayed_operation_id_is_applied_once(self):
        service, repo, recorder, broadcaster, _, _ = _setup()

        assert service.reserve("sku-1", 10, order_id="1", correlation_id="op-7")
        assert service.reserve("sku-1", 10, order_id="1", correlation_id="op-7")

        assert repo.get("sku-1").reserved_quantity == 10
        assert repo.writes == 1
        assert len(recorder.operations) == 1
        assert len(broadcaster.updates) == 1

    def test_failed_operation_id_can_be_retried(self):
        service, repo, _, _, _, _ = _setup()

        assert not service.reserve("sku-1", 500, order_id="1", correlation_id="op-8")
        assert service.reserve("sku-1", 50, order_id="1", correlation_id="op-8")
        assert repo.get("sku-1").reserved_quantity == 50

    def test_same_key_on_another_record_is_applied(self):
        repo = FakeInventoryRepository(
            [
                InventoryAggregate(id="sku-1", on_hand_quantity=100),
                InventoryAggregate(id="sku-2", on_hand_quantity=100),
            ]
        )
        service, _, recorder, _, _, _ = _setup(repo=repo)

        assert service.reserve("sku-1", 5, order_id="1", correlation_id="order-1")
        assert service.reserve("sku-2", 5, order_id="1", correlation_id="order-1")

        assert repo.get("sku-1").reserved_quantity == 5
        assert repo.get("sku-2").reserved_quantity == 5
        assert [r.inventory_id for r in recorder.operations] == ["sku-1", "sku-2"]

    def test_same_key_with_different_amount_is_refused(self):
        service, repo, recorder, broadcaster, _, _ = _setup()

        assert service.reserve("sku-1", 10, order_id="1", correlation_id="op-3")
        assert not service.reserve("sku-1", 25, order_id="1", correlation_id="op-3")

        assert repo.get("sku-1").reserved_quantity == 10
        assert repo.writes == 1
        assert recorder.last.outcome is OperationOutcome.FAILURE
        assert recorder.last.reason == "operation_id_conflict"
        assert recorder.last.detail == "already applied with amount 10"
        assert len(broadcaster.updates) == 1
