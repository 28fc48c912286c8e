"""Shared load–mutate–persist–record loop for inventory services.

Every inventory service follows the same shape: load the aggregate,
apply one mutation, persist it with a version check, retry on conflict,
then record the outcome and broadcast.  The runner is composed into each
service rather than inherited, and a service that guards its backend with
a circuit breaker passes the breaker in.

Nothing raised inside ``run`` escapes it: every failure becomes ``False``
plus an audit record.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Callable

import structlog

from stockengine.application.resilience.circuit_breaker import CircuitBreaker
from stockengine.application.resilience.retry_policy import RetryPolicy
from stockengine.domain.exceptions import CircuitOpenError, VersionConflict
from stockengine.domain.model.inventory import InventoryAggregate
from stockengine.domain.model.operation import OperationKind
from stockengine.domain.repository.broadcaster import InventoryBroadcaster
from stockengine.domain.repository.inventory_repository import InventoryRepository
from stockengine.domain.repository.operation_recorder import OperationRecorder

logger = structlog.get_logger(__name__)

OPERATION_ID_CONFLICT = "operation_id_conflict"


@dataclass(frozen=True)
class Rejected:
    """A mutation the aggregate refused; recorded as a failure, never retried."""

    reason: str
    detail: str | None = None


Mutation = Callable[[InventoryAggregate], "Rejected | None"]


class InventoryMutationRunner:

    def __init__(
        self,
        inventory_repo: InventoryRepository,
        recorder: OperationRecorder,
        broadcaster: InventoryBroadcaster,
        retry_policy: RetryPolicy | None = None,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        self._inventory_repo = inventory_repo
        self._recorder = recorder
        self._broadcaster = broadcaster
        self._retry_policy = retry_policy or RetryPolicy()
        self._breaker = breaker

    def run(
        self,
        kind: OperationKind,
        inventory_id: str,
        amount: int,
        mutate: Mutation,
        correlation_id: str | None = None,
        on_success: Callable[[InventoryAggregate], None] | None = None,
    ) -> bool:
        operation_id = correlation_id or uuid.uuid4().hex
        with structlog.contextvars.bound_contextvars(
            operation_id=operation_id,
            inventory_id=inventory_id,
            operation=kind.value,
        ):
            try:
                return self._run(kind, inventory_id, amount, mutate, operation_id, on_success)
            except Exception as exc:
                logger.exception("Inventory operation failed unexpectedly", amount=amount)
                self._guarded(
                    self._recorder.record_failed_operation,
                    kind,
                    inventory_id,
                    amount,
                    "exception",
                    operation_id,
                    detail=f"{type(exc).__name__}: {exc}",
                )
                return False

    # --- Internal helpers -----------------------------------------------------

    def _run(
        self,
        kind: OperationKind,
        inventory_id: str,
        amount: int,
        mutate: Mutation,
        operation_id: str,
        on_success: Callable[[InventoryAggregate], None] | None,
    ) -> bool:
        previous = self._recorder.find_successful_operation(operation_id, kind, inventory_id)
        if previous is not None:
            if previous.amount != amount:
                logger.warning(
                    "Operation id reused with a different amount",
                    amount=amount,
                    applied_amount=previous.amount,
                )
                self._guarded(
                    self._recorder.record_failed_operation,
                    kind,
                    inventory_id,
                    amount,
                    OPERATION_ID_CONFLICT,
                    operation_id,
                    detail=f"already applied with amount {previous.amount}",
                )
                return False
            logger.info("Duplicate operation ignored", amount=amount)
            return True

        def attempt() -> InventoryAggregate | Rejected:
            aggregate = self._inventory_repo.load_or_create(inventory_id)
            rejection = mutate(aggregate)
            if rejection is not None:
                return rejection
            self._inventory_repo.apply_events(aggregate)
            return aggregate

        try:
            if self._breaker is None:
                result = self._retry_policy.run(attempt)
            else:
                result = self._breaker.execute(lambda: self._retry_policy.run(attempt))
        except CircuitOpenError as exc:
            logger.warning("Circuit breaker refused operation", amount=amount, error=str(exc))
            self._guarded(
                self._recorder.record_circuit_breaker_failure,
                kind,
                inventory_id,
                amount,
                exc,
                operation_id,
            )
            return False

        if not result.ok:
            logger.warning(
                "Giving up after version conflicts",
                amount=amount,
                attempts=result.attempts,
                status=result.status.value,
            )
            self._guarded(
                self._recorder.record_failed_operation,
                kind,
                inventory_id,
                amount,
                VersionConflict.reason,
                operation_id,
                detail=f"{result.status.value} after {result.attempts} attempt(s): {result.conflict}",
            )
            return False

        if isinstance(result.value, Rejected):
            logger.info(
                "Inventory operation rejected",
                amount=amount,
                reason=result.value.reason,
            )
            self._guarded(
                self._recorder.record_failed_operation,
                kind,
                inventory_id,
                amount,
                result.value.reason,
                operation_id,
                detail=result.value.detail,
            )
            return False

        aggregate = result.value
        logger.info(
            "Inventory operation applied",
            amount=amount,
            attempts=result.attempts,
            version=aggregate.version,
            on_hand=aggregate.on_hand_quantity,
            reserved=aggregate.reserved_quantity,
        )
        self._guarded(
            self._recorder.record_successful_operation, kind, inventory_id, amount, operation_id
        )
        if on_success is not None:
            self._guarded(on_success, aggregate)
        self._guarded(self._broadcaster.broadcast_inventory_update, aggregate)
        return True

    @staticmethod
    def _guarded(call: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        # Audit and notification side effects never decide the outcome.
        try:
            call(*args, **kwargs)
        except Exception:
            logger.exception("Side effect failed", call=getattr(call, "__name__", repr(call)))
