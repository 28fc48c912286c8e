"""Application service: Reserve Inventory use case.

Holds stock for an order.  This is the high-contention path, so the
whole load–check–reserve–persist cycle runs under the
"inventory_reservation" circuit breaker, and version conflicts are
retried against freshly loaded state.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from stockengine.application.mutation import InventoryMutationRunner, Rejected
from stockengine.application.resilience.circuit_breaker import CircuitBreaker
from stockengine.application.resilience.retry_policy import RetryPolicy
from stockengine.domain.model.inventory import DEFAULT_RESERVATION_TTL, InventoryAggregate
from stockengine.domain.model.operation import OperationKind
from stockengine.domain.repository.broadcaster import InventoryBroadcaster
from stockengine.domain.repository.inventory_repository import InventoryRepository
from stockengine.domain.repository.operation_recorder import OperationRecorder

RESERVATION_CIRCUIT = "inventory_reservation"


class InventoryReservationService:

    def __init__(
        self,
        inventory_repo: InventoryRepository,
        recorder: OperationRecorder,
        broadcaster: InventoryBroadcaster,
        breaker: CircuitBreaker,
        retry_policy: RetryPolicy | None = None,
        reservation_ttl: timedelta = DEFAULT_RESERVATION_TTL,
    ) -> None:
        self._runner = InventoryMutationRunner(
            inventory_repo,
            recorder,
            broadcaster,
            retry_policy=retry_policy,
            breaker=breaker,
        )
        self._reservation_ttl = reservation_ttl

    def reserve(
        self,
        inventory_id: str,
        amount: int,
        order_id: str,
        expires_at: datetime | None = None,
        correlation_id: str | None = None,
    ) -> bool:
        """Reserve ``amount`` units for ``order_id``.

        Returns False when the stock cannot cover the amount, when the
        circuit breaker is open, when conflicts outlast the retry budget,
        or on any unexpected error.  The reason is in the operation record.
        """
        # Resolved once so every retry carries the same expiry.
        expires_at = expires_at or datetime.now(timezone.utc) + self._reservation_ttl

        def mutate(aggregate: InventoryAggregate) -> Rejected | None:
            check = aggregate.can_fulfill(amount)
            if not check:
                return Rejected(
                    check.reason.value,
                    f"requested {amount!r}, available {check.available}",
                )
            aggregate.reserve(amount, order_id, expires_at)
            return None

        return self._runner.run(
            OperationKind.RESERVE,
            inventory_id,
            amount,
            mutate,
            correlation_id=correlation_id,
        )
