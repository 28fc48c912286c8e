"""Application service: Allocate Inventory use case.

Converts a reservation into shipped stock: on-hand and reserved both
drop by the allocated amount.  Fails closed when the reserved balance
cannot cover the request.
"""

from __future__ import annotations

from stockengine.application.mutation import InventoryMutationRunner, Rejected
from stockengine.application.resilience.retry_policy import RetryPolicy
from stockengine.domain.model.inventory import InventoryAggregate
from stockengine.domain.model.operation import OperationKind
from stockengine.domain.model.value_objects import Quantity
from stockengine.domain.repository.broadcaster import InventoryBroadcaster
from stockengine.domain.repository.inventory_repository import InventoryRepository
from stockengine.domain.repository.operation_recorder import OperationRecorder


class InventoryAllocationService:

    def __init__(
        self,
        inventory_repo: InventoryRepository,
        recorder: OperationRecorder,
        broadcaster: InventoryBroadcaster,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._runner = InventoryMutationRunner(
            inventory_repo, recorder, broadcaster, retry_policy=retry_policy
        )

    def allocate(
        self,
        inventory_id: str,
        amount: int,
        order_id: str,
        shipment_id: str | None = None,
        correlation_id: str | None = None,
    ) -> bool:

        def mutate(aggregate: InventoryAggregate) -> Rejected | None:
            if not Quantity.is_valid(amount):
                return Rejected("invalid_amount", f"requested {amount!r}")
            if not aggregate.allocate(amount, order_id, shipment_id):
                return Rejected(
                    "insufficient_reserved",
                    f"requested {amount}, reserved {aggregate.reserved_quantity}",
                )
            return None

        return self._runner.run(
            OperationKind.ALLOCATE,
            inventory_id,
            amount,
            mutate,
            correlation_id=correlation_id,
        )
