"""Application service: Release Inventory use case.

Gives reserved stock back to the available pool, e.g. on order
cancellation or when an expiry sweeper finds a stale reservation.
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


class InventoryReleaseService:

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

    def release(
        self,
        inventory_id: str,
        amount: int,
        order_id: str | None = None,
        correlation_id: str | None = None,
    ) -> bool:
        """Release up to ``amount`` reserved units.

        The amount is clamped to what is currently reserved, so releasing
        more than is held releases everything that is held.
        """

        def mutate(aggregate: InventoryAggregate) -> Rejected | None:
            if not Quantity.is_valid(amount):
                return Rejected("invalid_amount", f"requested {amount!r}")
            if aggregate.reserved_quantity <= 0:
                return Rejected("nothing_reserved", "no stock is currently reserved")
            aggregate.release(amount, order_id)
            return None

        return self._runner.run(
            OperationKind.RELEASE,
            inventory_id,
            amount,
            mutate,
            correlation_id=correlation_id,
        )
