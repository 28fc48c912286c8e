"""Application service: Replenish Inventory use case."""

from __future__ import annotations

from typing import Any

from stockengine.application.mutation import InventoryMutationRunner, Rejected
from stockengine.application.resilience.retry_policy import RetryPolicy
from stockengine.domain.model.inventory import InventoryAggregate
from stockengine.domain.model.operation import OperationKind
from stockengine.domain.repository.broadcaster import InventoryBroadcaster
from stockengine.domain.repository.inventory_repository import InventoryRepository
from stockengine.domain.repository.operation_recorder import OperationRecorder


class InventoryReplenishmentService:

    def __init__(
        self,
        inventory_repo: InventoryRepository,
        recorder: OperationRecorder,
        broadcaster: InventoryBroadcaster,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._recorder = recorder
        self._runner = InventoryMutationRunner(
            inventory_repo, recorder, broadcaster, retry_policy=retry_policy
        )

    def replenish(
        self,
        inventory_id: str,
        amount: int,
        source: str = "manual",
        metadata: dict[str, Any] | None = None,
        correlation_id: str | None = None,
    ) -> bool:
        """Add ``amount`` units of new supply.

        On success a supply-chain event is recorded in addition to the
        generic operation record.
        """

        def mutate(aggregate: InventoryAggregate) -> Rejected | None:
            if not aggregate.replenish(amount, source):
                return Rejected("invalid_amount", f"requested {amount!r}")
            return None

        def record_supply(aggregate: InventoryAggregate) -> None:
            self._recorder.record_supply_chain_event(
                "replenishment",
                amount,
                source,
                {
                    **(metadata or {}),
                    "inventory_id": aggregate.id,
                    "new_on_hand": aggregate.on_hand_quantity,
                    "version": aggregate.version,
                },
            )

        return self._runner.run(
            OperationKind.REPLENISH,
            inventory_id,
            amount,
            mutate,
            correlation_id=correlation_id,
            on_success=record_supply,
        )
