"""Application service: Show Inventory use cases (queries)."""

from __future__ import annotations

from dataclasses import dataclass

from stockengine.domain.exceptions import EntityNotFoundError
from stockengine.domain.repository.inventory_repository import InventoryRepository


@dataclass(frozen=True)
class InventoryLineDTO:
    inventory_id: str
    on_hand: int
    reserved: int
    available: int
    version: int


@dataclass(frozen=True)
class InventoryEventDTO:
    version: int
    kind: str
    amount: int
    occurred_at: str
    order_id: str | None
    detail: str


class ShowInventoryHandler:

    def __init__(self, inventory_repo: InventoryRepository) -> None:
        self._inventory_repo = inventory_repo

    def handle(self) -> list[InventoryLineDTO]:
        items = self._inventory_repo.list_all()
        return [
            InventoryLineDTO(
                inventory_id=item.id,
                on_hand=item.on_hand_quantity,
                reserved=item.reserved_quantity,
                available=item.available_quantity,
                version=item.version,
            )
            for item in sorted(items, key=lambda i: i.id)
        ]


class ShowInventoryHistoryHandler:

    def __init__(self, inventory_repo: InventoryRepository) -> None:
        self._inventory_repo = inventory_repo

    def handle(self, inventory_id: str) -> list[InventoryEventDTO]:
        events = self._inventory_repo.events_for(inventory_id)
        if not events and self._inventory_repo.load_or_create(inventory_id).version == 0:
            raise EntityNotFoundError(f"Inventory '{inventory_id}' not found")

        return [
            InventoryEventDTO(
                version=event.version,
                kind=event.kind.value,
                amount=event.amount,
                occurred_at=event.occurred_at.isoformat(timespec="seconds"),
                order_id=event.payload.get("order_id"),
                detail=", ".join(
                    f"{k}={v}"
                    for k, v in sorted(event.payload.items())
                    if k != "order_id" and v is not None
                ),
            )
            for event in events
        ]
