"""In-process broadcaster: logs each update and fans it out to subscribers."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable

import structlog

from stockengine.domain.model.inventory import InventoryAggregate
from stockengine.domain.repository.broadcaster import InventoryBroadcaster

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class InventoryUpdate:
    """What subscribers receive; a copy, so they cannot touch the aggregate."""

    inventory_id: str
    on_hand: int
    reserved: int
    available: int
    version: int


Subscriber = Callable[[InventoryUpdate], None]


class LoggingBroadcaster(InventoryBroadcaster):

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register ``subscriber``; returns a function that unregisters it."""
        with self._lock:
            self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            with self._lock:
                if subscriber in self._subscribers:
                    self._subscribers.remove(subscriber)

        return unsubscribe

    def broadcast_inventory_update(self, aggregate: InventoryAggregate) -> None:
        update = InventoryUpdate(
            inventory_id=aggregate.id,
            on_hand=aggregate.on_hand_quantity,
            reserved=aggregate.reserved_quantity,
            available=aggregate.available_quantity,
            version=aggregate.version,
        )
        logger.info(
            "Inventory updated",
            inventory_id=update.inventory_id,
            on_hand=update.on_hand,
            reserved=update.reserved,
            available=update.available,
            version=update.version,
        )

        with self._lock:
            subscribers = list(self._subscribers)
        for subscriber in subscribers:
            try:
                subscriber(update)
            except Exception:
                logger.exception("Inventory subscriber failed", inventory_id=update.inventory_id)
