"""Abstract real-time notifier for inventory changes."""

from __future__ import annotations

from abc import ABC, abstractmethod

from stockengine.domain.model.inventory import InventoryAggregate


class InventoryBroadcaster(ABC):

    @abstractmethod
    def broadcast_inventory_update(self, aggregate: InventoryAggregate) -> None:
        """Tell subscribers that ``aggregate`` changed.

        Fire-and-forget: implementations must not raise.
        """
