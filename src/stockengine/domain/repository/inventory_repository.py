"""Abstract repository for the InventoryAggregate."""

from __future__ import annotations

from abc import ABC, abstractmethod

from stockengine.domain.model.events import DomainEvent
from stockengine.domain.model.inventory import InventoryAggregate


class InventoryRepository(ABC):

    @abstractmethod
    def load_or_create(self, inventory_id: str) -> InventoryAggregate:
        """Return the stored aggregate, or a fresh empty one at version 0."""

    @abstractmethod
    def apply_events(self, aggregate: InventoryAggregate) -> None:
        """Store the aggregate's counters, version and uncommitted events.

        Must be atomic, and must raise ``VersionConflict`` when the stored
        version is no longer the one the aggregate was loaded at.  On
        success the aggregate's uncommitted events are drained.
        """

    @abstractmethod
    def list_all(self) -> list[InventoryAggregate]:
        """Return every stored inventory record."""

    @abstractmethod
    def events_for(self, inventory_id: str) -> list[DomainEvent]:
        """Return the committed event stream for one record, oldest first."""
