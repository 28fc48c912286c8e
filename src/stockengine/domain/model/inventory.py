"""InventoryAggregate — on-hand and reserved stock for one inventory record.

The aggregate is loaded (or created) at the start of each operation,
mutated purely in memory, and handed to the repository which stores the
new counters together with the events the mutation produced.  It is never
held across operations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable

from stockengine.domain.exceptions import InsufficientStock
from stockengine.domain.model.events import DomainEvent, EventKind
from stockengine.domain.model.value_objects import (
    FulfillmentCheck,
    FulfillmentFailure,
    Quantity,
    Reservation,
)

DEFAULT_RESERVATION_TTL = timedelta(hours=24)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class InventoryAggregate:
    """Aggregate root for one stock counter.

    Invariants:
    - ``0 <= reserved_quantity <= on_hand_quantity`` after every mutation
    - exactly one event is appended per successful mutating call
    - ``version`` grows by one per event

    Mutators return ``False`` instead of raising when the request cannot
    be satisfied; the state is then left untouched.
    """

    id: str
    on_hand_quantity: int = 0
    reserved_quantity: int = 0
    version: int = 0
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    uncommitted_events: list[DomainEvent] = field(default_factory=list, repr=False)

    # --- Factory --------------------------------------------------------------

    @staticmethod
    def from_events(inventory_id: str, events: Iterable[DomainEvent]) -> InventoryAggregate:
        """Rebuild an aggregate by replaying its stored event stream."""
        aggregate = InventoryAggregate(id=inventory_id)
        for event in events:
            if aggregate.version == 0:
                aggregate.created_at = event.occurred_at
            aggregate._apply(event)
            aggregate.version = event.version
            aggregate.updated_at = event.occurred_at
        return aggregate

    # --- Queries --------------------------------------------------------------

    @property
    def available_quantity(self) -> int:
        return self.on_hand_quantity - self.reserved_quantity

    @property
    def persisted_version(self) -> int:
        """Version this aggregate had when it was loaded."""
        return self.version - len(self.uncommitted_events)

    def can_fulfill(self, amount: int) -> FulfillmentCheck:
        available = self.available_quantity
        if not Quantity.is_valid(amount):
            return FulfillmentCheck(False, available, amount, FulfillmentFailure.INVALID_AMOUNT)
        if available < amount:
            return FulfillmentCheck(False, available, amount, FulfillmentFailure.INSUFFICIENT_STOCK)
        return FulfillmentCheck(True, available, amount)

    def require_fulfillable(self, amount: int) -> None:
        """Raise the typed failure behind a negative ``can_fulfill``."""
        Quantity(amount)
        if self.available_quantity < amount:
            raise InsufficientStock(
                f"Insufficient stock in '{self.id}' "
                f"(need {amount}, have {self.available_quantity} available)"
            )

    # --- Mutators -------------------------------------------------------------

    def reserve(
        self,
        amount: int,
        order_id: str,
        expires_at: datetime | None = None,
    ) -> bool:
        """Hold ``amount`` units for an order."""
        if not self.can_fulfill(amount):
            return False

        reservation = Reservation(
            amount=amount,
            order_id=order_id,
            expires_at=expires_at or _now() + DEFAULT_RESERVATION_TTL,
        )
        self._record(EventKind.RESERVED, amount, reservation.to_payload())
        return True

    def release(self, amount: int, order_id: str | None = None) -> bool:
        """Give back up to ``amount`` reserved units.

        The amount is clamped to what is currently reserved, and the event
        carries the amount actually released.
        """
        if not Quantity.is_valid(amount):
            return False
        actual = min(amount, self.reserved_quantity)
        if actual <= 0:
            return False

        self._record(
            EventKind.RELEASED,
            actual,
            {"order_id": order_id, "requested": amount},
        )
        return True

    def allocate(
        self,
        amount: int,
        order_id: str,
        shipment_id: str | None = None,
    ) -> bool:
        """Convert reserved units into shipped stock.

        Both ``on_hand_quantity`` and ``reserved_quantity`` decrease by
        the same amount.
        """
        if not Quantity.is_valid(amount) or amount > self.reserved_quantity:
            return False

        self._record(
            EventKind.ALLOCATED,
            amount,
            {"order_id": order_id, "shipment_id": shipment_id},
        )
        return True

    def replenish(self, amount: int, source: str = "manual") -> bool:
        """Add newly received supply to on-hand stock."""
        if not Quantity.is_valid(amount):
            return False

        self._record(
            EventKind.REPLENISHED,
            amount,
            {"source": source, "previous_on_hand": self.on_hand_quantity},
        )
        return True

    def mark_events_committed(self) -> list[DomainEvent]:
        """Drain and return the uncommitted events."""
        events, self.uncommitted_events = self.uncommitted_events, []
        return events

    # --- Internal helpers -----------------------------------------------------

    def _record(self, kind: EventKind, amount: int, payload: dict) -> None:
        event = DomainEvent(
            kind=kind,
            aggregate_id=self.id,
            version=self.version + 1,
            amount=amount,
            payload=payload,
        )
        self._apply(event)
        self.version = event.version
        self.updated_at = event.occurred_at
        self.uncommitted_events.append(event)

    def _apply(self, event: DomainEvent) -> None:
        if event.kind is EventKind.RESERVED:
            self.reserved_quantity += event.amount
        elif event.kind is EventKind.RELEASED:
            self.reserved_quantity -= event.amount
        elif event.kind is EventKind.ALLOCATED:
            self.reserved_quantity -= event.amount
            self.on_hand_quantity -= event.amount
        elif event.kind is EventKind.REPLENISHED:
            self.on_hand_quantity += event.amount
