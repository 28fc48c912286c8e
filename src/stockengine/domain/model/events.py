"""Domain events emitted by the InventoryAggregate.

An event is an immutable record of one state change.  The aggregate
appends exactly one per successful mutation; the repository drains them
in the same write that stores the new counters.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class EventKind(Enum):
    RESERVED = "reserved"
    RELEASED = "released"
    ALLOCATED = "allocated"
    REPLENISHED = "replenished"


@dataclass(frozen=True)
class DomainEvent:
    """One change to one inventory record.

    ``version`` is the aggregate version this event produced, so a stream
    of events for an aggregate is strictly ordered by it.
    """

    kind: EventKind
    aggregate_id: str
    version: int
    amount: int
    payload: dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    # --- Serialization --------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "kind": self.kind.value,
            "aggregate_id": self.aggregate_id,
            "version": self.version,
            "amount": self.amount,
            "payload": dict(self.payload),
            "occurred_at": self.occurred_at.isoformat(),
        }

    @staticmethod
    def from_dict(raw: dict[str, Any]) -> DomainEvent:
        return DomainEvent(
            kind=EventKind(raw["kind"]),
            aggregate_id=raw["aggregate_id"],
            version=raw["version"],
            amount=raw["amount"],
            payload=dict(raw.get("payload", {})),
            event_id=raw["event_id"],
            occurred_at=datetime.fromisoformat(raw["occurred_at"]),
        )
