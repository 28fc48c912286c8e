"""Audit records for operations run against inventory."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class OperationKind(Enum):
    RESERVE = "reserve"
    RELEASE = "release"
    ALLOCATE = "allocate"
    REPLENISH = "replenish"


class OperationOutcome(Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    CIRCUIT_OPEN = "circuit_open"


@dataclass(frozen=True)
class OperationRecord:
    """One entry in the operation audit trail.

    ``operation_id`` is the caller's correlation key, or a generated one
    when the caller gave none.  A success is identified for replay by
    ``(operation_id, kind, inventory_id)``.
    """

    kind: OperationKind
    inventory_id: str
    amount: int
    outcome: OperationOutcome
    operation_id: str
    reason: str | None = None
    detail: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def replay_key(self) -> tuple[str, OperationKind, str]:
        return (self.operation_id, self.kind, self.inventory_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation_id": self.operation_id,
            "kind": self.kind.value,
            "inventory_id": self.inventory_id,
            "amount": self.amount,
            "outcome": self.outcome.value,
            "reason": self.reason,
            "detail": self.detail,
            "timestamp": self.timestamp.isoformat(),
        }

    @staticmethod
    def from_dict(raw: dict[str, Any]) -> OperationRecord:
        return OperationRecord(
            kind=OperationKind(raw["kind"]),
            inventory_id=raw["inventory_id"],
            amount=raw["amount"],
            outcome=OperationOutcome(raw["outcome"]),
            operation_id=raw["operation_id"],
            reason=raw.get("reason"),
            detail=raw.get("detail"),
            timestamp=datetime.fromisoformat(raw["timestamp"]),
        )


@dataclass(frozen=True)
class SupplyChainEvent:
    """Inbound supply recorded alongside a replenishment."""

    kind: str
    amount: int
    source: str
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "amount": self.amount,
            "source": self.source,
            "metadata": dict(self.metadata),
            "timestamp": self.timestamp.isoformat(),
        }

    @staticmethod
    def from_dict(raw: dict[str, Any]) -> SupplyChainEvent:
        return SupplyChainEvent(
            kind=raw["kind"],
            amount=raw["amount"],
            source=raw["source"],
            metadata=dict(raw.get("metadata", {})),
            timestamp=datetime.fromisoformat(raw["timestamp"]),
        )
