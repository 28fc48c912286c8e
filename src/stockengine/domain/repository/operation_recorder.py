"""Abstract audit trail for inventory operations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from stockengine.domain.model.operation import OperationKind, OperationRecord


class OperationRecorder(ABC):

    @abstractmethod
    def record_successful_operation(
        self, kind: OperationKind, inventory_id: str, amount: int, operation_id: str
    ) -> None:
        """Append a success record."""

    @abstractmethod
    def record_failed_operation(
        self,
        kind: OperationKind,
        inventory_id: str,
        amount: int,
        reason: str,
        operation_id: str,
        detail: str | None = None,
    ) -> None:
        """Append a failure record with a machine-readable reason."""

    @abstractmethod
    def record_circuit_breaker_failure(
        self,
        kind: OperationKind,
        inventory_id: str,
        amount: int,
        error: Exception,
        operation_id: str,
    ) -> None:
        """Append a record for an operation the circuit breaker refused."""

    @abstractmethod
    def record_supply_chain_event(
        self, kind: str, amount: int, source: str, metadata: dict[str, Any]
    ) -> None:
        """Append an inbound-supply record (replenishment only)."""

    @abstractmethod
    def find_successful_operation(
        self, operation_id: str, kind: OperationKind, inventory_id: str
    ) -> OperationRecord | None:
        """Return the success recorded under this id for this kind and record, if any.

        The same correlation key may be reused across kinds (reserve, then
        allocate, for one order) and across inventory records; each
        combination is a separate operation.
        """

    @abstractmethod
    def list_operations(self) -> list[OperationRecord]:
        """Return the audit trail, oldest first."""
