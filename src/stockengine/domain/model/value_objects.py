"""Value Objects shared across the domain.

Value Objects are immutable and compared by value, not identity.
They encapsulate validation so invalid values can never exist.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from stockengine.domain.exceptions import InvalidAmount


@dataclass(frozen=True)
class Quantity:
    """A positive integer quantity of stock units.

    There are no fractional units; ``bool`` is rejected even though it is
    an ``int`` subclass.
    """

    value: int

    def __post_init__(self) -> None:
        if not isinstance(self.value, int) or isinstance(self.value, bool):
            raise InvalidAmount(
                f"Quantity must be an integer, got {type(self.value).__name__}"
            )
        if self.value <= 0:
            raise InvalidAmount(f"Quantity must be positive, got {self.value}")

    @staticmethod
    def is_valid(value: object) -> bool:
        return isinstance(value, int) and not isinstance(value, bool) and value > 0

    def __str__(self) -> str:
        return str(self.value)


class FulfillmentFailure(Enum):
    INVALID_AMOUNT = "invalid_amount"
    INSUFFICIENT_STOCK = "insufficient_stock"


@dataclass(frozen=True)
class FulfillmentCheck:
    """Result of asking an aggregate whether it can cover an amount."""

    can_fulfill: bool
    available: int
    requested: int
    reason: FulfillmentFailure | None = None

    def __bool__(self) -> bool:
        return self.can_fulfill


@dataclass(frozen=True)
class Reservation:
    """A temporary hold on stock for one order.

    Expiry is a data attribute only; an external sweeper is expected to
    call the release service once ``expires_at`` has passed.
    """

    amount: int
    order_id: str
    expires_at: datetime

    def to_payload(self) -> dict[str, str]:
        return {
            "order_id": self.order_id,
            "expires_at": self.expires_at.isoformat(),
        }
