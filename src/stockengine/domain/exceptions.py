"""Domain-level exceptions.

Every failure the engine can name is a subclass of DomainException, so
the CLI layer can catch them uniformly and services can tell a known
failure (recorded with its reason) from an unexpected one.
"""


class DomainException(Exception):
    """Base class for all domain errors."""

    reason = "domain_error"


class ValidationError(DomainException):
    """A business rule or invariant was violated."""

    reason = "validation_error"


class InvalidAmount(ValidationError):
    """Quantity was zero, negative or not an integer."""

    reason = "invalid_amount"


class InsufficientStock(ValidationError):
    """Requested amount exceeds the available (or reserved) balance."""

    reason = "insufficient_stock"


class EntityNotFoundError(DomainException):
    """A requested entity does not exist."""

    reason = "not_found"


class VersionConflict(DomainException):
    """The stored aggregate advanced since it was loaded."""

    reason = "concurrency_conflict"

    def __init__(self, inventory_id: str, expected: int, actual: int) -> None:
        super().__init__(
            f"Inventory '{inventory_id}' is at version {actual}, "
            f"expected {expected}"
        )
        self.inventory_id = inventory_id
        self.expected = expected
        self.actual = actual


class CircuitOpenError(DomainException):
    """The circuit breaker refused to run the operation."""

    reason = "circuit_open"

    def __init__(self, name: str, retry_after: float, message: str | None = None) -> None:
        super().__init__(
            message or f"{name}: circuit breaker is OPEN (retry in {retry_after:.1f}s)"
        )
        self.name = name
        self.retry_after = retry_after


class CircuitHalfOpenError(CircuitOpenError):
    """Recovery timeout elapsed; the breaker is half-open and awaits a trial call."""

    def __init__(self, name: str) -> None:
        super().__init__(
            name, 0.0, f"{name}: circuit breaker attempting recovery (HALF_OPEN)"
        )


class ConfigurationError(DomainException):
    """A setting could not be parsed."""

    reason = "configuration_error"
