"""Composition root — wires concrete implementations to domain interfaces.

This is the only place in the codebase that knows about *all* layers.
Every other module depends only on abstractions.  Breakers are created
here, owned by the Engine, and handed to the services that need them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from stockengine.application.allocate_inventory import InventoryAllocationService
from stockengine.application.release_inventory import InventoryReleaseService
from stockengine.application.replenish_inventory import InventoryReplenishmentService
from stockengine.application.reserve_inventory import (
    RESERVATION_CIRCUIT,
    InventoryReservationService,
)
from stockengine.application.resilience.circuit_breaker import (
    BreakerConfig,
    CircuitBreakerRegistry,
)
from stockengine.application.resilience.retry_policy import ExponentialBackoff, RetryPolicy
from stockengine.infrastructure.broadcasting.logging_broadcaster import LoggingBroadcaster
from stockengine.infrastructure.persistence.json_inventory_repository import (
    JsonInventoryRepository,
)
from stockengine.infrastructure.persistence.json_operation_recorder import (
    JsonOperationRecorder,
)
from stockengine.infrastructure.settings import Settings


@dataclass
class Engine:
    settings: Settings
    inventory_repo: JsonInventoryRepository
    recorder: JsonOperationRecorder
    broadcaster: LoggingBroadcaster
    breakers: CircuitBreakerRegistry
    reservations: InventoryReservationService
    releases: InventoryReleaseService
    allocations: InventoryAllocationService
    replenishments: InventoryReplenishmentService


def inventory_repository(settings: Settings) -> JsonInventoryRepository:
    return JsonInventoryRepository(
        settings.data_dir / "inventory.json",
        settings.data_dir / "inventory_events.json",
    )


def operation_recorder(settings: Settings) -> JsonOperationRecorder:
    return JsonOperationRecorder(
        settings.data_dir / "operations.json",
        settings.data_dir / "supply_chain_events.json",
    )


def retry_policy(settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.max_attempts,
        backoff=ExponentialBackoff(
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
        ),
    )


def build_engine(settings: Settings | None = None) -> Engine:
    settings = settings or Settings.from_env()

    inventory_repo = inventory_repository(settings)
    recorder = operation_recorder(settings)
    broadcaster = LoggingBroadcaster()
    breakers = CircuitBreakerRegistry(
        {
            RESERVATION_CIRCUIT: BreakerConfig(
                failure_threshold=settings.reservation_failure_threshold,
                recovery_timeout=settings.reservation_recovery_timeout,
            ),
        }
    )
    policy = retry_policy(settings)

    return Engine(
        settings=settings,
        inventory_repo=inventory_repo,
        recorder=recorder,
        broadcaster=broadcaster,
        breakers=breakers,
        reservations=InventoryReservationService(
            inventory_repo,
            recorder,
            broadcaster,
            breakers.get(RESERVATION_CIRCUIT),
            retry_policy=policy,
            reservation_ttl=timedelta(hours=settings.reservation_ttl_hours),
        ),
        releases=InventoryReleaseService(inventory_repo, recorder, broadcaster, retry_policy=policy),
        allocations=InventoryAllocationService(
            inventory_repo, recorder, broadcaster, retry_policy=policy
        ),
        replenishments=InventoryReplenishmentService(
            inventory_repo, recorder, broadcaster, retry_policy=policy
        ),
    )
