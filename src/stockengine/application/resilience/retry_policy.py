"""Optimistic-concurrency retry policy.

Each attempt reloads state and tries again from scratch, so the attempt
function must be safe to call repeatedly.  Only ``VersionConflict`` is
retried; anything else propagates on the first occurrence.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, TypeVar

import structlog

from stockengine.domain.exceptions import VersionConflict

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class RetryStatus(Enum):
    OK = "ok"
    CONFLICT = "conflict"  # conflicted on the only attempt allowed
    EXHAUSTED = "exhausted"  # conflicted on every one of several attempts


@dataclass(frozen=True)
class RetryResult(Generic[T]):
    status: RetryStatus
    attempts: int
    value: T | None = None
    conflict: VersionConflict | None = None

    @property
    def ok(self) -> bool:
        return self.status is RetryStatus.OK


@dataclass(frozen=True)
class ExponentialBackoff:
    """Delay before retry ``n`` (1-based): ``base * multiplier ** (n - 1)``, capped.

    With ``jitter`` the delay is drawn uniformly from ``[0, delay]`` so
    colliding writers spread out.
    """

    base_delay: float = 0.01
    multiplier: float = 2.0
    max_delay: float = 0.5
    jitter: bool = True

    def delay(self, retry_number: int) -> float:
        delay = min(self.base_delay * self.multiplier ** (retry_number - 1), self.max_delay)
        if self.jitter:
            return random.uniform(0, delay)
        return delay


@dataclass(frozen=True)
class NoBackoff:
    def delay(self, retry_number: int) -> float:
        return 0.0


class RetryPolicy:

    def __init__(
        self,
        max_attempts: int = 3,
        backoff: ExponentialBackoff | NoBackoff | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.backoff = backoff if backoff is not None else ExponentialBackoff()
        self._sleep = sleep

    def run(self, attempt: Callable[[], T]) -> RetryResult[T]:
        last_conflict: VersionConflict | None = None
        for number in range(1, self.max_attempts + 1):
            if number > 1:
                delay = self.backoff.delay(number - 1)
                if delay > 0:
                    self._sleep(delay)
            try:
                value = attempt()
            except VersionConflict as exc:
                last_conflict = exc
                logger.debug(
                    "Version conflict",
                    inventory_id=exc.inventory_id,
                    attempt=number,
                    max_attempts=self.max_attempts,
                )
                continue
            return RetryResult(RetryStatus.OK, attempts=number, value=value)

        status = RetryStatus.CONFLICT if self.max_attempts == 1 else RetryStatus.EXHAUSTED
        return RetryResult(status, attempts=self.max_attempts, conflict=last_conflict)
