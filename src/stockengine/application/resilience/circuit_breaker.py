"""Three-state circuit breaker.

A breaker wraps calls to one class of backing resource.  After
``failure_threshold`` consecutive failures it opens and fails fast for
``recovery_timeout`` seconds.  The first call after the timeout moves it
to HALF_OPEN and still fails fast; the call after that runs as a single
trial call which either closes the breaker or re-opens it.

The breaker never retries; retries belong to the caller.

State is guarded by one lock per instance.  The wrapped operation runs
outside the lock so a slow backend does not serialize callers.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, TypeVar

import structlog

from stockengine.domain.exceptions import CircuitHalfOpenError, CircuitOpenError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class CircuitStatus:
    """Point-in-time view of a breaker, for monitoring."""

    name: str
    state: CircuitState
    failure_count: int
    failure_threshold: int
    recovery_timeout: float
    last_failure_time: float | None
    next_retry_time: float | None


class CircuitBreaker:

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        expected_exceptions: tuple[type[BaseException], ...] = (Exception,),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if recovery_timeout < 0:
            raise ValueError("recovery_timeout cannot be negative")

        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exceptions = expected_exceptions
        self._clock = clock
        self._lock = threading.Lock()

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: float | None = None
        self._next_retry_time: float | None = None
        self._trial_in_flight = False

    # --- Public API -----------------------------------------------------------

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    def execute(self, operation: Callable[[], T]) -> T:
        """Run ``operation`` under breaker protection.

        Raises ``CircuitOpenError`` (or its ``CircuitHalfOpenError``
        subclass) without calling ``operation`` when the breaker refuses,
        and re-raises whatever ``operation`` raised otherwise.
        """
        is_trial = self._before_call()
        try:
            result = operation()
        except self.expected_exceptions as exc:
            self._on_failure(is_trial, exc)
            raise
        except BaseException:
            if is_trial:
                self._release_trial()
            raise
        self._on_success(is_trial)
        return result

    def snapshot(self) -> CircuitStatus:
        with self._lock:
            return CircuitStatus(
                name=self.name,
                state=self._state,
                failure_count=self._failure_count,
                failure_threshold=self.failure_threshold,
                recovery_timeout=self.recovery_timeout,
                last_failure_time=self._last_failure_time,
                next_retry_time=self._next_retry_time,
            )

    def reset(self) -> None:
        """Force the breaker closed and clear its counters."""
        with self._lock:
            self._close()
        logger.info("Circuit breaker reset", circuit=self.name)

    # --- State transitions ----------------------------------------------------

    def _before_call(self) -> bool:
        """Decide whether this call may run; return True if it is the trial call."""
        with self._lock:
            if self._state is CircuitState.CLOSED:
                return False

            if self._state is CircuitState.OPEN:
                now = self._clock()
                if now < self._next_retry_time:
                    raise CircuitOpenError(self.name, self._next_retry_time - now)
                self._state = CircuitState.HALF_OPEN
                self._trial_in_flight = False
                logger.info("Circuit breaker half-open", circuit=self.name)
                raise CircuitHalfOpenError(self.name)

            # HALF_OPEN: admit exactly one trial call at a time
            if self._trial_in_flight:
                raise CircuitOpenError(
                    self.name, 0.0, f"{self.name}: recovery trial call already in flight"
                )
            self._trial_in_flight = True
            return True

    def _on_success(self, is_trial: bool) -> None:
        with self._lock:
            if is_trial:
                self._close()
                logger.info("Circuit breaker closed after successful trial call", circuit=self.name)
            elif self._state is CircuitState.CLOSED:
                self._failure_count = 0

    def _on_failure(self, is_trial: bool, exc: BaseException) -> None:
        with self._lock:
            now = self._clock()
            self._failure_count += 1
            self._last_failure_time = now

            if is_trial:
                self._trial_in_flight = False
                self._trip(now)
                logger.warning(
                    "Circuit breaker trial call failed; re-opened",
                    circuit=self.name,
                    error=str(exc),
                )
            elif (
                self._state is CircuitState.CLOSED
                and self._failure_count >= self.failure_threshold
            ):
                self._trip(now)
                logger.warning(
                    "Circuit breaker opened",
                    circuit=self.name,
                    failure_count=self._failure_count,
                    recovery_timeout=self.recovery_timeout,
                    error=str(exc),
                )

    def _release_trial(self) -> None:
        with self._lock:
            self._trial_in_flight = False

    def _trip(self, now: float) -> None:
        self._state = CircuitState.OPEN
        self._next_retry_time = now + self.recovery_timeout

    def _close(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time = None
        self._next_retry_time = None
        self._trial_in_flight = False


@dataclass(frozen=True)
class BreakerConfig:
    failure_threshold: int = 5
    recovery_timeout: float = 30.0


class CircuitBreakerRegistry:
    """Named breakers, one per protected resource class.

    The registry is owned by the composition root and handed to the
    services that need a breaker; there is no module-level instance.
    """

    def __init__(
        self,
        configs: dict[str, BreakerConfig] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._configs = dict(configs or {})
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> CircuitBreaker:
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                config = self._configs.get(name, BreakerConfig())
                breaker = CircuitBreaker(
                    name,
                    failure_threshold=config.failure_threshold,
                    recovery_timeout=config.recovery_timeout,
                    clock=self._clock,
                )
                self._breakers[name] = breaker
            return breaker

    def status(self) -> dict[str, CircuitStatus]:
        with self._lock:
            breakers = list(self._breakers.values())
        return {b.name: b.snapshot() for b in breakers}

    def healthy(self) -> bool:
        return all(s.state is CircuitState.CLOSED for s in self.status().values())

    def reset_all(self) -> None:
        with self._lock:
            breakers = list(self._breakers.values())
        for breaker in breakers:
            breaker.reset()
