"""Runtime settings.

Defaults live here as module constants; each can be overridden by an
environment variable of the same name prefixed with ``STOCKENGINE_``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, TypeVar

from stockengine.domain.exceptions import ConfigurationError

T = TypeVar("T")

# ── Paths ─────────────────────────────────────────────────────
# Project root when installed in editable mode.
BASE_DIR = Path(__file__).resolve().parents[3]
DATA_DIR = BASE_DIR / "data"

# ── Reservation circuit breaker ───────────────────────────────
RESERVATION_FAILURE_THRESHOLD = 5
RESERVATION_RECOVERY_TIMEOUT = 30.0  # seconds

# ── Optimistic retries ────────────────────────────────────────
MAX_ATTEMPTS = 3
RETRY_BASE_DELAY = 0.01  # seconds, doubled per retry
RETRY_MAX_DELAY = 0.5

# ── Reservations ──────────────────────────────────────────────
RESERVATION_TTL_HOURS = 24.0

ENV = "development"

_PREFIX = "STOCKENGINE_"


@dataclass(frozen=True)
class Settings:
    data_dir: Path = DATA_DIR
    reservation_failure_threshold: int = RESERVATION_FAILURE_THRESHOLD
    reservation_recovery_timeout: float = RESERVATION_RECOVERY_TIMEOUT
    max_attempts: int = MAX_ATTEMPTS
    retry_base_delay: float = RETRY_BASE_DELAY
    retry_max_delay: float = RETRY_MAX_DELAY
    reservation_ttl_hours: float = RESERVATION_TTL_HOURS
    env: str = ENV

    @staticmethod
    def from_env(environ: Mapping[str, str] | None = None) -> Settings:
        environ = os.environ if environ is None else environ

        def read(name: str, parse: Callable[[str], T], default: T) -> T:
            raw = environ.get(_PREFIX + name)
            if raw is None or raw.strip() == "":
                return default
            try:
                return parse(raw.strip())
            except ValueError as exc:
                raise ConfigurationError(f"Invalid value for {_PREFIX}{name}: {raw!r}") from exc

        settings = Settings(
            data_dir=read("DATA_DIR", Path, DATA_DIR),
            reservation_failure_threshold=read(
                "RESERVATION_FAILURE_THRESHOLD", int, RESERVATION_FAILURE_THRESHOLD
            ),
            reservation_recovery_timeout=read(
                "RESERVATION_RECOVERY_TIMEOUT", float, RESERVATION_RECOVERY_TIMEOUT
            ),
            max_attempts=read("MAX_ATTEMPTS", int, MAX_ATTEMPTS),
            retry_base_delay=read("RETRY_BASE_DELAY", float, RETRY_BASE_DELAY),
            retry_max_delay=read("RETRY_MAX_DELAY", float, RETRY_MAX_DELAY),
            reservation_ttl_hours=read("RESERVATION_TTL_HOURS", float, RESERVATION_TTL_HOURS),
            env=read("ENV", str.lower, ENV),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.reservation_failure_threshold < 1:
            raise ConfigurationError(f"{_PREFIX}RESERVATION_FAILURE_THRESHOLD must be >= 1")
        if self.reservation_recovery_timeout < 0:
            raise ConfigurationError(f"{_PREFIX}RESERVATION_RECOVERY_TIMEOUT cannot be negative")
        if self.max_attempts < 1:
            raise ConfigurationError(f"{_PREFIX}MAX_ATTEMPTS must be >= 1")
        if self.retry_base_delay < 0 or self.retry_max_delay < 0:
            raise ConfigurationError("Retry delays cannot be negative")
        if self.reservation_ttl_hours <= 0:
            raise ConfigurationError(f"{_PREFIX}RESERVATION_TTL_HOURS must be positive")
