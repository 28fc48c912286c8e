"""Logging configuration.

Standard library logging carries the output; structlog shapes it.  In
production and staging every line is JSON, otherwise the console
renderer is used.
"""

import logging
import os
import sys

import structlog


def get_log_level(env: str | None = None) -> str:
    """Get log level based on environment."""
    env = (env or os.getenv("STOCKENGINE_ENV") or "development").lower()

    level_map = {
        "production": "INFO",
        "staging": "INFO",
        "development": "DEBUG",
        "test": "WARNING",
    }

    return os.getenv("LOG_LEVEL", level_map.get(env, "INFO")).upper()


def setup_stdlib_logging(env: str | None = None) -> None:
    log_level = get_log_level(env)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = []

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)
    root_logger.addHandler(handler)


def setup_structlog(env: str | None = None) -> None:
    env = (env or os.getenv("STOCKENGINE_ENV") or "development").lower()

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if env in ("production", "staging"):
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Cached loggers ignore later reconfiguration.
        cache_logger_on_first_use=env in ("production", "staging"),
    )


def configure_logging(env: str | None = None) -> None:
    """Configure all logging for the application."""
    setup_stdlib_logging(env)
    setup_structlog(env)
