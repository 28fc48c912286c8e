import logging

import pytest
import structlog


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo any logging configuration a test (e.g. the CLI) installed."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    structlog.reset_defaults()
    root.handlers = handlers
    root.setLevel(level)
