import logging

import pytest
import structlog

from batchfetch.config import CoalescingConfig, ConfigStore
from batchfetch.engine import Coalescer
from tests.mocks.backends import RecordingBackend


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers and structlog config installed by ``setup_logging``."""
    yield
    logger = logging.getLogger("batchfetch")
    for handler in list(logger.handlers):
        if handler.get_name() == "batchfetch-console":
            logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def config_store() -> ConfigStore:
    """Config store with a short window so tests stay fast."""
    return ConfigStore(config=CoalescingConfig(time_window=50))


@pytest.fixture
def coalescer(config_store: ConfigStore):
    coalescer = Coalescer(config_store=config_store)
    yield coalescer
    coalescer.teardown()
