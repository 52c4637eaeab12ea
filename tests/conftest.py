from __future__ import annotations

import sys

import pytest
from loguru import logger

from tasksync.transport.memory import InMemoryRemoteStore


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def _reset_loguru():
    """Undo sinks bound to a captured stream by `configure_logging`."""
    yield
    logger.remove()
    logger.add(lambda message: sys.stderr.write(message), level="DEBUG")


@pytest.fixture
def remote() -> InMemoryRemoteStore:
    return InMemoryRemoteStore()
