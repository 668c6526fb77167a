"""Shared pytest fixtures for relay tests.

Provides:
- ``transport``: a fresh ``ConnectionManager``
- ``hub``: a session-mode ``RelayHub`` with a short time-request timeout
- ``global_hub``: the same in global-leadership mode
"""

from __future__ import annotations

import pytest

from syncrelay.services.connection_manager import ConnectionManager
from syncrelay.services.relay import RelayHub

TEST_TIMEOUT = 0.2  # seconds


@pytest.fixture
def transport() -> ConnectionManager:
    return ConnectionManager()


@pytest.fixture
def hub(transport: ConnectionManager) -> RelayHub:
    return RelayHub(transport, mode="session", time_request_timeout=TEST_TIMEOUT)


@pytest.fixture
def global_hub() -> RelayHub:
    return RelayHub(ConnectionManager(), mode="global", time_request_timeout=TEST_TIMEOUT)
