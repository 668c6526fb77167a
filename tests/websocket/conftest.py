"""WebSocket test configuration.

Creates a minimal FastAPI test app that only mounts the WebSocket router,
with a relay hub placed on ``app.state`` directly (no lifespan).
"""

from __future__ import annotations

import pytest
from fastapi import FastAPI

from syncrelay.routers.websocket import router as ws_router
from syncrelay.services.connection_manager import ConnectionManager
from syncrelay.services.relay import RelayHub


def create_test_app(*, mode: str = "session", timeout: float = 1.0) -> FastAPI:
    """Build a minimal FastAPI app with only the websocket router."""
    test_app = FastAPI()
    test_app.include_router(ws_router)
    test_app.state.hub = RelayHub(ConnectionManager(), mode=mode, time_request_timeout=timeout)
    return test_app


@pytest.fixture
def ws_app() -> FastAPI:
    return create_test_app()


@pytest.fixture
def global_ws_app() -> FastAPI:
    return create_test_app(mode="global")
