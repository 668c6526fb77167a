"""FastAPI application entry point.

Application wiring: lifespan, middleware stack, router mounting, exception handlers.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from syncrelay.config import get_settings
from syncrelay.routers import health
from syncrelay.routers.websocket import router as ws_router
from syncrelay.services.connection_manager import ConnectionManager
from syncrelay.services.relay import RelayHub

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(application: FastAPI):
    """Build the in-memory relay on startup; cancel pending relays on shutdown."""
    settings = get_settings()

    connection_manager = ConnectionManager()
    hub = RelayHub(
        connection_manager,
        mode=settings.leadership_mode,
        time_request_timeout=settings.time_request_timeout,
    )
    application.state.connection_manager = connection_manager
    application.state.hub = hub
    application.state.heartbeat_interval = settings.heartbeat_interval
    logger.info("Relay started in %s mode.", settings.leadership_mode)

    yield

    # -- Shutdown --
    await hub.close()


# ---------------------------------------------------------------------------
# Custom Middleware
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status_code, duration_ms for every request."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.monotonic()
        response = await call_next(request)
        duration_ms = (time.monotonic() - start_time) * 1000

        logger.info(
            "%s %s %d %.1fms",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Catch unhandled exceptions and return a standard JSON 500 response."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            logger.error(
                "Unhandled exception on %s %s: %s",
                request.method,
                request.url.path,
                exc,
                exc_info=True,
            )
            return JSONResponse(
                status_code=500,
                content={"error": "Internal server error", "details": str(exc)},
            )


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(title="syncrelay", lifespan=lifespan)

# -- Middleware stack (applied in reverse order of add_middleware calls) --
# Order: CORS -> RequestLogging -> ErrorHandling

settings = get_settings()

# 1. CORS (outermost)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Content-Type"],
)

# 2. Request logging
app.add_middleware(RequestLoggingMiddleware)

# 3. Error handling (innermost)
app.add_middleware(ErrorHandlingMiddleware)


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Normalize HTTPException responses to use the standard error format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
    )


# -- Routers --
app.include_router(health.router, tags=["health"])
app.include_router(ws_router)
