"""Plain HTTP endpoints: liveness probes and the global leader lookup."""

from __future__ import annotations

import time

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import PlainTextResponse

router = APIRouter()

_start_time = time.monotonic()


@router.get("/", response_class=PlainTextResponse)
async def root() -> str:
    """Liveness probe used by hosting platforms."""
    return "OK"


@router.get("/health")
async def health_check(request: Request):
    """Return relay status and in-memory counts."""
    hub = getattr(request.app.state, "hub", None)
    uptime = time.monotonic() - _start_time

    if hub is None:
        return {
            "status": "degraded",
            "uptime_seconds": round(uptime, 1),
            "version": "1.0.0",
        }

    return {
        "status": "ok",
        "uptime_seconds": round(uptime, 1),
        "mode": hub.mode,
        "connections": len(hub.users),
        "sessions": len(hub.sessions),
        "version": "1.0.0",
    }


@router.get("/leaderid", response_class=PlainTextResponse)
async def leader_id(request: Request) -> str:
    """Current global leader id, or an empty body when nobody leads."""
    hub = getattr(request.app.state, "hub", None)
    if hub is None or hub.mode != "global":
        raise HTTPException(status_code=404, detail="Not Found")
    return hub.leader_id or ""
