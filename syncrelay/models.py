"""Pydantic models for frames received on the relay WebSocket."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ClientMessage(BaseModel):
    """One client event.

    ``data`` is event specific (a playback payload, a session id, or
    nothing). When ``ack`` is set the server answers with an ``ack`` frame
    carrying the same id.
    """

    event: str = Field(..., min_length=1, max_length=64)
    data: Any = None
    ack: int | str | None = None
