"""WebSocket endpoint carrying the relay protocol.

Provides:
- ``WS /ws``: assigns an identity, runs the heartbeat, and feeds every
  client frame to ``RelayHub.handle``.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from syncrelay.config import get_settings
from syncrelay.models import ClientMessage
from syncrelay.services import ws_messages

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------

router = APIRouter()


# ---------------------------------------------------------------------------
# Heartbeat task
# ---------------------------------------------------------------------------


async def _heartbeat(websocket: WebSocket, interval: float) -> None:
    """Send periodic ping messages to keep the connection alive.

    Runs as a background task per WebSocket connection. If sending fails
    (connection dead), the task ends and disconnect cleanup takes over.
    """
    try:
        while True:
            await asyncio.sleep(interval)
            await websocket.send_json(ws_messages.ping())
    except Exception:
        # Connection closed or errored; the receive loop handles cleanup
        pass


# ---------------------------------------------------------------------------
# WS /ws
# ---------------------------------------------------------------------------


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """Accept, assign identity, heartbeat, dispatch loop.

    Flow:
    1. Accept connection
    2. Register with the hub (sends ``userId``)
    3. Start heartbeat task
    4. Dispatch each frame; answer with ``ack`` when the client asked
    5. On disconnect: unwind session membership, leadership, pending relays
    """
    hub = websocket.app.state.hub
    interval = getattr(websocket.app.state, "heartbeat_interval", None)
    if interval is None:
        interval = get_settings().heartbeat_interval

    await websocket.accept()
    user_id = await hub.connect(websocket)

    heartbeat_task = asyncio.create_task(_heartbeat(websocket, interval))

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = ClientMessage.model_validate_json(raw)
            except PydanticValidationError:
                logger.info("User %s sent a malformed frame.", user_id)
                await websocket.send_json(ws_messages.error(message="Malformed message."))
                continue

            result = await hub.handle(user_id, message.event, message.data)
            if message.ack is not None:
                await websocket.send_json(ws_messages.ack(ack_id=message.ack, data=result))
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.warning("Connection %s closed with an error.", user_id, exc_info=True)
    finally:
        heartbeat_task.cancel()
        try:
            await heartbeat_task
        except asyncio.CancelledError:
            pass
        await hub.disconnect(user_id)
