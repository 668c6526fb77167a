"""WebSocket connection manager.

Singleton class instantiated in ``main.py`` lifespan. Maps connection ids
to their WebSocket and groups ids into rooms, giving the coordination
services unicast, room broadcast and global broadcast without ever handing
them a raw socket.
"""

from __future__ import annotations

import logging

from starlette.websockets import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks one live WebSocket per connection id and its room memberships."""

    def __init__(self) -> None:
        self._connections: dict[str, WebSocket] = {}
        self._rooms: dict[str, set[str]] = {}

    async def connect(self, user_id: str, websocket: WebSocket) -> None:
        """Register *websocket* under *user_id*."""
        self._connections[user_id] = websocket

    async def disconnect(self, user_id: str) -> None:
        """Forget *user_id* and drop it from every room.

        Safe to call even if the id is not tracked.
        """
        self._connections.pop(user_id, None)
        for room_id in [r for r, members in self._rooms.items() if user_id in members]:
            self.leave_room(room_id, user_id)

    def is_live(self, user_id: str) -> bool:
        return user_id in self._connections

    def join_room(self, room_id: str, user_id: str) -> None:
        self._rooms.setdefault(room_id, set()).add(user_id)

    def leave_room(self, room_id: str, user_id: str) -> None:
        members = self._rooms.get(room_id)
        if members is None:
            return
        members.discard(user_id)
        # Clean up empty room
        if not members:
            del self._rooms[room_id]

    def room_members(self, room_id: str) -> set[str]:
        return set(self._rooms.get(room_id, ()))

    async def send_to_user(self, user_id: str, message: dict) -> None:
        """Send *message* as JSON to *user_id*'s connection.

        If the send fails (connection already closed), the connection is
        silently dropped; the endpoint's own disconnect handling finishes
        the cleanup.
        """
        ws = self._connections.get(user_id)
        if ws is None:
            return
        try:
            await ws.send_json(message)
        except Exception:
            logger.debug("Dropping dead connection %s", user_id)
            await self.disconnect(user_id)

    async def broadcast_to_room(
        self, room_id: str, message: dict, *, exclude: str | None = None
    ) -> None:
        """Send *message* to every member of *room_id* except *exclude*."""
        for user_id in self.room_members(room_id):
            if user_id != exclude:
                await self.send_to_user(user_id, message)

    async def broadcast(self, message: dict, *, exclude: str | None = None) -> None:
        """Send *message* to every live connection except *exclude*."""
        for user_id in list(self._connections):
            if user_id != exclude:
                await self.send_to_user(user_id, message)
