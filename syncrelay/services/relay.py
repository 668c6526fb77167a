"""Relay hub: wires the coordination services together and dispatches events.

Singleton instantiated in ``main.py`` lifespan and stored on
``app.state.hub``. The WebSocket endpoint hands every parsed client frame
to ``RelayHub.handle``, which returns the acknowledgement payload. Domain
errors become ``{"errorMessage": ...}`` for the sender only; any other
exception is logged and answered with ``"Internal error."``.

Handlers finish all registry mutation before their first send, so on the
single event loop no handler observes another one half-way through.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, Literal

from starlette.websockets import WebSocket

from syncrelay.exceptions import RelayError, ValidationError
from syncrelay.services import ws_messages
from syncrelay.services.broadcaster import StateBroadcaster
from syncrelay.services.connection_manager import ConnectionManager
from syncrelay.services.leadership import GlobalLeadership, SessionLeadership
from syncrelay.services.sessions import SessionRegistry
from syncrelay.services.time_sync import DEFAULT_TIMEOUT, TimeSyncHandshake
from syncrelay.services.users import ConnectionRegistry

logger = logging.getLogger(__name__)

Handler = Callable[[str, Any], Awaitable[Any]]


class RelayHub:
    """All relay state for one server process."""

    def __init__(
        self,
        transport: ConnectionManager,
        *,
        mode: Literal["session", "global"] = "session",
        time_request_timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.transport = transport
        self.mode = mode
        self.users = ConnectionRegistry()
        self.sessions = SessionRegistry(self.users, transport)

        self.leadership: SessionLeadership | GlobalLeadership
        if mode == "global":
            self.leadership = GlobalLeadership(self.users, transport)
        else:
            self.leadership = SessionLeadership(self.sessions, transport)

        self.broadcaster = StateBroadcaster(self.users, self.leadership)
        self.time_sync = TimeSyncHandshake(
            self.users, transport, self.leadership, timeout=time_request_timeout
        )

        self.users.add_teardown(self.time_sync.on_disconnect)
        handlers: dict[str, Handler] = {
            "leaderUpdate": self._leader_update,
            "stateUpdate": self._leader_update,
            "leaderSeeked": self._leader_seeked,
            "followerTimeReq": self._follower_time_req,
            "leaderTimeRes": self._leader_time_res,
        }
        if isinstance(self.leadership, GlobalLeadership):
            self.users.add_teardown(self.leadership.on_disconnect)
            handlers["changeLeader"] = self._change_leader
        else:
            self.users.add_teardown(self.sessions.on_disconnect)
            handlers["createSession"] = self._create_session
            handlers["joinSession"] = self._join_session
            handlers["leaveSession"] = self._leave_session
        self._handlers = handlers

    @property
    def leader_id(self) -> str | None:
        """Global leader id; always ``None`` in session mode."""
        if isinstance(self.leadership, GlobalLeadership):
            return self.leadership.leader_id
        return None

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self, websocket: WebSocket) -> str:
        """Register a new connection and tell it its id."""
        user = self.users.connect()
        await self.transport.connect(user.id, websocket)
        await self.transport.send_to_user(user.id, ws_messages.user_id(user_id=user.id))
        return user.id

    async def disconnect(self, user_id: str) -> None:
        await self.users.disconnect(user_id)
        await self.transport.disconnect(user_id)

    async def close(self) -> None:
        await self.time_sync.close()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def handle(self, user_id: str, event: str, data: Any = None) -> Any:
        """Run *event* for *user_id* and return its acknowledgement payload."""
        handler = self._handlers.get(event)
        try:
            if handler is None:
                raise ValidationError(f"Unknown event {event!r}.", code="UnknownEvent")
            return await handler(user_id, data)
        except RelayError as exc:
            logger.warning("User %s: %s rejected (%s): %s", user_id, event, exc.code, exc.message)
            return {"errorMessage": exc.message}
        except Exception:
            # A handler bug fails this frame only; the connection stays up.
            logger.exception("User %s: %s failed unexpectedly.", user_id, event)
            return {"errorMessage": "Internal error."}

    async def _create_session(self, user_id: str, data: Any) -> str:
        return self.sessions.create(user_id, data)

    async def _join_session(self, user_id: str, data: Any) -> bool:
        await self.sessions.join(user_id, data)
        return True

    async def _leave_session(self, user_id: str, data: Any) -> bool:
        await self.sessions.leave(user_id)
        self.time_sync.drop_user(user_id)
        return True

    async def _leader_update(self, user_id: str, data: Any) -> bool:
        await self.broadcaster.apply_update(user_id, data)
        return True

    async def _leader_seeked(self, user_id: str, data: Any) -> bool:
        await self.broadcaster.apply_seek(user_id, data)
        return True

    async def _follower_time_req(self, user_id: str, data: Any) -> dict:
        request_id = await self.time_sync.request_time(user_id)
        return {"relayed": True, "requestId": request_id}

    async def _leader_time_res(self, user_id: str, data: Any) -> bool:
        return self.time_sync.respond(user_id, data)

    async def _change_leader(self, user_id: str, data: Any) -> bool:
        return await self.leadership.change_leader(user_id)
