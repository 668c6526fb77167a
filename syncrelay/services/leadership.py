"""Leadership locks for the two deployment modes.

Both classes expose the same surface to the broadcaster and the time-sync
handshake:

- ``playback_for(user)``: the ``PlaybackState`` the user's updates land in
- ``require_leader(user, playback)``: raise unless the user holds the lock
- ``leader_for(user)``: id of the leader the user follows, or ``None``
- ``broadcast_from(user, message)``: fan out to the user's scope, sender excluded

In ``session`` mode the session owner is the lock. In ``global`` mode a
single ``leader_id`` is shared by every connection and toggled with
``changeLeader``.
"""

from __future__ import annotations

import logging

from syncrelay.exceptions import AuthorizationError
from syncrelay.services import ws_messages
from syncrelay.services.connection_manager import ConnectionManager
from syncrelay.services.sessions import PlaybackState, Session, SessionRegistry
from syncrelay.services.users import ConnectionRegistry, User

logger = logging.getLogger(__name__)


class SessionLeadership:
    """Per-session exclusivity: only ``Session.owner_id`` may push state."""

    mode = "session"

    def __init__(self, sessions: SessionRegistry, transport: ConnectionManager) -> None:
        self._sessions = sessions
        self._transport = transport

    def playback_for(self, user: User) -> Session:
        return self._sessions.session_of(user)

    def require_leader(self, user: User, playback: Session) -> None:
        if playback.owner_id != user.id:
            logger.info(
                "User %s attempted to update session %s but the session is locked by %s.",
                user.id,
                playback.id,
                playback.owner_id,
            )
            raise AuthorizationError("Session locked.", code="SessionLocked")

    def leader_for(self, user: User) -> str | None:
        return self._sessions.session_of(user).owner_id

    async def broadcast_from(self, user: User, message: dict) -> None:
        await self._transport.broadcast_to_room(user.session_id, message, exclude=user.id)


class GlobalLeadership:
    """One leader across all connections, claimed and released by toggling."""

    mode = "global"

    def __init__(self, users: ConnectionRegistry, transport: ConnectionManager) -> None:
        self._users = users
        self._transport = transport
        self.leader_id: str | None = None
        self.playback = PlaybackState()

    def is_leader(self, user_id: str) -> bool:
        return self.leader_id is not None and self.leader_id == user_id

    def toggle(self, user_id: str) -> bool:
        """Release leadership if held, claim it if free; return the new status.

        Raises ``AuthorizationError("LeaderExists")`` when someone else
        holds it.
        """
        if self.leader_id == user_id:
            self.leader_id = None
            logger.info("User %s released leadership.", user_id)
            return False
        if self.leader_id is None:
            self.leader_id = user_id
            logger.info("User %s is now the leader.", user_id)
            return True
        logger.info("User %s attempted to lead, but %s already leads.", user_id, self.leader_id)
        raise AuthorizationError("A leader already exists.", code="LeaderExists")

    def release_if_held(self, user_id: str) -> bool:
        if not self.is_leader(user_id):
            return False
        self.leader_id = None
        logger.info("Leader %s released by disconnect.", user_id)
        return True

    async def change_leader(self, user_id: str) -> bool:
        """``changeLeader`` event: toggle and tell everyone else who leads now."""
        self._users.require(user_id)
        status = self.toggle(user_id)
        await self._transport.broadcast(
            ws_messages.leader_changed(leader_id=self.leader_id), exclude=user_id
        )
        return status

    async def on_disconnect(self, user: User) -> None:
        """Teardown hook: a departing leader always gives up the lock."""
        if self.release_if_held(user.id):
            await self._transport.broadcast(
                ws_messages.leader_changed(leader_id=None), exclude=user.id
            )

    def playback_for(self, user: User) -> PlaybackState:
        return self.playback

    def require_leader(self, user: User, playback: PlaybackState) -> None:
        if not self.is_leader(user.id):
            logger.info("User %s attempted to update state but is not the leader.", user.id)
            raise AuthorizationError("Not the leader.", code="NotLeader")

    def leader_for(self, user: User) -> str | None:
        return self.leader_id

    async def broadcast_from(self, user: User, message: dict) -> None:
        await self._transport.broadcast(message, exclude=user.id)
