"""Session registry: creation, membership and teardown of playback sessions.

A session is a room of connections sharing one timeline. Its owner is the
only member allowed to push state (see ``services/leadership.py``). When
the owner leaves while others remain, the oldest remaining member is
promoted and asked for a fresh snapshot, so a session is never left
locked by an owner who is gone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from syncrelay.exceptions import NotFoundError, StateError
from syncrelay.services import ws_messages
from syncrelay.services.connection_manager import ConnectionManager
from syncrelay.services.identity import generate_id, validate_id
from syncrelay.services.users import ConnectionRegistry, User
from syncrelay.services.validation import check_playback_payload

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PlaybackState:
    """Last state pushed by a leader."""

    last_known_time: float = 0
    is_playing: bool = False
    last_known_time_updated_at: datetime = field(default_factory=_utcnow)

    def merge(self, data: dict) -> None:
        """Apply a validated ``{lastKnownTime, isPlaying}`` payload."""
        self.last_known_time = data["lastKnownTime"]
        self.is_playing = data["isPlaying"]
        self.last_known_time_updated_at = _utcnow()


@dataclass(kw_only=True)
class Session(PlaybackState):
    id: str
    owner_id: str | None
    # Insertion order only matters for picking the next owner.
    member_ids: list[str] = field(default_factory=list)


class SessionRegistry:
    """Owns every live ``Session`` and keeps ``User.session_id`` in step."""

    def __init__(self, users: ConnectionRegistry, transport: ConnectionManager) -> None:
        self._users = users
        self._transport = transport
        self._sessions: dict[str, Session] = {}

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def session_of(self, user: User) -> Session:
        """Return *user*'s session or raise ``StateError("NotInSession")``."""
        if user.session_id is None:
            raise StateError("Not in a session.", code="NotInSession")
        return self._sessions[user.session_id]

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create(self, owner_id: str, data: object) -> str:
        """Create a session owned by *owner_id* and return its id.

        The session always starts paused; the owner's ``isPlaying`` is
        validated but only takes effect with its first leader update.
        """
        user = self._users.require(owner_id)
        if user.session_id is not None:
            raise StateError("Already in a session.", code="AlreadyInSession")
        check_playback_payload(data)

        session = Session(
            id=generate_id(self._sessions),
            owner_id=user.id,
            last_known_time=data["lastKnownTime"],
            is_playing=False,
            member_ids=[user.id],
        )
        self._sessions[session.id] = session
        self._transport.join_room(session.id, user.id)
        user.session_id = session.id
        logger.info("User %s created session %s.", user.id, session.id)
        return session.id

    async def join(self, user_id: str, session_id: object) -> None:
        """Add *user_id* to *session_id* and ask the owner for fresh state."""
        user = self._users.require(user_id)
        if not validate_id(session_id) or session_id not in self._sessions:
            logger.info("User %s attempted to join nonexistent session %r.", user_id, session_id)
            raise NotFoundError("Invalid session ID.", code="SessionNotFound")
        if user.session_id is not None:
            logger.info(
                "User %s attempted to join session %s, but is already in session %s.",
                user_id,
                session_id,
                user.session_id,
            )
            raise StateError("Already in a session.", code="AlreadyInSession")

        session = self._sessions[session_id]
        session.member_ids.append(user.id)
        self._transport.join_room(session.id, user.id)
        user.session_id = session.id
        logger.info("User %s joined session %s.", user.id, session.id)

        if session.owner_id is not None:
            await self._transport.send_to_user(session.owner_id, ws_messages.lead_request())

    async def leave(self, user_id: str) -> None:
        """Explicit leave request from a connected user."""
        user = self._users.require(user_id)
        if user.session_id is None:
            logger.info("User %s attempted to leave a session, but was not in one.", user_id)
            raise StateError("Not in a session.", code="NotInSession")
        await self._detach(user)

    async def on_disconnect(self, user: User) -> None:
        """Teardown hook registered with the connection registry."""
        if user.session_id is not None:
            await self._detach(user)

    async def _detach(self, user: User) -> None:
        session = self._sessions[user.session_id]
        if user.id in session.member_ids:
            session.member_ids.remove(user.id)
        user.session_id = None
        self._transport.leave_room(session.id, user.id)
        logger.info("User %s left session %s.", user.id, session.id)

        if not session.member_ids:
            del self._sessions[session.id]
            logger.info("Session %s was deleted because there were no more users in it.", session.id)
            return

        if session.owner_id == user.id:
            session.owner_id = session.member_ids[0]
            logger.info("Session %s ownership passed to %s.", session.id, session.owner_id)
            await self._transport.send_to_user(session.owner_id, ws_messages.lead_request())
            await self._transport.broadcast_to_room(
                session.id, ws_messages.owner_changed(owner_id=session.owner_id)
            )
