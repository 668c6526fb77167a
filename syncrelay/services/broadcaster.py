"""Leader state updates: validate, store, fan out.

Every check runs before any mutation, so a rejected update leaves state
untouched and nothing is broadcast.
"""

from __future__ import annotations

import logging

from syncrelay.services import ws_messages
from syncrelay.services.leadership import GlobalLeadership, SessionLeadership
from syncrelay.services.users import ConnectionRegistry
from syncrelay.services.validation import check_playback_payload

logger = logging.getLogger(__name__)


class StateBroadcaster:
    def __init__(
        self,
        users: ConnectionRegistry,
        leadership: SessionLeadership | GlobalLeadership,
    ) -> None:
        self._users = users
        self._leadership = leadership

    async def apply_update(self, user_id: str, data: object) -> None:
        """``leaderUpdate``: continuous play state from the leader."""
        await self._apply(user_id, data, ws_messages.follower_update)

    async def apply_seek(self, user_id: str, data: object) -> None:
        """``leaderSeeked``: a discontinuous jump followers must snap to."""
        await self._apply(user_id, data, ws_messages.follower_seek)

    async def _apply(self, user_id: str, data: object, factory) -> None:
        user = self._users.require(user_id)
        playback = self._leadership.playback_for(user)
        check_playback_payload(data)
        self._leadership.require_leader(user, playback)

        playback.merge(data)
        logger.debug(
            "User %s pushed time %s, playing=%s.", user.id, data["lastKnownTime"], data["isPlaying"]
        )
        # Relay the payload as received, extra fields included.
        await self._leadership.broadcast_from(user, factory(data=data))
