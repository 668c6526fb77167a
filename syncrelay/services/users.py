"""Connection registry: one ``User`` per live WebSocket connection.

The registry owns every ``User`` record. Other services hold user ids and
look records up through ``require``, which is also the liveness guard every
operation runs before it mutates anything.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass

from syncrelay.exceptions import DisconnectedError
from syncrelay.services.identity import generate_id

logger = logging.getLogger(__name__)


@dataclass
class User:
    """Identity handed to a connection on arrival."""

    id: str
    session_id: str | None = None


Teardown = Callable[[User], Awaitable[None]]


class ConnectionRegistry:
    """Maps connection ids to ``User`` records and unwinds them on disconnect."""

    def __init__(self) -> None:
        self._users: dict[str, User] = {}
        self._teardowns: list[Teardown] = []

    def add_teardown(self, teardown: Teardown) -> None:
        """Register a coroutine run for every user removed by ``disconnect``.

        Teardowns run in registration order, after the record is already
        gone from the registry.
        """
        self._teardowns.append(teardown)

    def connect(self) -> User:
        user = User(id=generate_id(self._users))
        self._users[user.id] = user
        logger.info("User %s connected.", user.id)
        return user

    async def disconnect(self, user_id: str) -> None:
        """Remove *user_id* and release everything it held.

        Idempotent: a second call for the same id only logs.
        """
        user = self._users.pop(user_id, None)
        if user is None:
            logger.info("Disconnect for %s, but the user is already gone.", user_id)
            return
        for teardown in self._teardowns:
            await teardown(user)
        logger.info("User %s disconnected.", user_id)

    def require(self, user_id: str) -> User:
        """Return the live ``User`` or raise ``DisconnectedError``."""
        user = self._users.get(user_id)
        if user is None:
            logger.info("User %s sent a message, but is now disconnected.", user_id)
            raise DisconnectedError()
        return user

    def get(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    def ids(self) -> Iterator[str]:
        return iter(list(self._users))

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._users

    def __len__(self) -> int:
        return len(self._users)
