"""Follower-initiated time sync: a two-hop relay through the leader.

The server never answers a time request itself. ``request_time`` forwards
the request to the follower's leader with a fresh request id; ``respond``
matches the leader's answer back to the waiting follower by that id.

Each pending relay is bounded by a timeout. If the follower disconnects
first the relay is cancelled and any late answer is dropped; if the leader
disconnects first the follower is told immediately.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from syncrelay.exceptions import (
    AuthorizationError,
    RelayError,
    RequestTimeoutError,
    ValidationError,
)
from syncrelay.services import ws_messages
from syncrelay.services.connection_manager import ConnectionManager
from syncrelay.services.identity import generate_id
from syncrelay.services.leadership import GlobalLeadership, SessionLeadership
from syncrelay.services.users import ConnectionRegistry, User

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0  # seconds


@dataclass
class PendingTimeRequest:
    id: str
    follower_id: str
    leader_id: str
    future: asyncio.Future
    task: asyncio.Task | None = field(default=None, repr=False)


class TimeSyncHandshake:
    def __init__(
        self,
        users: ConnectionRegistry,
        transport: ConnectionManager,
        leadership: SessionLeadership | GlobalLeadership,
        *,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._users = users
        self._transport = transport
        self._leadership = leadership
        self._timeout = timeout
        self._pending: dict[str, PendingTimeRequest] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def request_time(self, follower_id: str) -> str:
        """Relay a time request to *follower_id*'s leader; return the request id."""
        follower = self._users.require(follower_id)
        leader_id = self._leadership.leader_for(follower)
        if leader_id is None:
            raise ValidationError("No leader.", code="NoLeader")
        if leader_id == follower.id:
            raise AuthorizationError("The leader cannot request its own time.", code="IsLeader")

        pending = PendingTimeRequest(
            id=generate_id(self._pending),
            follower_id=follower.id,
            leader_id=leader_id,
            future=asyncio.get_running_loop().create_future(),
        )
        self._pending[pending.id] = pending
        pending.task = asyncio.create_task(self._relay(pending))
        logger.debug("User %s requested time from leader %s (%s).", follower.id, leader_id, pending.id)

        await self._transport.send_to_user(
            leader_id, ws_messages.leader_time_request(request_id=pending.id)
        )
        return pending.id

    def respond(self, leader_id: str, data: object) -> bool:
        """Handle a ``leaderTimeRes`` event: ``{"requestId": ..., "data": ...}``.

        Returns ``False`` when the request is unknown or already settled
        (timed out, or its follower left); the answer is then dropped.
        """
        self._users.require(leader_id)
        if not isinstance(data, dict) or not isinstance(data.get("requestId"), str):
            raise ValidationError("Invalid time response.", code="InvalidTimeResponse")

        pending = self._pending.get(data["requestId"])
        if pending is None or pending.future.done():
            logger.info("Dropping late time response %r from %s.", data["requestId"], leader_id)
            return False
        if pending.leader_id != leader_id:
            logger.warning(
                "User %s answered time request %s addressed to %s.",
                leader_id,
                pending.id,
                pending.leader_id,
            )
            raise AuthorizationError("Not the leader for this request.", code="NotLeader")

        pending.future.set_result(data.get("data"))
        return True

    async def on_disconnect(self, user: User) -> None:
        """Teardown hook: cancel the user's own requests, fail ones it owed."""
        self.drop_user(user.id)

    def drop_user(self, user_id: str) -> None:
        for pending in list(self._pending.values()):
            if pending.follower_id == user_id:
                del self._pending[pending.id]
                if pending.task is not None:
                    pending.task.cancel()
            elif pending.leader_id == user_id and not pending.future.done():
                pending.future.set_exception(
                    RelayError("Leader disconnected.", code="LeaderDisconnected")
                )

    async def _relay(self, pending: PendingTimeRequest) -> None:
        payload: Any = None
        error: RelayError | None = None
        try:
            payload = await asyncio.wait_for(pending.future, self._timeout)
        except asyncio.TimeoutError:
            error = RequestTimeoutError("Time request timed out.", code="Timeout")
            logger.warning(
                "Leader %s did not answer time request %s within %ss.",
                pending.leader_id,
                pending.id,
                self._timeout,
            )
        except RelayError as exc:
            error = exc
        finally:
            self._pending.pop(pending.id, None)

        if pending.follower_id not in self._users:
            return
        if error is not None:
            await self._transport.send_to_user(
                pending.follower_id, ws_messages.time_update_error(message=error.message)
            )
            return
        await self._transport.send_to_user(pending.follower_id, ws_messages.time_update(data=payload))

    async def close(self) -> None:
        """Cancel every pending relay (application shutdown)."""
        tasks = [p.task for p in self._pending.values() if p.task is not None]
        self._pending.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
