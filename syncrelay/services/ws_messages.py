"""WebSocket message factory functions.

Each function returns a plain dict with a ``type`` field plus data fields.
Services call these factories and pass the result to
``ConnectionManager.send_to_user()`` or one of the broadcast helpers.
"""

from __future__ import annotations

from typing import Any


def user_id(*, user_id: str) -> dict:
    """Identity assigned to a freshly connected client."""
    return {"type": "userId", "userId": user_id}


def ack(*, ack_id: int | str, data: Any) -> dict:
    """Acknowledgement for a client event that carried an ``ack`` id.

    ``data`` is the event's result, or ``{"errorMessage": ...}`` on failure.
    """
    return {"type": "ack", "ack": ack_id, "data": data}


def error(*, message: str) -> dict:
    """Unsolicited error, used when a frame cannot be parsed at all."""
    return {"type": "error", "errorMessage": message}


def lead_request() -> dict:
    """Ask a session owner to push a fresh state snapshot."""
    return {"type": "leadRequest"}


def follower_update(*, data: dict) -> dict:
    """Leader state update relayed verbatim to followers."""
    return {"type": "followerUpdate", "data": data}


def follower_seek(*, data: dict) -> dict:
    """Discontinuous time correction relayed verbatim to followers."""
    return {"type": "followerSeek", "data": data}


def leader_time_request(*, request_id: str) -> dict:
    """Ask the leader for its current time on behalf of a follower.

    The leader answers with a ``leaderTimeRes`` event carrying the same
    ``requestId``.
    """
    return {"type": "leaderTimeReq", "requestId": request_id}


def time_update(*, data: Any) -> dict:
    """Leader's answer to a follower time request, forwarded unmodified."""
    return {"type": "timeUpdate", "data": data}


def time_update_error(*, message: str) -> dict:
    """A follower time request could not be answered."""
    return {"type": "timeUpdateError", "errorMessage": message}


def owner_changed(*, owner_id: str) -> dict:
    """Session ownership moved to another member."""
    return {"type": "ownerChanged", "ownerId": owner_id}


def leader_changed(*, leader_id: str | None) -> dict:
    """Global leadership was claimed (id) or released (``None``)."""
    return {"type": "leaderChanged", "leaderId": leader_id}


def ping() -> dict:
    return {"type": "ping"}
