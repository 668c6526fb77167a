"""Tests for StateBroadcaster: validation order, authorization, fan-out."""

from __future__ import annotations

import pytest
from freezegun import freeze_time

from syncrelay.exceptions import (
    AuthorizationError,
    DisconnectedError,
    StateError,
    ValidationError,
)
from tests.factories import connect_user, make_playback, sent


async def _session_with_members(hub, count: int):
    """Owner plus ``count - 1`` followers; returns ``(session_id, [(id, ws), ...])``."""
    members = [await connect_user(hub) for _ in range(count)]
    session_id = hub.sessions.create(members[0][0], make_playback())
    for user_id, _ in members[1:]:
        await hub.sessions.join(user_id, session_id)
    for _, ws in members:
        ws.send_json.reset_mock()
    return session_id, members


class TestSessionUpdates:
    @pytest.mark.asyncio
    async def test_update_reaches_every_other_member(self, hub):
        session_id, members = await _session_with_members(hub, 3)
        (owner, owner_ws), (_, ws_b), (_, ws_c) = members
        payload = make_playback(lastKnownTime=5000, isPlaying=True)

        await hub.broadcaster.apply_update(owner, payload)

        expected = {"type": "followerUpdate", "data": payload}
        assert sent(ws_b) == [expected]
        assert sent(ws_c) == [expected]
        assert sent(owner_ws) == []

    @pytest.mark.asyncio
    async def test_update_merges_state(self, hub):
        session_id, members = await _session_with_members(hub, 2)
        owner = members[0][0]

        with freeze_time("2026-03-04 05:06:07"):
            await hub.broadcaster.apply_update(owner, make_playback(lastKnownTime=7, isPlaying=True))

        session = hub.sessions.get(session_id)
        assert session.last_known_time == 7
        assert session.is_playing is True
        assert session.last_known_time_updated_at.isoformat() == "2026-03-04T05:06:07+00:00"
        assert session.owner_id == owner

    @pytest.mark.asyncio
    async def test_raw_payload_relayed(self, hub):
        """Extra fields go out untouched but never overwrite session fields."""
        session_id, members = await _session_with_members(hub, 2)
        owner = members[0][0]
        payload = {"lastKnownTime": 1, "isPlaying": False, "ownerId": "hijack", "note": "x"}

        await hub.broadcaster.apply_update(owner, payload)

        assert sent(members[1][1]) == [{"type": "followerUpdate", "data": payload}]
        assert hub.sessions.get(session_id).owner_id == owner

    @pytest.mark.asyncio
    async def test_non_owner_rejected_without_side_effects(self, hub):
        session_id, members = await _session_with_members(hub, 3)
        (owner, owner_ws), (follower, follower_ws), (_, ws_c) = members
        before = hub.sessions.get(session_id).last_known_time_updated_at

        with pytest.raises(AuthorizationError) as exc_info:
            await hub.broadcaster.apply_update(follower, make_playback(lastKnownTime=999))

        assert exc_info.value.code == "SessionLocked"
        session = hub.sessions.get(session_id)
        assert session.last_known_time == 0
        assert session.last_known_time_updated_at == before
        assert sent(owner_ws) == []
        assert sent(ws_c) == []
        assert sent(follower_ws) == []

    @pytest.mark.asyncio
    async def test_not_in_session(self, hub):
        user, _ = await connect_user(hub)
        with pytest.raises(StateError) as exc_info:
            await hub.broadcaster.apply_update(user, make_playback())
        assert exc_info.value.code == "NotInSession"

    @pytest.mark.asyncio
    async def test_validation_precedes_authorization(self, hub):
        _, members = await _session_with_members(hub, 2)
        follower = members[1][0]
        with pytest.raises(ValidationError):
            await hub.broadcaster.apply_update(follower, {"lastKnownTime": -1, "isPlaying": True})

    @pytest.mark.asyncio
    async def test_disconnected_caller(self, hub):
        with pytest.raises(DisconnectedError):
            await hub.broadcaster.apply_update("0123456789abcdef", make_playback())

    @pytest.mark.asyncio
    async def test_updates_do_not_cross_sessions(self, hub):
        _, first = await _session_with_members(hub, 2)
        _, second = await _session_with_members(hub, 2)

        await hub.broadcaster.apply_update(first[0][0], make_playback(lastKnownTime=3))

        assert sent(second[0][1]) == []
        assert sent(second[1][1]) == []

    @pytest.mark.asyncio
    async def test_seek_broadcast(self, hub):
        session_id, members = await _session_with_members(hub, 2)
        (owner, owner_ws), (_, follower_ws) = members
        payload = make_playback(lastKnownTime=90000, isPlaying=True)

        await hub.broadcaster.apply_seek(owner, payload)

        assert sent(follower_ws) == [{"type": "followerSeek", "data": payload}]
        assert sent(owner_ws) == []
        assert hub.sessions.get(session_id).last_known_time == 90000

    @pytest.mark.asyncio
    async def test_seek_from_follower_rejected(self, hub):
        _, members = await _session_with_members(hub, 2)
        with pytest.raises(AuthorizationError):
            await hub.broadcaster.apply_seek(members[1][0], make_playback())
        assert sent(members[0][1]) == []


class TestGlobalUpdates:
    @pytest.mark.asyncio
    async def test_leader_update_reaches_all_other_connections(self, global_hub):
        (leader, leader_ws), (_, ws_b), (_, ws_c) = [
            await connect_user(global_hub) for _ in range(3)
        ]
        global_hub.leadership.toggle(leader)
        payload = make_playback(lastKnownTime=12, isPlaying=True)

        await global_hub.broadcaster.apply_update(leader, payload)

        assert sent(ws_b) == [{"type": "followerUpdate", "data": payload}]
        assert sent(ws_c) == [{"type": "followerUpdate", "data": payload}]
        assert sent(leader_ws) == []
        assert global_hub.leadership.playback.last_known_time == 12
        assert global_hub.leadership.playback.is_playing is True

    @pytest.mark.asyncio
    async def test_non_leader_rejected(self, global_hub):
        (user, _), (_, other_ws) = [await connect_user(global_hub) for _ in range(2)]
        with pytest.raises(AuthorizationError) as exc_info:
            await global_hub.broadcaster.apply_update(user, make_playback(lastKnownTime=5))
        assert exc_info.value.code == "NotLeader"
        assert sent(other_ws) == []
        assert global_hub.leadership.playback.last_known_time == 0

    @pytest.mark.asyncio
    async def test_payload_checked_before_leadership(self, global_hub):
        user, _ = await connect_user(global_hub)
        with pytest.raises(ValidationError):
            await global_hub.broadcaster.apply_update(user, {"lastKnownTime": 1, "isPlaying": None})
