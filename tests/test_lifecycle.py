"""Tests for the event relay and the connection lifecycle manager."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from codesync.core.settings import HubSettings
from codesync.exceptions import NotRoomMemberError
from codesync.realtime.lifecycle import ConnectionLifecycleManager
from codesync.realtime.messages import (
    CodeChangePayload,
    CursorChangePayload,
    JoinRoomPayload,
    LanguageChangePayload,
    LeaveRoomPayload,
    Participant,
    RunCodePayload,
)
from codesync.realtime.registry import SessionRegistry
from codesync.realtime.relay import EventRelay

Decode = Callable[[MagicMock], list[dict[str, Any]]]


def _join(room_id: str, user_id: str, user_name: str) -> JoinRoomPayload:
    return JoinRoomPayload(room_id=room_id, user_id=user_id, user_name=user_name)


class TestEventRelay:
    """Tests for the EventRelay class."""

    @pytest.mark.asyncio
    async def test_broadcast_excludes_sender(
        self,
        registry: SessionRegistry,
        relay: EventRelay,
        make_socket: Callable[[], MagicMock],
    ) -> None:
        """Test that broadcast skips the excluded connection."""
        sender, peer = make_socket(), make_socket()
        for cid, ws in (("c1", sender), ("c2", peer)):
            relay.attach(cid, ws)
            registry.register("r1", cid, Participant(cid, cid, cid))

        delivered = await relay.broadcast("r1", {"type": "code-update"}, exclude_connection_id="c1")

        assert delivered == 1
        sender.send_text.assert_not_called()
        peer.send_text.assert_awaited_once_with('{"type": "code-update"}')

    @pytest.mark.asyncio
    async def test_broadcast_unknown_room(self, relay: EventRelay) -> None:
        """Test that broadcasting to an empty room delivers nothing."""
        assert await relay.broadcast("nope", {"type": "code-update"}) == 0

    @pytest.mark.asyncio
    async def test_broadcast_skips_closed_socket(
        self,
        registry: SessionRegistry,
        relay: EventRelay,
        make_socket: Callable[[], MagicMock],
    ) -> None:
        """Test that closed endpoints are skipped silently."""
        closed = make_socket()
        closed.connection_state = "disconnect"
        relay.attach("c1", closed)
        registry.register("r1", "c1", Participant("c1", "u1", "Alice"))

        assert await relay.broadcast("r1", {"type": "code-update"}) == 0
        closed.send_text.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_send_does_not_affect_others(
        self,
        registry: SessionRegistry,
        relay: EventRelay,
        make_socket: Callable[[], MagicMock],
    ) -> None:
        """Test that a send failure to one endpoint is isolated."""
        broken, healthy = make_socket(), make_socket()
        broken.send_text = AsyncMock(side_effect=RuntimeError("socket gone"))
        for cid, ws in (("c1", broken), ("c2", healthy)):
            relay.attach(cid, ws)
            registry.register("r1", cid, Participant(cid, cid, cid))

        delivered = await relay.broadcast("r1", {"type": "language-update"})

        assert delivered == 1
        healthy.send_text.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_send_to_detached(self, relay: EventRelay, make_socket: Callable[[], MagicMock]) -> None:
        """Test that sending to a detached connection reports failure."""
        ws = make_socket()
        relay.attach("c1", ws)
        relay.detach("c1")

        assert await relay.send_to("c1", {"type": "error"}) is False
        assert relay.attached_connections == 0


class TestConnectionLifecycleManager:
    """Tests for join, leave, disconnect and relayed mutations."""

    @pytest.fixture
    def sockets(self, relay: EventRelay, make_socket: Callable[[], MagicMock]) -> dict[str, MagicMock]:
        """Attach three mock endpoints to the relay."""
        result = {}
        for cid in ("c1", "c2", "c3"):
            result[cid] = make_socket()
            relay.attach(cid, result[cid])
        return result

    @pytest.mark.asyncio
    async def test_join_empty_room(
        self,
        lifecycle: ConnectionLifecycleManager,
        sockets: dict[str, MagicMock],
        sent_frames: Decode,
    ) -> None:
        """Test that the first joiner sees an empty participant list."""
        participant = await lifecycle.join_room("c1", _join("r1", "u1", "Alice"))

        assert participant == Participant("c1", "u1", "Alice")
        assert sent_frames(sockets["c1"]) == [{"type": "room-users", "participants": []}]

    @pytest.mark.asyncio
    async def test_join_sends_snapshot_and_notifies_others(
        self,
        lifecycle: ConnectionLifecycleManager,
        sockets: dict[str, MagicMock],
        sent_frames: Decode,
    ) -> None:
        """Test that the joiner gets prior members and peers get user-joined."""
        await lifecycle.join_room("c1", _join("r1", "u1", "Alice"))
        await lifecycle.join_room("c2", _join("r1", "u2", "Bob"))

        bob_frames = sent_frames(sockets["c2"])
        assert bob_frames == [
            {
                "type": "room-users",
                "participants": [{"connectionId": "c1", "userId": "u1", "userName": "Alice"}],
            }
        ]

        alice_frames = sent_frames(sockets["c1"])
        assert alice_frames[-1] == {
            "type": "user-joined",
            "userId": "u2",
            "userName": "Bob",
            "connectionId": "c2",
        }

    @pytest.mark.asyncio
    async def test_code_change_reaches_peers_only(
        self,
        lifecycle: ConnectionLifecycleManager,
        sockets: dict[str, MagicMock],
        sent_frames: Decode,
    ) -> None:
        """Test that a code change is never echoed to its sender."""
        await lifecycle.join_room("c1", _join("r1", "u1", "Alice"))
        await lifecycle.join_room("c2", _join("r1", "u2", "Bob"))
        before = len(sent_frames(sockets["c1"]))

        delivered = await lifecycle.relay_mutation(
            "c1", CodeChangePayload(room_id="r1", code="print(1)", language="python")
        )

        assert delivered == 1
        assert len(sent_frames(sockets["c1"])) == before
        update = sent_frames(sockets["c2"])[-1]
        assert update["type"] == "code-update"
        assert update["code"] == "print(1)"
        assert update["language"] == "python"
        assert update["userId"] == "u1"
        assert "roomId" not in update

    @pytest.mark.asyncio
    async def test_relay_uses_registered_identity(
        self,
        lifecycle: ConnectionLifecycleManager,
        sockets: dict[str, MagicMock],
        sent_frames: Decode,
    ) -> None:
        """Test that a claimed user id in the payload is not trusted."""
        await lifecycle.join_room("c1", _join("r1", "u1", "Alice"))
        await lifecycle.join_room("c2", _join("r1", "u2", "Bob"))

        await lifecycle.relay_mutation(
            "c1", CodeChangePayload(room_id="r1", code="x", language="python", user_id="mallory")
        )

        assert sent_frames(sockets["c2"])[-1]["userId"] == "u1"

    @pytest.mark.asyncio
    async def test_cursor_language_and_run_events(
        self,
        lifecycle: ConnectionLifecycleManager,
        sockets: dict[str, MagicMock],
        sent_frames: Decode,
    ) -> None:
        """Test the outbound shape of cursor, language and run events."""
        await lifecycle.join_room("c1", _join("r1", "u1", "Alice"))
        await lifecycle.join_room("c2", _join("r1", "u2", "Bob"))

        await lifecycle.relay_mutation(
            "c1",
            CursorChangePayload(room_id="r1", position={"lineNumber": 3, "column": 7}, user_id="u1", user_name="Alice"),
        )
        await lifecycle.relay_mutation("c1", LanguageChangePayload(room_id="r1", language="java"))
        await lifecycle.relay_mutation("c1", RunCodePayload(room_id="r1", code="main()", language="java"))

        cursor, language, run = sent_frames(sockets["c2"])[-3:]
        assert cursor == {
            "type": "cursor-update",
            "position": {"lineNumber": 3, "column": 7},
            "userId": "u1",
            "userName": "Alice",
            "connectionId": "c1",
        }
        assert language == {"type": "language-update", "language": "java", "userId": "u1"}
        assert run["type"] == "run-code"
        assert run["code"] == "main()"
        assert isinstance(run["timestamp"], int)

    @pytest.mark.asyncio
    async def test_events_stay_in_their_room(
        self,
        lifecycle: ConnectionLifecycleManager,
        sockets: dict[str, MagicMock],
        sent_frames: Decode,
    ) -> None:
        """Test that rooms are isolated from each other."""
        await lifecycle.join_room("c1", _join("r1", "u1", "Alice"))
        await lifecycle.join_room("c2", _join("r1", "u2", "Bob"))
        await lifecycle.join_room("c3", _join("r2", "u3", "Carol"))
        before = len(sent_frames(sockets["c3"]))

        await lifecycle.relay_mutation("c1", LanguageChangePayload(room_id="r1", language="go"))

        assert len(sent_frames(sockets["c3"])) == before

    @pytest.mark.asyncio
    async def test_non_member_mutation_rejected(
        self,
        lifecycle: ConnectionLifecycleManager,
        sockets: dict[str, MagicMock],
        sent_frames: Decode,
    ) -> None:
        """Test that mutations from a non-member are refused."""
        await lifecycle.join_room("c2", _join("r1", "u2", "Bob"))
        before = len(sent_frames(sockets["c2"]))

        with pytest.raises(NotRoomMemberError) as exc_info:
            await lifecycle.relay_mutation("c1", CodeChangePayload(room_id="r1", code="x", language="python"))

        assert exc_info.value.room_id == "r1"
        assert len(sent_frames(sockets["c2"])) == before

    @pytest.mark.asyncio
    async def test_non_member_mutation_allowed_when_not_required(
        self,
        registry: SessionRegistry,
        relay: EventRelay,
        sockets: dict[str, MagicMock],
        sent_frames: Decode,
    ) -> None:
        """Test the permissive mode relays with the claimed identity."""
        lifecycle = ConnectionLifecycleManager(registry, relay, HubSettings(require_membership=False))
        await lifecycle.join_room("c2", _join("r1", "u2", "Bob"))

        delivered = await lifecycle.relay_mutation(
            "c1", CodeChangePayload(room_id="r1", code="x", language="python", user_id="u1")
        )

        assert delivered == 1
        assert sent_frames(sockets["c2"])[-1]["userId"] == "u1"

    @pytest.mark.asyncio
    async def test_leave_notifies_remaining(
        self,
        lifecycle: ConnectionLifecycleManager,
        registry: SessionRegistry,
        sockets: dict[str, MagicMock],
        sent_frames: Decode,
    ) -> None:
        """Test that leaving announces user-left to the rest of the room."""
        await lifecycle.join_room("c1", _join("r1", "u1", "Alice"))
        await lifecycle.join_room("c2", _join("r1", "u2", "Bob"))

        assert await lifecycle.leave_room("c2", LeaveRoomPayload(room_id="r1")) is True

        assert sent_frames(sockets["c1"])[-1] == {
            "type": "user-left",
            "userId": "u2",
            "userName": "Bob",
            "connectionId": "c2",
        }
        assert [p.connection_id for p in registry.list_participants("r1")] == ["c1"]

    @pytest.mark.asyncio
    async def test_leave_room_not_joined(self, lifecycle: ConnectionLifecycleManager) -> None:
        """Test that leaving a room never joined is a no-op."""
        assert await lifecycle.leave_room("c1", LeaveRoomPayload(room_id="r1")) is False

    @pytest.mark.asyncio
    async def test_last_leave_closes_room(
        self,
        lifecycle: ConnectionLifecycleManager,
        registry: SessionRegistry,
        sockets: dict[str, MagicMock],
    ) -> None:
        """Test that the room is gone once its last member leaves."""
        await lifecycle.join_room("c1", _join("r1", "u1", "Alice"))
        await lifecycle.leave_room("c1", LeaveRoomPayload(room_id="r1"))

        assert not registry.has_room("r1")

    @pytest.mark.asyncio
    async def test_single_room_switch(
        self,
        lifecycle: ConnectionLifecycleManager,
        registry: SessionRegistry,
        sockets: dict[str, MagicMock],
        sent_frames: Decode,
    ) -> None:
        """Test that joining another room leaves the previous one."""
        await lifecycle.join_room("c1", _join("r1", "u1", "Alice"))
        await lifecycle.join_room("c2", _join("r1", "u2", "Bob"))

        await lifecycle.join_room("c2", _join("r2", "u2", "Bob"))

        assert registry.rooms_for("c2") == ["r2"]
        assert sent_frames(sockets["c1"])[-1]["type"] == "user-left"

    @pytest.mark.asyncio
    async def test_multi_room_when_allowed(
        self,
        registry: SessionRegistry,
        relay: EventRelay,
        sockets: dict[str, MagicMock],
    ) -> None:
        """Test that multi-room membership is kept when single_room is off."""
        lifecycle = ConnectionLifecycleManager(registry, relay, HubSettings(single_room=False))
        await lifecycle.join_room("c1", _join("r1", "u1", "Alice"))
        await lifecycle.join_room("c1", _join("r2", "u1", "Alice"))

        assert sorted(registry.rooms_for("c1")) == ["r1", "r2"]

    @pytest.mark.asyncio
    async def test_rejoin_same_room_overwrites(
        self,
        lifecycle: ConnectionLifecycleManager,
        registry: SessionRegistry,
        sockets: dict[str, MagicMock],
        sent_frames: Decode,
    ) -> None:
        """Test that joining the same room twice keeps one entry."""
        await lifecycle.join_room("c1", _join("r1", "u1", "Alice"))
        await lifecycle.join_room("c1", _join("r1", "u1", "Alice B."))

        participants = registry.list_participants("r1")
        assert len(participants) == 1
        assert participants[0].user_name == "Alice B."
        assert sent_frames(sockets["c1"])[-1] == {"type": "room-users", "participants": []}

    @pytest.mark.asyncio
    async def test_disconnect_leaves_every_room(
        self,
        registry: SessionRegistry,
        relay: EventRelay,
        sockets: dict[str, MagicMock],
        sent_frames: Decode,
    ) -> None:
        """Test that a disconnect removes the connection everywhere."""
        lifecycle = ConnectionLifecycleManager(registry, relay, HubSettings(single_room=False))
        await lifecycle.join_room("c1", _join("r1", "u1", "Alice"))
        await lifecycle.join_room("c1", _join("r2", "u1", "Alice"))
        await lifecycle.join_room("c2", _join("r1", "u2", "Bob"))
        await lifecycle.join_room("c3", _join("r2", "u3", "Carol"))

        rooms = await lifecycle.disconnect("c1")

        assert sorted(rooms) == ["r1", "r2"]
        assert registry.rooms_for("c1") == []
        assert sent_frames(sockets["c2"])[-1]["type"] == "user-left"
        assert sent_frames(sockets["c3"])[-1]["type"] == "user-left"

    @pytest.mark.asyncio
    async def test_disconnect_unjoined(self, lifecycle: ConnectionLifecycleManager) -> None:
        """Test that disconnecting a never-joined connection is harmless."""
        assert await lifecycle.disconnect("c1") == []
