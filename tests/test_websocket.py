"""End-to-end tests for the collaboration WebSocket endpoint."""

from __future__ import annotations

from typing import Any

import pytest
from litestar import Litestar
from litestar.testing import TestClient
from litestar.testing.websocket_test_session import WebSocketTestSession

from codesync.plugin import CodeSyncPlugin

WS_PATH = "/ws/collab"


def _join(ws: WebSocketTestSession, room_id: str, user_id: str, user_name: str) -> dict[str, Any]:
    ws.send_json({"type": "join-room", "roomId": room_id, "userId": user_id, "userName": user_name})
    return ws.receive_json()


def _connected(ws: WebSocketTestSession) -> str:
    frame = ws.receive_json()
    assert frame["type"] == "connected"
    return frame["connectionId"]


class TestCollabWebSocket:
    """Tests for the /ws/collab endpoint."""

    def test_connect_announces_connection_id(self, client: TestClient[Litestar]) -> None:
        """Test that every socket is greeted with its connection id."""
        with client.websocket_connect(WS_PATH) as ws:
            connection_id = _connected(ws)

        assert len(connection_id) == 32

    def test_two_clients_join(self, client: TestClient[Litestar]) -> None:
        """Test the join handshake between two clients."""
        with client.websocket_connect(WS_PATH) as alice, client.websocket_connect(WS_PATH) as bob:
            alice_cid = _connected(alice)
            bob_cid = _connected(bob)

            assert _join(alice, "room-1", "u1", "Alice") == {"type": "room-users", "participants": []}

            room_users = _join(bob, "room-1", "u2", "Bob")
            assert room_users["participants"] == [{"connectionId": alice_cid, "userId": "u1", "userName": "Alice"}]

            assert alice.receive_json() == {
                "type": "user-joined",
                "userId": "u2",
                "userName": "Bob",
                "connectionId": bob_cid,
            }

    def test_code_change_relayed_without_echo(self, client: TestClient[Litestar]) -> None:
        """Test that a code change reaches the peer but not the sender."""
        with client.websocket_connect(WS_PATH) as alice, client.websocket_connect(WS_PATH) as bob:
            _connected(alice)
            _connected(bob)
            _join(alice, "room-1", "u1", "Alice")
            _join(bob, "room-1", "u2", "Bob")
            alice.receive_json()  # user-joined

            alice.send_json({"type": "code-change", "roomId": "room-1", "code": "print('hi')", "language": "python"})

            update = bob.receive_json()
            assert update["type"] == "code-update"
            assert update["code"] == "print('hi')"
            assert update["language"] == "python"
            assert update["userId"] == "u1"
            assert "roomId" not in update

            bob.send_json({"type": "language-change", "roomId": "room-1", "language": "java"})

            # Alice's next frame is Bob's change, not an echo of her own edit.
            assert alice.receive_json() == {"type": "language-update", "language": "java", "userId": "u2"}

    def test_disconnect_notifies_and_cleans_up(
        self,
        client: TestClient[Litestar],
        plugin: CodeSyncPlugin,
    ) -> None:
        """Test that closing a socket announces user-left and empties the room."""
        with client.websocket_connect(WS_PATH) as alice:
            _connected(alice)
            _join(alice, "room-1", "u1", "Alice")

            with client.websocket_connect(WS_PATH) as bob:
                bob_cid = _connected(bob)
                _join(bob, "room-1", "u2", "Bob")
                alice.receive_json()  # user-joined

            assert alice.receive_json() == {
                "type": "user-left",
                "userId": "u2",
                "userName": "Bob",
                "connectionId": bob_cid,
            }
            assert [p.user_id for p in plugin.registry.list_participants("room-1")] == ["u1"]

            alice.send_json({"type": "leave-room", "roomId": "room-1"})
            alice.send_json({"type": "code-change", "roomId": "room-1", "code": "", "language": "python"})

            error = alice.receive_json()
            assert error["type"] == "error"
            assert error["code"] == "not_joined"
            assert not plugin.registry.has_room("room-1")

    def test_mutation_before_join_rejected(self, client: TestClient[Litestar]) -> None:
        """Test that a non-member cannot write into a room."""
        with client.websocket_connect(WS_PATH) as ws:
            _connected(ws)
            ws.send_json({"type": "code-change", "roomId": "room-1", "code": "x", "language": "python"})

            assert ws.receive_json() == {
                "type": "error",
                "code": "not_joined",
                "message": "Must join room first",
                "details": {"roomId": "room-1"},
            }

    @pytest.mark.parametrize(
        ("frame", "code"),
        [
            ("not json", "invalid_json"),
            ('{"roomId": "room-1"}', "missing_type"),
            ('["join-room"]', "missing_type"),
            ('{"type": "delete-room"}', "unknown_type"),
            ('{"type": "code-update", "roomId": "room-1"}', "unknown_type"),
            ('{"type": "join-room", "userId": "u1", "userName": "Alice"}', "invalid_payload"),
        ],
    )
    def test_rejected_frames(self, client: TestClient[Litestar], frame: str, code: str) -> None:
        """Test that malformed frames get an error and keep the socket open."""
        with client.websocket_connect(WS_PATH) as ws:
            _connected(ws)
            ws.send_text(frame)

            error = ws.receive_json()
            assert error["type"] == "error"
            assert error["code"] == code

            assert _join(ws, "room-1", "u1", "Alice")["type"] == "room-users"

    def test_invalid_payload_names_field(self, client: TestClient[Litestar]) -> None:
        """Test that validation errors point at the offending field."""
        with client.websocket_connect(WS_PATH) as ws:
            _connected(ws)
            ws.send_json({"type": "cursor-change", "roomId": "room-1", "position": "3:7"})

            error = ws.receive_json()
            assert error["code"] == "invalid_payload"
            assert error["details"] == {"field": "position"}
