"""WebSocket handler for real-time collaborative code editing."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog
from litestar import Router, WebSocket, websocket

from codesync.exceptions import InvalidPayloadError, NotRoomMemberError, UnknownEventError
from codesync.realtime.messages import (
    INBOUND_PAYLOADS,
    MUTATION_EVENTS,
    ConnectedEvent,
    ErrorEvent,
    EventType,
)

if TYPE_CHECKING:
    from codesync.realtime.lifecycle import ConnectionLifecycleManager
    from codesync.realtime.relay import EventRelay

logger = structlog.get_logger(__name__)


class CollabWebSocketHandler:
    """Handler for collaboration WebSocket connections.

    Each accepted socket gets a fresh connection id. Inbound frames are
    decoded, validated and dispatched to the lifecycle manager; rejected
    frames produce an ``error`` frame for the sender only and never close
    the connection. When the socket goes away for any reason the connection
    is removed from every room it had joined.
    """

    def __init__(self, lifecycle: ConnectionLifecycleManager, relay: EventRelay) -> None:
        """Initialize the WebSocket handler.

        Args:
            lifecycle: The connection lifecycle manager.
            relay: The event relay endpoints are attached to.
        """
        self._lifecycle = lifecycle
        self._relay = relay

    async def handle_connection(self, socket: WebSocket) -> None:
        """Handle a collaboration WebSocket connection.

        Args:
            socket: The WebSocket connection.
        """
        await socket.accept()

        connection_id = uuid4().hex
        self._relay.attach(connection_id, socket)
        structlog.contextvars.bind_contextvars(connection_id=connection_id)

        logger.debug("WebSocket connection accepted")

        try:
            await self._relay.send_to(connection_id, ConnectedEvent(connection_id=connection_id).to_dict())
            await self._receive_loop(socket, connection_id)
        except Exception:
            logger.exception("WebSocket error")
        finally:
            await self._handle_disconnect(connection_id)

    async def _receive_loop(self, socket: WebSocket, connection_id: str) -> None:
        """Main receive loop for WebSocket frames.

        Args:
            socket: The WebSocket connection.
            connection_id: The connection's identifier.
        """
        async for message in socket.iter_data():
            try:
                data = json.loads(message)
            except (json.JSONDecodeError, UnicodeDecodeError):
                await self._send_error(connection_id, "invalid_json", "Invalid JSON message")
                continue

            if not isinstance(data, dict) or not data.get("type"):
                await self._send_error(connection_id, "missing_type", "Message type is required")
                continue

            msg_type = data["type"]
            try:
                await self._handle_message(connection_id, data)
            except UnknownEventError as e:
                logger.warning("Dropped unknown event", event_type=e.event_type)
                await self._send_error(connection_id, "unknown_type", str(e))
            except InvalidPayloadError as e:
                logger.warning("Dropped invalid payload", event_type=msg_type, field=e.field, reason=str(e))
                details = {"field": e.field} if e.field else None
                await self._send_error(connection_id, "invalid_payload", str(e), details)
            except NotRoomMemberError as e:
                logger.warning("Dropped event from non-member", event_type=msg_type, room_id=e.room_id)
                await self._send_error(connection_id, "not_joined", "Must join room first", {"roomId": e.room_id})
            except Exception:
                logger.exception("Error handling message", event_type=msg_type)
                await self._send_error(connection_id, "internal_error", "Internal server error")

    async def _handle_message(self, connection_id: str, message: dict[str, Any]) -> None:
        """Validate a frame and route it to the lifecycle manager.

        Args:
            connection_id: The sending connection.
            message: The decoded frame.

        Raises:
            UnknownEventError: If the frame's type is not a client event.
            InvalidPayloadError: If the payload fails validation.
        """
        try:
            event_type = EventType(message["type"])
        except ValueError:
            raise UnknownEventError(str(message["type"])) from None

        payload_cls = INBOUND_PAYLOADS.get(event_type)
        if payload_cls is None:
            raise UnknownEventError(event_type.value)

        payload = payload_cls.from_dict(message)

        if event_type is EventType.JOIN_ROOM:
            await self._lifecycle.join_room(connection_id, payload)
        elif event_type is EventType.LEAVE_ROOM:
            await self._lifecycle.leave_room(connection_id, payload)
        elif event_type in MUTATION_EVENTS:
            await self._lifecycle.relay_mutation(connection_id, payload)

    async def _handle_disconnect(self, connection_id: str) -> None:
        """Handle WebSocket disconnection.

        Args:
            connection_id: The connection that went away.
        """
        self._relay.detach(connection_id)
        rooms = await self._lifecycle.disconnect(connection_id)

        logger.debug("WebSocket connection closed", rooms=rooms)
        structlog.contextvars.unbind_contextvars("connection_id")

    async def _send_error(
        self,
        connection_id: str,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Send an error frame to the client.

        Args:
            connection_id: The target connection.
            code: Error code.
            message: Error message.
            details: Additional error details.
        """
        await self._relay.send_to(connection_id, ErrorEvent(code=code, message=message, details=details).to_dict())


def create_websocket_handler(
    path: str,
    lifecycle: ConnectionLifecycleManager,
    relay: EventRelay,
) -> Router:
    """Create a WebSocket router for collaborative editing.

    Args:
        path: Base path for WebSocket routes.
        lifecycle: The connection lifecycle manager.
        relay: The event relay.

    Returns:
        A Litestar Router with the collaboration WebSocket handler.
    """
    handler = CollabWebSocketHandler(lifecycle, relay)

    @websocket(path="/collab")
    async def collab_websocket(socket: WebSocket) -> None:
        """WebSocket endpoint for collaborative editing rooms.

        Args:
            socket: The WebSocket connection.
        """
        await handler.handle_connection(socket)

    return Router(path=path, route_handlers=[collab_websocket], tags=["WebSocket"])
