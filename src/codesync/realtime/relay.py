"""Event relay delivering room events to connected WebSocket endpoints."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from litestar import WebSocket

    from codesync.realtime.registry import SessionRegistry

logger = structlog.get_logger(__name__)


class EventRelay:
    """Delivers events to the members of a room.

    The relay keeps no membership state of its own. It resolves the target
    set from the session registry on every call and maps connection ids to
    the WebSocket endpoints attached by the connection handler.

    Delivery is fire-and-forget: there is no acknowledgment, retry or
    buffering, and a failed send to one endpoint is logged and dropped
    without affecting the sender or the other recipients.
    """

    def __init__(self, registry: SessionRegistry) -> None:
        """Initialize the relay.

        Args:
            registry: The session registry used to resolve room members.
        """
        self._registry = registry
        self._endpoints: dict[str, WebSocket] = {}

    def attach(self, connection_id: str, socket: WebSocket) -> None:
        """Make a connection's endpoint reachable for delivery."""
        self._endpoints[connection_id] = socket

    def detach(self, connection_id: str) -> None:
        """Forget a connection's endpoint. Unknown ids are ignored."""
        self._endpoints.pop(connection_id, None)

    def is_attached(self, connection_id: str) -> bool:
        """Check whether an endpoint is attached for the connection."""
        return connection_id in self._endpoints

    async def broadcast(
        self,
        room_id: str,
        message: dict[str, Any],
        exclude_connection_id: str | None = None,
    ) -> int:
        """Deliver a message to every connection in a room except one.

        Args:
            room_id: The room to broadcast to.
            message: The serialized event.
            exclude_connection_id: Connection to skip, normally the originator.

        Returns:
            The number of endpoints the message was handed to.
        """
        json_message = json.dumps(message)

        tasks = []
        for connection_id in self._registry.connection_ids(room_id):
            if connection_id == exclude_connection_id:
                continue
            socket = self._endpoints.get(connection_id)
            if socket is None:
                continue
            tasks.append(self._deliver(connection_id, socket, json_message))

        if not tasks:
            return 0

        results = await asyncio.gather(*tasks)
        return sum(1 for delivered in results if delivered)

    async def send_to(self, connection_id: str, message: dict[str, Any]) -> bool:
        """Deliver a message to a single connection.

        Args:
            connection_id: The target connection.
            message: The serialized event.

        Returns:
            True if the message was handed to the transport, False otherwise.
        """
        socket = self._endpoints.get(connection_id)
        if socket is None:
            return False
        return await self._deliver(connection_id, socket, json.dumps(message))

    async def _deliver(self, connection_id: str, socket: WebSocket, message: str) -> bool:
        if getattr(socket, "connection_state", None) == "disconnect":
            logger.debug("Dropped event for closed connection", connection_id=connection_id)
            return False

        try:
            await socket.send_text(message)
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "Failed to deliver event",
                connection_id=connection_id,
                error=str(e),
            )
            return False
        return True

    @property
    def attached_connections(self) -> int:
        """Get the number of attached endpoints."""
        return len(self._endpoints)
