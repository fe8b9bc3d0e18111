"""Custom exceptions for codesync."""

from __future__ import annotations


class CodeSyncError(Exception):
    """Base exception class for all codesync errors."""


class InvalidPayloadError(CodeSyncError):
    """Raised when an inbound event payload has the wrong shape or types.

    Attributes:
        field: The offending payload field, or None when the payload itself is malformed.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Description of why the payload is invalid.
            field: Name of the offending field, if any.
        """
        self.field = field
        super().__init__(message)


class NotRoomMemberError(CodeSyncError):
    """Raised when a connection addresses a room it has not joined.

    Attributes:
        room_id: The room the event was addressed to.
        connection_id: The connection that sent the event.
    """

    def __init__(self, room_id: str, connection_id: str) -> None:
        """Initialize the exception with the room and connection IDs.

        Args:
            room_id: The room the event was addressed to.
            connection_id: The connection that sent the event.
        """
        self.room_id = room_id
        self.connection_id = connection_id
        super().__init__(f"Connection {connection_id} is not a member of room {room_id}")


class UnknownEventError(CodeSyncError):
    """Raised when an inbound frame names an event type the hub does not handle."""

    def __init__(self, event_type: str) -> None:
        """Initialize the exception with the event type.

        Args:
            event_type: The unrecognised event type.
        """
        self.event_type = event_type
        super().__init__(f"Unknown event type: {event_type}")
