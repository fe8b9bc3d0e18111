"""WebSocket event types and payload schemas for real-time code collaboration.

Frames on the wire are flat JSON objects whose ``type`` key names the event,
with the payload fields alongside it in camelCase::

    {"type": "code-change", "roomId": "r1", "code": "x = 1", "language": "python"}

Inbound payloads are validated with ``from_dict``; outbound events are
serialized with ``to_dict``. The room id of an inbound event is only used for
routing and never appears in the outbound frame.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from codesync.exceptions import InvalidPayloadError


class EventType(str, Enum):
    """Types of WebSocket events."""

    # Client -> Hub
    JOIN_ROOM = "join-room"
    LEAVE_ROOM = "leave-room"
    CODE_CHANGE = "code-change"
    CURSOR_CHANGE = "cursor-change"
    LANGUAGE_CHANGE = "language-change"
    RUN_CODE = "run-code"

    # Hub -> Client
    CONNECTED = "connected"
    ROOM_USERS = "room-users"
    USER_JOINED = "user-joined"
    USER_LEFT = "user-left"
    CODE_UPDATE = "code-update"
    CURSOR_UPDATE = "cursor-update"
    LANGUAGE_UPDATE = "language-update"
    ERROR = "error"


# run-code travels in both directions under the same name.
MUTATION_EVENTS = frozenset(
    {
        EventType.CODE_CHANGE,
        EventType.CURSOR_CHANGE,
        EventType.LANGUAGE_CHANGE,
        EventType.RUN_CODE,
    }
)


def now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def _require_str(data: dict[str, Any], key: str, *, allow_empty: bool = False) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        msg = f"'{key}' must be a string"
        raise InvalidPayloadError(msg, field=key)
    if not allow_empty and not value:
        msg = f"'{key}' must not be empty"
        raise InvalidPayloadError(msg, field=key)
    return value


def _optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        msg = f"'{key}' must be a string"
        raise InvalidPayloadError(msg, field=key)
    return value


def _ensure_mapping(data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        msg = "Payload must be a JSON object"
        raise InvalidPayloadError(msg)
    return data


@dataclass
class Participant:
    """A connection's identity within a room."""

    connection_id: str
    user_id: str
    user_name: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "connectionId": self.connection_id,
            "userId": self.user_id,
            "userName": self.user_name,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Participant:
        """Build a participant from its wire form."""
        data = _ensure_mapping(data)
        return cls(
            connection_id=_require_str(data, "connectionId"),
            user_id=_require_str(data, "userId"),
            user_name=_require_str(data, "userName", allow_empty=True),
        )


# Inbound payloads


@dataclass
class JoinRoomPayload:
    """Payload of a ``join-room`` request."""

    room_id: str
    user_id: str
    user_name: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JoinRoomPayload:
        """Validate and build the payload.

        Raises:
            InvalidPayloadError: If a field is missing or has the wrong type.
        """
        data = _ensure_mapping(data)
        return cls(
            room_id=_require_str(data, "roomId"),
            user_id=_require_str(data, "userId"),
            user_name=_require_str(data, "userName", allow_empty=True),
        )


@dataclass
class LeaveRoomPayload:
    """Payload of a ``leave-room`` request."""

    room_id: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LeaveRoomPayload:
        """Validate and build the payload."""
        data = _ensure_mapping(data)
        return cls(room_id=_require_str(data, "roomId"))


@dataclass
class CodeChangePayload:
    """Payload of a ``code-change`` event. ``user_id`` is advisory only."""

    room_id: str
    code: str
    language: str
    user_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CodeChangePayload:
        """Validate and build the payload."""
        data = _ensure_mapping(data)
        return cls(
            room_id=_require_str(data, "roomId"),
            code=_require_str(data, "code", allow_empty=True),
            language=_require_str(data, "language"),
            user_id=_optional_str(data, "userId"),
        )


@dataclass
class CursorChangePayload:
    """Payload of a ``cursor-change`` event."""

    room_id: str
    position: dict[str, Any]
    user_id: str | None = None
    user_name: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CursorChangePayload:
        """Validate and build the payload."""
        data = _ensure_mapping(data)
        position = data.get("position")
        if not isinstance(position, dict):
            msg = "'position' must be an object"
            raise InvalidPayloadError(msg, field="position")
        return cls(
            room_id=_require_str(data, "roomId"),
            position=position,
            user_id=_optional_str(data, "userId"),
            user_name=_optional_str(data, "userName"),
        )


@dataclass
class LanguageChangePayload:
    """Payload of a ``language-change`` event."""

    room_id: str
    language: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LanguageChangePayload:
        """Validate and build the payload."""
        data = _ensure_mapping(data)
        return cls(
            room_id=_require_str(data, "roomId"),
            language=_require_str(data, "language"),
        )


@dataclass
class RunCodePayload:
    """Payload of a client ``run-code`` request."""

    room_id: str
    code: str
    language: str
    user_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RunCodePayload:
        """Validate and build the payload."""
        data = _ensure_mapping(data)
        return cls(
            room_id=_require_str(data, "roomId"),
            code=_require_str(data, "code", allow_empty=True),
            language=_require_str(data, "language"),
            user_id=_optional_str(data, "userId"),
        )


INBOUND_PAYLOADS: dict[EventType, Any] = {
    EventType.JOIN_ROOM: JoinRoomPayload,
    EventType.LEAVE_ROOM: LeaveRoomPayload,
    EventType.CODE_CHANGE: CodeChangePayload,
    EventType.CURSOR_CHANGE: CursorChangePayload,
    EventType.LANGUAGE_CHANGE: LanguageChangePayload,
    EventType.RUN_CODE: RunCodePayload,
}


# Outbound events


@dataclass
class ConnectedEvent:
    """Sent once to a freshly accepted connection."""

    connection_id: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"type": EventType.CONNECTED.value, "connectionId": self.connection_id}


@dataclass
class RoomUsersEvent:
    """Unicast to a joiner, listing the other participants already in the room."""

    participants: list[Participant]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": EventType.ROOM_USERS.value,
            "participants": [p.to_dict() for p in self.participants],
        }


@dataclass
class UserJoinedEvent:
    """Broadcast when a participant joins a room."""

    user_id: str
    user_name: str
    connection_id: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": EventType.USER_JOINED.value,
            "userId": self.user_id,
            "userName": self.user_name,
            "connectionId": self.connection_id,
        }


@dataclass
class UserLeftEvent:
    """Broadcast when a participant leaves or disconnects."""

    user_id: str
    user_name: str
    connection_id: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": EventType.USER_LEFT.value,
            "userId": self.user_id,
            "userName": self.user_name,
            "connectionId": self.connection_id,
        }


@dataclass
class CodeUpdateEvent:
    """Full-buffer code replacement relayed to peers."""

    code: str
    language: str
    user_id: str
    timestamp: int = field(default_factory=now_ms)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": EventType.CODE_UPDATE.value,
            "code": self.code,
            "language": self.language,
            "userId": self.user_id,
            "timestamp": self.timestamp,
        }


@dataclass
class CursorUpdateEvent:
    """Cursor position relayed to peers."""

    position: dict[str, Any]
    user_id: str
    user_name: str
    connection_id: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": EventType.CURSOR_UPDATE.value,
            "position": self.position,
            "userId": self.user_id,
            "userName": self.user_name,
            "connectionId": self.connection_id,
        }


@dataclass
class LanguageUpdateEvent:
    """Language selection relayed to peers."""

    language: str
    user_id: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": EventType.LANGUAGE_UPDATE.value,
            "language": self.language,
            "userId": self.user_id,
        }


@dataclass
class RunCodeEvent:
    """Run request relayed to peers so each executes the same code locally."""

    code: str
    language: str
    user_id: str
    timestamp: int = field(default_factory=now_ms)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": EventType.RUN_CODE.value,
            "code": self.code,
            "language": self.language,
            "userId": self.user_id,
            "timestamp": self.timestamp,
        }


@dataclass
class ErrorEvent:
    """Error reported to the sender of a rejected frame."""

    code: str
    message: str
    details: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result: dict[str, Any] = {
            "type": EventType.ERROR.value,
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result
