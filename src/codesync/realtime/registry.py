"""In-memory session registry for collaborative editing rooms."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from codesync.realtime.messages import Participant

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Departure:
    """Result of removing a connection from one room."""

    room_id: str
    participant: Participant
    room_empty: bool


class SessionRegistry:
    """Tracks which connections belong to which room.

    This is the only source of truth for room membership. A room exists
    exactly while it has at least one participant: it is created by the first
    ``register`` and deleted as soon as its last participant is removed.

    The registry holds no lock. Callers must serialize mutations, which the
    connection lifecycle manager does by dispatching one event at a time. A
    deployment with several worker processes needs one registry per worker
    with sticky routing by room id, or a shared store.
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._rooms: dict[str, dict[str, Participant]] = {}

    def register(self, room_id: str, connection_id: str, participant: Participant) -> None:
        """Add or overwrite a participant in a room, creating the room if needed.

        Registering the same connection twice silently replaces the previous
        entry, which is what a reconnect-and-rejoin needs.

        Args:
            room_id: The room being joined.
            connection_id: The transport connection identifier.
            participant: The participant identity.
        """
        room = self._rooms.setdefault(room_id, {})
        room[connection_id] = participant

        logger.debug(
            "Participant registered",
            room_id=room_id,
            connection_id=connection_id,
            user_id=participant.user_id,
            room_size=len(room),
        )

    def unregister(self, connection_id: str, room_id: str | None = None) -> list[Departure]:
        """Remove a connection from every room (or from one room) it belongs to.

        Args:
            connection_id: The connection to remove.
            room_id: Restrict removal to this room. When None every room is scanned.

        Returns:
            One Departure per room the connection was removed from. Empty when
            the connection was not a member.
        """
        if room_id is not None:
            candidates = [room_id] if room_id in self._rooms else []
        else:
            candidates = list(self._rooms)

        departures: list[Departure] = []
        for candidate in candidates:
            room = self._rooms[candidate]
            participant = room.pop(connection_id, None)
            if participant is None:
                continue

            room_empty = not room
            if room_empty:
                del self._rooms[candidate]
                logger.info("Room closed", room_id=candidate)

            departures.append(Departure(room_id=candidate, participant=participant, room_empty=room_empty))

        return departures

    def list_participants(self, room_id: str) -> list[Participant]:
        """Return a snapshot of a room's participants.

        Args:
            room_id: The room to query.

        Returns:
            A copy of the participant list; empty when the room does not exist.
        """
        room = self._rooms.get(room_id)
        if room is None:
            return []
        return list(room.values())

    def connection_ids(self, room_id: str) -> list[str]:
        """Return a snapshot of the connection ids registered in a room."""
        return list(self._rooms.get(room_id, {}))

    def get_participant(self, room_id: str, connection_id: str) -> Participant | None:
        """Look up a single participant, or None when absent."""
        room = self._rooms.get(room_id)
        if room is None:
            return None
        return room.get(connection_id)

    def is_member(self, room_id: str, connection_id: str) -> bool:
        """Check whether a connection is registered in a room."""
        return self.get_participant(room_id, connection_id) is not None

    def rooms_for(self, connection_id: str) -> list[str]:
        """Return every room the connection is registered in."""
        return [room_id for room_id, room in self._rooms.items() if connection_id in room]

    def room_ids(self) -> list[str]:
        """Return a snapshot of the ids of all existing rooms."""
        return list(self._rooms)

    def has_room(self, room_id: str) -> bool:
        """Check whether a room currently exists."""
        return room_id in self._rooms

    @property
    def active_rooms(self) -> int:
        """Get the number of rooms with at least one participant."""
        return len(self._rooms)

    @property
    def total_participants(self) -> int:
        """Get the total number of registered participants across rooms."""
        return sum(len(room) for room in self._rooms.values())
