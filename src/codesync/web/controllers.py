"""Litestar controllers for inspecting live collaboration rooms."""

from __future__ import annotations

from typing import ClassVar

from litestar import Controller, get

from codesync.realtime.registry import SessionRegistry
from codesync.web.dto import RoomDetailDTO, RoomSummaryDTO, participant_to_dto


class RoomController(Controller):
    """Read-only view of the session registry.

    Rooms only exist while they have participants, so a room that was never
    joined and a room whose last participant left look the same.
    """

    path = "/rooms"
    tags: ClassVar[list[str]] = ["Rooms"]

    @get("/")
    async def list_rooms(self, registry: SessionRegistry) -> list[RoomSummaryDTO]:
        """List active rooms.

        Args:
            registry: The session registry (injected).

        Returns:
            One summary per room with at least one participant.
        """
        return [
            RoomSummaryDTO(room_id=room_id, participant_count=len(registry.list_participants(room_id)))
            for room_id in registry.room_ids()
        ]

    @get("/{room_id:str}")
    async def get_room(self, room_id: str, registry: SessionRegistry) -> RoomDetailDTO:
        """Get a room's participants.

        Args:
            room_id: The room identifier.
            registry: The session registry (injected).

        Returns:
            The room's participants; empty when the room does not exist.
        """
        participants = registry.list_participants(room_id)
        return RoomDetailDTO(
            room_id=room_id,
            exists=registry.has_room(room_id),
            participants=[participant_to_dto(p) for p in participants],
        )
