"""Data Transfer Objects (DTOs) for the codesync HTTP API."""

from __future__ import annotations

from dataclasses import dataclass, field

from codesync.realtime.messages import Participant


@dataclass
class ParticipantDTO:
    """DTO for a room participant.

    Attributes:
        connection_id: The participant's transport connection id.
        user_id: Caller-supplied user id.
        user_name: Caller-supplied display name.
    """

    connection_id: str
    user_id: str
    user_name: str


@dataclass
class RoomSummaryDTO:
    """DTO for room list responses."""

    room_id: str
    participant_count: int


@dataclass
class RoomDetailDTO:
    """DTO for a single room with its participants."""

    room_id: str
    exists: bool
    participants: list[ParticipantDTO] = field(default_factory=list)


def participant_to_dto(participant: Participant) -> ParticipantDTO:
    """Convert a registry participant to its response DTO."""
    return ParticipantDTO(
        connection_id=participant.connection_id,
        user_id=participant.user_id,
        user_name=participant.user_name,
    )
