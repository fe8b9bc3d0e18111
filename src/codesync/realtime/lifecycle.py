"""Connection lifecycle management for collaborative editing rooms.

Membership is tracked per room, not per connection. A connection starts out
unjoined, becomes joined when its ``join-room`` is processed and returns to
unjoined on ``leave-room`` or when the transport disconnects.

Every transition and every relayed mutation runs under a single dispatch
lock, so each inbound event is handled to completion, including the registry
mutation and the outbound fan-out, before the next one is looked at. That is
what keeps per-room delivery order equal to dispatch order.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import structlog

from codesync.core.settings import HubSettings
from codesync.exceptions import NotRoomMemberError
from codesync.realtime.messages import (
    CodeChangePayload,
    CodeUpdateEvent,
    CursorChangePayload,
    CursorUpdateEvent,
    LanguageChangePayload,
    LanguageUpdateEvent,
    Participant,
    RoomUsersEvent,
    RunCodeEvent,
    RunCodePayload,
    UserJoinedEvent,
    UserLeftEvent,
)

if TYPE_CHECKING:
    from codesync.realtime.messages import JoinRoomPayload, LeaveRoomPayload
    from codesync.realtime.registry import Departure, SessionRegistry
    from codesync.realtime.relay import EventRelay

logger = structlog.get_logger(__name__)

MutationPayload = CodeChangePayload | CursorChangePayload | LanguageChangePayload | RunCodePayload


class ConnectionLifecycleManager:
    """Applies join, leave and disconnect transitions and relays room mutations."""

    def __init__(
        self,
        registry: SessionRegistry,
        relay: EventRelay,
        settings: HubSettings | None = None,
    ) -> None:
        """Initialize the lifecycle manager.

        Args:
            registry: The session registry to mutate.
            relay: The relay used to notify peers.
            settings: Hub settings. Defaults to HubSettings().
        """
        self._registry = registry
        self._relay = relay
        self._settings = settings or HubSettings()
        self._dispatch_lock = asyncio.Lock()

    @property
    def registry(self) -> SessionRegistry:
        """Get the session registry."""
        return self._registry

    async def join_room(self, connection_id: str, payload: JoinRoomPayload) -> Participant:
        """Join a connection to a room.

        The joiner receives ``room-users`` listing the participants that were
        already present, and everyone else in the room receives ``user-joined``.

        Args:
            connection_id: The joining connection.
            payload: The validated join request.

        Returns:
            The registered participant.
        """
        async with self._dispatch_lock:
            if self._settings.single_room:
                for previous_room in self._registry.rooms_for(connection_id):
                    if previous_room == payload.room_id:
                        continue
                    departures = self._registry.unregister(connection_id, previous_room)
                    await self._announce_departures(connection_id, departures)

            others = [
                p for p in self._registry.list_participants(payload.room_id) if p.connection_id != connection_id
            ]
            participant = Participant(
                connection_id=connection_id,
                user_id=payload.user_id,
                user_name=payload.user_name,
            )
            self._registry.register(payload.room_id, connection_id, participant)

            await self._relay.send_to(connection_id, RoomUsersEvent(participants=others).to_dict())
            await self._relay.broadcast(
                payload.room_id,
                UserJoinedEvent(
                    user_id=participant.user_id,
                    user_name=participant.user_name,
                    connection_id=connection_id,
                ).to_dict(),
                exclude_connection_id=connection_id,
            )

            logger.info(
                "User joined room",
                room_id=payload.room_id,
                connection_id=connection_id,
                user_id=participant.user_id,
                user_name=participant.user_name,
                room_size=len(others) + 1,
            )
            return participant

    async def leave_room(self, connection_id: str, payload: LeaveRoomPayload) -> bool:
        """Remove a connection from one room.

        Args:
            connection_id: The leaving connection.
            payload: The validated leave request.

        Returns:
            True if the connection was a member of the room.
        """
        async with self._dispatch_lock:
            departures = self._registry.unregister(connection_id, payload.room_id)
            await self._announce_departures(connection_id, departures)
            return bool(departures)

    async def disconnect(self, connection_id: str) -> list[str]:
        """Remove a connection from every room after the transport closed.

        Args:
            connection_id: The disconnected connection.

        Returns:
            The rooms the connection was removed from.
        """
        async with self._dispatch_lock:
            departures = self._registry.unregister(connection_id)
            await self._announce_departures(connection_id, departures)
            return [d.room_id for d in departures]

    async def relay_mutation(self, connection_id: str, payload: MutationPayload) -> int:
        """Relay a code, cursor, language or run event to the sender's peers.

        The outbound event carries the sender's registered identity rather
        than whatever identity the payload claims.

        Args:
            connection_id: The sending connection.
            payload: The validated mutation payload.

        Returns:
            The number of peers the event was delivered to.

        Raises:
            NotRoomMemberError: If membership is required and the sender has
                not joined the addressed room.
        """
        async with self._dispatch_lock:
            participant = self._registry.get_participant(payload.room_id, connection_id)
            if participant is None:
                if self._settings.require_membership:
                    raise NotRoomMemberError(payload.room_id, connection_id)
                participant = Participant(
                    connection_id=connection_id,
                    user_id=getattr(payload, "user_id", None) or "",
                    user_name=getattr(payload, "user_name", None) or "",
                )

            message = self._build_update(participant, payload)
            delivered = await self._relay.broadcast(
                payload.room_id,
                message,
                exclude_connection_id=connection_id,
            )

            logger.debug(
                "Relayed room event",
                event_type=message["type"],
                room_id=payload.room_id,
                connection_id=connection_id,
                delivered=delivered,
            )
            return delivered

    def _build_update(self, participant: Participant, payload: MutationPayload) -> dict[str, Any]:
        if isinstance(payload, CodeChangePayload):
            return CodeUpdateEvent(
                code=payload.code,
                language=payload.language,
                user_id=participant.user_id,
            ).to_dict()
        if isinstance(payload, CursorChangePayload):
            return CursorUpdateEvent(
                position=payload.position,
                user_id=participant.user_id,
                user_name=participant.user_name,
                connection_id=participant.connection_id,
            ).to_dict()
        if isinstance(payload, LanguageChangePayload):
            return LanguageUpdateEvent(language=payload.language, user_id=participant.user_id).to_dict()
        return RunCodeEvent(
            code=payload.code,
            language=payload.language,
            user_id=participant.user_id,
        ).to_dict()

    async def _announce_departures(self, connection_id: str, departures: list[Departure]) -> None:
        for departure in departures:
            participant = departure.participant
            await self._relay.broadcast(
                departure.room_id,
                UserLeftEvent(
                    user_id=participant.user_id,
                    user_name=participant.user_name,
                    connection_id=connection_id,
                ).to_dict(),
                exclude_connection_id=connection_id,
            )
            logger.info(
                "User left room",
                room_id=departure.room_id,
                connection_id=connection_id,
                user_id=participant.user_id,
                room_closed=departure.room_empty,
            )
