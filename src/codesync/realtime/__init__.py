"""Real-time WebSocket module for codesync.

This module provides the collaboration hub: the session registry tracking room
membership, the event relay fanning events out to room members, the connection
lifecycle manager and the Litestar WebSocket handler binding them to sockets.
"""

from __future__ import annotations

from codesync.realtime.handler import CollabWebSocketHandler, create_websocket_handler
from codesync.realtime.lifecycle import ConnectionLifecycleManager
from codesync.realtime.messages import (
    CodeUpdateEvent,
    CursorUpdateEvent,
    ErrorEvent,
    EventType,
    LanguageUpdateEvent,
    Participant,
    RoomUsersEvent,
    RunCodeEvent,
    UserJoinedEvent,
    UserLeftEvent,
)
from codesync.realtime.registry import Departure, SessionRegistry
from codesync.realtime.relay import EventRelay

__all__ = [
    "CodeUpdateEvent",
    "CollabWebSocketHandler",
    "ConnectionLifecycleManager",
    "CursorUpdateEvent",
    "Departure",
    "ErrorEvent",
    "EventRelay",
    "EventType",
    "LanguageUpdateEvent",
    "Participant",
    "RoomUsersEvent",
    "RunCodeEvent",
    "SessionRegistry",
    "UserJoinedEvent",
    "UserLeftEvent",
    "create_websocket_handler",
]
