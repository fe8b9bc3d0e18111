"""codesync: a Litestar-based hub for real-time collaborative code editing.

This package provides the synchronization core of a pair-programming editor:
an in-memory session registry tracking who is in which room, an event relay
fanning code, cursor, language and run events out to the other members of a
room, a connection lifecycle manager handling joins, leaves and disconnects,
and a client-side sync agent that debounces local edits and applies remote
ones without echo.

Key Components:
    - Realtime: SessionRegistry, EventRelay, ConnectionLifecycleManager,
      CollabWebSocketHandler
    - Client: ClientSyncAgent, TextBuffer, ReconnectingChannel
    - Plugin: CodeSyncPlugin for Litestar integration

Quick Start:
    >>> from litestar import Litestar
    >>> from codesync import CodeSyncConfig, CodeSyncPlugin
    >>>
    >>> app = Litestar(plugins=[CodeSyncPlugin(CodeSyncConfig())])

Clients connect to ``/ws/collab`` and exchange flat JSON frames such as
``{"type": "join-room", "roomId": "r1", "userId": "u1", "userName": "Alice"}``.
"""

from __future__ import annotations

from codesync.client import (
    ChannelState,
    ClientSyncAgent,
    CursorPosition,
    ReconnectingChannel,
    SyncState,
    TextBuffer,
)
from codesync.core.settings import ClientSettings, HubSettings
from codesync.exceptions import (
    CodeSyncError,
    InvalidPayloadError,
    NotRoomMemberError,
    UnknownEventError,
)
from codesync.plugin import CodeSyncConfig, CodeSyncPlugin
from codesync.realtime import (
    CollabWebSocketHandler,
    ConnectionLifecycleManager,
    EventRelay,
    EventType,
    Participant,
    SessionRegistry,
    create_websocket_handler,
)

__all__ = [
    "ChannelState",
    "ClientSettings",
    "ClientSyncAgent",
    "CodeSyncConfig",
    "CodeSyncError",
    "CodeSyncPlugin",
    "CollabWebSocketHandler",
    "ConnectionLifecycleManager",
    "CursorPosition",
    "EventRelay",
    "EventType",
    "HubSettings",
    "InvalidPayloadError",
    "NotRoomMemberError",
    "Participant",
    "ReconnectingChannel",
    "SessionRegistry",
    "SyncState",
    "TextBuffer",
    "UnknownEventError",
    "create_websocket_handler",
]

__version__ = "0.1.0"
