"""Client-side synchronization for codesync.

Provides the sync agent that debounces local edits and applies remote ones
without echo, the in-memory editor buffer it drives, and the reconnecting
WebSocket channel to the hub.
"""

from __future__ import annotations

from codesync.client.agent import ClientSyncAgent, SyncState
from codesync.client.buffer import CursorPosition, TextBuffer
from codesync.client.channel import ChannelState, ReconnectingChannel, SyncChannel, backoff_delay

__all__ = [
    "ChannelState",
    "ClientSyncAgent",
    "CursorPosition",
    "ReconnectingChannel",
    "SyncChannel",
    "SyncState",
    "TextBuffer",
    "backoff_delay",
]
