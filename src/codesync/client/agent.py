"""Client-side sync agent for collaborative code editing.

The agent sits between a local editor buffer and the hub channel:

- Local edits are coalesced: every change restarts a debounce timer and only
  the latest value is emitted as ``code-change`` when the timer fires.
- Remote ``code-update`` events replace the whole buffer (last writer wins)
  and discard any local change still waiting in the debounce window, so
  both sides end up with the remote text.
  Because the buffer notifies its listeners for programmatic updates too, the
  agent raises an *applying-remote* flag before replacing the text. The very
  next change notification clears the flag and is swallowed instead of being
  treated as a local edit. The flag must only be cleared by that next
  notification; clearing it eagerly after ``set_value`` returns would let the
  replacement echo back to the hub.
- Reconnecting the channel does not rejoin the room. The agent reports
  ``SyncState.CONNECTED`` with ``needs_rejoin`` set until the caller invokes
  ``rejoin()``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog

from codesync.client.buffer import CursorPosition
from codesync.client.channel import ChannelState
from codesync.realtime.messages import EventType, Participant

if TYPE_CHECKING:
    from codesync.client.buffer import TextBuffer
    from codesync.client.channel import SyncChannel

logger = structlog.get_logger(__name__)

DEFAULT_DEBOUNCE = 0.3

RunCallback = Callable[[str, str, str], None]
LanguageCallback = Callable[[str], None]


class SyncState(str, Enum):
    """Room membership state of a client as seen by the agent."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    JOINING = "joining"
    JOINED = "joined"


class ClientSyncAgent:
    """Synchronizes one local editor buffer with a collaboration room."""

    def __init__(
        self,
        channel: SyncChannel,
        buffer: TextBuffer,
        user_id: str,
        user_name: str,
        *,
        language: str = "javascript",
        debounce: float = DEFAULT_DEBOUNCE,
        on_run: RunCallback | None = None,
        on_language: LanguageCallback | None = None,
    ) -> None:
        """Initialize the agent and subscribe to the channel and buffer.

        Args:
            channel: The hub channel.
            buffer: The local editor buffer.
            user_id: The local user's id.
            user_name: The local user's display name.
            language: Initially selected language.
            debounce: Debounce window for outbound code changes, in seconds.
            on_run: Called with (code, language, user_id) when a peer requests a run.
            on_language: Called with the new language when a peer switches it.
        """
        self._channel = channel
        self._buffer = buffer
        self.user_id = user_id
        self.user_name = user_name
        self._language = language
        self._debounce = debounce
        self._on_run = on_run
        self._on_language = on_language

        self._room_id: str | None = None
        self._state = SyncState.CONNECTED if channel.connected else SyncState.DISCONNECTED
        self._applying_remote = False
        self._pending_code: str | None = None
        self._debounce_handle: asyncio.TimerHandle | None = None

        self.connection_id: str | None = None
        self.participants: dict[str, Participant] = {}
        self.peer_cursors: dict[str, CursorPosition] = {}

        self._handlers: dict[str, Callable[[dict[str, Any]], None]] = {
            EventType.CONNECTED.value: self._handle_connected,
            EventType.ROOM_USERS.value: self._handle_room_users,
            EventType.USER_JOINED.value: self._handle_user_joined,
            EventType.USER_LEFT.value: self._handle_user_left,
            EventType.CODE_UPDATE.value: self._handle_code_update,
            EventType.CURSOR_UPDATE.value: self._handle_cursor_update,
            EventType.LANGUAGE_UPDATE.value: self._handle_language_update,
            EventType.RUN_CODE.value: self._handle_run_code,
            EventType.ERROR.value: self._handle_error,
        }
        for event_type, handler in self._handlers.items():
            channel.on(event_type, handler)
        channel.add_state_listener(self._handle_channel_state)
        buffer.subscribe(self.on_local_change)

    @property
    def state(self) -> SyncState:
        """Get the agent's membership state."""
        return self._state

    @property
    def room_id(self) -> str | None:
        """Get the room the agent is in, or last joined before a reconnect."""
        return self._room_id

    @property
    def code(self) -> str:
        """Get the local code."""
        return self._buffer.value

    @property
    def language(self) -> str:
        """Get the locally selected language."""
        return self._language

    @property
    def applying_remote(self) -> bool:
        """Whether the next change notification belongs to a remote update."""
        return self._applying_remote

    @property
    def needs_rejoin(self) -> bool:
        """Whether the channel is connected but the room has not been re-joined."""
        return self._state is SyncState.CONNECTED and self._room_id is not None

    @property
    def has_pending_emit(self) -> bool:
        """Whether a code-change is waiting for the timer or for ``flush()``."""
        return self._pending_code is not None

    # Room membership

    def join(self, room_id: str) -> bool:
        """Ask the hub to add this client to a room.

        Args:
            room_id: The room to join.

        Returns:
            True if the request was handed to the channel.
        """
        self._room_id = room_id
        sent = self._channel.emit(
            EventType.JOIN_ROOM.value,
            {"roomId": room_id, "userId": self.user_id, "userName": self.user_name},
        )
        if sent:
            self._state = SyncState.JOINING
        return sent

    def rejoin(self) -> bool:
        """Re-issue the join for the last room after a reconnect.

        Returns:
            True if a join was sent, False when there is no room to rejoin.
        """
        if self._room_id is None:
            return False
        return self.join(self._room_id)

    def leave(self) -> bool:
        """Leave the current room.

        Returns:
            True if a leave request was handed to the channel.
        """
        if self._room_id is None:
            return False

        self._cancel_debounce()
        self._pending_code = None
        sent = self._channel.emit(EventType.LEAVE_ROOM.value, {"roomId": self._room_id})
        self._room_id = None
        self.participants.clear()
        self.peer_cursors.clear()
        if self._state is not SyncState.DISCONNECTED:
            self._state = SyncState.CONNECTED
        return sent

    # Local changes

    def on_local_change(self, value: str) -> None:
        """Buffer change listener.

        Swallows the single notification caused by applying a remote update,
        otherwise records the value and restarts the debounce timer.

        Args:
            value: The buffer's new text.
        """
        if self._applying_remote:
            self._applying_remote = False
            return

        self._cancel_debounce()
        if not self._can_emit():
            self._pending_code = None
            return

        self._pending_code = value
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, code change waits for flush()", room_id=self._room_id)
            return
        self._debounce_handle = loop.call_later(self._debounce, self._flush)

    def set_language(self, language: str) -> bool:
        """Switch the local language and tell the room immediately.

        Returns:
            True if the change was emitted.
        """
        self._language = language
        if not self._can_emit():
            return False
        return self._channel.emit(
            EventType.LANGUAGE_CHANGE.value,
            {"roomId": self._room_id, "language": language, "userId": self.user_id},
        )

    def move_cursor(self, position: CursorPosition) -> bool:
        """Move the local cursor and share its position with the room.

        Returns:
            True if the position was emitted.
        """
        self._buffer.set_cursor(position)
        if not self._can_emit():
            return False
        return self._channel.emit(
            EventType.CURSOR_CHANGE.value,
            {
                "roomId": self._room_id,
                "position": self._buffer.cursor.to_dict(),
                "userId": self.user_id,
                "userName": self.user_name,
            },
        )

    def request_run(self) -> bool:
        """Ask every peer to run the current code locally.

        Returns:
            True if the request was emitted.
        """
        if not self._can_emit():
            return False
        return self._channel.emit(
            EventType.RUN_CODE.value,
            {
                "roomId": self._room_id,
                "code": self._buffer.value,
                "language": self._language,
                "userId": self.user_id,
            },
        )

    def flush(self) -> bool:
        """Emit a pending code change now instead of waiting for the timer.

        Edits made while no event loop is running are never scheduled; they
        stay pending until this is called.

        Returns:
            True if a code-change was emitted.
        """
        self._cancel_debounce()
        return self._emit_pending()

    def close(self) -> None:
        """Cancel pending work and detach from the buffer and channel."""
        self._cancel_debounce()
        self._pending_code = None
        self._buffer.unsubscribe(self.on_local_change)
        for event_type, handler in self._handlers.items():
            self._channel.off(event_type, handler)
        self._channel.remove_state_listener(self._handle_channel_state)

    def _can_emit(self) -> bool:
        return (
            self._room_id is not None
            and self._state in (SyncState.JOINING, SyncState.JOINED)
            and self._channel.connected
        )

    def _flush(self) -> None:
        self._debounce_handle = None
        self._emit_pending()

    def _emit_pending(self) -> bool:
        code, self._pending_code = self._pending_code, None
        if code is None or not self._can_emit():
            return False

        return self._channel.emit(
            EventType.CODE_CHANGE.value,
            {
                "roomId": self._room_id,
                "code": code,
                "language": self._language,
                "userId": self.user_id,
            },
        )

    def _cancel_debounce(self) -> None:
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None

    # Remote events

    def _handle_connected(self, data: dict[str, Any]) -> None:
        self.connection_id = data.get("connectionId")

    def _handle_room_users(self, data: dict[str, Any]) -> None:
        participants = {}
        for entry in data.get("participants", []):
            participant = Participant.from_dict(entry)
            participants[participant.connection_id] = participant
        self.participants = participants
        self._state = SyncState.JOINED

        logger.info("Joined room", room_id=self._room_id, peers=len(participants))

    def _handle_user_joined(self, data: dict[str, Any]) -> None:
        participant = Participant.from_dict(data)
        self.participants[participant.connection_id] = participant

    def _handle_user_left(self, data: dict[str, Any]) -> None:
        connection_id = data.get("connectionId")
        self.participants.pop(connection_id, None)
        self.peer_cursors.pop(connection_id, None)

    def _handle_code_update(self, data: dict[str, Any]) -> None:
        if data.get("userId") == self.user_id:
            return

        code = data.get("code")
        if not isinstance(code, str):
            logger.warning("Ignored code update without code", user_id=data.get("userId"))
            return

        self._cancel_debounce()
        self._pending_code = None
        cursor = self._buffer.cursor
        self._applying_remote = True
        self._buffer.set_value(code)
        self._buffer.set_cursor(cursor)

    def _handle_cursor_update(self, data: dict[str, Any]) -> None:
        connection_id = data.get("connectionId")
        position = data.get("position")
        if connection_id and isinstance(position, dict):
            self.peer_cursors[connection_id] = CursorPosition.from_dict(position)

    def _handle_language_update(self, data: dict[str, Any]) -> None:
        if data.get("userId") == self.user_id:
            return

        language = data.get("language")
        if not isinstance(language, str):
            return
        self._language = language
        if self._on_language is not None:
            self._on_language(language)

    def _handle_run_code(self, data: dict[str, Any]) -> None:
        if data.get("userId") == self.user_id or self._on_run is None:
            return
        self._on_run(data.get("code", ""), data.get("language", self._language), data.get("userId", ""))

    def _handle_error(self, data: dict[str, Any]) -> None:
        logger.warning("Hub rejected event", code=data.get("code"), message=data.get("message"))
        if data.get("code") == "not_joined" and self._state is SyncState.JOINED:
            self._state = SyncState.CONNECTED

    def _handle_channel_state(self, state: ChannelState) -> None:
        if state is ChannelState.CONNECTED:
            self._state = SyncState.CONNECTED
            if self._room_id is not None:
                logger.info("Channel reconnected, room membership must be re-established", room_id=self._room_id)
            return

        self._cancel_debounce()
        self._pending_code = None
        self.participants.clear()
        self.peer_cursors.clear()
        self.connection_id = None
        self._state = SyncState.DISCONNECTED
