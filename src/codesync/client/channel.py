"""Client channel to the collaboration hub with bounded automatic reconnection."""

from __future__ import annotations

import asyncio
import contextlib
import json
from collections import defaultdict
from collections.abc import Callable
from enum import Enum
from typing import Any, Protocol

import structlog
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import WebSocketException

from codesync.core.settings import ClientSettings

logger = structlog.get_logger(__name__)

EventHandler = Callable[[dict[str, Any]], None]
StateListener = Callable[["ChannelState"], None]


class ChannelState(str, Enum):
    """Transport state of a channel."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


class SyncChannel(Protocol):
    """What the sync agent needs from a hub channel."""

    @property
    def connected(self) -> bool:
        """Whether frames can currently be sent."""
        ...

    def emit(self, event_type: str, payload: dict[str, Any]) -> bool:
        """Send an event without waiting; return False when it was dropped."""
        ...

    def on(self, event_type: str, handler: EventHandler) -> None:
        """Register a handler for inbound events of one type."""
        ...

    def off(self, event_type: str, handler: EventHandler) -> None:
        """Remove a handler registered with ``on``."""
        ...

    def add_state_listener(self, listener: StateListener) -> None:
        """Register a transport state listener."""
        ...

    def remove_state_listener(self, listener: StateListener) -> None:
        """Remove a transport state listener."""
        ...


def backoff_delay(attempt: int, base: float, maximum: float) -> float:
    """Return the delay before reconnect attempt ``attempt`` (1-based).

    The delay doubles with each attempt and is capped at ``maximum``.
    """
    return min(base * 2 ** max(attempt - 1, 0), maximum)


class ReconnectingChannel:
    """WebSocket channel to the hub that reconnects on its own.

    Frames are emitted fire-and-forget: while the channel is not connected
    they are dropped, and frames still queued when the connection breaks are
    discarded. After a lost connection the channel retries up to
    ``reconnection_attempts`` times with a capped exponential backoff and
    then gives up in ``ChannelState.FAILED``.

    Reconnecting restores the transport only. Room membership is not
    re-established; listeners see ``CONNECTED`` again and must rejoin.
    """

    def __init__(self, url: str | None = None, settings: ClientSettings | None = None) -> None:
        """Initialize the channel.

        Args:
            url: Hub WebSocket URL. Defaults to ``settings.url``.
            settings: Client settings. Defaults to ClientSettings().
        """
        self._settings = settings or ClientSettings()
        self._url = url or self._settings.url
        self._state = ChannelState.DISCONNECTED
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self._state_listeners: list[StateListener] = []
        self._outbound: asyncio.Queue[str] = asyncio.Queue()
        self._connected_event = asyncio.Event()
        self._ws: ClientConnection | None = None
        self._task: asyncio.Task[None] | None = None
        self._closing = False
        self.attempts = 0

    @property
    def state(self) -> ChannelState:
        """Get the transport state."""
        return self._state

    @property
    def connected(self) -> bool:
        """Whether the channel is connected."""
        return self._state is ChannelState.CONNECTED

    def on(self, event_type: str, handler: EventHandler) -> None:
        """Register a handler for inbound events of one type."""
        self._handlers[event_type].append(handler)

    def off(self, event_type: str, handler: EventHandler) -> None:
        """Remove a handler. Unknown handlers are ignored."""
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def add_state_listener(self, listener: StateListener) -> None:
        """Register a transport state listener."""
        self._state_listeners.append(listener)

    def remove_state_listener(self, listener: StateListener) -> None:
        """Remove a transport state listener. Unknown listeners are ignored."""
        if listener in self._state_listeners:
            self._state_listeners.remove(listener)

    def emit(self, event_type: str, payload: dict[str, Any]) -> bool:
        """Queue an event for sending.

        Args:
            event_type: The wire event name.
            payload: The event payload.

        Returns:
            True if the frame was queued, False if it was dropped because the
            channel is not connected.
        """
        if not self.connected:
            logger.debug("Dropped event while disconnected", event_type=event_type)
            return False

        self._outbound.put_nowait(json.dumps({"type": event_type, **payload}))
        return True

    def start(self) -> asyncio.Task[None]:
        """Start connecting in the background.

        Returns:
            The task running the connection loop.
        """
        if self._task is None or self._task.done():
            self._closing = False
            self._task = asyncio.create_task(self.run())
        return self._task

    async def wait_until_connected(self, timeout: float | None = None) -> bool:
        """Wait for the channel to connect.

        Returns:
            True if connected, False on timeout.
        """
        try:
            await asyncio.wait_for(self._connected_event.wait(), timeout)
        except TimeoutError:
            return False
        return True

    async def close(self) -> None:
        """Close the connection and stop reconnecting.

        A handshake in progress or a pending reconnect delay is cancelled.
        """
        self._closing = True
        ws = self._ws
        if ws is not None:
            await ws.close()
        if self._task is None:
            return

        if ws is None and not self._task.done():
            self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        if self._state is not ChannelState.FAILED:
            self._set_state(ChannelState.DISCONNECTED)

    async def run(self) -> None:
        """Connect and keep reconnecting until closed or out of attempts."""
        self.attempts = 0

        while not self._closing:
            self._set_state(ChannelState.CONNECTING)
            try:
                async with connect(self._url) as ws:
                    if self._closing:
                        break
                    self._ws = ws
                    self.attempts = 0
                    self._set_state(ChannelState.CONNECTED)
                    logger.info("Channel connected", url=self._url)
                    await self._pump(ws)
            except (OSError, TimeoutError, WebSocketException) as e:
                logger.warning("Channel connection error", url=self._url, error=str(e))
            finally:
                self._ws = None
                self._discard_outbound()

            if self._closing:
                break

            self._set_state(ChannelState.DISCONNECTED)
            self.attempts += 1
            if self.attempts > self._settings.reconnection_attempts:
                logger.error("Channel gave up reconnecting", url=self._url, attempts=self.attempts - 1)
                self._set_state(ChannelState.FAILED)
                return

            delay = backoff_delay(
                self.attempts,
                self._settings.reconnection_delay,
                self._settings.reconnection_delay_max,
            )
            logger.info("Channel reconnecting", url=self._url, attempt=self.attempts, delay=delay)
            await asyncio.sleep(delay)

        self._set_state(ChannelState.DISCONNECTED)

    async def _pump(self, ws: ClientConnection) -> None:
        writer = asyncio.create_task(self._write(ws))
        try:
            async for raw in ws:
                self._dispatch(raw)
        finally:
            writer.cancel()
            await asyncio.gather(writer, return_exceptions=True)

    async def _write(self, ws: ClientConnection) -> None:
        while True:
            frame = await self._outbound.get()
            await ws.send(frame)

    def _dispatch(self, raw: str | bytes) -> None:
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Ignored malformed frame from hub")
            return

        if not isinstance(data, dict):
            logger.warning("Ignored malformed frame from hub")
            return

        event_type = data.get("type")
        for handler in list(self._handlers.get(event_type, [])):
            try:
                handler(data)
            except Exception:
                logger.exception("Event handler failed", event_type=event_type)

    def _discard_outbound(self) -> None:
        while not self._outbound.empty():
            self._outbound.get_nowait()

    def _set_state(self, state: ChannelState) -> None:
        if state is self._state:
            return
        self._state = state
        if state is ChannelState.CONNECTED:
            self._connected_event.set()
        else:
            self._connected_event.clear()
        for listener in list(self._state_listeners):
            listener(state)
