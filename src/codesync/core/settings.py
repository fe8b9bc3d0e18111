"""Runtime settings for the codesync hub and client."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ("true", "1", "yes")


@dataclass
class HubSettings:
    """Hub configuration settings.

    Attributes:
        ws_path: Base path for the WebSocket router.
        require_membership: Reject mutation events from connections that have
            not joined the addressed room.
        single_room: Move a connection out of its current room when it joins
            another one. When False a connection may hold several memberships
            and leaves them one room at a time.
        debug: Enable debug level logging.
        json_logs: Output logs as JSON.
    """

    ws_path: str = "/ws"
    require_membership: bool = True
    single_room: bool = True
    debug: bool = False
    json_logs: bool = False

    @classmethod
    def from_env(cls) -> HubSettings:
        """Create settings from environment variables.

        Environment variables:
            CODESYNC_WS_PATH: WebSocket base path (default: /ws).
            CODESYNC_REQUIRE_MEMBERSHIP: Set to "false" to relay events from non-members.
            CODESYNC_SINGLE_ROOM: Set to "false" to allow multi-room membership.
            CODESYNC_DEBUG: Set to "true" for debug logging.
            CODESYNC_JSON_LOGS: Set to "true" for JSON log output.

        Returns:
            HubSettings configured from environment.
        """
        return cls(
            ws_path=os.environ.get("CODESYNC_WS_PATH", "/ws"),
            require_membership=_env_flag("CODESYNC_REQUIRE_MEMBERSHIP", "true"),
            single_room=_env_flag("CODESYNC_SINGLE_ROOM", "true"),
            debug=_env_flag("CODESYNC_DEBUG", "false"),
            json_logs=_env_flag("CODESYNC_JSON_LOGS", "false"),
        )


@dataclass
class ClientSettings:
    """Client sync agent and channel configuration.

    Attributes:
        url: WebSocket URL of the hub's collaboration endpoint.
        debounce_ms: Delay used to coalesce local edits into one code-change.
        reconnection_attempts: Reconnect attempts before the channel gives up.
        reconnection_delay: Initial reconnect delay in seconds.
        reconnection_delay_max: Upper bound of the reconnect delay in seconds.
    """

    url: str = "ws://localhost:8000/ws/collab"
    debounce_ms: int = 300
    reconnection_attempts: int = 5
    reconnection_delay: float = 1.0
    reconnection_delay_max: float = 5.0

    @property
    def debounce_seconds(self) -> float:
        """Get the debounce window in seconds."""
        return self.debounce_ms / 1000

    @classmethod
    def from_env(cls) -> ClientSettings:
        """Create settings from environment variables.

        Environment variables:
            CODESYNC_URL: Hub WebSocket URL.
            CODESYNC_DEBOUNCE_MS: Debounce window in milliseconds (default: 300).
            CODESYNC_RECONNECT_ATTEMPTS: Reconnect attempts (default: 5).
            CODESYNC_RECONNECT_DELAY: Initial reconnect delay in seconds (default: 1.0).
            CODESYNC_RECONNECT_DELAY_MAX: Maximum reconnect delay in seconds (default: 5.0).

        Returns:
            ClientSettings configured from environment.
        """
        return cls(
            url=os.environ.get("CODESYNC_URL", "ws://localhost:8000/ws/collab"),
            debounce_ms=int(os.environ.get("CODESYNC_DEBOUNCE_MS", "300")),
            reconnection_attempts=int(os.environ.get("CODESYNC_RECONNECT_ATTEMPTS", "5")),
            reconnection_delay=float(os.environ.get("CODESYNC_RECONNECT_DELAY", "1.0")),
            reconnection_delay_max=float(os.environ.get("CODESYNC_RECONNECT_DELAY_MAX", "5.0")),
        )
