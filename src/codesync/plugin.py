"""Litestar plugin for codesync integration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from litestar.di import Provide
from litestar.plugins import InitPluginProtocol

from codesync.core.settings import HubSettings
from codesync.realtime.lifecycle import ConnectionLifecycleManager
from codesync.realtime.registry import SessionRegistry
from codesync.realtime.relay import EventRelay

if TYPE_CHECKING:
    from litestar.config.app import AppConfig


@dataclass
class CodeSyncConfig:
    """Configuration for the codesync plugin.

    Attributes:
        settings: Hub settings. Defaults to HubSettings().
        enable_api: Whether to mount the read-only rooms API. Defaults to True.
        enable_websocket: Whether to mount the collaboration WebSocket. Defaults to True.
        api_path: Base path for the rooms API. Defaults to "/api".
        registry: Optional pre-built SessionRegistry. If None, a new one is created.

    Example:
        >>> config = CodeSyncConfig(settings=HubSettings(ws_path="/realtime"), enable_api=False)
    """

    settings: HubSettings = field(default_factory=HubSettings)
    enable_api: bool = True
    enable_websocket: bool = True
    api_path: str = "/api"
    registry: SessionRegistry | None = None


class CodeSyncPlugin(InitPluginProtocol):
    """Litestar plugin wiring the collaboration hub into an application.

    The plugin owns one SessionRegistry, one EventRelay and one
    ConnectionLifecycleManager per application. They are exposed through
    dependency injection as ``registry``, ``relay`` and ``lifecycle``.

    Example:
        >>> from litestar import Litestar
        >>> from codesync import CodeSyncConfig, CodeSyncPlugin
        >>>
        >>> app = Litestar(plugins=[CodeSyncPlugin(CodeSyncConfig())])
    """

    def __init__(self, config: CodeSyncConfig | None = None) -> None:
        """Initialize the plugin with optional configuration.

        Args:
            config: Plugin configuration. If None, CodeSyncConfig with default
                values will be used.
        """
        self._config = config or CodeSyncConfig()
        self._registry: SessionRegistry | None = None
        self._relay: EventRelay | None = None
        self._lifecycle: ConnectionLifecycleManager | None = None

    def on_app_init(self, app_config: AppConfig) -> AppConfig:
        """Create the hub components and register routes and dependencies.

        Args:
            app_config: The Litestar application configuration object.

        Returns:
            The modified application configuration.
        """
        self._registry = self._config.registry or SessionRegistry()
        self._relay = EventRelay(self._registry)
        self._lifecycle = ConnectionLifecycleManager(self._registry, self._relay, self._config.settings)

        def provide_registry() -> SessionRegistry:
            """Dependency provider for SessionRegistry."""
            return self.registry

        def provide_relay() -> EventRelay:
            """Dependency provider for EventRelay."""
            return self.relay

        def provide_lifecycle() -> ConnectionLifecycleManager:
            """Dependency provider for ConnectionLifecycleManager."""
            return self.lifecycle

        app_config.dependencies["registry"] = Provide(provide_registry, sync_to_thread=False)
        app_config.dependencies["relay"] = Provide(provide_relay, sync_to_thread=False)
        app_config.dependencies["lifecycle"] = Provide(provide_lifecycle, sync_to_thread=False)

        if self._config.enable_api:
            from codesync.web.router import create_router

            app_config.route_handlers.append(create_router(path=self._config.api_path))

        if self._config.enable_websocket:
            from codesync.realtime.handler import create_websocket_handler

            app_config.route_handlers.append(
                create_websocket_handler(
                    path=self._config.settings.ws_path,
                    lifecycle=self._lifecycle,
                    relay=self._relay,
                )
            )

        return app_config

    @property
    def registry(self) -> SessionRegistry:
        """Get the session registry.

        Raises:
            RuntimeError: If the plugin has not been initialized yet.
        """
        if self._registry is None:
            msg = "Plugin not initialized. Call on_app_init first."
            raise RuntimeError(msg)
        return self._registry

    @property
    def relay(self) -> EventRelay:
        """Get the event relay.

        Raises:
            RuntimeError: If the plugin has not been initialized yet.
        """
        if self._relay is None:
            msg = "Plugin not initialized. Call on_app_init first."
            raise RuntimeError(msg)
        return self._relay

    @property
    def lifecycle(self) -> ConnectionLifecycleManager:
        """Get the connection lifecycle manager.

        Raises:
            RuntimeError: If the plugin has not been initialized yet.
        """
        if self._lifecycle is None:
            msg = "Plugin not initialized. Call on_app_init first."
            raise RuntimeError(msg)
        return self._lifecycle
