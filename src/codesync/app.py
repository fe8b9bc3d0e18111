"""Main Litestar application for codesync.

This module provides the application factory and a configured app instance
for running the collaboration hub standalone::

    uvicorn codesync.app:app
    litestar --app codesync.app:app run
"""

from __future__ import annotations

from litestar import Litestar
from litestar.openapi import OpenAPIConfig

from codesync.cli import CodeSyncCLIPlugin
from codesync.core.error_handling import get_exception_handlers
from codesync.core.logging import configure_logging, get_middleware
from codesync.core.rate_limit import get_rate_limit_middleware
from codesync.core.settings import HubSettings
from codesync.plugin import CodeSyncConfig, CodeSyncPlugin
from codesync.web.health import HealthController


def create_app(
    settings: HubSettings | None = None,
    *,
    enable_api: bool = True,
    plugin: CodeSyncPlugin | None = None,
) -> Litestar:
    """Create and configure the Litestar application.

    Args:
        settings: Hub settings. If None, loads from environment.
        enable_api: Whether to mount the read-only rooms API.
        plugin: A pre-built CodeSyncPlugin, mainly for tests that need to reach
            the registry. If None, one is created from ``settings``.

    Returns:
        Configured Litestar application instance.
    """
    settings = settings or HubSettings.from_env()
    configure_logging(debug=settings.debug, json_logs=settings.json_logs)

    codesync_plugin = plugin or CodeSyncPlugin(CodeSyncConfig(settings=settings, enable_api=enable_api))

    middleware = get_middleware()

    rate_limit_config = get_rate_limit_middleware()
    if rate_limit_config:
        middleware.append(rate_limit_config.middleware)

    return Litestar(
        route_handlers=[HealthController],
        plugins=[codesync_plugin, CodeSyncCLIPlugin()],
        debug=settings.debug,
        middleware=middleware,
        exception_handlers=get_exception_handlers(),
        openapi_config=OpenAPIConfig(
            title="codesync API",
            version="0.1.0",
            description="Real-time collaborative code editing hub",
            path="/schema",
            use_handler_docstrings=True,
        ),
    )


app = create_app()
