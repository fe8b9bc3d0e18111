"""Router configuration for the codesync HTTP API."""

from __future__ import annotations

from litestar import Router

from codesync.web.controllers import RoomController


def create_router(path: str = "/api") -> Router:
    """Create the codesync API router.

    Args:
        path: The base path for all API routes. Defaults to "/api".

    Returns:
        A configured Litestar Router instance.
    """
    return Router(path=path, route_handlers=[RoomController])
