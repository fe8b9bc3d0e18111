"""Web layer for the codesync HTTP API."""

from codesync.web.controllers import RoomController
from codesync.web.health import HealthController
from codesync.web.router import create_router

__all__ = ["HealthController", "RoomController", "create_router"]
