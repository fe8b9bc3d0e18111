"""Health check endpoints for codesync.

Provides /health and /ready for container orchestration and load balancers.
All room state lives in process memory, so health is judged by comparing the
session registry with the relay's attached sockets.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, ClassVar

from litestar import Controller, get

from codesync import __version__
from codesync.realtime.registry import SessionRegistry
from codesync.realtime.relay import EventRelay


class HealthStatus(str, Enum):
    """Health check status values."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"


@dataclass
class ComponentHealth:
    """Health of one hub component."""

    name: str
    status: HealthStatus
    message: str | None = None
    details: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"name": self.name, "status": self.status.value, "message": self.message, "details": self.details}


def count_orphaned_members(registry: SessionRegistry, relay: EventRelay) -> int:
    """Count room members whose socket is no longer attached to the relay.

    A non-zero count means a disconnect was not fully processed: those
    participants still show up in ``room-users`` but receive nothing.
    """
    return sum(
        1
        for room_id in registry.room_ids()
        for connection_id in registry.connection_ids(room_id)
        if not relay.is_attached(connection_id)
    )


class HealthController(Controller):
    """Liveness and readiness probes."""

    path = ""
    tags: ClassVar[list[str]] = ["Health"]

    @get("/health")
    async def health(self, registry: SessionRegistry, relay: EventRelay) -> dict[str, Any]:
        """Liveness probe with registry statistics.

        Returns:
            Overall status plus one entry per component.
        """
        orphaned = count_orphaned_members(registry, relay)
        components = [
            ComponentHealth(
                name="session_registry",
                status=HealthStatus.HEALTHY,
                details={"active_rooms": registry.active_rooms, "participants": registry.total_participants},
            ),
            ComponentHealth(
                name="event_relay",
                status=HealthStatus.DEGRADED if orphaned else HealthStatus.HEALTHY,
                message=f"{orphaned} room members without a socket" if orphaned else None,
                details={"connections": relay.attached_connections, "orphaned_members": orphaned},
            ),
        ]
        status = HealthStatus.DEGRADED if orphaned else HealthStatus.HEALTHY

        return {
            "status": status.value,
            "version": __version__,
            "timestamp": datetime.now(UTC).isoformat(),
            "components": [c.to_dict() for c in components],
        }

    @get("/ready")
    async def ready(self, registry: SessionRegistry) -> dict[str, Any]:
        """Readiness probe.

        The hub is ready as soon as the plugin has built its registry, which
        is what resolving the ``registry`` dependency proves.
        """
        checks = {"session_registry": registry is not None}
        return {
            "ready": all(checks.values()),
            "timestamp": datetime.now(UTC).isoformat(),
            "checks": checks,
        }
