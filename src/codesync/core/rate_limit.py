"""Rate limiting for codesync's HTTP endpoints.

Uses Litestar's built-in RateLimitMiddleware, which only looks at HTTP
requests. Frames on an open collaboration socket are never throttled.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Literal

from litestar.middleware.rate_limit import RateLimitConfig

DurationUnit = Literal["second", "minute", "hour", "day"]


@dataclass
class RateLimitSettings:
    """Rate limiting settings.

    Attributes:
        enabled: Whether rate limiting is enabled.
        limit: Requests allowed per client and window.
        window: Length of the rate limit window.
        exclude_paths: Path patterns that are never limited.
    """

    enabled: bool = True
    limit: int = 100
    window: DurationUnit = "minute"
    exclude_paths: list[str] = field(default_factory=lambda: ["/health", "/ready", "/schema"])

    @classmethod
    def from_env(cls) -> RateLimitSettings:
        """Create settings from environment variables.

        Environment variables:
            RATE_LIMIT_ENABLED: Set to "false" to disable rate limiting.
            RATE_LIMIT_PER_MINUTE: Requests per minute (default: 100).

        Returns:
            RateLimitSettings configured from environment.
        """
        return cls(
            enabled=os.environ.get("RATE_LIMIT_ENABLED", "true").lower() != "false",
            limit=int(os.environ.get("RATE_LIMIT_PER_MINUTE", "100")),
        )


def get_rate_limit_middleware(settings: RateLimitSettings | None = None) -> RateLimitConfig | None:
    """Build the rate limit config, or None when rate limiting is off.

    Handlers can opt out with ``opt={"exclude_from_rate_limit": True}``.
    """
    settings = settings or RateLimitSettings.from_env()
    if not settings.enabled:
        return None

    return RateLimitConfig(
        rate_limit=(settings.window, settings.limit),
        exclude=settings.exclude_paths,
        exclude_opt_key="exclude_from_rate_limit",
    )
