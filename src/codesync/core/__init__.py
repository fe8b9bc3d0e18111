"""Core infrastructure for codesync: settings, logging, errors and rate limits."""

from codesync.core.logging import configure_logging
from codesync.core.settings import ClientSettings, HubSettings

__all__ = [
    "ClientSettings",
    "HubSettings",
    "configure_logging",
]
