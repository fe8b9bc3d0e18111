"""Pytest configuration and fixtures for codesync tests."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from litestar import Litestar
from litestar.testing import TestClient

from codesync.app import create_app
from codesync.core.settings import HubSettings
from codesync.plugin import CodeSyncConfig, CodeSyncPlugin
from codesync.realtime.lifecycle import ConnectionLifecycleManager
from codesync.realtime.registry import SessionRegistry
from codesync.realtime.relay import EventRelay


@pytest.fixture
def anyio_backend() -> str:
    """Use asyncio as the async backend."""
    return "asyncio"


# Hub component fixtures


@pytest.fixture
def registry() -> SessionRegistry:
    """Create a fresh SessionRegistry for each test."""
    return SessionRegistry()


@pytest.fixture
def relay(registry: SessionRegistry) -> EventRelay:
    """Create an EventRelay bound to the test registry."""
    return EventRelay(registry)


@pytest.fixture
def lifecycle(registry: SessionRegistry, relay: EventRelay) -> ConnectionLifecycleManager:
    """Create a ConnectionLifecycleManager with default settings."""
    return ConnectionLifecycleManager(registry, relay, HubSettings())


@pytest.fixture
def make_socket() -> Callable[[], MagicMock]:
    """Factory for mock WebSockets that record sent frames."""

    def factory() -> MagicMock:
        ws = MagicMock()
        ws.connection_state = "connect"
        ws.send_text = AsyncMock()
        return ws

    return factory


@pytest.fixture
def sent_frames() -> Callable[[MagicMock], list[dict[str, Any]]]:
    """Decode every frame a mock WebSocket was asked to send."""

    def decode(ws: MagicMock) -> list[dict[str, Any]]:
        return [json.loads(call.args[0]) for call in ws.send_text.call_args_list]

    return decode


# App and client fixtures


@pytest.fixture(autouse=True)
def _disable_rate_limit(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the HTTP rate limiter out of the way of tests."""
    monkeypatch.setattr("codesync.app.get_rate_limit_middleware", lambda: None)


@pytest.fixture
def plugin() -> CodeSyncPlugin:
    """Create a CodeSyncPlugin the tests can inspect."""
    return CodeSyncPlugin(CodeSyncConfig(settings=HubSettings()))


@pytest.fixture
def app(plugin: CodeSyncPlugin) -> Litestar:
    """Create a Litestar app wired with the test plugin."""
    return create_app(HubSettings(), plugin=plugin)


@pytest.fixture
def client(app: Litestar) -> Iterator[TestClient[Litestar]]:
    """Create a test client sharing one event loop across WebSocket sessions."""
    with TestClient(app=app) as test_client:
        yield test_client
