"""Structured logging for the codesync hub and client.

Provides structlog setup plus two ASGI middlewares: one binds a correlation
ID to every HTTP request and WebSocket session, the other writes one access
log line per request or per WebSocket session.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from litestar.types import ASGIApp, Message, Receive, Scope, Send

CORRELATION_HEADER = b"x-correlation-id"


def configure_logging(*, debug: bool = False, json_logs: bool = False) -> None:
    """Configure structured logging.

    Args:
        debug: Enable debug level logging, including per-event relay logs.
        json_logs: Output logs as JSON (for production).
    """
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_logs:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    level = logging.DEBUG if debug else logging.INFO
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # websockets logs every frame through the stdlib at DEBUG.
    logging.getLogger("websockets").setLevel(logging.INFO if debug else logging.WARNING)


class CorrelationIdMiddleware:
    """Binds a correlation ID to each HTTP request and WebSocket session.

    The ID comes from the X-Correlation-ID or X-Request-ID header, or is
    generated. It is stored in scope state, bound to the structlog context
    together with the transport type, and echoed back on the HTTP response or
    on the WebSocket accept.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        correlation_id = (
            headers.get(CORRELATION_HEADER, b"").decode()
            or headers.get(b"x-request-id", b"").decode()
            or uuid.uuid4().hex
        )
        scope.setdefault("state", {})["correlation_id"] = correlation_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            transport=scope["type"],
            path=scope.get("path", ""),
        )

        async def send_with_header(message: Message) -> None:
            if message["type"] in ("http.response.start", "websocket.accept"):
                message["headers"] = [*(message.get("headers") or []), (CORRELATION_HEADER, correlation_id.encode())]
            await send(message)

        try:
            await self.app(scope, receive, send_with_header)
        finally:
            structlog.contextvars.clear_contextvars()


class AccessLogMiddleware:
    """Writes one log line per HTTP request and per WebSocket session.

    HTTP lines carry the status code, WebSocket lines the close code; both
    carry the duration. Health probes are skipped.
    """

    def __init__(self, app: ASGIApp, *, exclude_paths: set[str] | None = None) -> None:
        """Initialize the middleware.

        Args:
            app: The ASGI application.
            exclude_paths: Paths that are never logged.
        """
        self.app = app
        self.exclude_paths = exclude_paths or {"/health", "/ready"}

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket") or scope.get("path", "") in self.exclude_paths:
            await self.app(scope, receive, send)
            return

        if scope["type"] == "websocket":
            await self._websocket_session(scope, receive, send)
        else:
            await self._http_request(scope, receive, send)

    async def _http_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        logger = structlog.get_logger(__name__)
        start = time.perf_counter()
        status_code = 500

        async def capture_status(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 500)
            await send(message)

        try:
            await self.app(scope, receive, capture_status)
        finally:
            if status_code >= 500:
                log = logger.error
            elif status_code >= 400:
                log = logger.warning
            else:
                log = logger.info
            log(
                "Request completed",
                method=scope.get("method", ""),
                status_code=status_code,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
                client_ip=_client_ip(scope),
            )

    async def _websocket_session(self, scope: Scope, receive: Receive, send: Send) -> None:
        logger = structlog.get_logger(__name__)
        start = time.perf_counter()
        accepted = False
        close_code: int | None = None

        async def capture_send(message: Message) -> None:
            nonlocal accepted, close_code
            if message["type"] == "websocket.accept":
                accepted = True
            elif message["type"] == "websocket.close":
                close_code = message.get("code", 1000)
            await send(message)

        async def capture_receive() -> Message:
            nonlocal close_code
            message = await receive()
            if message["type"] == "websocket.disconnect" and close_code is None:
                close_code = message.get("code", 1005)
            return message

        try:
            await self.app(scope, capture_receive, capture_send)
        finally:
            logger.info(
                "WebSocket session ended",
                accepted=accepted,
                close_code=close_code,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
                client_ip=_client_ip(scope),
            )


def _client_ip(scope: Scope) -> str:
    client = scope.get("client")
    return client[0] if client else "unknown"


def get_middleware() -> list:
    """Get the logging middleware stack, outermost first."""
    return [CorrelationIdMiddleware, AccessLogMiddleware]
