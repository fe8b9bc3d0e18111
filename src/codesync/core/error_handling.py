"""Exception handlers for codesync's HTTP endpoints.

HTTP errors are answered with the same body shape the collaboration socket
uses for its in-band ``error`` frames, plus the request's correlation ID::

    {"type": "error", "code": "not_found", "message": "...", "correlationId": "..."}

WebSocket errors never pass through these handlers; the collaboration
handler reports them itself.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from litestar import Response
from litestar.exceptions import HTTPException, ValidationException
from litestar.status_codes import HTTP_500_INTERNAL_SERVER_ERROR

from codesync.realtime.messages import ErrorEvent

if TYPE_CHECKING:
    from litestar import Request

logger = structlog.get_logger(__name__)

ERROR_CODES = {
    400: "bad_request",
    404: "not_found",
    405: "method_not_allowed",
    429: "rate_limited",
    500: "internal_error",
    503: "service_unavailable",
}


def get_correlation_id(request: Request) -> str | None:
    """Return the correlation ID bound by the middleware, or sent by the caller."""
    correlation_id = request.scope.get("state", {}).get("correlation_id")
    if correlation_id:
        return correlation_id
    return request.headers.get("X-Correlation-ID") or request.headers.get("X-Request-ID")


def error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> Response[dict[str, Any]]:
    """Build an error response shaped like an ``error`` frame.

    Args:
        request: The failed request.
        status_code: HTTP status to respond with.
        code: Machine-readable error code.
        message: Human-readable message.
        details: Optional structured details.

    Returns:
        A JSON response.
    """
    body = ErrorEvent(code=code, message=message, details=details).to_dict()
    correlation_id = get_correlation_id(request)
    if correlation_id:
        body["correlationId"] = correlation_id
    return Response(content=body, status_code=status_code, media_type="application/json")


def validation_exception_handler(request: Request, exc: ValidationException) -> Response[dict[str, Any]]:
    """Handle malformed path or query parameters."""
    fields = [error.get("key") for error in exc.extra or [] if isinstance(error, dict) and error.get("key")]

    logger.warning("Validation error", path=request.url.path, fields=fields)

    return error_response(
        request,
        exc.status_code,
        "invalid_payload",
        str(exc.detail),
        {"fields": fields} if fields else None,
    )


def http_exception_handler(request: Request, exc: HTTPException) -> Response[dict[str, Any]]:
    """Handle HTTP exceptions raised by routing or handlers."""
    code = ERROR_CODES.get(exc.status_code, "error")
    log = logger.warning if exc.status_code < 500 else logger.error
    log("HTTP exception", path=request.url.path, status_code=exc.status_code, error_code=code)

    return error_response(request, exc.status_code, code, str(exc.detail))


def generic_exception_handler(request: Request, exc: Exception) -> Response[dict[str, Any]]:
    """Handle unexpected exceptions without leaking internals to the client."""
    logger.exception("Unhandled exception", path=request.url.path, exc_info=exc)

    return error_response(request, HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", "Internal server error")


def get_exception_handlers() -> dict:
    """Get the exception handlers for the application.

    Returns:
        Dictionary mapping exception types to handler functions.
    """
    return {
        ValidationException: validation_exception_handler,
        HTTPException: http_exception_handler,
        Exception: generic_exception_handler,
    }
