"""Global exception handlers for consistent error responses.

Every error leaves the proxy as a flat JSON envelope:

    {"error": <summary>, "source": <local|config|gemini|internal>, ..., "request_id": ...}

Mapping:
- RateLimitedAppError → 429, source "local"
- ValidationAppError / invalid body → 400, source "local"
- ConfigurationAppError → 500, source "config"
- TerminalUpstreamAppError → upstream status, source "gemini", with details
- ExhaustedUpstreamAppError → 502, source "gemini", with attempts
- HTTP errors raised by routing (404, 405) → their own status
- Unexpected Exception → generic 500 (safety net, no internals leaked)
"""

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from genproxy.core.errors import (
    AppError,
    ConfigurationAppError,
    ExhaustedUpstreamAppError,
    RateLimitedAppError,
    TerminalUpstreamAppError,
    UpstreamTransportError,
    ValidationAppError,
)
from genproxy.core.logging import get_request_id

logger = logging.getLogger(__name__)


def _envelope(error: str, **fields: Any) -> dict[str, Any]:
    content: dict[str, Any] = {"error": error}
    content.update({k: v for k, v in fields.items() if v is not None})
    content["request_id"] = get_request_id()
    return content


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render domain application errors.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with the status code and envelope for that error type.
    """
    headers: dict[str, str] | None = None

    if isinstance(exc, RateLimitedAppError):
        status_code = 429
        content = _envelope("Rate limit exceeded", source="local", message=exc.message)
        headers = exc.headers or None
    elif isinstance(exc, ValidationAppError):
        status_code = 400
        content = _envelope(
            "Invalid request body", source="local", message=exc.message, details=exc.details
        )
    elif isinstance(exc, ConfigurationAppError):
        status_code = 500
        content = _envelope("Server not configured", source="config")
    elif isinstance(exc, TerminalUpstreamAppError):
        status_code = exc.status_code
        content = _envelope(exc.message, source="gemini", details=exc.details)
    elif isinstance(exc, ExhaustedUpstreamAppError):
        status_code = 502
        content = _envelope(exc.message, source="gemini", attempts=exc.attempts)
    elif isinstance(exc, UpstreamTransportError):
        # Normally absorbed by the dispatcher; only reachable if a caller
        # bypasses rotation.
        status_code = 502
        content = _envelope("Upstream unavailable", source="gemini", message=exc.message)
    else:
        status_code = 500
        content = _envelope("Internal server error", source="internal")

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
        },
    )

    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Reject malformed bodies with 400 before any upstream work happens."""
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    logger.warning(
        "request_validation_failed",
        extra={"error_count": len(errors), "request_path": request.url.path},
    )
    return JSONResponse(
        status_code=400,
        content=_envelope("Invalid request body", source="local", details=errors),
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Render routing-level HTTP errors (404, 405, ...) in the same envelope."""
    if exc.status_code == 405:
        logger.warning("method_not_allowed", extra={"request_method": request.method})
        error = "Method not allowed"
    else:
        error = str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=_envelope(error),
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs the failure for debugging while returning a generic message, so no
    stack traces or upstream credentials can leak to the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "request_path": request.url.path,
            "request_method": request.method,
        },
        exc_info=exc,
    )

    return JSONResponse(
        status_code=500,
        content=_envelope(
            "Internal server error",
            source="internal",
            message="An unexpected error occurred. Please try again later.",
        ),
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(Exception)(general_exception_handler)
