"""HTTP middleware for request ID propagation and access logging.

Every request/response pair carries a correlation id:
- An incoming X-Request-ID header (name configurable via LOG_REQUEST_ID_HEADER)
  is reused, otherwise a UUID4 is generated
- The id lives in a context variable for the lifetime of the request so that
  every log line emitted while serving it is tagged
- The id and total duration are echoed back as response headers, on error
  responses too

Unhandled exceptions are rendered here rather than by Starlette's outermost
error middleware, which only runs after this one has returned and the id has
been cleared.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from genproxy.core.exception_handlers import general_exception_handler
from genproxy.core.logging import clear_request_context, set_request_id

logger = logging.getLogger(__name__)


async def request_id_middleware(request: Request, call_next) -> Response:
    """Attach a request id, time the request and emit one access log line.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with X-Request-ID and
            X-Request-Duration-ms headers added.
    """

    header_name = request.app.state.proxy.settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        try:
            response: Response = await call_next(request)
        except Exception as exc:
            response = await general_exception_handler(request, exc)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "http.request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
    finally:
        clear_request_context()

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
