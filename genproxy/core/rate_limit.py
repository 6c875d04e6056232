"""Rate limiting dependency for FastAPI routes.

This module wires the admission controller into the HTTP layer.

Rate limiting strategy:
- Sliding window per client (see InMemorySlidingWindowRateLimiter).
- Client identity comes from proxy headers, since the service normally runs
  behind a load balancer or serverless front door: first X-Forwarded-For
  entry, then X-Real-IP, then the socket peer, then "unknown".
- Rejected requests are free: they never consume a slot.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Annotated

from fastapi import Depends, Request

from genproxy.core.errors import RateLimitedAppError
from genproxy.core.logging import set_client_hash
from genproxy.core.state import ProxyState, get_proxy_state

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


def resolve_client_id(request: Request) -> str:
    """Derive the client identifier used as the rate limit key.

    Args:
        request: FastAPI request.

    Returns:
        str: Client address, or "unknown" when nothing identifies the caller.
    """

    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host

    return UNKNOWN_CLIENT


def _hash_client_id(client_id: str) -> str:
    """Hash the client id for logging without exposing addresses."""
    return hashlib.sha256(client_id.encode()).hexdigest()[:16]


async def enforce_rate_limit(
    request: Request,
    state: Annotated[ProxyState, Depends(get_proxy_state)],
) -> str:
    """FastAPI dependency enforcing the per-client sliding window.

    Args:
        request: FastAPI request.
        state: Shared proxy state holding the limiter.

    Returns:
        str: The resolved client identifier.

    Raises:
        RateLimitedAppError: When the client is over its quota (HTTP 429).
    """

    client_id = resolve_client_id(request)
    set_client_hash(_hash_client_id(client_id))

    cfg = state.settings.app
    if not cfg.rate_limit_enabled:
        return client_id

    result = state.rate_limiter.consume(client_id)

    if result.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        return client_id

    retry_after = result.retry_after_seconds or 0
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "limit": result.limit,
            "window_ms": cfg.rate_limit_window_ms,
            "retry_after_s": retry_after,
        },
    )

    headers: dict[str, str] = {}
    if cfg.rate_limit_include_headers:
        headers["Retry-After"] = str(retry_after)
        headers["X-RateLimit-Limit"] = str(result.limit)
        headers["X-RateLimit-Remaining"] = str(result.remaining)
        headers["X-RateLimit-Reset"] = str(result.reset_at)

    raise RateLimitedAppError(
        code="rate_limited",
        message=(
            "Too many requests. Try again in "
            f"{max(1, round(cfg.rate_limit_window_ms / 1000))} seconds."
        ),
        details={"retry_after": retry_after},
        headers=headers,
    )
