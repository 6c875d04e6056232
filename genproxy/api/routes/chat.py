from __future__ import annotations

import logging
import time
from typing import Annotated, Any

from fastapi import APIRouter, Depends

from genproxy.core.config import UpstreamSettings
from genproxy.core.rate_limit import enforce_rate_limit
from genproxy.core.state import ProxyState, get_proxy_state, get_upstream_settings
from genproxy.schemas.chat import ChatRequest, ErrorResponse
from genproxy.services.credentials import load_credential_pool
from genproxy.services.payloads import (
    build_upstream_payload,
    normalize_response,
    wrap_response,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Chat"])


@router.post(
    "/chat",
    responses={
        400: {"model": ErrorResponse, "description": "Malformed request body"},
        405: {"model": ErrorResponse, "description": "Method other than POST"},
        429: {"model": ErrorResponse, "description": "Local rate limit exceeded"},
        500: {"model": ErrorResponse, "description": "Server not configured"},
        502: {"model": ErrorResponse, "description": "Every API key failed"},
    },
)
async def chat(
    body: ChatRequest,
    client_id: Annotated[str, Depends(enforce_rate_limit)],
    state: Annotated[ProxyState, Depends(get_proxy_state)],
    upstream: Annotated[UpstreamSettings, Depends(get_upstream_settings)],
) -> Any:
    """Forward a conversation to the generative-language API.

    The caller never sees the upstream credentials: the request is admitted by
    the per-client rate limiter, then dispatched across the credential pool
    with round-robin failover.

    Args:
        body: Conversation turns to forward.
        client_id: Resolved client identifier (after admission).
        state: Shared proxy state.
        upstream: Upstream settings resolved for this request.

    Returns:
        The upstream success payload, normalised when APP_NORMALIZE_RESPONSE
        is enabled and wrapped in {ok, model, duration_ms, result} when
        APP_WRAP_RESPONSE is enabled.

    Raises:
        RateLimitedAppError: 429 when the client is over quota.
        ConfigurationAppError: 500 when no credential is configured.
        TerminalUpstreamAppError: Upstream status for non-retryable errors.
        ExhaustedUpstreamAppError: 502 when every credential failed.
    """
    app_settings = state.settings.app
    keys = load_credential_pool(upstream)
    payload = build_upstream_payload(body.contents, upstream.upstream_payload_style)

    logger.info(
        "chat.request",
        extra={
            "turns": len(body.contents),
            "pool_size": len(keys),
            "model": state.upstream_client.model,
        },
    )
    start = time.perf_counter()
    result = await state.dispatcher.dispatch(keys, payload)
    duration_ms = (time.perf_counter() - start) * 1000

    response_body = result.payload
    if app_settings.normalize_response:
        response_body = normalize_response(response_body)
    if app_settings.wrap_response:
        response_body = wrap_response(
            response_body, model=state.upstream_client.model, duration_ms=duration_ms
        )
    return response_body
