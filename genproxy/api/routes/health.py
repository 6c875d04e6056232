from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from genproxy.core.config import UpstreamSettings
from genproxy.core.state import ProxyState, get_proxy_state, get_upstream_settings
from genproxy.services.credentials import load_credential_pool

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(
    state: Annotated[ProxyState, Depends(get_proxy_state)],
    upstream: Annotated[UpstreamSettings, Depends(get_upstream_settings)],
) -> dict:
    """Health check endpoint.

    Reports liveness plus how many credentials are configured (never the
    credentials themselves), so a deploy missing its keys is visible before
    the first chat request fails.

    Returns:
        dict: ``status``, ``credentials`` (pool size) and ``model``.
    """

    return {
        "status": "ok",
        "credentials": len(load_credential_pool(upstream)),
        "model": state.upstream_client.model,
    }
