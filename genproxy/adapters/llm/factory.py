"""Factory pattern for creating upstream client instances."""

from __future__ import annotations

import httpx

from genproxy.adapters.llm.base import AbstractUpstreamClient
from genproxy.adapters.llm.gemini_client import GeminiClient
from genproxy.core.config import UpstreamSettings, settings
from genproxy.core.errors import ConfigurationAppError


def create_upstream_client(
    upstream_settings: UpstreamSettings | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> AbstractUpstreamClient:
    """Instantiate the upstream client for the configured provider.

    Credentials are deliberately not required here: they are read per request
    so the pool can be reconfigured without rebuilding the client.

    Args:
        upstream_settings: Upstream settings; defaults to the global settings.
        http_client: Optional shared HTTP client for connection pooling.

    Returns:
        AbstractUpstreamClient: Configured client instance.

    Raises:
        ConfigurationAppError: If the provider is unknown.
    """
    cfg = upstream_settings or settings.upstream
    provider = cfg.upstream_provider.lower()

    if provider == "gemini":
        return GeminiClient(
            base_url=cfg.upstream_base_url,
            model=cfg.gemini_model,
            http_client=http_client,
            timeout_seconds=cfg.upstream_timeout_seconds,
        )

    raise ConfigurationAppError(
        code="upstream_unknown_provider",
        message=f"Unknown upstream provider: '{provider}'. Supported providers: gemini",
    )
