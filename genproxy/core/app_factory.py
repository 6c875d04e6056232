"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers and the
shared proxy state) so tests can build isolated instances.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI

from genproxy.api.routes import chat_router, health_router
from genproxy.core.config import Settings, settings
from genproxy.core.exception_handlers import setup_exception_handlers
from genproxy.core.logging import configure_logging
from genproxy.core.middleware import request_id_middleware
from genproxy.core.openapi import apply_openapi_customizations
from genproxy.core.state import ProxyState, build_proxy_state

logger = logging.getLogger(__name__)


def _lifespan(cfg: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Share one pooled HTTP client across all upstream attempts."""
        state: ProxyState = app.state.proxy
        client = state.upstream_client
        bind = getattr(client, "bind_http_client", None)

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(cfg.upstream.upstream_timeout_seconds),
        ) as http_client:
            if bind is not None:
                bind(http_client)
            logger.info(
                "app.startup",
                extra={"model": client.model, "app_env": cfg.app_env},
            )
            try:
                yield
            finally:
                if bind is not None:
                    bind(None)
                logger.info("app.shutdown")

    return lifespan


def create_app(cfg: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        cfg: Settings to build from. When omitted the global settings are used
            and the credential pool is re-read from the environment on every
            request; an explicit Settings object is used as a fixed snapshot.

    Returns:
        Configured FastAPI app with its own rate-limit table and rotation cursor.
    """
    reload_upstream = cfg is None
    cfg = cfg or settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    app = FastAPI(
        title="genproxy",
        description=(
            "Proxy for the generative-language chat API. Keeps upstream API keys "
            "server-side, rate limits callers per address with a sliding window "
            "and fails over across up to five API keys in round-robin order."
        ),
        version="0.1.0",
        debug=cfg.app.debug,
        lifespan=_lifespan(cfg),
    )

    # Process-wide state: settings, rate-limit table and rotation cursor
    app.state.proxy = build_proxy_state(cfg, reload_upstream=reload_upstream)

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(chat_router, prefix="/api")
    app.include_router(health_router)

    # OpenAPI customizations (tags)
    apply_openapi_customizations(app)

    return app
