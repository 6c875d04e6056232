"""Long-lived server context shared by request handlers.

The rate-limit table, the rotation cursor and the settings the app was built
from live for as long as the process (or serverless instance) does. They are
built once in the app factory, stored on ``app.state`` and handed to routes
through FastAPI dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request

from genproxy.adapters.llm.base import AbstractUpstreamClient
from genproxy.adapters.llm.factory import create_upstream_client
from genproxy.adapters.rate_limit.base import AbstractRateLimiter
from genproxy.adapters.rate_limit.sliding_window import InMemorySlidingWindowRateLimiter
from genproxy.core.config import Settings, UpstreamSettings
from genproxy.services.key_rotation import KeyRotationDispatcher


@dataclass
class ProxyState:
    """Process-wide mutable state of one proxy instance.

    When ``reload_upstream`` is set, upstream settings (and therefore the
    credential pool) are rebuilt from the environment on every request;
    otherwise the snapshot in ``settings.upstream`` is used as given.
    """

    settings: Settings
    rate_limiter: AbstractRateLimiter
    dispatcher: KeyRotationDispatcher
    reload_upstream: bool = False

    @property
    def upstream_client(self) -> AbstractUpstreamClient:
        return self.dispatcher.client

    def current_upstream_settings(self) -> UpstreamSettings:
        if self.reload_upstream:
            return UpstreamSettings()
        return self.settings.upstream


def build_proxy_state(cfg: Settings, *, reload_upstream: bool = False) -> ProxyState:
    """Create a fresh limiter and dispatcher from settings."""

    limiter = InMemorySlidingWindowRateLimiter(
        limit=cfg.app.rate_limit_requests,
        window_ms=cfg.app.rate_limit_window_ms,
        max_tracked_clients=cfg.app.rate_limit_max_clients,
        eviction=cfg.app.rate_limit_eviction,
    )
    dispatcher = KeyRotationDispatcher(create_upstream_client(cfg.upstream))
    return ProxyState(
        settings=cfg,
        rate_limiter=limiter,
        dispatcher=dispatcher,
        reload_upstream=reload_upstream,
    )


def get_proxy_state(request: Request) -> ProxyState:
    """FastAPI dependency returning the app's ProxyState."""

    return request.app.state.proxy


def get_upstream_settings(
    state: Annotated[ProxyState, Depends(get_proxy_state)],
) -> UpstreamSettings:
    """FastAPI dependency resolving upstream settings once per request."""

    return state.current_upstream_settings()
