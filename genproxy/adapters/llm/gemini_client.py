"""Gemini generateContent client adapter."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

from genproxy.adapters.llm.base import AbstractUpstreamClient, UpstreamResponse
from genproxy.core.errors import UpstreamTransportError
from genproxy.core.logging import scrub_secrets


class GeminiClient(AbstractUpstreamClient):
    """Client for the generative-language ``models/{model}:generateContent`` call.

    The credential is sent as the ``key`` query parameter. If ``http_client``
    is provided it is reused for every call (connection pooling); otherwise a
    short-lived client is created per call.
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        """Initialize the Gemini client.

        Args:
            base_url: API root, e.g. ``https://generativelanguage.googleapis.com/v1beta``.
            model: Model name (e.g. "gemini-1.5-flash").
            http_client: Optional shared async HTTP client.
            timeout_seconds: Per-call timeout; expiry counts as a transport failure.
        """
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._http_client = http_client

    @property
    def endpoint_url(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def bind_http_client(self, http_client: httpx.AsyncClient | None) -> None:
        """Switch to (or away from) a shared HTTP client."""
        self._http_client = http_client

    @asynccontextmanager
    async def _client_context(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            yield client

    async def generate_content(
        self,
        api_key: str,
        payload: dict[str, Any],
    ) -> UpstreamResponse:
        """POST the payload upstream with one credential.

        Args:
            api_key: Credential for this attempt.
            payload: JSON request body.

        Returns:
            UpstreamResponse: Status code and decoded JSON body.

        Raises:
            UpstreamTransportError: On timeout, network failure or non-JSON body.
        """
        try:
            async with self._client_context() as client:
                resp = await client.post(
                    self.endpoint_url,
                    params={"key": api_key},
                    json=payload,
                    timeout=self.timeout_seconds,
                )
        except httpx.TimeoutException as exc:
            raise UpstreamTransportError(
                code="upstream_timeout",
                message=f"Upstream timed out after {self.timeout_seconds}s",
                details={"hint": type(exc).__name__},
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamTransportError(
                code="upstream_network_error",
                message=scrub_secrets(
                    f"Upstream request failed: {type(exc).__name__}: {exc}", [api_key]
                ),
            ) from exc

        try:
            body = resp.json()
        except ValueError as exc:
            raise UpstreamTransportError(
                code="upstream_invalid_json",
                message="Upstream returned a body that is not valid JSON",
                details={"http_status": resp.status_code},
            ) from exc

        return UpstreamResponse(status_code=resp.status_code, body=body)
