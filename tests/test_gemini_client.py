"""Tests for the Gemini upstream client using httpx's mock transport."""

import json

import httpx
import pytest

from genproxy.adapters.llm import GeminiClient, create_upstream_client
from genproxy.core.config import UpstreamSettings
from genproxy.core.errors import ConfigurationAppError, UpstreamTransportError

BASE_URL = "https://generativelanguage.example/v1beta"
PAYLOAD = {"contents": [{"role": "user", "parts": [{"text": "hi"}]}]}


def make_client(handler) -> GeminiClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeminiClient(
        base_url=BASE_URL,
        model="gemini-test",
        http_client=http_client,
        timeout_seconds=5.0,
    )


class TestGeminiClient:
    @pytest.mark.asyncio
    async def test_posts_payload_with_key_query_param(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"candidates": []})

        client = make_client(handler)
        response = await client.generate_content("secret-1", PAYLOAD)

        assert response.status_code == 200
        assert response.ok is True
        assert response.body == {"candidates": []}

        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/v1beta/models/gemini-test:generateContent"
        assert request.url.params["key"] == "secret-1"
        assert json.loads(request.content) == PAYLOAD

    @pytest.mark.asyncio
    async def test_error_status_is_returned_not_raised(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                429, json={"error": {"code": 429, "status": "RESOURCE_EXHAUSTED"}}
            )

        response = await make_client(handler).generate_content("k", PAYLOAD)

        assert response.status_code == 429
        assert response.ok is False
        assert response.body["error"]["status"] == "RESOURCE_EXHAUSTED"

    @pytest.mark.asyncio
    async def test_timeout_is_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(UpstreamTransportError) as exc_info:
            await make_client(handler).generate_content("k", PAYLOAD)

        assert exc_info.value.code == "upstream_timeout"

    @pytest.mark.asyncio
    async def test_connect_error_is_transport_error_without_key(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError(f"cannot reach {request.url}", request=request)

        with pytest.raises(UpstreamTransportError) as exc_info:
            await make_client(handler).generate_content("very-secret-key", PAYLOAD)

        assert exc_info.value.code == "upstream_network_error"
        assert "very-secret-key" not in exc_info.value.message
        assert "[REDACTED]" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_non_json_body_is_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="<html>Bad Gateway</html>")

        with pytest.raises(UpstreamTransportError) as exc_info:
            await make_client(handler).generate_content("k", PAYLOAD)

        assert exc_info.value.code == "upstream_invalid_json"
        assert exc_info.value.details == {"http_status": 502}

    def test_endpoint_url_strips_trailing_slash(self) -> None:
        client = GeminiClient(base_url=BASE_URL + "/", model="gemini-1.5-flash")

        assert client.endpoint_url == f"{BASE_URL}/models/gemini-1.5-flash:generateContent"


class TestUpstreamFactory:
    def test_creates_gemini_client(self) -> None:
        cfg = UpstreamSettings(
            gemini_model="gemini-1.5-pro",
            upstream_base_url=BASE_URL,
            upstream_timeout_seconds=12.0,
        )

        client = create_upstream_client(cfg)

        assert isinstance(client, GeminiClient)
        assert client.model == "gemini-1.5-pro"
        assert client.timeout_seconds == 12.0

    def test_unknown_provider(self) -> None:
        cfg = UpstreamSettings(upstream_provider="palm")

        with pytest.raises(ConfigurationAppError) as exc_info:
            create_upstream_client(cfg)
        assert exc_info.value.code == "upstream_unknown_provider"
