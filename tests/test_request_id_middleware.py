from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from genproxy.core.app_factory import create_app


@pytest.fixture
def client(make_app) -> TestClient:
    return TestClient(make_app("k1,k2"))


def test_preserves_incoming_request_id_header(client: TestClient):
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing(client: TestClient):
    resp = client.get("/health")

    assert resp.status_code == 200
    generated = resp.headers.get("X-Request-ID")
    assert generated
    assert resp.headers.get("X-Request-Duration-ms") is not None


def test_error_envelope_carries_request_id(client: TestClient):
    resp = client.get("/api/chat", headers={"X-Request-ID": "req-405"})

    assert resp.status_code == 405
    assert resp.json()["request_id"] == "req-405"


def test_unhandled_exception_keeps_request_id(make_app):
    app = make_app("k1")

    @app.get("/explode")
    async def explode():
        raise RuntimeError("AIza-should-not-leak")

    resp = TestClient(app).get("/explode", headers={"X-Request-ID": "req-500"})

    assert resp.status_code == 500
    assert resp.headers.get("X-Request-ID") == "req-500"
    data = resp.json()
    assert data["request_id"] == "req-500"
    assert data["error"] == "Internal server error"
    assert "AIza-should-not-leak" not in resp.text


def test_request_id_header_name_comes_from_app_settings(make_app):
    app = make_app("k1")
    app.state.proxy.settings.log.request_id_header = "X-Correlation-ID"

    resp = TestClient(app).get("/health", headers={"X-Correlation-ID": "corr-1"})

    assert resp.headers.get("X-Correlation-ID") == "corr-1"


def test_health_reports_pool_size_not_keys(client: TestClient):
    resp = client.get("/health")

    assert resp.json() == {"status": "ok", "credentials": 2, "model": "gemini-test"}
    assert "k1" not in resp.text


def test_health_rereads_environment_credentials(monkeypatch: pytest.MonkeyPatch):
    client = TestClient(create_app())

    monkeypatch.setenv("GENERATIVE_API_KEYS", "e1,e2,e3")
    assert client.get("/health").json()["credentials"] == 3

    monkeypatch.delenv("GENERATIVE_API_KEYS")
    assert client.get("/health").json()["credentials"] == 0
