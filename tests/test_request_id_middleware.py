from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.core.app_factory import create_app
from _fakes import FakeConnectionFactory


@pytest.fixture
def client(factory: FakeConnectionFactory):
    with TestClient(create_app(connection_factory=factory)) as test_client:
        yield test_client


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
    assert isinstance(generated, str)
    assert len(generated) > 0


def test_reports_response_time(client: TestClient):
    resp = client.get("/pool")

    assert resp.status_code == 200
    assert resp.headers["X-Response-Time"].endswith("ms")
    assert float(resp.headers["X-Request-Duration-ms"]) >= 0


def test_headers_present_on_throttled_responses(factory: FakeConnectionFactory):
    from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter

    limiter = InMemoryFixedWindowRateLimiter(limit=1, window_seconds=60)
    with TestClient(create_app(connection_factory=factory, rate_limiter=limiter)) as client:
        client.get("/health")
        resp = client.get("/health", headers={"X-Request-ID": "throttled-1"})

    assert resp.status_code == 429
    assert resp.headers["X-Request-ID"] == "throttled-1"
    assert "X-Response-Time" in resp.headers
