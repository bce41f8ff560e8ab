"""Tests for the /health endpoint."""

import time
import uuid

from fastapi.testclient import TestClient

from app.main import app


client = TestClient(app)


def test_health_returns_ok():
    """GET /health returns 200 with status, uptime and timestamp."""
    before = int(time.time() * 1000)
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["uptime"] >= 0
    assert isinstance(data["timestamp"], int)
    assert data["timestamp"] >= before


def test_health_version_returns_version():
    response = client.get("/health/version")
    assert response.status_code == 200
    assert response.json() == {"version": "0.1.0"}


def test_request_id_header_generated():
    """Every response gets an X-Request-ID header."""
    response = client.get("/health")
    assert "X-Request-ID" in response.headers
    uuid.UUID(response.headers["X-Request-ID"])


def test_request_id_header_echoed():
    """Client-supplied X-Request-ID is echoed back."""
    custom_id = "my-trace-123"
    response = client.get("/health", headers={"X-Request-ID": custom_id})
    assert response.headers["X-Request-ID"] == custom_id


def test_unknown_route_uses_error_envelope():
    response = client.get("/nope")
    assert response.status_code == 404
    assert response.json() == {"ok": False, "error": "not found"}
