"""Tests for the AccessLogMiddleware."""

import logging

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from app.errors import DestinationNotAllowedError
from app.middleware import RequestIDMiddleware
from app.middleware.access_log import AccessLogMiddleware, redact_path
from app.middleware.exception_handler import setup_exception_handlers


@pytest.fixture()
def test_app() -> FastAPI:
    """Standalone FastAPI app with both middleware layers."""
    app = FastAPI()
    setup_exception_handlers(app)

    # AccessLogMiddleware innermost (added first),
    # RequestIDMiddleware outermost (added second -- runs first).
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/api/ok")
    async def _ok():
        return {"ok": True}

    @app.get("/api/fail")
    async def _fail():
        raise HTTPException(400, detail="bad input")

    @app.post("/api/webhooks/{webhook_id}/{token}")
    async def _forbidden(webhook_id: str, token: str):
        raise DestinationNotAllowedError()

    @app.get("/api/server_error")
    async def _server_error():
        raise RuntimeError("boom")

    @app.get("/health")
    async def _health():
        return {"status": "ok"}

    return app


@pytest.fixture()
def client(test_app: FastAPI) -> TestClient:
    return TestClient(test_app, raise_server_exceptions=False)


def _metric_lines(caplog: pytest.LogCaptureFixture) -> list[str]:
    return [r.message for r in caplog.records if "METRIC" in r.message]


class TestAccessLogMiddleware:
    """Access log middleware emits structured METRIC lines."""

    def test_successful_request_logged(self, client: TestClient, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.DEBUG, logger="relay.access"):
            client.get("/api/ok", headers={"X-Request-ID": "trace-1"})
        line = _metric_lines(caplog)[0]
        assert "type=http_request" in line
        assert "method=GET" in line
        assert "path=/api/ok" in line
        assert "status=200" in line
        assert "wall_ms=" in line
        assert "req_id=trace-1" in line

    def test_error_request_logged_with_detail(self, client: TestClient, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.DEBUG, logger="relay.access"):
            client.get("/api/fail")
        line = _metric_lines(caplog)[0]
        assert "status=400" in line
        assert "error=bad input" in line

    def test_webhook_secrets_redacted(self, client: TestClient, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.DEBUG, logger="relay.access"):
            client.post("/api/webhooks/123/super-secret", json={})
        line = _metric_lines(caplog)[0]
        assert "super-secret" not in line
        assert "path=/api/webhooks/123/***" in line
        assert "status=403" in line
        assert "error=webhook not allowed" in line
        assert any(r.levelno == logging.WARNING for r in caplog.records if "METRIC" in r.message)

    def test_server_error_logged(self, client: TestClient, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.DEBUG, logger="relay.access"):
            client.get("/api/server_error")
        line = _metric_lines(caplog)[0]
        assert "status=500" in line

    def test_health_check_not_logged(self, client: TestClient, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.DEBUG, logger="relay.access"):
            client.get("/health")
        assert _metric_lines(caplog) == []


class TestRedactPath:
    def test_unscoped_path(self):
        assert redact_path("/api/webhooks/123/tok") == "/api/webhooks/123/***"

    def test_scoped_path(self):
        assert redact_path("/api/webhooks/123/tok/auth") == "/api/webhooks/123/***"

    def test_other_paths_untouched(self):
        assert redact_path("/health") == "/health"
        assert redact_path("/api/webhooks/123") == "/api/webhooks/123"
