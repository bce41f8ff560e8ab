"""Shared test fixtures -- reduces boilerplate across test modules.

Provides:
- ``FakeClock`` / ``clock`` -- a settable seconds clock for rate-limit tests
- ``remote`` -- a scripted stand-in for the destination webhook server
- ``make_relay`` -- builds a :class:`RelayService` wired to ``remote``
- ``make_client`` -- a ``TestClient`` whose relay dependency is overridden
"""

import functools
import re
from typing import Callable

import httpx
import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_relay_service
from app.api.rate_limit import FixedWindowRateLimiter, RateLimitConfig
from app.clients import webhook_client
from app.main import app
from app.services.allowlist import compile_patterns
from app.services.concurrency import ConcurrencyGate
from app.services.relay_service import IdentityPolicy, RelayService

DISCORD_PATTERN = r"https://discord.com/api/webhooks/\d+/.+"


class FakeClock:
    """Callable clock returning a settable number of seconds."""

    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRemote:
    """Records forwarded requests and answers with a scripted response."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 204
        self.body = b""
        self.error: Exception | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, content=self.body)

    def forward(self, timeout_ms: int = 1000):
        """A forward callable that talks to this remote over MockTransport."""
        client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return functools.partial(webhook_client.forward, timeout_ms=timeout_ms, client=client)


def identity(*patterns: str, limit: int = 10, window_seconds: int = 60) -> IdentityPolicy:
    """Build a compiled :class:`IdentityPolicy` for tests."""
    return IdentityPolicy(
        patterns=compile_patterns(patterns),
        rate_limit=RateLimitConfig(limit=limit, window_seconds=window_seconds),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def make_relay(remote: FakeRemote, clock: FakeClock) -> Callable[..., RelayService]:
    """Factory for a relay wired to ``remote`` and the fake ``clock``."""

    def _make(
        *,
        patterns: tuple[str, ...] = (),
        identities: dict[str, IdentityPolicy] | None = None,
        scoping_enabled: bool = False,
        concurrency: int = 4,
        forward=None,
    ) -> RelayService:
        return RelayService(
            forward=forward or remote.forward(),
            gate=ConcurrencyGate(concurrency),
            global_patterns=compile_patterns(patterns),
            identities=identities,
            scoping_enabled=scoping_enabled,
            limiter=FixedWindowRateLimiter(clock=clock),
        )

    return _make


@pytest.fixture
def make_client() -> Callable[[RelayService], TestClient]:
    """Factory for a ``TestClient`` whose routes use the given relay."""

    def _make(relay: RelayService) -> TestClient:
        app.dependency_overrides[get_relay_service] = lambda: relay
        return TestClient(app, raise_server_exceptions=False)

    yield _make
    app.dependency_overrides.clear()


def compiled(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return compile_patterns(patterns)
