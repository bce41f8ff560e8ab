"""Webhook client -- single-attempt JSON POST to the real destination."""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from app.errors import ForwardFailureError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "roblox-discord-proxy/1"


@dataclass(frozen=True)
class ForwardResult:
    """What the destination answered.  ``body`` is empty if unreadable."""

    status_code: int
    body: str = ""


# ── Shared HTTP client (connection pooling) ─────────────────────────────────

_client: httpx.AsyncClient | None = None


def _get_client() -> httpx.AsyncClient:
    """Return (or create) the shared httpx client for outbound forwards."""
    global _client
    if _client is None:
        # Timeouts are applied per request from the caller's budget.
        _client = httpx.AsyncClient(follow_redirects=False)
    return _client


async def close_client() -> None:
    """Close the shared HTTP client.  Called during app shutdown."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


# ── Forwarding ──────────────────────────────────────────────────────────────


async def forward(
    destination: str,
    payload: Any,
    *,
    timeout_ms: int,
    user_agent: str = DEFAULT_USER_AGENT,
    client: httpx.AsyncClient | None = None,
) -> ForwardResult:
    """POST *payload* as JSON to *destination* and capture the response.

    *timeout_ms* bounds the whole exchange, headers and body together.
    Any status code the destination returns is a successful forward; only
    transport problems (timeout, refused connection, DNS failure, ...)
    raise :class:`ForwardFailureError`.  Never retried.
    """
    timeout_s = timeout_ms / 1000
    http = client or _get_client()
    # ASCII output escapes lone surrogates, which UTF-8 cannot encode.
    content = json.dumps(payload, separators=(",", ":"), ensure_ascii=True).encode("ascii")
    headers = {
        "content-type": "application/json",
        "user-agent": user_agent,
    }
    try:
        return await asyncio.wait_for(
            _post(http, destination, content, headers, timeout_s),
            timeout=timeout_s,
        )
    except asyncio.TimeoutError:
        raise ForwardFailureError(f"TimeoutError: no complete response within {timeout_ms} ms") from None
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise ForwardFailureError(_describe(exc)) from exc


async def _post(
    http: httpx.AsyncClient,
    destination: str,
    content: bytes,
    headers: dict[str, str],
    timeout_s: float,
) -> ForwardResult:
    request = http.build_request(
        "POST",
        destination,
        content=content,
        headers=headers,
        timeout=httpx.Timeout(timeout_s),
    )
    response = await http.send(request, stream=True)
    try:
        body = await _read_text(response)
    finally:
        await response.aclose()
    return ForwardResult(status_code=response.status_code, body=body)


async def _read_text(response: httpx.Response) -> str:
    """Read the body as text; an unreadable body becomes ``""``.

    Timeouts still propagate -- they count against the forward deadline.
    """
    try:
        await response.aread()
        return response.text
    except httpx.TimeoutException:
        raise
    except (httpx.HTTPError, httpx.StreamError, UnicodeDecodeError, LookupError) as exc:
        logger.debug("Discarding unreadable response body from %s: %s", response.url.host, exc)
        return ""


def _describe(exc: Exception) -> str:
    """Render a transport exception as ``"<Type>: <message>"``."""
    message = str(exc).strip() or "no details"
    return f"{type(exc).__name__}: {message}"
