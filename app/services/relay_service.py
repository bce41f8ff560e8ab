"""Relay service -- admission checks and the bounded forward.

Every inbound webhook call runs the same pipeline, stopping at the first
stage that rejects it:

  1. synthesize the destination URL from the two path segments
  2. (scoped mode) resolve the caller's auth token -> 401
  3. match the destination against the allowlist -> 403
  4. (scoped mode) consume one unit of the caller's rate limit -> 429
  5. forward through the concurrency gate -> 200 / 502

Stage 4 is the only side effect before forwarding.  A counted request
stays counted even when the forward later fails.
"""

import functools
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Sequence

from app.api.rate_limit import FixedWindowRateLimiter, RateLimitConfig
from app.clients import webhook_client
from app.clients.webhook_client import ForwardResult
from app.config import DEFAULT_WEBHOOK_URL_TEMPLATE, Settings
from app.errors import (
    DestinationNotAllowedError,
    ForwardFailureError,
    RateLimitedError,
    UnknownIdentityError,
)
from app.services.allowlist import Matcher, compile_patterns, get_matcher, is_allowed
from app.services.concurrency import ConcurrencyGate

logger = logging.getLogger(__name__)

ForwardFn = Callable[[str, Any], Awaitable[ForwardResult]]


@dataclass(frozen=True)
class IdentityPolicy:
    """Compiled allowlist and quota for one auth token."""

    patterns: tuple[re.Pattern[str], ...]
    rate_limit: RateLimitConfig


def build_destination(template: str, webhook_id: str, webhook_token: str) -> str:
    """Insert the two path segments, verbatim, into the URL template."""
    return template.format(id=webhook_id, token=webhook_token)


class RelayService:
    """Composes matcher, rate limiter, gate and forwarder per request."""

    def __init__(
        self,
        *,
        forward: ForwardFn,
        gate: ConcurrencyGate,
        global_patterns: Sequence[re.Pattern[str]] = (),
        identities: Mapping[str, IdentityPolicy] | None = None,
        scoping_enabled: bool = False,
        limiter: FixedWindowRateLimiter | None = None,
        matcher: Matcher | None = None,
        destination_template: str = DEFAULT_WEBHOOK_URL_TEMPLATE,
    ) -> None:
        self._forward = forward
        self._gate = gate
        self._global_patterns = tuple(global_patterns)
        self._identities = dict(identities or {})
        self._scoping_enabled = scoping_enabled
        self._limiter = limiter or FixedWindowRateLimiter()
        self._matcher = matcher
        self._template = destination_template

    @property
    def scoping_enabled(self) -> bool:
        return self._scoping_enabled

    @property
    def gate(self) -> ConcurrencyGate:
        return self._gate

    async def relay(
        self,
        webhook_id: str,
        webhook_token: str,
        payload: Any,
        auth_token: str | None = None,
    ) -> ForwardResult:
        """Run the admission pipeline and forward *payload*.

        Raises one of the :mod:`app.errors` relay errors at the first
        rejecting stage.  *auth_token* is ignored unless scoping is enabled.
        """
        destination = build_destination(self._template, webhook_id, webhook_token)

        policy: IdentityPolicy | None = None
        if self._scoping_enabled:
            policy = self._identities.get(auth_token) if auth_token is not None else None
            if policy is None:
                logger.warning("Rejected webhook %s: unknown auth token", webhook_id)
                raise UnknownIdentityError()
            patterns = policy.patterns
        else:
            patterns = self._global_patterns

        if not is_allowed(patterns, destination, self._matcher):
            logger.warning("Rejected webhook %s: destination not allowlisted", webhook_id)
            raise DestinationNotAllowedError()

        if policy is not None and not self._limiter.try_consume(auth_token, policy.rate_limit):
            logger.warning("Rejected webhook %s: rate limit exceeded", webhook_id)
            raise RateLimitedError()

        try:
            result = await self._gate.run(lambda: self._forward(destination, payload))
        except ForwardFailureError as exc:
            logger.warning("Forward of webhook %s failed: %s", webhook_id, exc.details)
            raise
        logger.info("Forwarded webhook %s -> remote status %d", webhook_id, result.status_code)
        return result


def build_relay_service(
    settings: Settings,
    *,
    forward: ForwardFn | None = None,
    limiter: FixedWindowRateLimiter | None = None,
) -> RelayService:
    """Build a :class:`RelayService` from application settings.

    Patterns are compiled here; a bad one raises :class:`ConfigError`.
    """
    if forward is None:
        forward = functools.partial(
            webhook_client.forward,
            timeout_ms=settings.FORWARD_TIMEOUT_MS,
            user_agent=settings.FORWARD_USER_AGENT,
        )
    identities = {
        token: IdentityPolicy(
            patterns=compile_patterns(cfg.webhooks),
            rate_limit=RateLimitConfig(limit=cfg.rate_limit, window_seconds=cfg.window_seconds),
        )
        for token, cfg in settings.AUTH_TOKENS.items()
    }
    return RelayService(
        forward=forward,
        gate=ConcurrencyGate(settings.GLOBAL_CONCURRENCY),
        global_patterns=compile_patterns(settings.allowed_webhooks),
        identities=identities,
        scoping_enabled=settings.AUTH_SCOPING_ENABLED,
        limiter=limiter,
        matcher=get_matcher(settings.ALLOWLIST_MATCH_MODE),
        destination_template=settings.WEBHOOK_URL_TEMPLATE,
    )
