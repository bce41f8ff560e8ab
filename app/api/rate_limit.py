"""Simple in-memory rate limiter for relay callers.

Uses a fixed-window counter keyed by caller identity (the auth token).
A caller may spend its whole quota at the end of one window and again
right after the reset, so up to twice the limit can land around a window
boundary.  Not shared across workers -- sufficient for a single process.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class RateLimitConfig:
    """Static per-identity quota: ``limit`` requests per ``window_seconds``."""

    limit: int
    window_seconds: int


@dataclass
class RateBucket:
    """Mutable counter state for one identity."""

    window_start: int
    count: int = 0


class FixedWindowRateLimiter:
    """Fixed-window rate limiter.

    Buckets are created on an identity's first request and never evicted;
    identities come from operator configuration, so the set stays small.

    Args:
        clock: Returns the current time in seconds.  Truncated to whole
            seconds on every call.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._buckets: dict[str, RateBucket] = {}
        self._lock = threading.Lock()

    def try_consume(self, identity: str, config: RateLimitConfig) -> bool:
        """Count one request for *identity* against *config*.

        Returns True if the request is admitted, False if it is rate limited.
        A rejected request does not increase the count.
        """
        now = int(self._clock())
        with self._lock:
            bucket = self._buckets.get(identity)
            if bucket is None:
                bucket = RateBucket(window_start=now)
                self._buckets[identity] = bucket
            elif now - bucket.window_start >= config.window_seconds:
                bucket.window_start = now
                bucket.count = 0

            if bucket.count >= config.limit:
                return False
            bucket.count += 1
            return True

    def snapshot(self, identity: str) -> RateBucket | None:
        """Return a copy of *identity*'s bucket, or None if never seen."""
        with self._lock:
            bucket = self._buckets.get(identity)
            if bucket is None:
                return None
            return RateBucket(window_start=bucket.window_start, count=bucket.count)
