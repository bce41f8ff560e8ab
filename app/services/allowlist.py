"""Webhook destination allowlist matching.

Patterns are regular expressions compiled once at startup.  The default
matcher is *unanchored*: a pattern passes a destination if it matches
anywhere inside it, so ``discord\\.com/api/webhooks`` would also accept a
URL that merely embeds that text.  Deployments that want exact matching
select the ``fullmatch`` matcher (``ALLOWLIST_MATCH_MODE=fullmatch``).
"""

import re
from typing import Iterable, Literal, Protocol, Sequence

from app.errors import ConfigError

MatchMode = Literal["search", "fullmatch"]


class Matcher(Protocol):
    """Decides whether one compiled pattern accepts a candidate string."""

    def matches(self, pattern: re.Pattern[str], candidate: str) -> bool: ...


class SearchMatcher:
    """Accepts when the pattern matches a substring of the candidate."""

    def matches(self, pattern: re.Pattern[str], candidate: str) -> bool:
        return pattern.search(candidate) is not None


class FullMatchMatcher:
    """Accepts only when the pattern matches the entire candidate."""

    def matches(self, pattern: re.Pattern[str], candidate: str) -> bool:
        return pattern.fullmatch(candidate) is not None


_MATCHERS: dict[str, type] = {
    "search": SearchMatcher,
    "fullmatch": FullMatchMatcher,
}

_default_matcher = SearchMatcher()


def get_matcher(mode: MatchMode = "search") -> Matcher:
    """Return the matcher registered for *mode*."""
    try:
        return _MATCHERS[mode]()
    except KeyError:
        raise ConfigError(f"unknown allowlist match mode {mode!r}") from None


def parse_pattern_list(raw: str) -> list[str]:
    """Split a semicolon-separated pattern string, dropping blank entries."""
    return [p.strip() for p in raw.split(";") if p.strip()]


def compile_patterns(patterns: Iterable[str]) -> tuple[re.Pattern[str], ...]:
    """Compile allowlist patterns, failing with :class:`ConfigError`.

    The error names the offending pattern so a bad deployment is obvious
    from the startup log.
    """
    compiled: list[re.Pattern[str]] = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except re.error as exc:
            raise ConfigError(f"invalid allowlist pattern {pattern!r}: {exc}") from exc
    return tuple(compiled)


def is_allowed(
    patterns: Sequence[re.Pattern[str]],
    destination: str,
    matcher: Matcher | None = None,
) -> bool:
    """Return True iff at least one pattern accepts *destination*.

    An empty pattern set always rejects (fail closed).
    """
    if not patterns:
        return False
    matcher = matcher or _default_matcher
    return any(matcher.matches(p, destination) for p in patterns)
