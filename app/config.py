"""Application configuration loaded from environment variables.

Uses ``pydantic-settings`` for automatic env-var loading, type coercion,
and ``.env`` file support.  Everything is validated when the settings
object is built -- a malformed allowlist pattern or an out-of-range limit
stops the process before it starts listening.
"""

VERSION = "0.1.0"

import sys
from typing import Literal

from pydantic import BaseModel, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.errors import ConfigError
from app.services.allowlist import compile_patterns, parse_pattern_list

DEFAULT_WEBHOOK_URL_TEMPLATE = "https://discord.com/api/webhooks/{id}/{token}"


class IdentityConfig(BaseModel):
    """Per-caller settings selected by the auth token in the request path.

    ``webhooks`` is the caller's own allowlist (empty means nothing is
    forwarded); ``rate_limit`` requests are admitted per ``window_seconds``.
    """

    webhooks: list[str] = Field(default_factory=list)
    rate_limit: int = Field(ge=0)
    window_seconds: int = Field(ge=1)


class Settings(BaseSettings):
    """Application settings -- sourced from environment / ``.env`` file.

    Nothing is required.  With the defaults the relay starts in unscoped
    mode with an empty allowlist, which rejects every request.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    HOST: str = "0.0.0.0"
    PORT: int = 3000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    # -- admission / forwarding --
    GLOBAL_CONCURRENCY: int = Field(default=6, ge=1)
    FORWARD_TIMEOUT_MS: int = Field(default=8000, ge=1)
    FORWARD_USER_AGENT: str = "roblox-discord-proxy/1"
    MAX_BODY_BYTES: int = Field(default=128 * 1024, ge=1)
    WEBHOOK_URL_TEMPLATE: str = DEFAULT_WEBHOOK_URL_TEMPLATE

    # Semicolon-separated regexes, e.g.
    #   ALLOWED_WEBHOOKS=https://discord.com/api/webhooks/\d+/.+
    # Used for every caller when AUTH_SCOPING_ENABLED is false.
    ALLOWED_WEBHOOKS: str = ""
    ALLOWLIST_MATCH_MODE: Literal["search", "fullmatch"] = "search"

    # -------------------------------------------------------------------------
    # Per-caller scoping.  When enabled, requests must carry an auth token as
    # the last path segment and AUTH_TOKENS supplies each token's allowlist
    # and rate limit as JSON:
    #
    #   AUTH_TOKENS={"tok_abc": {"webhooks": ["..."], "rate_limit": 30,
    #                            "window_seconds": 60}}
    # -------------------------------------------------------------------------
    AUTH_SCOPING_ENABLED: bool = False
    AUTH_TOKENS: dict[str, IdentityConfig] = Field(default_factory=dict)

    @property
    def allowed_webhooks(self) -> list[str]:
        """Global allowlist patterns parsed from ``ALLOWED_WEBHOOKS``."""
        return parse_pattern_list(self.ALLOWED_WEBHOOKS)

    @model_validator(mode="after")
    def _check_relay_config(self) -> "Settings":
        """Reject malformed patterns and templates at load time."""
        try:
            compile_patterns(self.allowed_webhooks)
            for identity in self.AUTH_TOKENS.values():
                compile_patterns(identity.webhooks)
        except ConfigError as exc:
            raise ValueError(str(exc)) from exc
        try:
            self.WEBHOOK_URL_TEMPLATE.format(id="0", token="x")
        except (KeyError, IndexError, ValueError) as exc:
            raise ValueError(
                f"WEBHOOK_URL_TEMPLATE may only reference {{id}} and {{token}}: {exc}"
            ) from exc
        return self


# Fail fast outside of tests -- configuration errors are startup-fatal.
try:
    settings = Settings()
except ValidationError as _exc:
    if "pytest" in sys.modules:
        raise
    print(f"[config] FATAL: invalid configuration:\n{_exc}", file=sys.stderr)
    sys.exit(1)
