"""Domain exception hierarchy for the webhook relay.

The relay pipeline raises these instead of building responses itself so
that the global exception handler (``app/middleware/exception_handler.py``)
can map each one to its HTTP status code and the relay's JSON envelope.
"""


class RelayError(Exception):
    """Base for all domain exceptions.

    ``str(exc)`` is the short, caller-visible error text that ends up in the
    envelope's ``error`` field.  ``details`` is an optional diagnostic string
    reported alongside it.
    """

    def __init__(
        self,
        message: str = "internal error",
        *,
        status_code: int = 500,
        details: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class UnknownIdentityError(RelayError):
    """The caller's auth token is not configured (401)."""

    def __init__(self, message: str = "invalid auth token"):
        super().__init__(message, status_code=401)


class DestinationNotAllowedError(RelayError):
    """The synthesized destination matched no allowlist pattern (403)."""

    def __init__(self, message: str = "webhook not allowed"):
        super().__init__(message, status_code=403)


class RateLimitedError(RelayError):
    """The caller has used up its quota for the current window (429)."""

    def __init__(self, message: str = "rate limit exceeded"):
        super().__init__(message, status_code=429)


class ForwardFailureError(RelayError):
    """The outbound call could not complete: timeout, refused, DNS... (502).

    A non-2xx answer from the destination is *not* a failure; it is reported
    as a successful forward carrying the remote status.
    """

    def __init__(self, details: str, message: str = "forward_failed"):
        super().__init__(message, status_code=502, details=details)


class BadRequestError(RelayError):
    """The inbound request body is unusable (400)."""

    def __init__(self, message: str = "invalid json body"):
        super().__init__(message, status_code=400)


class PayloadTooLargeError(RelayError):
    """The inbound body exceeds ``MAX_BODY_BYTES`` (413)."""

    def __init__(self, message: str = "payload too large"):
        super().__init__(message, status_code=413)


class ConfigError(RelayError):
    """Invalid configuration detected while building the relay.

    Only ever raised at startup -- never mapped to a per-request response.
    """

    def __init__(self, message: str = "invalid configuration"):
        super().__init__(message, status_code=500)


def format_error_response(
    *,
    error: str,
    details: str | None = None,
) -> dict:
    """Build the relay's failure envelope.

    Parameters
    ----------
    error : str
        Short error text (e.g. ``"webhook not allowed"``).
    details : str | None
        Optional diagnostic string; omitted from the envelope when empty.

    Returns
    -------
    dict
        ``{"ok": False, "error": ...}`` plus ``"details"`` when given.
    """
    body: dict = {"ok": False, "error": error}
    if details:
        body["details"] = details
    return body
