"""Global exception handlers for the FastAPI application.

Every failure leaves the relay in the same envelope shape,
``{"ok": false, "error": ..., ["details": ...]}``.  Unhandled exceptions
are logged with their full stack trace server-side; the trace is
**never** sent to the client.
"""

import logging
import uuid

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.errors import RelayError, format_error_response
from app.middleware.access_log import redact_path

logger = logging.getLogger(__name__)


def _get_request_id(request: Request) -> str:
    """Extract the request ID injected by :class:`RequestIDMiddleware`.

    Falls back to a freshly generated UUID-4 if the middleware has not
    run (e.g. during unit tests with a bare ``FastAPI()`` app).
    """
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


# ------------------------------------------------------------------
# Individual exception handlers
# ------------------------------------------------------------------

async def global_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """Catch-all for any unhandled exception -- returns 500."""
    logger.error(
        "Unhandled exception on %s %s [request_id=%s]",
        request.method,
        redact_path(request.url.path),
        _get_request_id(request),
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=format_error_response(error="internal error"),
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Handle Starlette/FastAPI ``HTTPException`` -- preserves status code."""
    logger.debug(
        "HTTP %s on %s [request_id=%s]: %s",
        exc.status_code,
        request.method,
        _get_request_id(request),
        exc.detail,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=format_error_response(
            error=str(exc.detail).lower() if exc.detail else "error",
        ),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request-validation errors -- returns 400."""
    logger.warning(
        "Validation error on %s [request_id=%s]: %s",
        request.method,
        _get_request_id(request),
        exc.errors(),
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=format_error_response(error="invalid request"),
    )


async def relay_error_handler(
    request: Request, exc: RelayError
) -> JSONResponse:
    """Handle domain :class:`RelayError` subclasses -- maps to HTTP status."""
    return JSONResponse(
        status_code=exc.status_code,
        content=format_error_response(error=str(exc), details=exc.details),
    )


# ------------------------------------------------------------------
# Registration helper
# ------------------------------------------------------------------

def setup_exception_handlers(app: FastAPI) -> None:
    """Register all global exception handlers on *app*.

    Call this **after** the app is created but **before** routers are
    included so that every route is covered.
    """
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RelayError, relay_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, global_exception_handler)  # type: ignore[arg-type]
