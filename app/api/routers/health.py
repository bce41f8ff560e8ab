"""Health check router."""

import time

from fastapi import APIRouter

from app.config import VERSION

router = APIRouter()

_STARTED_AT = time.monotonic()


@router.get("/health")
async def health_check() -> dict:
    """Return liveness with process uptime (seconds) and wall clock (ms)."""
    return {
        "status": "ok",
        "uptime": time.monotonic() - _STARTED_AT,
        "timestamp": int(time.time() * 1000),
    }


@router.get("/health/version")
async def health_version() -> dict:
    """Return application version."""
    return {"version": VERSION}
