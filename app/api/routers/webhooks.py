"""Webhook router -- relays JSON bodies to allowlisted webhook destinations."""

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.api.deps import get_relay_service
from app.clients.webhook_client import ForwardResult
from app.config import settings
from app.errors import BadRequestError, PayloadTooLargeError
from app.services.relay_service import RelayService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


async def _read_payload(request: Request) -> Any:
    """Read the body up to ``MAX_BODY_BYTES`` and parse it as JSON.

    An empty body is treated as ``{}``.  Only objects and arrays are
    accepted at the top level.
    """
    limit = settings.MAX_BODY_BYTES
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise PayloadTooLargeError()

    body = bytearray()
    async for chunk in request.stream():
        body += chunk
        if len(body) > limit:
            raise PayloadTooLargeError()

    if not body.strip():
        return {}
    try:
        payload = json.loads(body)
    except ValueError:
        raise BadRequestError()
    if not isinstance(payload, (dict, list)):
        raise BadRequestError()
    return payload


def _envelope(result: ForwardResult) -> dict:
    return {
        "ok": True,
        "proxied": True,
        "status": result.status_code,
        "remoteBody": result.body,
    }


@router.post("/{webhook_id}/{webhook_token}")
async def relay_webhook(
    webhook_id: str,
    webhook_token: str,
    request: Request,
    relay: RelayService = Depends(get_relay_service),
) -> dict:
    """Forward the body to the webhook named by the path.

    Answers 200 whatever the remote status was; the remote status and body
    are reported inside the envelope.  In scoped mode this route carries no
    auth token and is always rejected with 401.
    """
    payload = await _read_payload(request)
    result = await relay.relay(webhook_id, webhook_token, payload)
    return _envelope(result)


@router.post("/{webhook_id}/{webhook_token}/{auth_token}")
async def relay_scoped_webhook(
    webhook_id: str,
    webhook_token: str,
    auth_token: str,
    request: Request,
    relay: RelayService = Depends(get_relay_service),
) -> dict:
    """Forward on behalf of the caller identified by *auth_token*.

    Only exists when per-caller scoping is enabled; otherwise 404.
    """
    if not relay.scoping_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    payload = await _read_payload(request)
    result = await relay.relay(webhook_id, webhook_token, payload, auth_token=auth_token)
    return _envelope(result)
