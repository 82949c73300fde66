"""POST /api/notify - the only endpoint registered callers use."""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, Header, Request
from starlette.concurrency import run_in_threadpool

from dispatch.api.auth import API_KEY_HEADER, get_dispatcher
from dispatch.domain.dispatcher import Dispatcher
from dispatch.domain.errors import PayloadTooLargeError
from dispatch.infra.time import iso_timestamp

router = APIRouter(prefix="/api", tags=["notify"])

MAX_BODY_BYTES = 1024 * 1024


async def _read_body(request: Request) -> bytes:
    """Read the raw body, refusing anything over MAX_BODY_BYTES."""
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > MAX_BODY_BYTES:
        raise PayloadTooLargeError(MAX_BODY_BYTES)

    chunks = bytearray()
    async for chunk in request.stream():
        chunks.extend(chunk)
        if len(chunks) > MAX_BODY_BYTES:
            raise PayloadTooLargeError(MAX_BODY_BYTES)
    return bytes(chunks)


async def _read_json(request: Request) -> Any:
    """Decode the body; undecodable input is handed to the validator as None."""
    raw = await _read_body(request)
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


@router.post("/notify")
async def notify(
    request: Request,
    x_api_key: str | None = Header(None, alias=API_KEY_HEADER),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> dict:
    """Authenticate, validate, spam-check and deliver one notification.

    Apart from the size cap, authentication runs before the payload is
    looked at, so a bad key yields 401 even for a malformed body. The
    pipeline blocks on the outbound webhook call and therefore runs in the
    threadpool.
    """
    payload = await _read_json(request)
    source_address = request.client.host if request.client else None

    receipt = await run_in_threadpool(dispatcher.dispatch, x_api_key, payload, source_address)

    return {
        "success": True,
        "messageId": receipt.message_id,
        "channel": receipt.channel,
        "timestamp": iso_timestamp(),
    }
