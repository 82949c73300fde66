"""Admin-only observability endpoints: message log, stats, channel test."""

from __future__ import annotations

import time

from fastapi import APIRouter, Body, Depends, Query, Request
from pydantic import BaseModel

from dispatch.api.auth import get_dispatcher, get_ledger, require_admin
from dispatch.api.routers.public import SERVICE_NAME, SERVICE_VERSION
from dispatch.domain.dispatcher import Dispatcher
from dispatch.domain.models import MessageStatus
from dispatch.infra.repositories.messages_repository import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, MessageLedger
from dispatch.infra.time import iso_timestamp

router = APIRouter(prefix="/api", tags=["admin"], dependencies=[Depends(require_admin)])


class ChannelTestRequest(BaseModel):
    """Body for POST /api/test/{channel}."""

    app: str | None = None


@router.get("/logs")
def list_logs(
    app: str | None = Query(None, description="Filter by caller id"),
    status: MessageStatus | None = Query(None, description="Filter by status"),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, description=f"Max results (capped at {MAX_PAGE_SIZE})"),
    offset: int = Query(0, ge=0),
    ledger: MessageLedger = Depends(get_ledger),
) -> dict:
    """List ledger records, newest first."""
    limit = min(limit, MAX_PAGE_SIZE)
    page = ledger.query(
        caller_id=app,
        status=status.value if status else None,
        limit=limit,
        offset=offset,
    )
    return {
        "success": True,
        "total": page.total,
        "limit": limit,
        "offset": offset,
        "messages": [record.to_dict() for record in page.records],
    }


@router.get("/status")
def service_status(
    request: Request,
    ledger: MessageLedger = Depends(get_ledger),
) -> dict:
    """Service uptime plus per-caller message counts."""
    stats = ledger.aggregate()
    return {
        "success": True,
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "uptime": round(time.monotonic() - request.app.state.started_at, 3),
        "database": {
            "totalMessages": stats.total,
            "apps": {caller_id: caller.to_dict() for caller_id, caller in stats.callers.items()},
        },
        "timestamp": iso_timestamp(),
    }


@router.post("/test/{channel}")
def test_channel(
    channel: str,
    body: ChannelTestRequest | None = Body(None),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> dict:
    """Send a canned message through a caller's channel. Not recorded in the ledger."""
    app_id = body.app if body else None
    dispatcher.send_test(app_id, channel)
    return {
        "success": True,
        "message": f"Test message sent to {channel} for app {app_id}",
        "timestamp": iso_timestamp(),
    }
