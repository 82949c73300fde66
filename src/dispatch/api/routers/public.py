"""Unauthenticated routes."""

import time

from fastapi import APIRouter, Request

from dispatch.infra.time import iso_timestamp

SERVICE_NAME = "dispatch"
SERVICE_VERSION = "2.0.0"

router = APIRouter()


@router.get("/health")
def health(request: Request) -> dict:
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "uptime": round(time.monotonic() - request.app.state.started_at, 3),
        "timestamp": iso_timestamp(),
    }
