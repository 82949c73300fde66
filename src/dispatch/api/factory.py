"""FastAPI application factory."""

from __future__ import annotations

import time
from typing import Mapping

from fastapi import FastAPI, Request, Response

from dispatch.channels.registry import default_registry
from dispatch.domain.dispatcher import Adapter, Dispatcher
from dispatch.infra.credentials import CredentialIndex
from dispatch.infra.rate_limit import SlidingWindowLimiter
from dispatch.infra.repositories.messages_repository import MessageLedger
from dispatch.observability.correlation import (
    CORRELATION_ID_HEADER,
    accept_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)

from .errors import register_exception_handlers
from .rate_limit import RateLimitPolicy, install_rate_limiting
from .routers import public
from .routes import admin, notify


def create_app(
    *,
    credentials: CredentialIndex,
    ledger: MessageLedger,
    adapters: Mapping[str, Adapter] | None = None,
    rate_limits: RateLimitPolicy | None = None,
    limiter: SlidingWindowLimiter | None = None,
) -> FastAPI:
    """Create the FastAPI app around already-loaded collaborators.

    Args:
        credentials: Index built from the loaded caller identities.
        ledger: Message ledger (Postgres in production).
        adapters: Channel adapters by name. Defaults to the built-in registry.
        rate_limits: Per-address HTTP limits. Defaults to RateLimitPolicy().
        limiter: Shared window store for HTTP and per-caller limits.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title="Dispatch",
        docs_url=None,
        redoc_url=None,
    )

    limiter = limiter if limiter is not None else SlidingWindowLimiter()

    app.state.credentials = credentials
    app.state.ledger = ledger
    app.state.dispatcher = Dispatcher(
        credentials,
        ledger,
        adapters if adapters is not None else default_registry(),
        limiter,
    )
    app.state.started_at = time.monotonic()

    # registered first so it runs inside the correlation middleware
    install_rate_limiting(app, rate_limits or RateLimitPolicy(), limiter)

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = accept_correlation_id(request.headers.get(CORRELATION_ID_HEADER))
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    register_exception_handlers(app)

    app.include_router(public.router)
    app.include_router(notify.router)
    app.include_router(admin.router)

    return app
