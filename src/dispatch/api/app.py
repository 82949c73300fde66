"""Production entry point.

Run with ``uvicorn dispatch.api.app:get_app --factory`` or ``dispatch-server``.
"""

import os

import uvicorn
from fastapi import FastAPI

from dispatch.channels.registry import default_registry
from dispatch.infra.config import Settings, load_callers
from dispatch.infra.credentials import CredentialIndex
from dispatch.infra.repositories.messages_repository import MessageLedger
from dispatch.observability.logging import get_logger
from dispatch.observability.redaction import safe_log_context

from .factory import create_app
from .rate_limit import RateLimitPolicy

logger = get_logger(__name__)


def get_app() -> FastAPI:
    """Load settings and caller identities from the environment and build the app.

    Raises:
        ConfigError: If ADMIN_API_KEY or the caller config is missing/invalid.
    """
    settings = Settings.from_env()
    identities = load_callers()

    app = create_app(
        credentials=CredentialIndex(identities, settings.admin_api_key),
        ledger=MessageLedger(),
        adapters=default_registry(timeout=settings.http_timeout),
        rate_limits=RateLimitPolicy(
            enabled=settings.rate_limit_enabled,
            global_max_requests=settings.rate_limit_max_requests,
            global_window_seconds=settings.rate_limit_window_ms / 1000,
        ),
    )

    logger.info(
        "dispatch started",
        extra={
            "extra_fields": safe_log_context(
                environment=settings.environment,
                apps_loaded=len(identities),
                http_timeout=settings.http_timeout,
                rate_limit_enabled=settings.rate_limit_enabled,
            )
        },
    )
    return app


def main() -> None:
    uvicorn.run(
        "dispatch.api.app:get_app",
        factory=True,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "3001")),
    )
