"""API key authentication dependencies.

The key is only accepted from the X-API-Key header, never from query
parameters, so it cannot leak into access logs or URLs.
"""

from __future__ import annotations

from fastapi import Header, Request

from dispatch.domain.dispatcher import Dispatcher
from dispatch.domain.errors import ForbiddenError, UnauthorizedError
from dispatch.infra.credentials import AdminPrincipal, CredentialIndex
from dispatch.infra.repositories.messages_repository import MessageLedger
from dispatch.observability.logging import get_logger
from dispatch.observability.redaction import safe_log_context

logger = get_logger(__name__)

API_KEY_HEADER = "X-API-Key"


def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


def get_ledger(request: Request) -> MessageLedger:
    return request.app.state.ledger


def require_admin(
    request: Request,
    x_api_key: str | None = Header(None, alias=API_KEY_HEADER),
) -> AdminPrincipal:
    """FastAPI dependency: only the admin key may pass."""
    credentials: CredentialIndex = request.app.state.credentials

    if not x_api_key:
        raise UnauthorizedError("Missing API key. Provide X-API-Key header.")

    principal = credentials.resolve(x_api_key)
    if principal is None:
        logger.warning(
            "admin auth failed",
            extra={"extra_fields": safe_log_context(path=request.url.path, reason="unknown_key")},
        )
        raise UnauthorizedError("Invalid API key.")

    if not isinstance(principal, AdminPrincipal):
        logger.warning(
            "admin auth failed",
            extra={"extra_fields": safe_log_context(path=request.url.path, caller=principal.identity.id)},
        )
        raise ForbiddenError("Admin access required")

    return principal
