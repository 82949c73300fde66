"""Correlation ID tracking across one notify/admin request."""

import uuid
from contextvars import ContextVar, Token

# Set by the HTTP middleware, read by the JSON log formatter
correlation_id_var: ContextVar[str] = ContextVar("dispatch_correlation_id", default="")

CORRELATION_ID_HEADER = "X-Correlation-ID"

# Inbound IDs longer than this are replaced rather than echoed back
MAX_CORRELATION_ID_LENGTH = 128


def generate_correlation_id() -> str:
    """Generate a new correlation ID."""
    return uuid.uuid4().hex


def accept_correlation_id(header_value: str | None) -> str:
    """Reuse a caller-supplied correlation ID if it is sane, else mint one."""
    if header_value and len(header_value) <= MAX_CORRELATION_ID_LENGTH and header_value.isprintable():
        return header_value
    return generate_correlation_id()


def get_correlation_id() -> str:
    return correlation_id_var.get()


def set_correlation_id(cid: str) -> Token[str]:
    return correlation_id_var.set(cid)


def reset_correlation_id(token: Token[str]) -> None:
    correlation_id_var.reset(token)
