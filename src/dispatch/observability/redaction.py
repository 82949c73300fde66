"""Redaction helpers for safe logging.

Notification bodies, sender emails and API keys must never reach the logs.
Anything passed to a logger as structured data goes through safe_log_context.
"""

import hashlib
import re
from typing import Any

_PHONE_PATTERN = re.compile(r"\+?\d[\d\s\-()]{8,}\d")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
# Webhook URLs embed their own credentials (Discord token, Slack path)
_WEBHOOK_URL_PATTERN = re.compile(r"https?://\S+")

_REDACTED = "[REDACTED]"

# Keys whose values are always masked regardless of content
_SECRET_KEYS = frozenset({"api_key", "apikey", "secret", "token", "password", "webhook_url"})


def fingerprint(value: str) -> str:
    """Non-reversible short hash, for correlating a value across log lines."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:12]


def redact_string(value: str) -> str:
    """Redact PII and credential-bearing URLs from a string."""
    result = _WEBHOOK_URL_PATTERN.sub(_REDACTED, value)
    result = _PHONE_PATTERN.sub(_REDACTED, result)
    result = _EMAIL_PATTERN.sub(_REDACTED, result)
    return result


def redact_value(value: Any) -> str:
    """Redact any value for safe logging. Returns string representation."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        # structure only, never values
        return f"dict(keys={list(value.keys())})"
    if isinstance(value, (list, tuple)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def safe_log_context(**kwargs: Any) -> dict[str, str]:
    """Build a context dict safe for logging. All values are redacted."""
    context: dict[str, str] = {}
    for key, value in kwargs.items():
        if key.lower() in _SECRET_KEYS and value:
            context[key] = _REDACTED
        else:
            context[key] = redact_value(value)
    return context
