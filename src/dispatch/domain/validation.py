"""Payload validation for POST /api/notify.

Checks run in a fixed order and stop at the first failure. The channel
availability check runs last so a malformed payload is reported before an
unconfigured channel. The input mapping is never modified; a new sanitized
NotifyRequest is returned instead.
"""

from __future__ import annotations

import re
from typing import Any, Mapping

from .errors import InvalidChannelError, ValidationError
from .models import CallerIdentity, NotifyRequest, Sender
from .sanitize import sanitize, sanitize_email

BODY_MIN_LENGTH = 10
BODY_MAX_LENGTH = 2000
SUBJECT_MAX_LENGTH = 200
SENDER_NAME_MIN_LENGTH = 2
SENDER_NAME_MAX_LENGTH = 100

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

_SCALAR_TYPES = (str, int, float, bool)


def _validate_body(raw: Any) -> str:
    if not raw or not isinstance(raw, str):
        raise ValidationError("body", "Field 'body' is required and must be 10-2000 characters")

    body = sanitize(raw)
    if len(body) < BODY_MIN_LENGTH:
        raise ValidationError("body", "Field 'body' is required and must be 10-2000 characters")
    if len(body) > BODY_MAX_LENGTH:
        raise ValidationError("body", "Field 'body' must not exceed 2000 characters")
    return body


def _validate_subject(raw: Any) -> str | None:
    if raw is None or raw == "":
        return None
    subject = sanitize(raw)
    if len(subject) > SUBJECT_MAX_LENGTH:
        raise ValidationError("subject", "Field 'subject' must not exceed 200 characters")
    return subject or None


def _validate_sender(raw: Any) -> Sender | None:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise ValidationError("sender", "Field 'sender' must be an object")

    name: str | None = None
    if raw.get("name") is not None:
        name = sanitize(raw["name"])
        if not SENDER_NAME_MIN_LENGTH <= len(name) <= SENDER_NAME_MAX_LENGTH:
            raise ValidationError("sender.name", "Field 'sender.name' must be 2-100 characters")

    email: str | None = None
    if raw.get("email") is not None:
        email = sanitize_email(raw["email"])
        if not EMAIL_PATTERN.match(email):
            raise ValidationError(
                "sender.email", "Field 'sender.email' must be a valid email address"
            )

    if name is None and email is None:
        return None
    return Sender(name=name, email=email)


def _validate_metadata(raw: Any) -> dict[str, Any] | None:
    if raw is None:
        return None
    if not isinstance(raw, Mapping) or not all(
        value is None or isinstance(value, _SCALAR_TYPES) for value in raw.values()
    ):
        raise ValidationError("metadata", "Field 'metadata' must be an object of scalar values")
    return {str(key): value for key, value in raw.items()}


def validate(payload: Mapping[str, Any], identity: CallerIdentity) -> NotifyRequest:
    """Validate and sanitize a notify payload for the given caller.

    Args:
        payload: Decoded JSON body as received.
        identity: Caller resolved from the presented API key.

    Returns:
        A new NotifyRequest holding sanitized values.

    Raises:
        ValidationError: First structural/length/format violation found.
        InvalidChannelError: Channel is valid but not configured for the caller.
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("body", "Request body must be a JSON object")

    channel = payload.get("channel")
    if not channel or not isinstance(channel, str):
        raise ValidationError("channel", "Field 'channel' is required")

    body = _validate_body(payload.get("body"))
    subject = _validate_subject(payload.get("subject"))
    sender = _validate_sender(payload.get("sender"))
    metadata = _validate_metadata(payload.get("metadata"))

    if not identity.has_channel(channel):
        raise InvalidChannelError(f"Channel '{sanitize(channel)}' is not configured for this app")

    return NotifyRequest(
        channel=channel,
        body=body,
        subject=subject,
        sender=sender,
        metadata=metadata,
    )
