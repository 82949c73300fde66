"""Notification dispatch pipeline.

Sequences one notify request through:
authenticate -> validate -> classify spam -> persist pending -> deliver -> finalize.

Rejections before persistence leave no trace in the ledger. Once a record is
created the pipeline always finalizes it (sent, failed or spam) before
returning or raising, so every accepted request ends with exactly one
terminal record. There are no retries.
"""

from __future__ import annotations

import json
from typing import Any, Mapping, Protocol

from dispatch.infra.credentials import AdminPrincipal, CredentialIndex
from dispatch.infra.rate_limit import SlidingWindowLimiter
from dispatch.observability.logging import get_logger
from dispatch.observability.redaction import safe_log_context

from .errors import (
    ChannelError,
    DispatchError,
    ForbiddenError,
    InternalError,
    InvalidChannelError,
    RateLimitedError,
    SpamDetectedError,
    UnauthorizedError,
    ValidationError,
)
from .models import (
    CallerIdentity,
    DeliveryResult,
    DispatchReceipt,
    MessageStatus,
    NewMessage,
    NotifyRequest,
)
from .spam import classify
from .validation import validate

logger = get_logger(__name__)

TEST_SUBJECT = "Test message from Dispatch"


class Ledger(Protocol):
    def create(self, message: NewMessage) -> int: ...

    def finalize(
        self,
        message_id: int,
        status: MessageStatus,
        delivery_response: Any = None,
        error_text: str | None = None,
    ) -> None: ...


class Adapter(Protocol):
    def send(self, config: Any, request: NotifyRequest, caller_display_name: str) -> DeliveryResult: ...


def _new_message(
    identity: CallerIdentity,
    request: NotifyRequest,
    source_address: str | None,
) -> NewMessage:
    return NewMessage(
        caller_id=identity.id,
        channel=request.channel,
        body=request.body,
        sender_name=request.sender_name,
        sender_email=request.sender_email,
        subject=request.subject,
        metadata_json=json.dumps(dict(request.metadata), ensure_ascii=False) if request.metadata else None,
        source_address=source_address,
    )


class Dispatcher:
    """Runs the notify pipeline against a credential index, ledger and adapters."""

    def __init__(
        self,
        credentials: CredentialIndex,
        ledger: Ledger,
        adapters: Mapping[str, Adapter],
        limiter: SlidingWindowLimiter | None = None,
    ) -> None:
        self._credentials = credentials
        self._ledger = ledger
        self._adapters = adapters
        self._limiter = limiter

    def authenticate(self, secret: str | None) -> CallerIdentity:
        """Resolve the presented key to a caller. Admin keys may not notify."""
        if not secret:
            raise UnauthorizedError("Missing API key. Provide X-API-Key header.")

        principal = self._credentials.resolve(secret)
        if principal is None:
            raise UnauthorizedError("Invalid API key.")
        if isinstance(principal, AdminPrincipal):
            raise ForbiddenError("Admin API key cannot send notifications")
        return principal.identity

    def enforce_caller_limit(self, identity: CallerIdentity) -> None:
        """Apply the caller's own rateLimit, if one is configured."""
        if identity.rate_limit is None or self._limiter is None:
            return
        decision = self._limiter.check(
            f"caller:{identity.id}",
            identity.rate_limit.max_requests,
            identity.rate_limit.window_ms / 1000,
        )
        if not decision.allowed:
            logger.warning(
                "caller rate limit exceeded",
                extra={"extra_fields": safe_log_context(caller=identity.id, retry_after=decision.retry_after)},
            )
            raise RateLimitedError("Too many requests for this app, please try again later", decision.retry_after)

    def dispatch(
        self,
        secret: str | None,
        payload: Mapping[str, Any],
        source_address: str | None = None,
    ) -> DispatchReceipt:
        """Run one notify request end to end.

        Raises:
            UnauthorizedError, ForbiddenError: Key problems; nothing persisted.
            RateLimitedError: Caller exceeded its own rateLimit; nothing persisted.
            ValidationError, InvalidChannelError: Bad payload; nothing persisted.
            SpamDetectedError: Persisted with status spam, never delivered.
            ChannelError: Persisted with status failed.
            InternalError: Anything unexpected; details only go to the log.
        """
        try:
            identity = self.authenticate(secret)
            self.enforce_caller_limit(identity)
            request = validate(payload, identity)
            return self._process(identity, request, source_address)
        except DispatchError:
            raise
        except Exception as exc:
            logger.exception(
                "dispatch pipeline failed",
                extra={"extra_fields": safe_log_context(error_type=type(exc).__name__)},
            )
            raise InternalError() from exc

    def _process(
        self,
        identity: CallerIdentity,
        request: NotifyRequest,
        source_address: str | None,
    ) -> DispatchReceipt:
        log_ctx = safe_log_context(
            caller=identity.id,
            channel=request.channel,
            body_len=len(request.body),
        )

        spam = classify(request.body)
        if spam.is_spam:
            message_id = self._ledger.create(_new_message(identity, request, source_address))
            self._ledger.finalize(message_id, MessageStatus.SPAM, error_text=spam.reason)
            logger.warning(
                "notification flagged as spam",
                extra={"extra_fields": {**log_ctx, **safe_log_context(message_id=message_id, category=spam.category)}},
            )
            raise SpamDetectedError(message_id, spam.category)

        message_id = self._ledger.create(_new_message(identity, request, source_address))
        log_ctx = {**log_ctx, **safe_log_context(message_id=message_id)}
        logger.info("notification accepted", extra={"extra_fields": log_ctx})

        adapter = self._adapters.get(request.channel)
        if adapter is None:
            error = f"Unsupported channel: {request.channel}"
            self._ledger.finalize(message_id, MessageStatus.FAILED, error_text=error)
            raise InvalidChannelError(f"Channel '{request.channel}' is not supported")

        result = self._deliver(adapter, identity, request, log_ctx)

        if result.success:
            self._ledger.finalize(message_id, MessageStatus.SENT, delivery_response=result.response)
            logger.info("notification sent", extra={"extra_fields": log_ctx})
            return DispatchReceipt(message_id=message_id, channel=request.channel)

        error = result.error or "Channel delivery failed"
        self._ledger.finalize(message_id, MessageStatus.FAILED, error_text=error)
        logger.warning("notification delivery failed", extra={"extra_fields": log_ctx})
        raise ChannelError(error, message_id=message_id)

    def _deliver(
        self,
        adapter: Adapter,
        identity: CallerIdentity,
        request: NotifyRequest,
        log_ctx: dict[str, str],
    ) -> DeliveryResult:
        config = identity.channels[request.channel]
        try:
            return adapter.send(config, request, identity.display_name)
        except Exception as exc:
            # adapters should not raise; the pending record still needs closing
            logger.exception(
                "channel adapter raised",
                extra={"extra_fields": {**log_ctx, **safe_log_context(error_type=type(exc).__name__)}},
            )
            return DeliveryResult(success=False, error=f"Channel adapter error: {type(exc).__name__}")

    def send_test(self, caller_id: str | None, channel: str) -> None:
        """Send a fixed test notification for an admin. Nothing is persisted.

        Raises:
            ValidationError: Missing or unknown caller id.
            InvalidChannelError: Channel not configured for that caller or unsupported.
            ChannelError: Delivery failed.
        """
        if not caller_id:
            raise ValidationError("app", "Field 'app' is required")

        identity = self._credentials.get_caller(caller_id)
        if identity is None:
            raise ValidationError("app", f"App '{caller_id}' not found")

        if not identity.has_channel(channel):
            raise InvalidChannelError(f"Channel '{channel}' is not configured for app '{caller_id}'")

        adapter = self._adapters.get(channel)
        if adapter is None:
            raise InvalidChannelError(f"Channel '{channel}' is not supported")

        request = NotifyRequest(
            channel=channel,
            subject=TEST_SUBJECT,
            body=(
                f"This is a test message sent to {channel} for app {caller_id}. "
                "If you see this, the channel is working correctly."
            ),
        )
        log_ctx = safe_log_context(caller=caller_id, channel=channel, test=True)
        result = self._deliver(adapter, identity, request, log_ctx)
        if not result.success:
            raise ChannelError(result.error or "Test delivery failed")
