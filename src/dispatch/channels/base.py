"""Shared contract and helpers for outbound channel adapters.

Security: NEVER log webhook URLs or message text. Only log fingerprints,
lengths and HTTP status codes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterator

import requests

from dispatch.domain.models import ChannelConfig, DeliveryResult, NotifyRequest
from dispatch.observability.logging import get_logger
from dispatch.observability.redaction import fingerprint, safe_log_context

logger = get_logger(__name__)

PRODUCT_TAG = "Dispatch"
TITLE_MAX_LENGTH = 50

# Seconds; a hung webhook becomes a delivery failure
DEFAULT_TIMEOUT = 10.0


def build_title(request: NotifyRequest) -> str:
    """Subject if present, else the start of the body with an ellipsis."""
    if request.subject:
        return request.subject
    if len(request.body) > TITLE_MAX_LENGTH:
        return request.body[:TITLE_MAX_LENGTH] + "..."
    return request.body


def footer_text(custom_footer: str | None, caller_display_name: str) -> str:
    return f"{custom_footer or caller_display_name} | {PRODUCT_TAG}"


def metadata_fields(request: NotifyRequest) -> Iterator[tuple[str, str]]:
    """Yield (label, value) for metadata entries that carry a value."""
    for key, value in (request.metadata or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            yield key, str(value).lower()
        else:
            yield key, str(value)


def _response_payload(response: requests.Response) -> dict[str, Any]:
    try:
        body: Any = response.json() if response.content else None
    except ValueError:
        body = response.text
    return {"status": response.status_code, "body": body}


class ChannelAdapter(ABC):
    """Formats a notification for one backend and delivers it.

    Subclasses implement ``build_payload``; delivery and error conversion
    are shared. ``send`` never raises.
    """

    name: str = ""
    label: str = ""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, session: requests.Session | None = None) -> None:
        self.timeout = timeout
        self._http = session or requests

    @abstractmethod
    def build_payload(
        self,
        config: ChannelConfig,
        request: NotifyRequest,
        caller_display_name: str,
    ) -> dict[str, Any]:
        """Return the JSON document posted to the webhook."""

    def send(
        self,
        config: ChannelConfig,
        request: NotifyRequest,
        caller_display_name: str,
    ) -> DeliveryResult:
        payload = self.build_payload(config, request, caller_display_name)
        return self.post(config.webhook_url, payload)

    def post(self, url: str, payload: dict[str, Any]) -> DeliveryResult:
        log_ctx = safe_log_context(
            channel=self.name,
            webhook_hash=fingerprint(url),
            timeout=self.timeout,
        )
        logger.info("delivering notification", extra={"extra_fields": log_ctx})

        try:
            response = self._http.post(
                url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning(
                "notification delivery raised",
                extra={"extra_fields": {**log_ctx, **safe_log_context(error_type=type(exc).__name__)}},
            )
            return DeliveryResult(success=False, error=str(exc) or type(exc).__name__)

        if 200 <= response.status_code < 300:
            logger.info(
                "notification delivered",
                extra={"extra_fields": {**log_ctx, **safe_log_context(status_code=response.status_code)}},
            )
            return DeliveryResult(success=True, response=_response_payload(response))

        logger.warning(
            "notification rejected by webhook",
            extra={
                "extra_fields": {
                    **log_ctx,
                    **safe_log_context(status_code=response.status_code, body_len=len(response.text)),
                }
            },
        )
        return DeliveryResult(
            success=False,
            error=f"{self.label} webhook returned {response.status_code}: {response.text}",
        )
