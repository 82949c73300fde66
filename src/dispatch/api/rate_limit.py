"""Per-client-address request limits for the HTTP surface.

Two windows apply: a global one for every route and a stricter one for
POST /api/notify. Health checks are exempt so load balancer checks
never eat into a client's budget.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import FastAPI, Request, Response

from dispatch.infra.rate_limit import RateLimitDecision, SlidingWindowLimiter
from dispatch.observability.logging import get_logger
from dispatch.observability.redaction import safe_log_context

from .errors import error_response

logger = get_logger(__name__)

EXEMPT_PATHS = ("/health",)
NOTIFY_PATH = "/api/notify"


@dataclass(frozen=True)
class RateLimitPolicy:
    enabled: bool = True
    global_max_requests: int = 100
    global_window_seconds: float = 15 * 60
    notify_max_requests: int = 20
    notify_window_seconds: float = 60


def client_key(request: Request) -> str:
    return f"ip:{request.client.host if request.client else 'unknown'}"


def _rejected(request: Request, decision: RateLimitDecision, scope: str, message: str) -> Response:
    logger.warning(
        "rate limit exceeded",
        extra={
            "extra_fields": safe_log_context(
                path=request.url.path,
                scope=scope,
                retry_after=decision.retry_after,
            )
        },
    )
    return error_response(429, "RATE_LIMITED", message, {"Retry-After": str(decision.retry_after)})


def install_rate_limiting(app: FastAPI, policy: RateLimitPolicy, limiter: SlidingWindowLimiter) -> None:
    """Register the limit middleware. No-op when the policy is disabled."""
    if not policy.enabled:
        return

    @app.middleware("http")
    async def rate_limit_middleware(request: Request, call_next) -> Response:
        path = request.url.path
        if path in EXEMPT_PATHS:
            return await call_next(request)

        key = client_key(request)
        decision = limiter.check(f"global:{key}", policy.global_max_requests, policy.global_window_seconds)
        if not decision.allowed:
            return _rejected(request, decision, "global", "Too many requests, please try again later")

        if path == NOTIFY_PATH:
            notify_decision = limiter.check(
                f"notify:{key}",
                policy.notify_max_requests,
                policy.notify_window_seconds,
            )
            if not notify_decision.allowed:
                return _rejected(
                    request,
                    notify_decision,
                    "notify",
                    "Too many notification requests, please try again later",
                )
            decision = notify_decision

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(decision.limit)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        return response
