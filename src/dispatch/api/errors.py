"""Error envelope and exception handlers for the HTTP surface.

Every error response has the same shape::

    {"success": false, "error": "<KIND>", "message": "...", "timestamp": "..."}
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dispatch.domain.errors import DispatchError, InternalError, RateLimitedError
from dispatch.infra.time import iso_timestamp
from dispatch.observability.logging import get_logger
from dispatch.observability.redaction import safe_log_context

logger = get_logger(__name__)

_HTTP_KINDS = {
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


def error_response(status_code: int, kind: str, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        headers=headers,
        content={
            "success": False,
            "error": kind,
            "message": message,
            "timestamp": iso_timestamp(),
        },
    )


def _describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    if first.get("type") == "json_invalid":
        return "Request body must be valid JSON"
    if location:
        return f"Field '{location}': {first.get('msg', 'invalid value')}"
    return first.get("msg", "Invalid request")


async def handle_dispatch_error(request: Request, exc: DispatchError) -> JSONResponse:
    message = InternalError().message if isinstance(exc, InternalError) else exc.message
    headers = {"Retry-After": str(exc.retry_after)} if isinstance(exc, RateLimitedError) else None
    return error_response(exc.status_code, exc.kind, message, headers)


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(400, "VALIDATION_ERROR", _describe_validation_error(exc))


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return error_response(404, "NOT_FOUND", "Endpoint not found")
    kind = _HTTP_KINDS.get(exc.status_code, "HTTP_ERROR")
    return error_response(exc.status_code, kind, str(exc.detail))


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unhandled error",
        extra={"extra_fields": safe_log_context(path=request.url.path, error_type=type(exc).__name__)},
    )
    return error_response(500, InternalError.kind, InternalError().message)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DispatchError, handle_dispatch_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected_error)
