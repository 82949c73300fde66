"""Dispatch pipeline exceptions.

Each exception carries the machine-readable ``kind`` sent back to the caller
and the HTTP status the API layer answers with.
"""


class DispatchError(Exception):
    """Base class for every caller-visible pipeline rejection."""

    kind = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnauthorizedError(DispatchError):
    """Missing, unknown or mismatched API key. Raised before any side effect."""

    kind = "UNAUTHORIZED"
    status_code = 401


class ForbiddenError(DispatchError):
    """Authenticated principal is not allowed to use this operation."""

    kind = "FORBIDDEN"
    status_code = 403


class ValidationError(DispatchError):
    """Structural, length or format violation in the payload."""

    kind = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class InvalidChannelError(DispatchError):
    """Requested channel is not configured for the caller."""

    kind = "INVALID_CHANNEL"
    status_code = 400


class SpamDetectedError(DispatchError):
    """Body matched a spam rule. The message is persisted with status spam."""

    kind = "SPAM_DETECTED"
    status_code = 403

    def __init__(self, message_id: int, category: str | None) -> None:
        super().__init__("Message flagged as spam")
        self.message_id = message_id
        self.category = category


class ChannelError(DispatchError):
    """Channel adapter reported a delivery failure."""

    kind = "CHANNEL_ERROR"
    status_code = 502

    def __init__(self, message: str, message_id: int | None = None) -> None:
        super().__init__(message)
        self.message_id = message_id


class InternalError(DispatchError):
    """Unexpected failure. The caller only ever sees a generic message."""

    kind = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(message)


class PayloadTooLargeError(ValidationError):
    """Request body exceeds the accepted size. Rejected before decoding."""

    status_code = 413

    def __init__(self, limit_bytes: int) -> None:
        super().__init__("body", f"Request body must not exceed {limit_bytes} bytes")
        self.limit_bytes = limit_bytes


class RateLimitedError(DispatchError):
    """Too many requests inside the current window."""

    kind = "RATE_LIMITED"
    status_code = 429

    def __init__(self, message: str, retry_after: int) -> None:
        super().__init__(message)
        self.retry_after = retry_after
