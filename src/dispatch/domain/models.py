"""Dispatch domain models.

Caller identities and channel configs are loaded once and never mutated.
NotifyRequest instances are transient: one per pipeline run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Union

Scalar = Union[str, int, float, bool, None]


class MessageStatus(str, Enum):
    """Lifecycle of a ledger record. PENDING is the only non-terminal state."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    SPAM = "spam"

    @property
    def is_terminal(self) -> bool:
        return self is not MessageStatus.PENDING


TERMINAL_STATUSES = frozenset(s for s in MessageStatus if s.is_terminal)


@dataclass(frozen=True)
class DiscordConfig:
    """Discord incoming-webhook settings for one caller."""

    webhook_url: str
    color: int | None = None
    footer: str | None = None

    channel = "discord"


@dataclass(frozen=True)
class SlackConfig:
    """Slack incoming-webhook settings for one caller."""

    webhook_url: str
    color: str | None = None
    footer: str | None = None

    channel = "slack"


ChannelConfig = Union[DiscordConfig, SlackConfig]


@dataclass(frozen=True)
class RateLimit:
    window_ms: int
    max_requests: int


@dataclass(frozen=True)
class CallerIdentity:
    """A registered application allowed to submit notifications.

    Attributes:
        id: Config key of the application (e.g. "website").
        display_name: Human-readable name used in channel footers.
        secret: API key presented in X-API-Key. Never logged.
        channels: Channel name -> config. Missing name means unavailable.
        rate_limit: Optional per-caller limit, checked right after authentication.
    """

    id: str
    display_name: str
    secret: str = field(repr=False)
    channels: Mapping[str, ChannelConfig] = field(default_factory=dict)
    rate_limit: RateLimit | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "channels", MappingProxyType(dict(self.channels)))

    def has_channel(self, name: str) -> bool:
        return name in self.channels


@dataclass(frozen=True)
class Sender:
    name: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class NotifyRequest:
    """A sanitized notification request as produced by the validator."""

    channel: str
    body: str
    subject: str | None = None
    sender: Sender | None = None
    metadata: Mapping[str, Scalar] | None = None

    @property
    def sender_name(self) -> str | None:
        return self.sender.name if self.sender else None

    @property
    def sender_email(self) -> str | None:
        return self.sender.email if self.sender else None


@dataclass(frozen=True)
class SpamResult:
    is_spam: bool
    category: str | None = None
    reason: str | None = None


NOT_SPAM = SpamResult(is_spam=False)


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one outbound webhook call."""

    success: bool
    response: Any = None
    error: str | None = None


@dataclass(frozen=True)
class NewMessage:
    """Fields supplied by the orchestrator when a record is created."""

    caller_id: str
    channel: str
    body: str
    sender_name: str | None = None
    sender_email: str | None = None
    subject: str | None = None
    metadata_json: str | None = None
    source_address: str | None = None


@dataclass(frozen=True)
class MessageRecord:
    id: int
    caller_id: str
    channel: str
    status: MessageStatus
    body: str
    created_at: datetime
    sender_name: str | None = None
    sender_email: str | None = None
    subject: str | None = None
    metadata_json: str | None = None
    delivery_response_json: str | None = None
    error_text: str | None = None
    source_address: str | None = None
    sent_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "app": self.caller_id,
            "channel": self.channel,
            "status": self.status.value,
            "sender_name": self.sender_name,
            "sender_email": self.sender_email,
            "subject": self.subject,
            "body": self.body,
            "metadata": self.metadata_json,
            "delivery_response": self.delivery_response_json,
            "error": self.error_text,
            "ip_address": self.source_address,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
        }


@dataclass(frozen=True)
class MessagePage:
    records: list[MessageRecord]
    total: int


@dataclass(frozen=True)
class CallerStats:
    total: int = 0
    pending: int = 0
    sent: int = 0
    failed: int = 0
    spam: int = 0
    last_message_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalMessages": self.total,
            "pending": self.pending,
            "sent": self.sent,
            "failed": self.failed,
            "spam": self.spam,
            "lastMessage": self.last_message_at.isoformat() if self.last_message_at else None,
        }


@dataclass(frozen=True)
class LedgerStats:
    total: int
    callers: dict[str, CallerStats]


@dataclass(frozen=True)
class DispatchReceipt:
    """Successful pipeline outcome returned to the caller."""

    message_id: int
    channel: str
