"""Shared test helpers for Dispatch tests.

Regular functions and test doubles, importable by conftest.py and test
modules. These are NOT fixtures.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import replace
from typing import Any
from unittest.mock import MagicMock

from dispatch.domain.models import (
    TERMINAL_STATUSES,
    CallerIdentity,
    CallerStats,
    DiscordConfig,
    LedgerStats,
    MessagePage,
    MessageRecord,
    MessageStatus,
    NewMessage,
    SlackConfig,
)
from dispatch.infra.time import utc_now

ADMIN_KEY = "admin-key-0123456789abcdef"
WEBSITE_KEY = "website-key-0123456789abcdef"
SHOP_KEY = "shop-key-0123456789abcdefgh"

DISCORD_URL = "https://discord.com/api/webhooks/123/token-abc"
SLACK_URL = "https://hooks.slack.com/services/T000/B000/XXXX"


def make_website_identity() -> CallerIdentity:
    """Caller with both Discord and Slack configured, no display overrides."""
    return CallerIdentity(
        id="website",
        display_name="My Website",
        secret=WEBSITE_KEY,
        channels={
            "discord": DiscordConfig(webhook_url=DISCORD_URL),
            "slack": SlackConfig(webhook_url=SLACK_URL),
        },
    )


def make_shop_identity() -> CallerIdentity:
    """Caller with only Slack, custom color and footer."""
    return CallerIdentity(
        id="shop",
        display_name="Shop",
        secret=SHOP_KEY,
        channels={"slack": SlackConfig(webhook_url=SLACK_URL, color="#FF0000", footer="Shop Alerts")},
    )


def http_response(status_code: int = 204, text: str = "", json_body: Any = None) -> MagicMock:
    """Build a requests.Response stand-in."""
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    if json_body is not None:
        response.content = b"{}"
        response.json.return_value = json_body
    else:
        response.content = text.encode()
        response.json.side_effect = ValueError("no json")
    return response


class InMemoryLedger:
    """Ledger test double with the same status rules as MessageLedger."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self.records: dict[int, MessageRecord] = {}

    def create(self, message: NewMessage) -> int:
        with self._lock:
            message_id = next(self._ids)
            self.records[message_id] = MessageRecord(
                id=message_id,
                caller_id=message.caller_id,
                channel=message.channel,
                status=MessageStatus.PENDING,
                body=message.body,
                created_at=utc_now(),
                sender_name=message.sender_name,
                sender_email=message.sender_email,
                subject=message.subject,
                metadata_json=message.metadata_json,
                source_address=message.source_address,
            )
        return message_id

    def finalize(
        self,
        message_id: int,
        status: MessageStatus,
        delivery_response: Any = None,
        error_text: str | None = None,
    ) -> None:
        status = MessageStatus(status)
        if status not in TERMINAL_STATUSES:
            raise ValueError(status)
        with self._lock:
            record = self.records[message_id]
            if record.status is not MessageStatus.PENDING:
                raise RuntimeError(f"message {message_id} is not pending")
            self.records[message_id] = replace(
                record,
                status=status,
                delivery_response_json=repr(delivery_response) if delivery_response is not None else None,
                error_text=error_text,
                sent_at=utc_now() if status is MessageStatus.SENT else None,
            )

    def get(self, message_id: int) -> MessageRecord | None:
        return self.records.get(message_id)

    def query(
        self,
        *,
        caller_id: str | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> MessagePage:
        matching = [
            r
            for r in sorted(self.records.values(), key=lambda r: (r.created_at, r.id), reverse=True)
            if (caller_id is None or r.caller_id == caller_id) and (status is None or r.status.value == status)
        ]
        return MessagePage(records=matching[offset : offset + limit], total=len(matching))

    def aggregate(self) -> LedgerStats:
        callers: dict[str, CallerStats] = {}
        for record in self.records.values():
            current = callers.get(record.caller_id, CallerStats())
            counts = {
                "total": current.total + 1,
                record.status.value: getattr(current, record.status.value) + 1,
            }
            latest = max(filter(None, (current.last_message_at, record.created_at)))
            callers[record.caller_id] = replace(current, last_message_at=latest, **counts)
        return LedgerStats(total=len(self.records), callers=callers)
