"""Message ledger - append-only history of notification attempts.

Uses raw SQL with psycopg2 (no ORM). Each operation runs in its own short
transaction. Records are inserted as 'pending' and finalized exactly once;
the finalize UPDATE only matches pending rows, so a terminal status is never
overwritten.
"""

from __future__ import annotations

import json
from contextlib import AbstractContextManager
from typing import Any, Callable

from psycopg2.extensions import cursor as PgCursor

from dispatch.domain.models import (
    TERMINAL_STATUSES,
    CallerStats,
    LedgerStats,
    MessagePage,
    MessageRecord,
    MessageStatus,
    NewMessage,
)
from dispatch.infra.db import fetchall, fetchone, txn

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200

_COLUMNS = """
    id, caller_id, channel, status, body, created_at,
    sender_name, sender_email, subject, metadata,
    delivery_response, error, source_address, sent_at
"""

_INSERT_SQL = """
INSERT INTO messages (
    caller_id, channel, status, body,
    sender_name, sender_email, subject, metadata, source_address
)
VALUES (%s, %s, 'pending', %s, %s, %s, %s, %s, %s)
RETURNING id
"""

_FINALIZE_SQL = """
UPDATE messages
SET status = %s,
    delivery_response = %s,
    error = %s,
    sent_at = CASE WHEN %s THEN now() ELSE NULL END
WHERE id = %s AND status = 'pending'
"""

_STATS_SQL = """
SELECT
    caller_id,
    COUNT(*) AS total,
    COUNT(*) FILTER (WHERE status = 'pending') AS pending,
    COUNT(*) FILTER (WHERE status = 'sent') AS sent,
    COUNT(*) FILTER (WHERE status = 'failed') AS failed,
    COUNT(*) FILTER (WHERE status = 'spam') AS spam,
    MAX(created_at) AS last_message_at
FROM messages
GROUP BY caller_id
ORDER BY caller_id
"""


class LedgerError(RuntimeError):
    """A ledger write did not affect the expected row."""


def _row_to_record(row: tuple[Any, ...]) -> MessageRecord:
    return MessageRecord(
        id=row[0],
        caller_id=row[1],
        channel=row[2],
        status=MessageStatus(row[3]),
        body=row[4],
        created_at=row[5],
        sender_name=row[6],
        sender_email=row[7],
        subject=row[8],
        metadata_json=row[9],
        delivery_response_json=row[10],
        error_text=row[11],
        source_address=row[12],
        sent_at=row[13],
    )


def insert_message(cur: PgCursor, message: NewMessage) -> int:
    """Insert a pending message and return its generated id."""
    row = fetchone(
        cur,
        _INSERT_SQL,
        (
            message.caller_id,
            message.channel,
            message.body,
            message.sender_name,
            message.sender_email,
            message.subject,
            message.metadata_json,
            message.source_address,
        ),
    )
    return int(row[0])


def finalize_message(
    cur: PgCursor,
    message_id: int,
    status: MessageStatus,
    *,
    delivery_response: Any = None,
    error_text: str | None = None,
) -> bool:
    """Move a pending message to a terminal status.

    Returns:
        True if the row was pending and got updated, False otherwise.

    Raises:
        ValueError: If status is not terminal.
    """
    status = MessageStatus(status)
    if status not in TERMINAL_STATUSES:
        raise ValueError(f"cannot finalize message with non-terminal status {status.value!r}")

    response_json = json.dumps(delivery_response, default=str) if delivery_response is not None else None
    cur.execute(
        _FINALIZE_SQL,
        (status.value, response_json, error_text, status is MessageStatus.SENT, message_id),
    )
    return cur.rowcount == 1


def get_message(cur: PgCursor, message_id: int) -> MessageRecord | None:
    row = fetchone(cur, f"SELECT {_COLUMNS} FROM messages WHERE id = %s", (message_id,))
    return _row_to_record(row) if row else None


def list_messages(
    cur: PgCursor,
    *,
    caller_id: str | None = None,
    status: str | None = None,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> MessagePage:
    """List messages newest first with optional caller/status filters."""
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    offset = max(0, offset)

    where = """
        WHERE (%s IS NULL OR caller_id = %s)
          AND (%s IS NULL OR status = %s)
    """
    filter_params = (caller_id, caller_id, status, status)

    total_row = fetchone(cur, f"SELECT COUNT(*) FROM messages {where}", filter_params)
    rows = fetchall(
        cur,
        f"""
        SELECT {_COLUMNS}
        FROM messages
        {where}
        ORDER BY created_at DESC, id DESC
        LIMIT %s OFFSET %s
        """,
        (*filter_params, limit, offset),
    )

    return MessagePage(
        records=[_row_to_record(row) for row in rows],
        total=int(total_row[0]) if total_row else 0,
    )


def message_stats(cur: PgCursor) -> LedgerStats:
    """Per-caller status counts plus the grand total."""
    rows = fetchall(cur, _STATS_SQL)
    callers = {
        row[0]: CallerStats(
            total=int(row[1]),
            pending=int(row[2]),
            sent=int(row[3]),
            failed=int(row[4]),
            spam=int(row[5]),
            last_message_at=row[6],
        )
        for row in rows
    }
    return LedgerStats(total=sum(s.total for s in callers.values()), callers=callers)


class MessageLedger:
    """Postgres-backed ledger used by the dispatcher and admin routes.

    Args:
        transaction: Factory returning a cursor context manager. Defaults to
            ``txn`` (new connection per call, committed on exit).
    """

    def __init__(self, transaction: Callable[[], AbstractContextManager[PgCursor]] = txn) -> None:
        self._transaction = transaction

    def create(self, message: NewMessage) -> int:
        with self._transaction() as cur:
            return insert_message(cur, message)

    def finalize(
        self,
        message_id: int,
        status: MessageStatus,
        delivery_response: Any = None,
        error_text: str | None = None,
    ) -> None:
        with self._transaction() as cur:
            updated = finalize_message(
                cur,
                message_id,
                status,
                delivery_response=delivery_response,
                error_text=error_text,
            )
        if not updated:
            raise LedgerError(f"message {message_id} is not pending")

    def get(self, message_id: int) -> MessageRecord | None:
        with self._transaction() as cur:
            return get_message(cur, message_id)

    def query(
        self,
        *,
        caller_id: str | None = None,
        status: str | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> MessagePage:
        with self._transaction() as cur:
            return list_messages(cur, caller_id=caller_id, status=status, limit=limit, offset=offset)

    def aggregate(self) -> LedgerStats:
        with self._transaction() as cur:
            return message_stats(cur)
