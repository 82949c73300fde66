"""Messages ledger table (SQL-only).

Revision ID: 001_messages
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from alembic import op


# revision identifiers, used by Alembic.
revision = "001_messages"
down_revision = None
branch_labels = None
depends_on = None


_UPGRADE_SQL = """
CREATE TABLE IF NOT EXISTS messages (
    id                BIGSERIAL PRIMARY KEY,
    caller_id         TEXT NOT NULL,
    channel           TEXT NOT NULL,
    status            TEXT NOT NULL DEFAULT 'pending',
    sender_name       TEXT,
    sender_email      TEXT,
    subject           TEXT,
    body              TEXT NOT NULL,
    metadata          TEXT,
    delivery_response TEXT,
    error             TEXT,
    source_address    TEXT,
    created_at        TIMESTAMPTZ NOT NULL DEFAULT now(),
    sent_at           TIMESTAMPTZ,
    CONSTRAINT messages_status_check
        CHECK (status IN ('pending', 'sent', 'failed', 'spam')),
    CONSTRAINT messages_sent_at_check
        CHECK ((status = 'sent') = (sent_at IS NOT NULL))
);

CREATE INDEX IF NOT EXISTS idx_messages_caller_id ON messages (caller_id);
CREATE INDEX IF NOT EXISTS idx_messages_status ON messages (status);
CREATE INDEX IF NOT EXISTS idx_messages_created_at ON messages (created_at);
CREATE INDEX IF NOT EXISTS idx_messages_caller_status ON messages (caller_id, status);
"""


def upgrade() -> None:
    conn = op.get_bind()
    conn.exec_driver_sql(_UPGRADE_SQL)


def downgrade() -> None:
    conn = op.get_bind()
    conn.exec_driver_sql("DROP TABLE IF EXISTS messages")
