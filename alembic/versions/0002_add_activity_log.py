"""add activity_log table

Revision ID: 0002_add_activity_log
Revises: 0001_baseline_schema
Create Date: 2026-10-18 00:10:00.000000

"""

from __future__ import annotations

from alembic import op


revision = "0002_add_activity_log"
down_revision = "0001_baseline_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS dourou.activity_log (
            id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            tontine_id text NOT NULL REFERENCES dourou.tontines(id) ON DELETE CASCADE,
            kind text NOT NULL,
            message text NOT NULL,
            metadata jsonb NOT NULL DEFAULT '{}'::jsonb,
            request_id text,
            created_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_activity_log_tontine ON dourou.activity_log USING btree (tontine_id, created_at DESC);"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS dourou.activity_log;")
