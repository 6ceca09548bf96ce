"""add invitations table

Revision ID: 0003_add_invitations
Revises: 0002_add_activity_log
Create Date: 2026-10-18 00:20:00.000000

"""

from __future__ import annotations

from alembic import op


revision = "0003_add_invitations"
down_revision = "0002_add_activity_log"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS dourou.invitations (
            id text PRIMARY KEY,
            tontine_id text NOT NULL REFERENCES dourou.tontines(id) ON DELETE CASCADE,
            code text NOT NULL,
            created_by text NOT NULL,
            expires_at timestamptz NOT NULL,
            max_uses integer NOT NULL DEFAULT 10 CHECK (max_uses >= 1),
            used_count integer NOT NULL DEFAULT 0 CHECK (used_count >= 0 AND used_count <= max_uses),
            created_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )
    op.execute("CREATE UNIQUE INDEX IF NOT EXISTS ux_invitations_code ON dourou.invitations USING btree (code);")
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_invitations_tontine ON dourou.invitations USING btree (tontine_id);"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS dourou.invitations;")
