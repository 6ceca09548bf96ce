"""baseline tontine schema

Revision ID: 0001_baseline_schema
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from __future__ import annotations

from alembic import op


revision = "0001_baseline_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE SCHEMA IF NOT EXISTS dourou;")
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS dourou.tontines (
            id text PRIMARY KEY,
            name text NOT NULL,
            contribution bigint NOT NULL CHECK (contribution > 0),
            currency char(3) NOT NULL DEFAULT 'TND',
            frequency text NOT NULL CHECK (frequency IN ('weekly', 'monthly')),
            total_members integer NOT NULL CHECK (total_members >= 2),
            distribution_logic text NOT NULL DEFAULT 'fixed'
                CHECK (distribution_logic IN ('fixed', 'random', 'trust')),
            status text NOT NULL DEFAULT 'draft'
                CHECK (status IN ('draft', 'active', 'completed')),
            start_date date,
            next_deadline date,
            current_round integer,
            completed_at timestamptz,
            creator_id text,
            created_at timestamptz NOT NULL DEFAULT now(),
            updated_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS dourou.tontine_members (
            id text PRIMARY KEY,
            tontine_id text NOT NULL REFERENCES dourou.tontines(id) ON DELETE CASCADE,
            name text NOT NULL,
            phone text NOT NULL,
            payout_order integer NOT NULL CHECK (payout_order >= 1),
            role text NOT NULL DEFAULT 'member' CHECK (role IN ('admin', 'member')),
            user_id text,
            added_at timestamptz NOT NULL DEFAULT now(),
            CONSTRAINT ux_tontine_members_order UNIQUE (tontine_id, payout_order)
                DEFERRABLE INITIALLY IMMEDIATE,
            CONSTRAINT ux_tontine_members_phone UNIQUE (tontine_id, phone)
        );
        """
    )
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS dourou.rounds (
            id text PRIMARY KEY,
            tontine_id text NOT NULL REFERENCES dourou.tontines(id) ON DELETE CASCADE,
            round_number integer NOT NULL CHECK (round_number >= 1),
            beneficiary_id text NOT NULL REFERENCES dourou.tontine_members(id),
            scheduled_date date NOT NULL,
            status text NOT NULL CHECK (status IN ('upcoming', 'current', 'completed')),
            completed_at timestamptz,
            created_at timestamptz NOT NULL DEFAULT now(),
            CONSTRAINT ux_rounds_number UNIQUE (tontine_id, round_number)
        );
        """
    )
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS dourou.payments (
            id text PRIMARY KEY,
            round_id text NOT NULL REFERENCES dourou.rounds(id) ON DELETE CASCADE,
            member_id text NOT NULL REFERENCES dourou.tontine_members(id),
            amount bigint NOT NULL CHECK (amount > 0),
            status text NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'paid', 'late')),
            method text,
            reference text,
            declared_at timestamptz,
            confirmed_at timestamptz,
            created_at timestamptz NOT NULL DEFAULT now(),
            CONSTRAINT ux_payments_round_member UNIQUE (round_id, member_id),
            CONSTRAINT ck_payments_confirmed_paid CHECK (confirmed_at IS NULL OR status = 'paid')
        );
        """
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_tontines_status ON dourou.tontines USING btree (status);"
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_payments_status ON dourou.payments USING btree (round_id, status);"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS dourou.payments;")
    op.execute("DROP TABLE IF EXISTS dourou.rounds;")
    op.execute("DROP TABLE IF EXISTS dourou.tontine_members;")
    op.execute("DROP TABLE IF EXISTS dourou.tontines;")
