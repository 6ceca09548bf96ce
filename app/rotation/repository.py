# app/rotation/repository.py
from __future__ import annotations

from typing import Any, Optional

from psycopg2.extras import Json, execute_values

from app.rotation.model import Invitation, Member, Payment, Round, Tontine
from db import dict_cursor


# ==========================================================
# Row mapping
# ==========================================================

def _member_from_row(row: dict[str, Any]) -> Member:
    return Member(
        id=row["id"],
        name=row["name"],
        phone=row["phone"],
        payout_order=int(row["payout_order"]),
        added_at=row["added_at"],
        role=row.get("role") or "member",
        user_id=row.get("user_id"),
    )


def _payment_from_row(row: dict[str, Any]) -> Payment:
    return Payment(
        id=row["id"],
        round_id=row["round_id"],
        member_id=row["member_id"],
        amount=int(row["amount"]),
        status=row["status"],
        method=row.get("method"),
        reference=row.get("reference"),
        declared_at=row.get("declared_at"),
        confirmed_at=row.get("confirmed_at"),
    )


def _round_from_row(row: dict[str, Any]) -> Round:
    return Round(
        id=row["id"],
        tontine_id=row["tontine_id"],
        round_number=int(row["round_number"]),
        beneficiary_id=row["beneficiary_id"],
        scheduled_date=row["scheduled_date"],
        status=row["status"],
        completed_at=row.get("completed_at"),
    )


def _invitation_from_row(row: dict[str, Any]) -> Invitation:
    return Invitation(
        id=row["id"],
        tontine_id=row["tontine_id"],
        code=row["code"],
        created_by=row["created_by"],
        expires_at=row["expires_at"],
        created_at=row["created_at"],
        max_uses=int(row.get("max_uses") or 10),
        used_count=int(row.get("used_count") or 0),
    )


def _tontine_from_row(row: dict[str, Any]) -> Tontine:
    return Tontine(
        id=row["id"],
        name=row["name"],
        contribution=int(row["contribution"]),
        frequency=row["frequency"],
        total_members=int(row["total_members"]),
        created_at=row["created_at"],
        distribution_logic=row["distribution_logic"],
        currency=row["currency"],
        status=row["status"],
        start_date=row.get("start_date"),
        next_deadline=row.get("next_deadline"),
        current_round=row.get("current_round"),
        completed_at=row.get("completed_at"),
        creator_id=row.get("creator_id"),
    )


# ==========================================================
# Reads
# ==========================================================

def load_tontine(conn, tontine_id: str, *, for_update: bool = False) -> Optional[Tontine]:
    lock = "FOR UPDATE" if for_update else ""
    with dict_cursor(conn) as cur:
        cur.execute(
            f"""
            SELECT id, name, contribution, currency, frequency, total_members,
                   distribution_logic, status, start_date, next_deadline,
                   current_round, completed_at, creator_id, created_at
            FROM dourou.tontines
            WHERE id = %s
            {lock}
            """,
            (tontine_id,),
        )
        row = cur.fetchone()
        if row is None:
            return None
        tontine = _tontine_from_row(row)

        cur.execute(
            """
            SELECT id, name, phone, payout_order, role, user_id, added_at
            FROM dourou.tontine_members
            WHERE tontine_id = %s
            ORDER BY payout_order
            """,
            (tontine_id,),
        )
        tontine.members = [_member_from_row(r) for r in cur.fetchall()]

        cur.execute(
            """
            SELECT id, tontine_id, round_number, beneficiary_id, scheduled_date, status, completed_at
            FROM dourou.rounds
            WHERE tontine_id = %s
            ORDER BY round_number
            """,
            (tontine_id,),
        )
        rounds = [_round_from_row(r) for r in cur.fetchall()]

        if rounds:
            cur.execute(
                """
                SELECT p.id, p.round_id, p.member_id, p.amount, p.status, p.method,
                       p.reference, p.declared_at, p.confirmed_at
                FROM dourou.payments p
                JOIN dourou.rounds r ON r.id = p.round_id
                WHERE r.tontine_id = %s
                ORDER BY r.round_number, p.created_at, p.id
                """,
                (tontine_id,),
            )
            by_round: dict[str, list[Payment]] = {}
            for r in cur.fetchall():
                by_round.setdefault(r["round_id"], []).append(_payment_from_row(r))
            for rnd in rounds:
                rnd.payments = by_round.get(rnd.id, [])

        tontine.rounds = rounds

        cur.execute(
            """
            SELECT id, tontine_id, code, created_by, expires_at, max_uses, used_count, created_at
            FROM dourou.invitations
            WHERE tontine_id = %s
            ORDER BY created_at, id
            """,
            (tontine_id,),
        )
        tontine.invitations = [_invitation_from_row(r) for r in cur.fetchall()]
    return tontine


def list_activity(conn, tontine_id: str, *, limit: int = 50) -> list[dict[str, Any]]:
    with dict_cursor(conn) as cur:
        cur.execute(
            """
            SELECT id::text AS id, tontine_id, kind, message, metadata, request_id, created_at
            FROM dourou.activity_log
            WHERE tontine_id = %s
            ORDER BY created_at DESC, id
            LIMIT %s
            """,
            (tontine_id, limit),
        )
        return [dict(r) for r in cur.fetchall()]


def list_active_tontine_ids(conn) -> list[str]:
    with conn.cursor() as cur:
        cur.execute("SELECT id FROM dourou.tontines WHERE status = 'active' ORDER BY created_at;")
        return [row[0] for row in cur.fetchall()]


def find_tontine_id_by_invitation_code(conn, code: str) -> Optional[str]:
    with conn.cursor() as cur:
        cur.execute("SELECT tontine_id FROM dourou.invitations WHERE code = %s;", (code,))
        row = cur.fetchone()
    return row[0] if row else None


# ==========================================================
# Writes
# ==========================================================

def insert_tontine(conn, tontine: Tontine) -> None:
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO dourou.tontines (
              id, name, contribution, currency, frequency, total_members,
              distribution_logic, status, creator_id, created_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                tontine.id,
                tontine.name,
                tontine.contribution,
                tontine.currency,
                tontine.frequency,
                tontine.total_members,
                tontine.distribution_logic,
                tontine.status,
                tontine.creator_id,
                tontine.created_at,
            ),
        )
    _sync_members(conn, tontine)
    _sync_invitations(conn, tontine)


def _sync_members(conn, tontine: Tontine) -> None:
    ids = [m.id for m in tontine.members]
    with conn.cursor() as cur:
        # payout_order uniqueness is deferred to commit so swaps don't collide mid-statement
        cur.execute("SET CONSTRAINTS dourou.ux_tontine_members_order DEFERRED;")
        cur.execute(
            "DELETE FROM dourou.tontine_members WHERE tontine_id = %s AND NOT (id = ANY(%s::text[]))",
            (tontine.id, ids),
        )
        if not tontine.members:
            return
        execute_values(
            cur,
            """
            INSERT INTO dourou.tontine_members (
              id, tontine_id, name, phone, payout_order, role, user_id, added_at
            )
            VALUES %s
            ON CONFLICT (id) DO UPDATE SET
              name = EXCLUDED.name,
              phone = EXCLUDED.phone,
              payout_order = EXCLUDED.payout_order,
              role = EXCLUDED.role,
              user_id = EXCLUDED.user_id
            """,
            [
                (m.id, tontine.id, m.name, m.phone, m.payout_order, m.role, m.user_id, m.added_at)
                for m in tontine.members
            ],
        )


def _sync_rounds(conn, tontine: Tontine) -> None:
    if not tontine.rounds:
        return
    with conn.cursor() as cur:
        execute_values(
            cur,
            """
            INSERT INTO dourou.rounds (
              id, tontine_id, round_number, beneficiary_id, scheduled_date, status, completed_at
            )
            VALUES %s
            ON CONFLICT (id) DO UPDATE SET
              status = EXCLUDED.status,
              completed_at = EXCLUDED.completed_at
            """,
            [
                (
                    r.id,
                    tontine.id,
                    r.round_number,
                    r.beneficiary_id,
                    r.scheduled_date,
                    r.status,
                    r.completed_at,
                )
                for r in tontine.rounds
            ],
        )
        payments = [p for r in tontine.rounds for p in r.payments]
        if not payments:
            return
        execute_values(
            cur,
            """
            INSERT INTO dourou.payments (
              id, round_id, member_id, amount, status, method, reference, declared_at, confirmed_at
            )
            VALUES %s
            ON CONFLICT (id) DO UPDATE SET
              status = EXCLUDED.status,
              method = EXCLUDED.method,
              reference = EXCLUDED.reference,
              declared_at = EXCLUDED.declared_at,
              confirmed_at = EXCLUDED.confirmed_at
            """,
            [
                (
                    p.id,
                    p.round_id,
                    p.member_id,
                    p.amount,
                    p.status,
                    p.method,
                    p.reference,
                    p.declared_at,
                    p.confirmed_at,
                )
                for p in payments
            ],
        )


def _sync_invitations(conn, tontine: Tontine) -> None:
    if not tontine.invitations:
        return
    with conn.cursor() as cur:
        execute_values(
            cur,
            """
            INSERT INTO dourou.invitations (
              id, tontine_id, code, created_by, expires_at, max_uses, used_count, created_at
            )
            VALUES %s
            ON CONFLICT (id) DO UPDATE SET
              used_count = EXCLUDED.used_count
            """,
            [
                (
                    i.id,
                    tontine.id,
                    i.code,
                    i.created_by,
                    i.expires_at,
                    i.max_uses,
                    i.used_count,
                    i.created_at,
                )
                for i in tontine.invitations
            ],
        )


def save_tontine(conn, tontine: Tontine) -> None:
    """Write the whole aggregate back. Callers run this inside the loading transaction."""
    with conn.cursor() as cur:
        cur.execute(
            """
            UPDATE dourou.tontines
            SET
              name = %s,
              status = %s,
              start_date = %s,
              next_deadline = %s,
              current_round = %s,
              completed_at = %s,
              updated_at = now()
            WHERE id = %s
            """,
            (
                tontine.name,
                tontine.status,
                tontine.start_date,
                tontine.next_deadline,
                tontine.current_round,
                tontine.completed_at,
                tontine.id,
            ),
        )
    _sync_members(conn, tontine)
    _sync_rounds(conn, tontine)
    _sync_invitations(conn, tontine)


def insert_activity(
    conn,
    *,
    tontine_id: str,
    kind: str,
    message: str,
    metadata: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> None:
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO dourou.activity_log (tontine_id, kind, message, metadata, request_id)
            VALUES (%s, %s, %s, %s::jsonb, %s);
            """,
            (tontine_id, kind, message, Json(metadata or {}), request_id),
        )
