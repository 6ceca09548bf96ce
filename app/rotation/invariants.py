# app/rotation/invariants.py
from __future__ import annotations

from typing import Any

from app.rotation.model import PAYMENT_PAID, Tontine
from app.rotation.schedule import derive_round_status


def check_payout_order(tontine: Tontine) -> dict[str, Any]:
    orders = sorted(m.payout_order for m in tontine.members)
    expected = list(range(1, len(tontine.members) + 1))
    return {
        "check": "payout_order_dense",
        "ok": orders == expected and len(tontine.members) <= tontine.total_members,
        "orders": orders,
        "capacity": tontine.total_members,
    }


def check_round_statuses(tontine: Tontine) -> dict[str, Any]:
    """
    The stored per-round status is authoritative; the view derived from the
    current_round pointer must agree with it.
    """
    mismatches = []
    for rnd in tontine.rounds:
        derived = derive_round_status(rnd.round_number, tontine.current_round)
        if derived != rnd.status:
            mismatches.append(
                {"round_number": rnd.round_number, "stored": rnd.status, "derived": derived}
            )
    return {
        "check": "round_status_pointer",
        "ok": not mismatches,
        "current_round": tontine.current_round,
        "mismatches": mismatches,
    }


def check_rounds(tontine: Tontine) -> dict[str, Any]:
    numbers = [r.round_number for r in tontine.rounds]
    beneficiaries = [r.beneficiary_id for r in tontine.rounds]
    problems: list[str] = []

    if tontine.rounds:
        if sorted(numbers) != list(range(1, tontine.total_members + 1)):
            problems.append("round_numbers_not_dense")
        if len(set(beneficiaries)) != len(beneficiaries):
            problems.append("beneficiary_paid_twice")
        for rnd in tontine.rounds:
            for p in rnd.payments:
                if p.confirmed_at is not None and p.status != PAYMENT_PAID:
                    problems.append(f"confirmed_without_paid:{p.id}")

    return {"check": "rounds", "ok": not problems, "problems": problems}


def list_tontine_invariants(tontine: Tontine) -> list[dict[str, Any]]:
    return [
        check_payout_order(tontine),
        check_rounds(tontine),
        check_round_statuses(tontine),
    ]
