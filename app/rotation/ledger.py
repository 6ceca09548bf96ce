# app/rotation/ledger.py
from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from app.rotation.errors import (
    AlreadyPaid,
    InvalidPayment,
    MemberNotInRound,
    NoCurrentRound,
    NotDeclared,
    PaymentNotFound,
    RoundNotFound,
    RoundsOutstanding,
)
from app.rotation.model import (
    PAYMENT_LATE,
    PAYMENT_PAID,
    PAYMENT_PENDING,
    ROUND_COMPLETED,
    ROUND_CURRENT,
    ROUND_UPCOMING,
    TONTINE_COMPLETED,
    Payment,
    PotProgress,
    Round,
    Tontine,
)
from app.rotation.schedule import local_today, utcnow
from app.rotation.state_machine import (
    assert_confirmed_invariant,
    assert_payment_transition,
    assert_tontine_transition,
)

logger = logging.getLogger("dourou.rotation")


def get_round(tontine: Tontine, round_id: str) -> Round:
    rnd = tontine.round_by_id(round_id)
    if rnd is None:
        raise RoundNotFound(f"round {round_id} not in tontine {tontine.id}")
    return rnd


def get_payment(rnd: Round, payment_id: str) -> Payment:
    for p in rnd.payments:
        if p.id == payment_id:
            return p
    raise PaymentNotFound(f"payment {payment_id} not in round {rnd.id}")


def current_round(tontine: Tontine) -> Optional[Round]:
    for r in tontine.rounds:
        if r.status == ROUND_CURRENT:
            return r
    return None


# ==========================================================
# Payments
# ==========================================================

def declare_payment(
    tontine: Tontine,
    round_id: str,
    member_id: str,
    method: str,
    *,
    reference: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Payment:
    """
    Member self-report. The payment counts as paid right away but stays
    unconfirmed until an admin calls confirm_payment.
    """
    method = (method or "").strip()
    if not method:
        raise InvalidPayment("payment method is required")

    rnd = get_round(tontine, round_id)
    payment = next((p for p in rnd.payments if p.member_id == member_id), None)
    if payment is None:
        raise MemberNotInRound(f"member {member_id} owes nothing in round {rnd.round_number}")
    if payment.status == PAYMENT_PAID:
        raise AlreadyPaid(f"payment {payment.id} is already paid")

    assert_payment_transition(payment.status, PAYMENT_PAID)
    payment.status = PAYMENT_PAID
    payment.method = method
    payment.reference = reference
    payment.declared_at = now or utcnow()

    logger.info(
        "payment_declared tontine_id=%s round=%s payment_id=%s method=%s",
        tontine.id,
        rnd.round_number,
        payment.id,
        method,
    )
    return payment


def confirm_payment(
    tontine: Tontine,
    round_id: str,
    payment_id: str,
    *,
    now: Optional[datetime] = None,
) -> Payment:
    """Admin confirmation of a declared payment. Confirming twice keeps the first timestamp."""
    rnd = get_round(tontine, round_id)
    payment = get_payment(rnd, payment_id)
    if payment.status != PAYMENT_PAID:
        raise NotDeclared(f"payment {payment.id} is {payment.status}")

    if payment.confirmed_at is None:
        payment.confirmed_at = now or utcnow()
        logger.info(
            "payment_confirmed tontine_id=%s round=%s payment_id=%s",
            tontine.id,
            rnd.round_number,
            payment.id,
        )
    assert_confirmed_invariant(payment.status, payment.confirmed_at)
    return payment


def mark_paid(
    tontine: Tontine,
    round_id: str,
    payment_id: str,
    *,
    method: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Payment:
    """Admin shortcut: paid and confirmed in one step, no prior declaration needed."""
    rnd = get_round(tontine, round_id)
    payment = get_payment(rnd, payment_id)
    if payment.status == PAYMENT_PAID:
        raise AlreadyPaid(f"payment {payment.id} is already paid")

    assert_payment_transition(payment.status, PAYMENT_PAID)
    payment.status = PAYMENT_PAID
    method = (method or "").strip()
    if method:
        payment.method = method
    payment.confirmed_at = now or utcnow()

    logger.info(
        "payment_marked_paid tontine_id=%s round=%s payment_id=%s",
        tontine.id,
        rnd.round_number,
        payment.id,
    )
    return payment


def flag_late_payments(tontine: Tontine, *, today: Optional[date] = None) -> list[Payment]:
    """Pending payments of started rounds whose date has passed become late."""
    today = today or local_today()
    flagged: list[Payment] = []
    for rnd in tontine.rounds:
        if rnd.status == ROUND_UPCOMING or today <= rnd.scheduled_date:
            continue
        for payment in rnd.payments:
            if payment.status != PAYMENT_PENDING:
                continue
            assert_payment_transition(payment.status, PAYMENT_LATE)
            payment.status = PAYMENT_LATE
            flagged.append(payment)

    if flagged:
        logger.info("payments_flagged_late tontine_id=%s count=%s", tontine.id, len(flagged))
    return flagged


# ==========================================================
# Aggregates
# ==========================================================

def _percentage(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    value = Decimal(part) * 100 / Decimal(whole)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_pot_progress(tontine: Tontine, round_id: str) -> PotProgress:
    """Always derived from the current payment statuses; nothing is cached."""
    rnd = get_round(tontine, round_id)
    paid_count = sum(1 for p in rnd.payments if p.status == PAYMENT_PAID)
    return PotProgress(
        paid_count=paid_count,
        total_members=tontine.total_members,
        percentage=_percentage(paid_count, tontine.total_members),
        collected=sum(p.amount for p in rnd.payments if p.status == PAYMENT_PAID),
        pot=tontine.contribution * tontine.total_members,
    )


def round_summary(tontine: Tontine, round_id: str) -> dict:
    rnd = get_round(tontine, round_id)
    counts = {PAYMENT_PENDING: 0, PAYMENT_PAID: 0, PAYMENT_LATE: 0}
    for p in rnd.payments:
        counts[p.status] = counts.get(p.status, 0) + 1
    progress = compute_pot_progress(tontine, round_id)
    return {
        "round_id": rnd.id,
        "round_number": rnd.round_number,
        "beneficiary_id": rnd.beneficiary_id,
        "scheduled_date": rnd.scheduled_date,
        "status": rnd.status,
        "counts": counts,
        "unconfirmed": sum(1 for p in rnd.payments if p.status == PAYMENT_PAID and p.confirmed_at is None),
        "percentage": progress.percentage,
        "pot_complete": progress.paid_count == progress.total_members,
    }


# ==========================================================
# Round lifecycle
# ==========================================================

def advance_round(tontine: Tontine, *, now: Optional[datetime] = None) -> Optional[Round]:
    """
    Close the current round and open the next upcoming one.

    Returns the new current round, or None after the last round; completing the
    tontine itself is left to the caller (see complete_tontine).
    """
    rnd = current_round(tontine)
    if rnd is None:
        raise NoCurrentRound(f"tontine {tontine.id} has no current round")

    rnd.status = ROUND_COMPLETED
    rnd.completed_at = now or utcnow()

    upcoming = sorted(
        (r for r in tontine.rounds if r.status == ROUND_UPCOMING and r.round_number > rnd.round_number),
        key=lambda r: r.round_number,
    )
    if not upcoming:
        tontine.current_round = rnd.round_number + 1
        tontine.next_deadline = None
        logger.info("round_completed tontine_id=%s round=%s last=true", tontine.id, rnd.round_number)
        return None

    nxt = upcoming[0]
    nxt.status = ROUND_CURRENT
    tontine.current_round = nxt.round_number
    tontine.next_deadline = nxt.scheduled_date
    logger.info(
        "round_advanced tontine_id=%s completed=%s current=%s",
        tontine.id,
        rnd.round_number,
        nxt.round_number,
    )
    return nxt


def complete_tontine(tontine: Tontine, *, now: Optional[datetime] = None) -> Tontine:
    assert_tontine_transition(tontine.status, TONTINE_COMPLETED)
    outstanding = [r.round_number for r in tontine.rounds if r.status != ROUND_COMPLETED]
    if outstanding:
        raise RoundsOutstanding(f"rounds not completed: {outstanding}")

    tontine.status = TONTINE_COMPLETED
    tontine.completed_at = now or utcnow()
    tontine.next_deadline = None
    logger.info("tontine_completed tontine_id=%s", tontine.id)
    return tontine
