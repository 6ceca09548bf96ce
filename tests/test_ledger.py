from datetime import date, datetime, timezone

import pytest

from app.rotation import ledger, planner
from app.rotation.errors import (
    AlreadyPaid,
    InvalidPayment,
    InvalidTransition,
    MemberNotInRound,
    NoCurrentRound,
    NotDeclared,
    PaymentNotFound,
    RoundNotFound,
    RoundsOutstanding,
)
from app.rotation.model import TONTINE_COMPLETED
from conftest import fill_roster, make_tontine

T0 = datetime(2024, 2, 1, 10, 0, tzinfo=timezone.utc)
T1 = datetime(2024, 2, 2, 10, 0, tzinfo=timezone.utc)


def _launched(total_members: int = 3, contribution: int = 10_000):
    t = fill_roster(make_tontine(total_members=total_members, contribution=contribution))
    planner.launch_tontine(t, start_date=date(2024, 1, 1))
    return t


def _payment_of(rnd, member_id):
    return next(p for p in rnd.payments if p.member_id == member_id)


def test_declare_marks_paid_but_unconfirmed():
    t = _launched()
    rnd = t.rounds[0]

    p = ledger.declare_payment(t, rnd.id, "B", "d17", reference="TX-1", now=T0)

    assert p.status == "paid"
    assert p.method == "d17"
    assert p.reference == "TX-1"
    assert p.declared_at == T0
    assert p.confirmed_at is None


def test_declare_twice_is_already_paid():
    t = _launched()
    rnd = t.rounds[0]
    ledger.declare_payment(t, rnd.id, "B", "cash")
    with pytest.raises(AlreadyPaid):
        ledger.declare_payment(t, rnd.id, "B", "cash")


def test_declare_requires_method():
    t = _launched()
    with pytest.raises(InvalidPayment):
        ledger.declare_payment(t, t.rounds[0].id, "B", "  ")
    assert _payment_of(t.rounds[0], "B").status == "pending"


def test_declare_unknown_round_or_member():
    t = _launched()
    with pytest.raises(RoundNotFound):
        ledger.declare_payment(t, "no-such-round", "B", "cash")
    with pytest.raises(MemberNotInRound):
        ledger.declare_payment(t, t.rounds[0].id, "Z", "cash")


def test_confirm_keeps_first_timestamp():
    t = _launched()
    rnd = t.rounds[0]
    p = ledger.declare_payment(t, rnd.id, "A", "bank")

    ledger.confirm_payment(t, rnd.id, p.id, now=T0)
    again = ledger.confirm_payment(t, rnd.id, p.id, now=T1)

    assert again.confirmed_at == T0


def test_confirm_pending_is_not_declared():
    t = _launched()
    rnd = t.rounds[0]
    pending = _payment_of(rnd, "C")
    with pytest.raises(NotDeclared):
        ledger.confirm_payment(t, rnd.id, pending.id)
    assert pending.confirmed_at is None


def test_confirm_unknown_payment():
    t = _launched()
    with pytest.raises(PaymentNotFound):
        ledger.confirm_payment(t, t.rounds[0].id, "nope")


def test_mark_paid_sets_confirmed_in_one_step():
    t = _launched()
    rnd = t.rounds[0]
    pending = _payment_of(rnd, "C")

    p = ledger.mark_paid(t, rnd.id, pending.id, method="cash", now=T0)

    assert p.status == "paid"
    assert p.confirmed_at == T0
    assert p.method == "cash"
    with pytest.raises(AlreadyPaid):
        ledger.mark_paid(t, rnd.id, pending.id)


def test_pot_progress_counts_paid_only():
    t = _launched(total_members=3, contribution=10_000)
    rnd = t.rounds[0]

    progress = ledger.compute_pot_progress(t, rnd.id)
    assert (progress.paid_count, progress.percentage, progress.collected) == (0, 0, 0)
    assert progress.pot == 30_000

    ledger.declare_payment(t, rnd.id, "A", "cash")
    progress = ledger.compute_pot_progress(t, rnd.id)
    assert progress.paid_count == 1
    assert progress.percentage == 33

    ledger.declare_payment(t, rnd.id, "B", "cash")
    assert ledger.compute_pot_progress(t, rnd.id).percentage == 67

    ledger.mark_paid(t, rnd.id, _payment_of(rnd, "C").id)
    progress = ledger.compute_pot_progress(t, rnd.id)
    assert progress.percentage == 100
    assert progress.collected == progress.pot


def test_advance_walks_rounds_and_then_complete():
    t = _launched(total_members=3)

    r2 = ledger.advance_round(t, now=T0)
    assert r2.round_number == 2
    assert t.current_round == 2
    assert t.next_deadline == date(2024, 3, 1)
    assert [r.status for r in t.rounds] == ["completed", "current", "upcoming"]
    assert t.rounds[0].completed_at == T0

    with pytest.raises(RoundsOutstanding):
        ledger.complete_tontine(t)

    ledger.advance_round(t)
    assert ledger.advance_round(t) is None
    assert t.current_round == 4
    assert t.next_deadline is None
    assert all(r.status == "completed" for r in t.rounds)

    with pytest.raises(NoCurrentRound):
        ledger.advance_round(t)

    ledger.complete_tontine(t, now=T1)
    assert t.status == TONTINE_COMPLETED
    assert t.completed_at == T1


def test_complete_draft_is_invalid_transition():
    t = fill_roster(make_tontine(total_members=2))
    with pytest.raises(InvalidTransition):
        ledger.complete_tontine(t)


def test_flag_late_only_past_started_rounds():
    t = _launched(total_members=3)
    rnd = t.rounds[0]
    ledger.declare_payment(t, rnd.id, "A", "cash")

    # deadline day itself is still on time
    assert ledger.flag_late_payments(t, today=date(2024, 2, 1)) == []

    flagged = ledger.flag_late_payments(t, today=date(2024, 2, 2))
    assert sorted(p.member_id for p in flagged) == ["B", "C"]
    assert all(p.status == "late" for p in flagged)
    # upcoming rounds stay untouched even when their date is past
    assert ledger.flag_late_payments(t, today=date(2024, 12, 1)) == []
    assert all(p.status == "pending" for r in t.rounds[1:] for p in r.payments)

    # a late contribution can still be settled
    late = _payment_of(rnd, "B")
    ledger.declare_payment(t, rnd.id, "B", "bank")
    assert late.status == "paid"


def test_round_summary_counts_statuses():
    t = _launched(total_members=3)
    rnd = t.rounds[0]
    ledger.declare_payment(t, rnd.id, "A", "cash")
    ledger.flag_late_payments(t, today=date(2024, 2, 5))

    summary = ledger.round_summary(t, rnd.id)

    assert summary["round_number"] == 1
    assert summary["counts"] == {"pending": 0, "paid": 1, "late": 2}
    assert summary["unconfirmed"] == 1
    assert summary["percentage"] == 33
    assert summary["pot_complete"] is False
