# routes/rounds.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from app.rotation import ledger
from app.rotation.model import Tontine
from app.rotation.store import TontineStore
from deps.store import get_store
from routes.tontines import get_tontine_or_raise, payment_item, round_item
from schemas import (
    DeclarePaymentRequest,
    MarkPaidRequest,
    PaymentItem,
    PotProgressResponse,
    RoundDetailResponse,
)
from services.metrics import increment_payment_event

router = APIRouter(prefix="/v1/tontines/{tontine_id}/rounds/{round_id}", tags=["rounds"])


def _progress(t: Tontine, round_id: str) -> PotProgressResponse:
    p = ledger.compute_pot_progress(t, round_id)
    return PotProgressResponse(
        round_id=round_id,
        paid_count=p.paid_count,
        total_members=p.total_members,
        percentage=p.percentage,
        collected=p.collected,
        pot=p.pot,
    )


@router.get("", response_model=RoundDetailResponse)
def get_round(tontine_id: str, round_id: str, store: TontineStore = Depends(get_store)):
    tontine = get_tontine_or_raise(store, tontine_id)
    rnd = ledger.get_round(tontine, round_id)
    summary = ledger.round_summary(tontine, round_id)
    return RoundDetailResponse(
        **round_item(tontine, rnd).model_dump(),
        payments=[payment_item(p) for p in rnd.payments],
        progress=_progress(tontine, round_id),
        counts=summary["counts"],
        unconfirmed=summary["unconfirmed"],
    )


@router.get("/progress", response_model=PotProgressResponse)
def get_progress(tontine_id: str, round_id: str, store: TontineStore = Depends(get_store)):
    return _progress(get_tontine_or_raise(store, tontine_id), round_id)


@router.post("/payments/declare", response_model=PaymentItem)
def declare_payment(
    tontine_id: str,
    round_id: str,
    body: DeclarePaymentRequest,
    store: TontineStore = Depends(get_store),
):
    with store.session(tontine_id) as s:
        payment = ledger.declare_payment(
            s.tontine,
            round_id,
            body.member_id,
            body.method,
            reference=body.reference,
        )
        s.record(
            "payment",
            f"Contribution declared via {payment.method}",
            round_id=round_id,
            payment_id=payment.id,
            member_id=payment.member_id,
            amount=payment.amount,
        )
    increment_payment_event("declared")
    return payment_item(payment)


@router.post("/payments/{payment_id}/confirm", response_model=PaymentItem)
def confirm_payment(
    tontine_id: str,
    round_id: str,
    payment_id: str,
    store: TontineStore = Depends(get_store),
):
    with store.session(tontine_id) as s:
        payment = ledger.confirm_payment(s.tontine, round_id, payment_id)
        s.record(
            "payment_confirmed",
            "Contribution confirmed",
            round_id=round_id,
            payment_id=payment.id,
            member_id=payment.member_id,
        )
    increment_payment_event("confirmed")
    return payment_item(payment)


@router.post("/payments/{payment_id}/mark-paid", response_model=PaymentItem)
def mark_paid(
    tontine_id: str,
    round_id: str,
    payment_id: str,
    body: MarkPaidRequest | None = None,
    store: TontineStore = Depends(get_store),
):
    with store.session(tontine_id) as s:
        payment = ledger.mark_paid(
            s.tontine,
            round_id,
            payment_id,
            method=body.method if body else None,
        )
        s.record(
            "payment_confirmed",
            "Contribution marked as paid",
            round_id=round_id,
            payment_id=payment.id,
            member_id=payment.member_id,
            amount=payment.amount,
        )
    increment_payment_event("marked_paid")
    return payment_item(payment)
