# routes/tontines.py
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status

from app.rotation import invitations, ledger, planner, roster
from app.rotation.errors import AlreadyLaunched, InvalidTontine, TontineNotFound
from app.rotation.invariants import list_tontine_invariants
from app.rotation.model import TONTINE_ACTIVE, Invitation, Member, Payment, Round, Tontine
from app.rotation.schedule import derive_round_status, local_today, utcnow
from app.rotation.store import TontineStore
from deps.store import get_store
from schemas import (
    ActivityListResponse,
    AddMemberRequest,
    AdvanceResponse,
    CreateInvitationRequest,
    CreateTontineRequest,
    FlagLateResponse,
    InvariantCheckResponse,
    InvitationItem,
    LaunchRequest,
    MemberItem,
    MoveMemberRequest,
    PaymentItem,
    ReorderRequest,
    RosterResponse,
    RoundItem,
    ScheduleResponse,
    TontineResponse,
)
from services.metrics import increment_payment_event, increment_tontine_launch
from settings import settings

router = APIRouter(prefix="/v1/tontines", tags=["tontines"])


# -----------------------------
# Serialization
# -----------------------------

def member_item(m: Member) -> MemberItem:
    return MemberItem(
        id=m.id,
        name=m.name,
        phone=m.phone,
        payout_order=m.payout_order,
        role=m.role,
        user_id=m.user_id,
        added_at=m.added_at,
    )


def invitation_item(i: Invitation) -> InvitationItem:
    return InvitationItem(
        id=i.id,
        tontine_id=i.tontine_id,
        code=i.code,
        created_by=i.created_by,
        expires_at=i.expires_at,
        max_uses=i.max_uses,
        used_count=i.used_count,
        created_at=i.created_at,
    )


def payment_item(p: Payment) -> PaymentItem:
    return PaymentItem(
        id=p.id,
        member_id=p.member_id,
        amount=p.amount,
        status=p.status,
        method=p.method,
        reference=p.reference,
        declared_at=p.declared_at,
        confirmed_at=p.confirmed_at,
    )


def round_item(t: Tontine, r: Round) -> RoundItem:
    return RoundItem(
        id=r.id,
        round_number=r.round_number,
        beneficiary_id=r.beneficiary_id,
        scheduled_date=r.scheduled_date,
        status=r.status,
        derived_status=derive_round_status(r.round_number, t.current_round),
        completed_at=r.completed_at,
    )


def tontine_response(t: Tontine) -> TontineResponse:
    return TontineResponse(
        id=t.id,
        name=t.name,
        contribution=t.contribution,
        currency=t.currency,
        frequency=t.frequency,
        total_members=t.total_members,
        distribution_logic=t.distribution_logic,
        status=t.status,
        created_at=t.created_at,
        start_date=t.start_date,
        next_deadline=t.next_deadline,
        current_round=t.current_round,
        completed_at=t.completed_at,
        members=[member_item(m) for m in roster.sorted_members(t)],
    )


def roster_response(t: Tontine) -> RosterResponse:
    return RosterResponse(tontine_id=t.id, members=[member_item(m) for m in roster.sorted_members(t)])


def schedule_response(t: Tontine, *, already_launched: bool = False) -> ScheduleResponse:
    return ScheduleResponse(
        tontine_id=t.id,
        status=t.status,
        current_round=t.current_round,
        next_deadline=t.next_deadline,
        rounds=[round_item(t, r) for r in sorted(t.rounds, key=lambda r: r.round_number)],
        already_launched=already_launched,
    )


def get_tontine_or_raise(store: TontineStore, tontine_id: str) -> Tontine:
    tontine = store.get(tontine_id)
    if tontine is None:
        raise TontineNotFound(f"tontine {tontine_id} not found")
    return tontine


# -----------------------------
# Tontines
# -----------------------------

@router.post("", status_code=status.HTTP_201_CREATED, response_model=TontineResponse)
def create_tontine(body: CreateTontineRequest, store: TontineStore = Depends(get_store)):
    if body.total_members < settings.MIN_MEMBERS or body.total_members > settings.MAX_MEMBERS:
        raise InvalidTontine(
            f"total_members must be between {settings.MIN_MEMBERS} and {settings.MAX_MEMBERS}"
        )

    tontine = Tontine(
        id=str(uuid.uuid4()),
        name=body.name,
        contribution=body.contribution,
        frequency=body.frequency,
        total_members=body.total_members,
        created_at=utcnow(),
        distribution_logic=body.distribution_logic,
        currency=(body.currency or settings.DEFAULT_CURRENCY).upper(),
        creator_id=body.creator_id,
    )
    store.create(tontine)
    return tontine_response(tontine)


@router.get("/{tontine_id}", response_model=TontineResponse)
def get_tontine(tontine_id: str, store: TontineStore = Depends(get_store)):
    return tontine_response(get_tontine_or_raise(store, tontine_id))


# -----------------------------
# Roster (draft only)
# -----------------------------

@router.post("/{tontine_id}/members", status_code=status.HTTP_201_CREATED, response_model=MemberItem)
def add_member(tontine_id: str, body: AddMemberRequest, store: TontineStore = Depends(get_store)):
    with store.session(tontine_id) as s:
        member = roster.add_member(
            s.tontine,
            name=body.name,
            phone=body.phone,
            role=body.role,
            user_id=body.user_id,
        )
        s.record(
            "member_join",
            f"{member.name} joined at position {member.payout_order}",
            member_id=member.id,
            payout_order=member.payout_order,
        )
    return member_item(member)


@router.delete("/{tontine_id}/members/{member_id}", response_model=RosterResponse)
def remove_member(tontine_id: str, member_id: str, store: TontineStore = Depends(get_store)):
    with store.session(tontine_id) as s:
        member = roster.remove_member(s.tontine, member_id)
        s.record("member_leave", f"{member.name} left the tontine", member_id=member.id)
        return roster_response(s.tontine)


@router.put("/{tontine_id}/members/order", response_model=RosterResponse)
def reorder_members(tontine_id: str, body: ReorderRequest, store: TontineStore = Depends(get_store)):
    with store.session(tontine_id) as s:
        roster.reorder(s.tontine, body.member_ids)
        s.record("roster_reorder", "Payout order updated", order=list(body.member_ids))
        return roster_response(s.tontine)


@router.post("/{tontine_id}/members/{member_id}/move", response_model=RosterResponse)
def move_member(
    tontine_id: str,
    member_id: str,
    body: MoveMemberRequest,
    store: TontineStore = Depends(get_store),
):
    with store.session(tontine_id) as s:
        ordered = roster.move_member(s.tontine, member_id, body.direction)
        s.record(
            "roster_reorder",
            f"Member moved {body.direction}",
            member_id=member_id,
            order=[m.id for m in ordered],
        )
        return roster_response(s.tontine)


@router.post("/{tontine_id}/members/shuffle", response_model=RosterResponse)
def shuffle_members(tontine_id: str, store: TontineStore = Depends(get_store)):
    with store.session(tontine_id) as s:
        ordered = roster.shuffle(s.tontine)
        s.record("roster_reorder", "Payout order shuffled", order=[m.id for m in ordered])
        return roster_response(s.tontine)


# -----------------------------
# Invitations (draft only)
# -----------------------------

INVITE_CODE_ATTEMPTS = 5


def _unused_code(store: TontineStore) -> str:
    for _ in range(INVITE_CODE_ATTEMPTS):
        code = invitations.generate_code()
        if store.tontine_id_for_invitation(code) is None:
            return code
    raise RuntimeError("could not generate an unused invitation code")


@router.post("/{tontine_id}/invitations", status_code=status.HTTP_201_CREATED, response_model=InvitationItem)
def create_invitation(tontine_id: str, body: CreateInvitationRequest, store: TontineStore = Depends(get_store)):
    code = _unused_code(store)
    with store.session(tontine_id) as s:
        invitation = invitations.create_invitation(
            s.tontine,
            created_by=body.created_by,
            code=code,
            ttl_days=body.ttl_days or settings.INVITE_TTL_DAYS,
            max_uses=body.max_uses or settings.INVITE_MAX_USES,
        )
    return invitation_item(invitation)


@router.get("/{tontine_id}/invitations", response_model=list[InvitationItem])
def list_invitations(tontine_id: str, store: TontineStore = Depends(get_store)):
    return [invitation_item(i) for i in get_tontine_or_raise(store, tontine_id).invitations]


# -----------------------------
# Launch & rounds
# -----------------------------

@router.post("/{tontine_id}/launch", response_model=ScheduleResponse)
def launch_tontine(tontine_id: str, body: LaunchRequest, store: TontineStore = Depends(get_store)):
    with store.session(tontine_id) as s:
        try:
            plan = planner.launch_tontine(s.tontine, start_date=body.start_date)
        except AlreadyLaunched:
            # a duplicate launch of a running tontine is answered with its existing schedule
            if s.tontine.status == TONTINE_ACTIVE:
                return schedule_response(s.tontine, already_launched=True)
            raise

        first = plan.rounds[0]
        s.record(
            "tour_start",
            f"Round 1 started, payout on {first.scheduled_date.isoformat()}",
            round_id=first.id,
            round_number=1,
            beneficiary_id=first.beneficiary_id,
        )
        response = schedule_response(s.tontine)

    increment_tontine_launch(s.tontine.frequency)
    return response


@router.get("/{tontine_id}/rounds", response_model=ScheduleResponse)
def get_schedule(tontine_id: str, store: TontineStore = Depends(get_store)):
    return schedule_response(get_tontine_or_raise(store, tontine_id))


@router.post("/{tontine_id}/rounds/advance", response_model=AdvanceResponse)
def advance_round(tontine_id: str, store: TontineStore = Depends(get_store)):
    with store.session(tontine_id) as s:
        closing = ledger.current_round(s.tontine)
        nxt = ledger.advance_round(s.tontine)
        # closing is only None when advance_round has already raised NoCurrentRound
        s.record(
            "tour_complete",
            f"Round {closing.round_number} completed",
            round_id=closing.id,
            round_number=closing.round_number,
            beneficiary_id=closing.beneficiary_id,
        )
        if nxt is not None:
            s.record(
                "tour_start",
                f"Round {nxt.round_number} started, payout on {nxt.scheduled_date.isoformat()}",
                round_id=nxt.id,
                round_number=nxt.round_number,
                beneficiary_id=nxt.beneficiary_id,
            )
        return AdvanceResponse(
            tontine_id=tontine_id,
            completed_round=closing.round_number,
            current_round=round_item(s.tontine, nxt) if nxt is not None else None,
            last_round_done=nxt is None,
        )


@router.post("/{tontine_id}/complete", response_model=TontineResponse)
def complete_tontine(tontine_id: str, store: TontineStore = Depends(get_store)):
    with store.session(tontine_id) as s:
        ledger.complete_tontine(s.tontine)
        s.record("tontine_complete", "Every member has received the pot")
        return tontine_response(s.tontine)


@router.post("/{tontine_id}/payments/flag-late", response_model=FlagLateResponse)
def flag_late_payments(tontine_id: str, store: TontineStore = Depends(get_store)):
    with store.session(tontine_id) as s:
        flagged = ledger.flag_late_payments(s.tontine, today=local_today())
        for p in flagged:
            s.record("payment_late", "Contribution is late", payment_id=p.id, member_id=p.member_id)
        response = FlagLateResponse(tontine_id=tontine_id, flagged=[payment_item(p) for p in flagged])

    if flagged:
        increment_payment_event("late", len(flagged))
    return response


# -----------------------------
# Activity & invariants
# -----------------------------

@router.get("/{tontine_id}/activity", response_model=ActivityListResponse)
def list_activity(
    tontine_id: str,
    limit: int = Query(50, ge=1, le=200),
    store: TontineStore = Depends(get_store),
):
    get_tontine_or_raise(store, tontine_id)
    return ActivityListResponse(tontine_id=tontine_id, items=store.list_activity(tontine_id, limit=limit))


@router.get("/{tontine_id}/invariants", response_model=InvariantCheckResponse)
def check_invariants(tontine_id: str, store: TontineStore = Depends(get_store)):
    checks = list_tontine_invariants(get_tontine_or_raise(store, tontine_id))
    return InvariantCheckResponse(
        tontine_id=tontine_id,
        ok=all(c["ok"] for c in checks),
        checks=checks,
    )
