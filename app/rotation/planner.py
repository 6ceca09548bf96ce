# app/rotation/planner.py
from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Callable

from app.rotation.errors import AlreadyLaunched, IncompleteRoster, InvalidRosterSize
from app.rotation.model import (
    ROUND_CURRENT,
    ROUND_UPCOMING,
    TONTINE_ACTIVE,
    TONTINE_DRAFT,
    LaunchPlan,
    Payment,
    Round,
    Tontine,
)
from app.rotation.roster import sorted_members
from app.rotation.schedule import add_interval
from app.rotation.state_machine import assert_tontine_transition

logger = logging.getLogger("dourou.rotation")

MIN_ROSTER_SIZE = 2


def _new_id() -> str:
    return str(uuid.uuid4())


def plan_launch(
    tontine: Tontine,
    *,
    start_date: date,
    id_factory: Callable[[], str] = _new_id,
) -> LaunchPlan:
    """
    Derive the full round schedule without touching `tontine`.

    Round i+1 pays the member at payout order i+1 on
    add_interval(start_date, frequency, i + 1). The roster order is taken as-is:
    any random or trust-based ordering must already be applied to it.

    Every member, the beneficiary included, gets a pending payment in every
    round, so a round's pot is complete when all `total_members` have paid.
    """
    if tontine.status != TONTINE_DRAFT or tontine.rounds:
        raise AlreadyLaunched(f"tontine {tontine.id} is already {tontine.status}")
    if tontine.total_members < MIN_ROSTER_SIZE:
        raise InvalidRosterSize(
            f"tontine {tontine.id} needs at least {MIN_ROSTER_SIZE} members, has capacity {tontine.total_members}"
        )

    members = sorted_members(tontine)
    if len(members) != tontine.total_members:
        raise IncompleteRoster(
            f"tontine {tontine.id} has {len(members)}/{tontine.total_members} members"
        )

    rounds: list[Round] = []
    for i, beneficiary in enumerate(members):
        round_id = id_factory()
        payments = [
            Payment(
                id=id_factory(),
                round_id=round_id,
                member_id=m.id,
                amount=tontine.contribution,
            )
            for m in members
        ]
        rounds.append(
            Round(
                id=round_id,
                tontine_id=tontine.id,
                round_number=i + 1,
                beneficiary_id=beneficiary.id,
                scheduled_date=add_interval(start_date, tontine.frequency, i + 1),
                status=ROUND_CURRENT if i == 0 else ROUND_UPCOMING,
                payments=payments,
            )
        )

    return LaunchPlan(tontine_id=tontine.id, start_date=start_date, rounds=tuple(rounds))


def apply_launch(tontine: Tontine, plan: LaunchPlan) -> None:
    """Materialize a plan on the tontine. Nothing is changed if the checks fail."""
    if plan.tontine_id != tontine.id:
        raise ValueError("launch plan belongs to another tontine")
    if tontine.status != TONTINE_DRAFT or tontine.rounds:
        raise AlreadyLaunched(f"tontine {tontine.id} is already {tontine.status}")
    assert_tontine_transition(tontine.status, TONTINE_ACTIVE)

    tontine.rounds = list(plan.rounds)
    tontine.start_date = plan.start_date
    tontine.current_round = 1
    tontine.next_deadline = plan.rounds[0].scheduled_date
    tontine.status = TONTINE_ACTIVE


def launch_tontine(
    tontine: Tontine,
    *,
    start_date: date,
    id_factory: Callable[[], str] = _new_id,
) -> LaunchPlan:
    plan = plan_launch(tontine, start_date=start_date, id_factory=id_factory)
    apply_launch(tontine, plan)
    logger.info(
        "tontine_launched tontine_id=%s rounds=%s payments=%s frequency=%s start_date=%s",
        tontine.id,
        len(plan.rounds),
        plan.payment_count,
        tontine.frequency,
        start_date.isoformat(),
    )
    return plan
