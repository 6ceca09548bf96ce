# app/rotation/roster.py
from __future__ import annotations

import logging
import random
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Optional, Sequence

from app.rotation.errors import (
    CapacityExceeded,
    DuplicateMember,
    DuplicatePhone,
    InvalidPermutation,
    NotFound,
    RosterLocked,
)
from app.rotation.model import TONTINE_DRAFT, Member, RosterSnapshot, Tontine
from app.rotation.schedule import utcnow

logger = logging.getLogger("dourou.rotation")

MOVE_DIRECTIONS = ("up", "down")


def _new_id() -> str:
    return str(uuid.uuid4())


def _assert_mutable(tontine: Tontine) -> None:
    if tontine.status != TONTINE_DRAFT:
        raise RosterLocked(f"roster of tontine {tontine.id} is locked (status={tontine.status})")


def _renumber(members: list[Member]) -> None:
    for index, member in enumerate(members, start=1):
        member.payout_order = index


def sorted_members(tontine: Tontine) -> list[Member]:
    return sorted(tontine.members, key=lambda m: m.payout_order)


def _find(tontine: Tontine, member_id: str) -> Member:
    member = tontine.member_by_id(member_id)
    if member is None:
        raise NotFound(f"member {member_id} not in tontine {tontine.id}")
    return member


def add_member(
    tontine: Tontine,
    *,
    name: str,
    phone: str,
    member_id: Optional[str] = None,
    role: str = "member",
    user_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Member:
    """Append a member at the end of the payout sequence."""
    _assert_mutable(tontine)

    if len(tontine.members) >= tontine.total_members:
        raise CapacityExceeded(
            f"tontine {tontine.id} already has {tontine.total_members} members"
        )
    # exact match on the stored string
    if any(m.phone == phone for m in tontine.members):
        raise DuplicatePhone(f"phone already registered in tontine {tontine.id}")
    if user_id is not None and any(m.user_id == user_id for m in tontine.members):
        raise DuplicateMember(f"user {user_id} is already a member of tontine {tontine.id}")

    member_id = member_id or _new_id()
    if tontine.member_by_id(member_id) is not None:
        raise ValueError(f"duplicate member id: {member_id}")

    member = Member(
        id=member_id,
        name=name,
        phone=phone,
        payout_order=len(tontine.members) + 1,
        added_at=now or utcnow(),
        role=role,
        user_id=user_id,
    )
    tontine.members.append(member)
    logger.info(
        "roster_member_added tontine_id=%s member_id=%s payout_order=%s",
        tontine.id,
        member.id,
        member.payout_order,
    )
    return member


def remove_member(tontine: Tontine, member_id: str) -> Member:
    """Remove a member; everyone behind shifts down one slot."""
    _assert_mutable(tontine)
    member = _find(tontine, member_id)

    remaining = [m for m in sorted_members(tontine) if m.id != member_id]
    _renumber(remaining)
    tontine.members = remaining

    logger.info("roster_member_removed tontine_id=%s member_id=%s", tontine.id, member_id)
    return member


def reorder(tontine: Tontine, member_ids: Sequence[str]) -> list[Member]:
    """
    Replace the payout order wholesale. `member_ids` must be a permutation of the
    current roster. Concurrent reorders are last-write-wins.
    """
    _assert_mutable(tontine)

    ids = list(member_ids)
    current = {m.id: m for m in tontine.members}
    if len(ids) != len(current) or set(ids) != set(current):
        raise InvalidPermutation(
            f"expected a permutation of {len(current)} member ids, got {len(ids)}"
        )

    ordered = [current[mid] for mid in ids]
    _renumber(ordered)
    tontine.members = ordered
    return ordered


def shuffle(tontine: Tontine, rng: Optional[random.Random] = None) -> list[Member]:
    """
    Uniformly random payout order (Fisher-Yates). A draft-time convenience only;
    the planner never calls this.
    """
    ids = [m.id for m in sorted_members(tontine)]
    rng = rng or random.SystemRandom()
    for i in range(len(ids) - 1, 0, -1):
        j = rng.randint(0, i)
        ids[i], ids[j] = ids[j], ids[i]
    return reorder(tontine, ids)


def move_member(tontine: Tontine, member_id: str, direction: str) -> list[Member]:
    """Swap a member with its neighbour. Moving past either end is a no-op."""
    if direction not in MOVE_DIRECTIONS:
        raise ValueError(f"direction must be one of {MOVE_DIRECTIONS}")
    _assert_mutable(tontine)
    _find(tontine, member_id)

    ids = [m.id for m in sorted_members(tontine)]
    index = ids.index(member_id)
    target = index - 1 if direction == "up" else index + 1
    if 0 <= target < len(ids):
        ids[index], ids[target] = ids[target], ids[index]
    return reorder(tontine, ids)


def snapshot_roster(tontine: Tontine) -> RosterSnapshot:
    return RosterSnapshot(
        tontine_id=tontine.id,
        members=tuple(replace(m) for m in sorted_members(tontine)),
    )


def restore_roster(tontine: Tontine, snapshot: RosterSnapshot) -> None:
    """Revert a speculative roster change, e.g. after the host failed to persist it."""
    if snapshot.tontine_id != tontine.id:
        raise ValueError("snapshot belongs to another tontine")
    _assert_mutable(tontine)
    tontine.members = [replace(m) for m in snapshot.members]


def payout_orders(tontine: Tontine) -> list[int]:
    return [m.payout_order for m in sorted_members(tontine)]
