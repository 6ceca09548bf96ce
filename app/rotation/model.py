# app/rotation/model.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

FREQUENCIES = ("weekly", "monthly")
DISTRIBUTION_LOGICS = ("fixed", "random", "trust")

TONTINE_DRAFT = "draft"
TONTINE_ACTIVE = "active"
TONTINE_COMPLETED = "completed"

ROUND_UPCOMING = "upcoming"
ROUND_CURRENT = "current"
ROUND_COMPLETED = "completed"

PAYMENT_PENDING = "pending"
PAYMENT_PAID = "paid"
PAYMENT_LATE = "late"

# Settlement channels offered by the app; the ledger accepts any non-empty identifier.
PAYMENT_METHODS = ("cash", "bank", "d17", "flouci")

MEMBER_ROLES = ("admin", "member")


@dataclass
class Member:
    id: str
    name: str
    phone: str
    payout_order: int
    added_at: datetime
    role: str = "member"
    user_id: Optional[str] = None


@dataclass
class Payment:
    id: str
    round_id: str
    member_id: str
    amount: int
    status: str = PAYMENT_PENDING
    method: Optional[str] = None
    reference: Optional[str] = None
    declared_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None


@dataclass
class Round:
    id: str
    tontine_id: str
    round_number: int
    beneficiary_id: str
    scheduled_date: date
    status: str = ROUND_UPCOMING
    completed_at: Optional[datetime] = None
    payments: list[Payment] = field(default_factory=list)


@dataclass
class Invitation:
    id: str
    tontine_id: str
    code: str
    created_by: str
    expires_at: datetime
    created_at: datetime
    max_uses: int = 10
    used_count: int = 0


@dataclass
class Tontine:
    """
    A rotating savings group.

    `contribution` is expressed in minor units of `currency` (millimes for TND).
    `members` is kept sorted by payout order; `rounds` by round number.
    """

    id: str
    name: str
    contribution: int
    frequency: str
    total_members: int
    created_at: datetime
    distribution_logic: str = "fixed"
    currency: str = "TND"
    status: str = TONTINE_DRAFT
    start_date: Optional[date] = None
    next_deadline: Optional[date] = None
    current_round: Optional[int] = None
    completed_at: Optional[datetime] = None
    creator_id: Optional[str] = None
    members: list[Member] = field(default_factory=list)
    rounds: list[Round] = field(default_factory=list)
    invitations: list[Invitation] = field(default_factory=list)

    def member_by_id(self, member_id: str) -> Optional[Member]:
        for m in self.members:
            if m.id == member_id:
                return m
        return None

    def round_by_id(self, round_id: str) -> Optional[Round]:
        for r in self.rounds:
            if r.id == round_id:
                return r
        return None

    def invitation_by_code(self, code: str) -> Optional[Invitation]:
        for inv in self.invitations:
            if inv.code == code:
                return inv
        return None


@dataclass(frozen=True)
class PotProgress:
    paid_count: int
    total_members: int
    percentage: int
    collected: int
    pot: int


@dataclass(frozen=True)
class RosterSnapshot:
    """Copy of a roster taken before a speculative mutation, used to roll it back."""

    tontine_id: str
    members: tuple[Member, ...]

    @property
    def order(self) -> list[str]:
        return [m.id for m in sorted(self.members, key=lambda m: m.payout_order)]


@dataclass(frozen=True)
class LaunchPlan:
    tontine_id: str
    start_date: date
    rounds: tuple[Round, ...]

    @property
    def payment_count(self) -> int:
        return sum(len(r.payments) for r in self.rounds)
