# schemas.py
from __future__ import annotations

from pydantic import BaseModel, Field, field_validator
from datetime import date, datetime
from typing import Any, Optional, List, Literal

Frequency = Literal["weekly", "monthly"]
DistributionLogic = Literal["fixed", "random", "trust"]
TontineStatus = Literal["draft", "active", "completed"]
RoundStatus = Literal["upcoming", "current", "completed"]
PaymentStatus = Literal["pending", "paid", "late"]
MemberRole = Literal["admin", "member"]


def _strip(v: Any) -> Any:
    # runs before the length constraints, so "   " fails min_length
    return v.strip() if isinstance(v, str) else v


# -------- TONTINES --------
class CreateTontineRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    contribution: int = Field(gt=0, description="Amount per member per round, in minor units")
    frequency: Frequency
    total_members: int = Field(ge=2)
    distribution_logic: DistributionLogic = "fixed"
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    creator_id: Optional[str] = None

    @field_validator("name", "currency", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return _strip(v)


class MemberItem(BaseModel):
    id: str
    name: str
    phone: str
    payout_order: int
    role: MemberRole
    user_id: Optional[str] = None
    added_at: datetime


class TontineResponse(BaseModel):
    id: str
    name: str
    contribution: int
    currency: str
    frequency: Frequency
    total_members: int
    distribution_logic: DistributionLogic
    status: TontineStatus
    created_at: datetime
    start_date: Optional[date] = None
    next_deadline: Optional[date] = None
    current_round: Optional[int] = None
    completed_at: Optional[datetime] = None
    members: List[MemberItem]


# -------- ROSTER --------
class AddMemberRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    phone: str = Field(min_length=5, max_length=32)
    role: MemberRole = "member"
    user_id: Optional[str] = None

    @field_validator("name", "phone", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return _strip(v)


class ReorderRequest(BaseModel):
    member_ids: List[str]


class MoveMemberRequest(BaseModel):
    direction: Literal["up", "down"]


class RosterResponse(BaseModel):
    tontine_id: str
    members: List[MemberItem]


# -------- INVITATIONS --------
class CreateInvitationRequest(BaseModel):
    created_by: str = Field(min_length=1)
    max_uses: Optional[int] = Field(default=None, ge=1, le=100)
    ttl_days: Optional[int] = Field(default=None, ge=1, le=90)


class InvitationItem(BaseModel):
    id: str
    tontine_id: str
    code: str
    created_by: str
    expires_at: datetime
    max_uses: int
    used_count: int
    created_at: datetime


class JoinWithCodeRequest(BaseModel):
    user_id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=120)
    phone: str = Field(min_length=5, max_length=32)

    @field_validator("user_id", "name", "phone", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return _strip(v)


class JoinResponse(BaseModel):
    tontine_id: str
    member: MemberItem
    invitation: InvitationItem


# -------- LAUNCH / ROUNDS --------
class LaunchRequest(BaseModel):
    start_date: date


class PaymentItem(BaseModel):
    id: str
    member_id: str
    amount: int
    status: PaymentStatus
    method: Optional[str] = None
    reference: Optional[str] = None
    declared_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None


class PotProgressResponse(BaseModel):
    round_id: str
    paid_count: int
    total_members: int
    percentage: int
    collected: int
    pot: int


class RoundItem(BaseModel):
    id: str
    round_number: int
    beneficiary_id: str
    scheduled_date: date
    status: RoundStatus
    derived_status: RoundStatus
    completed_at: Optional[datetime] = None


class RoundDetailResponse(RoundItem):
    payments: List[PaymentItem]
    progress: PotProgressResponse
    counts: dict[str, int]
    unconfirmed: int


class ScheduleResponse(BaseModel):
    tontine_id: str
    status: TontineStatus
    current_round: Optional[int] = None
    next_deadline: Optional[date] = None
    rounds: List[RoundItem]
    already_launched: bool = False


class AdvanceResponse(BaseModel):
    tontine_id: str
    completed_round: int
    current_round: Optional[RoundItem] = None
    last_round_done: bool


# -------- PAYMENTS --------
class DeclarePaymentRequest(BaseModel):
    member_id: str
    method: str = Field(min_length=1, max_length=32)
    reference: Optional[str] = Field(default=None, max_length=100)

    @field_validator("method", mode="before")
    @classmethod
    def strip_method(cls, v: Any) -> Any:
        return _strip(v)


class MarkPaidRequest(BaseModel):
    method: Optional[str] = Field(default=None, min_length=1, max_length=32)

    @field_validator("method", mode="before")
    @classmethod
    def strip_method(cls, v: Any) -> Any:
        return _strip(v)


class FlagLateResponse(BaseModel):
    tontine_id: str
    flagged: List[PaymentItem]


# -------- ACTIVITY / INVARIANTS --------
class ActivityItem(BaseModel):
    kind: str
    message: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    request_id: Optional[str] = None
    created_at: datetime


class ActivityListResponse(BaseModel):
    tontine_id: str
    items: List[ActivityItem]


class InvariantCheckResponse(BaseModel):
    tontine_id: str
    ok: bool
    checks: List[dict[str, Any]]
