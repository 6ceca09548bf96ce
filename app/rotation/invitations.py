# app/rotation/invitations.py
from __future__ import annotations

import logging
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

from app.rotation import roster
from app.rotation.errors import (
    DuplicateMember,
    InvitationExhausted,
    InvitationExpired,
    InvitationNotFound,
    RosterLocked,
)
from app.rotation.model import TONTINE_DRAFT, Invitation, Member, Tontine
from app.rotation.schedule import utcnow

logger = logging.getLogger("dourou.rotation")

# no 0/O or 1/I, codes get read out over the phone
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 8

DEFAULT_TTL_DAYS = 7
DEFAULT_MAX_USES = 10


def _new_id() -> str:
    return str(uuid.uuid4())


def generate_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def create_invitation(
    tontine: Tontine,
    *,
    created_by: str,
    code: Optional[str] = None,
    ttl_days: int = DEFAULT_TTL_DAYS,
    max_uses: int = DEFAULT_MAX_USES,
    now: Optional[datetime] = None,
    id_factory: Callable[[], str] = _new_id,
) -> Invitation:
    """Issue a join code for a draft tontine."""
    if tontine.status != TONTINE_DRAFT:
        raise RosterLocked(f"roster of tontine {tontine.id} is locked (status={tontine.status})")
    if ttl_days < 1 or max_uses < 1:
        raise ValueError("ttl_days and max_uses must be >= 1")

    code = normalize_code(code) if code else generate_code()
    if tontine.invitation_by_code(code) is not None:
        raise ValueError(f"invitation code already issued: {code}")

    now = now or utcnow()
    invitation = Invitation(
        id=id_factory(),
        tontine_id=tontine.id,
        code=code,
        created_by=created_by,
        expires_at=now + timedelta(days=ttl_days),
        created_at=now,
        max_uses=max_uses,
        used_count=0,
    )
    tontine.invitations.append(invitation)
    logger.info(
        "invitation_created tontine_id=%s invitation_id=%s max_uses=%s expires_at=%s",
        tontine.id,
        invitation.id,
        max_uses,
        invitation.expires_at.isoformat(),
    )
    return invitation


def check_invitation(invitation: Invitation, *, now: Optional[datetime] = None) -> None:
    if (now or utcnow()) > invitation.expires_at:
        raise InvitationExpired(f"invitation {invitation.id} expired at {invitation.expires_at.isoformat()}")
    if invitation.used_count >= invitation.max_uses:
        raise InvitationExhausted(f"invitation {invitation.id} used {invitation.used_count}/{invitation.max_uses}")


def join_with_code(
    tontine: Tontine,
    code: str,
    *,
    user_id: str,
    name: str,
    phone: str,
    now: Optional[datetime] = None,
) -> tuple[Member, Invitation]:
    """
    Redeem a code: the user is appended at the end of the payout sequence and
    the code's use count goes up by one. Roster rules (lock, capacity,
    duplicate phone) apply as for add_member.
    """
    invitation = tontine.invitation_by_code(normalize_code(code))
    if invitation is None:
        raise InvitationNotFound(f"no invitation {normalize_code(code)} for tontine {tontine.id}")

    now = now or utcnow()
    check_invitation(invitation, now=now)

    # reported before a full group, a returning member should hear they're already in
    if any(m.user_id == user_id for m in tontine.members):
        raise DuplicateMember(f"user {user_id} is already a member of tontine {tontine.id}")

    member = roster.add_member(
        tontine,
        name=name,
        phone=phone,
        role="member",
        user_id=user_id,
        now=now,
    )
    invitation.used_count += 1
    logger.info(
        "invitation_redeemed tontine_id=%s invitation_id=%s member_id=%s used=%s/%s",
        tontine.id,
        invitation.id,
        member.id,
        invitation.used_count,
        invitation.max_uses,
    )
    return member, invitation
