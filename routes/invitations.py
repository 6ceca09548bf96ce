# routes/invitations.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from app.rotation import invitations
from app.rotation.errors import InvitationNotFound
from app.rotation.store import TontineStore
from deps.store import get_store
from routes.tontines import invitation_item, member_item
from schemas import JoinResponse, JoinWithCodeRequest

router = APIRouter(prefix="/v1/invitations", tags=["invitations"])


@router.post("/{code}/join", response_model=JoinResponse)
def join_with_code(code: str, body: JoinWithCodeRequest, store: TontineStore = Depends(get_store)):
    code = invitations.normalize_code(code)
    tontine_id = store.tontine_id_for_invitation(code)
    if tontine_id is None:
        raise InvitationNotFound(f"no invitation {code}")

    with store.session(tontine_id) as s:
        member, invitation = invitations.join_with_code(
            s.tontine,
            code,
            user_id=body.user_id,
            name=body.name,
            phone=body.phone,
        )
        s.record(
            "member_join",
            f"{member.name} joined with an invitation at position {member.payout_order}",
            member_id=member.id,
            payout_order=member.payout_order,
            invitation_id=invitation.id,
        )
        return JoinResponse(
            tontine_id=tontine_id,
            member=member_item(member),
            invitation=invitation_item(invitation),
        )
