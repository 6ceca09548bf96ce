# services/rotation_errors.py
from __future__ import annotations

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from app.rotation.errors import RotationError
from services.metrics import increment_rotation_error

logger = logging.getLogger("dourou.errors")

ROTATION_ERROR_HTTP_MAP: dict[str, tuple[int, str]] = {
    # roster
    "CAPACITY_EXCEEDED": (409, "Tontine is full"),
    "DUPLICATE_PHONE": (409, "Phone already in this tontine"),
    "ROSTER_LOCKED": (409, "Roster is locked"),
    "MEMBER_NOT_FOUND": (404, "Member not found"),
    "INVALID_PERMUTATION": (422, "Order must list every member exactly once"),
    "DUPLICATE_MEMBER": (409, "User is already a member"),
    # planner
    "INCOMPLETE_ROSTER": (409, "Roster is not full"),
    "INVALID_ROSTER_SIZE": (422, "A tontine needs at least two members"),
    "ALREADY_LAUNCHED": (409, "Tontine already launched"),
    # ledger
    "ROUND_NOT_FOUND": (404, "Round not found"),
    "MEMBER_NOT_IN_ROUND": (404, "Member has no payment in this round"),
    "PAYMENT_NOT_FOUND": (404, "Payment not found"),
    "ALREADY_PAID": (409, "Payment already paid"),
    "NOT_DECLARED": (409, "Payment not declared"),
    "NO_CURRENT_ROUND": (409, "No current round"),
    "ROUNDS_OUTSTANDING": (409, "Rounds still outstanding"),
    "INVALID_PAYMENT": (422, "Payment method is required"),
    # invitations
    "INVITATION_NOT_FOUND": (404, "Invitation not found"),
    "INVITATION_EXPIRED": (410, "Invitation has expired"),
    "INVITATION_EXHAUSTED": (409, "Invitation has no uses left"),
    # lifecycle
    "INVALID_TRANSITION": (409, "Invalid status transition"),
    "TONTINE_NOT_FOUND": (404, "Tontine not found"),
    "INVALID_TONTINE": (422, "Invalid tontine"),
}


def http_status_for(exc: RotationError) -> int:
    status, _ = ROTATION_ERROR_HTTP_MAP.get(exc.code, (500, "Internal server error"))
    return status


async def rotation_error_handler(request: Request, exc: RotationError) -> JSONResponse:
    """
    Known codes answer {"detail": CODE, "message": ...}; anything unmapped fails closed.
    """
    status, message = ROTATION_ERROR_HTTP_MAP.get(exc.code, (500, "Internal server error"))
    if status >= 500:
        logger.error("unmapped rotation error code=%s path=%s", exc.code, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    increment_rotation_error(exc.code)
    logger.info("rotation_error code=%s path=%s status=%s", exc.code, request.url.path, status)
    return JSONResponse(status_code=status, content={"detail": exc.code, "message": message})
