# app/rotation/errors.py
from __future__ import annotations


class RotationError(Exception):
    """Base class; `code` is the stable identifier surfaced to API clients."""

    code = "ROTATION_ERROR"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)


# -----------------------
# Roster
# -----------------------

class RosterError(RotationError):
    code = "ROSTER_ERROR"


class CapacityExceeded(RosterError):
    code = "CAPACITY_EXCEEDED"


class DuplicatePhone(RosterError):
    code = "DUPLICATE_PHONE"


class RosterLocked(RosterError):
    code = "ROSTER_LOCKED"


class NotFound(RosterError):
    code = "MEMBER_NOT_FOUND"


class InvalidPermutation(RosterError):
    code = "INVALID_PERMUTATION"


# -----------------------
# Planner
# -----------------------

class PlannerError(RotationError):
    code = "PLANNER_ERROR"


class IncompleteRoster(PlannerError):
    code = "INCOMPLETE_ROSTER"


class InvalidRosterSize(PlannerError):
    code = "INVALID_ROSTER_SIZE"


class AlreadyLaunched(PlannerError):
    code = "ALREADY_LAUNCHED"


# -----------------------
# Ledger
# -----------------------

class LedgerError(RotationError):
    code = "LEDGER_ERROR"


class RoundNotFound(LedgerError):
    code = "ROUND_NOT_FOUND"


class MemberNotInRound(LedgerError):
    code = "MEMBER_NOT_IN_ROUND"


class PaymentNotFound(LedgerError):
    code = "PAYMENT_NOT_FOUND"


class AlreadyPaid(LedgerError):
    code = "ALREADY_PAID"


class NotDeclared(LedgerError):
    code = "NOT_DECLARED"


class NoCurrentRound(LedgerError):
    code = "NO_CURRENT_ROUND"


class RoundsOutstanding(LedgerError):
    code = "ROUNDS_OUTSTANDING"


class InvalidPayment(LedgerError):
    code = "INVALID_PAYMENT"


# -----------------------
# Lifecycle / lookup
# -----------------------

class InvalidTransition(RotationError):
    code = "INVALID_TRANSITION"


class TontineNotFound(RotationError):
    code = "TONTINE_NOT_FOUND"


class InvalidTontine(RotationError):
    code = "INVALID_TONTINE"


# -----------------------
# Invitations
# -----------------------

class DuplicateMember(RosterError):
    code = "DUPLICATE_MEMBER"


class InvitationError(RotationError):
    code = "INVITATION_ERROR"


class InvitationNotFound(InvitationError):
    code = "INVITATION_NOT_FOUND"


class InvitationExpired(InvitationError):
    code = "INVITATION_EXPIRED"


class InvitationExhausted(InvitationError):
    code = "INVITATION_EXHAUSTED"
