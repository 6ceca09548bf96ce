# app/rotation/state_machine.py

from app.rotation.errors import InvalidTransition


TONTINE_ALLOWED = {
    "draft": {"active"},
    "active": {"completed"},
    "completed": set(),
}

PAYMENT_ALLOWED = {
    "pending": {"paid", "late"},
    "late": {"paid"},
    "paid": set(),
}


def assert_tontine_transition(old: str, new: str) -> None:
    if new not in TONTINE_ALLOWED.get(old, set()):
        raise InvalidTransition(f"Illegal tontine transition: {old} -> {new}")


def assert_payment_transition(old: str, new: str) -> None:
    if new not in PAYMENT_ALLOWED.get(old, set()):
        raise InvalidTransition(f"Illegal payment transition: {old} -> {new}")


def assert_confirmed_invariant(status: str, confirmed_at) -> None:
    """
    Invariant: a payment can only carry confirmed_at once it is paid.
    """
    if confirmed_at is not None and status != "paid":
        raise ValueError("Invariant violation: confirmed_at requires status=paid")
