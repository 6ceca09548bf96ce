import pytest

from app.rotation.errors import InvalidTransition
from app.rotation.state_machine import (
    assert_confirmed_invariant,
    assert_payment_transition,
    assert_tontine_transition,
)


def test_valid_tontine_transitions():
    assert_tontine_transition("draft", "active")
    assert_tontine_transition("active", "completed")


def test_tontine_cannot_skip_or_go_back():
    with pytest.raises(InvalidTransition):
        assert_tontine_transition("draft", "completed")
    with pytest.raises(InvalidTransition):
        assert_tontine_transition("active", "draft")
    with pytest.raises(InvalidTransition):
        assert_tontine_transition("completed", "active")


def test_payment_transitions():
    assert_payment_transition("pending", "paid")
    assert_payment_transition("pending", "late")
    assert_payment_transition("late", "paid")
    with pytest.raises(InvalidTransition):
        assert_payment_transition("paid", "pending")
    with pytest.raises(InvalidTransition):
        assert_payment_transition("paid", "late")


def test_confirmed_requires_paid():
    assert_confirmed_invariant("paid", object())
    assert_confirmed_invariant("pending", None)
    with pytest.raises(ValueError):
        assert_confirmed_invariant("pending", object())
