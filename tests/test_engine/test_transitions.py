"""
Transition table tests.
"""

import pytest

from emailpay.engine.exceptions import InvalidTransition
from emailpay.engine.transitions import (
    ALLOWED_TRANSITIONS,
    INITIAL_STATUSES,
    can_transition,
    check_transition,
)
from emailpay.schemas.transactions import TransactionStatus as S


@pytest.mark.parametrize("current,requested", [
    (S.DRAFT, S.PENDING),
    (S.DRAFT, S.SCHEDULED),
    (S.SCHEDULED, S.PENDING),
    (S.SCHEDULED, S.COMPLETED),
    (S.PENDING, S.PROCESSING),
    (S.PENDING, S.COMPLETED),
    (S.PENDING, S.FAILED),
    (S.PROCESSING, S.COMPLETED),
    (S.PROCESSING, S.FAILED),
    (S.FAILED, S.PENDING),
])
def test_allowed(current, requested):
    assert can_transition(current, requested)
    check_transition(current, requested)


@pytest.mark.parametrize("current,requested", [
    (S.COMPLETED, S.PENDING),
    (S.COMPLETED, S.FAILED),
    (S.COMPLETED, S.DRAFT),
    (S.PENDING, S.DRAFT),
    (S.SCHEDULED, S.DRAFT),
    (S.PROCESSING, S.PENDING),
    (S.FAILED, S.COMPLETED),
    (S.DRAFT, S.COMPLETED),
    (S.DRAFT, S.PROCESSING),
])
def test_rejected(current, requested):
    assert not can_transition(current, requested)
    with pytest.raises(InvalidTransition) as excinfo:
        check_transition(current, requested)
    assert excinfo.value.current == current.value
    assert excinfo.value.requested == requested.value
    assert f"'{current.value}'" in str(excinfo.value)


def test_every_status_may_stay_put():
    for status in S:
        assert can_transition(status, status)


def test_table_covers_every_status():
    assert set(ALLOWED_TRANSITIONS) == set(S)


def test_completed_is_terminal():
    assert ALLOWED_TRANSITIONS[S.COMPLETED] == frozenset({S.COMPLETED})


def test_initial_statuses():
    assert INITIAL_STATUSES == {S.DRAFT, S.PENDING, S.SCHEDULED}
