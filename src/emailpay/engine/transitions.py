"""
Transaction status transition table.

Statuses only move forward. Keeping a record in its current status is always
allowed (plain field edits); ``failed -> pending`` is the one backward step and
stands for an explicit user retry with a freshly signed permit.
"""

from typing import Dict, FrozenSet

from ..schemas.transactions import TransactionStatus
from .exceptions import InvalidTransition

S = TransactionStatus

ALLOWED_TRANSITIONS: Dict[TransactionStatus, FrozenSet[TransactionStatus]] = {
    S.DRAFT: frozenset({S.DRAFT, S.PENDING, S.SCHEDULED}),
    S.SCHEDULED: frozenset({S.SCHEDULED, S.PENDING, S.PROCESSING, S.COMPLETED, S.FAILED}),
    S.PENDING: frozenset({S.PENDING, S.PROCESSING, S.COMPLETED, S.FAILED}),
    S.PROCESSING: frozenset({S.PROCESSING, S.COMPLETED, S.FAILED}),
    S.FAILED: frozenset({S.FAILED, S.PENDING}),
    S.COMPLETED: frozenset({S.COMPLETED}),
}

#: Statuses a record may be created in.
INITIAL_STATUSES: FrozenSet[TransactionStatus] = frozenset({S.DRAFT, S.PENDING, S.SCHEDULED})


def can_transition(current: TransactionStatus, requested: TransactionStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS.get(current, frozenset())


def check_transition(current: TransactionStatus, requested: TransactionStatus) -> None:
    """
    Validate a status change.

    Raises:
        InvalidTransition: If ``requested`` is not reachable from ``current``.
    """
    if not can_transition(current, requested):
        raise InvalidTransition(current, requested)
