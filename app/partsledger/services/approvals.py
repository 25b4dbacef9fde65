"""
Approval workflow for manager-submitted ledger entries.

Entries created by a manager start ``PENDING`` and are decided once by an
owner::

    PENDING -> APPROVED
    PENDING -> REJECTED

Both outcomes are terminal.  Each decision records who made it and when, so
the ledger keeps its own audit trail instead of a bare status flag.
"""

from __future__ import annotations

from datetime import datetime

from partsledger.models import Transaction, TransactionStatus

_TRANSITIONS: dict[TransactionStatus, frozenset[TransactionStatus]] = {
    TransactionStatus.PENDING: frozenset(
        {TransactionStatus.APPROVED, TransactionStatus.REJECTED}
    ),
    TransactionStatus.APPROVED: frozenset(),
    TransactionStatus.REJECTED: frozenset(),
}


class InvalidTransitionError(ValueError):
    """Raised when a decision is not allowed from the entry's current status."""


def can_transition(current: TransactionStatus, target: TransactionStatus) -> bool:
    return target in _TRANSITIONS[current]


def decide(
    transaction: Transaction,
    decision: TransactionStatus,
    actor: str,
    now: datetime,
) -> Transaction:
    """Return a copy of *transaction* moved to *decision*.

    Raises
    ------
    InvalidTransitionError
        If *transaction* is not pending or *decision* is not a final state.
    """
    if not can_transition(transaction.status, decision):
        raise InvalidTransitionError(
            f"Cannot move transaction {transaction.id} from "
            f"{transaction.status.value} to {decision.value}"
        )
    return transaction.model_copy(
        update={"status": decision, "decided_by": actor, "decided_at": now}
    )
