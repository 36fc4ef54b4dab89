# Overview: Transaction status state machine.

"""
Transaction Lifecycle

STATE MACHINE:
    draft     --submit-->        pending
    draft     --delete-->        (removed)
    pending   --approve-->       approved
    pending   --reject-->        rejected
    approved  --cancel-->        cancelled      (purchase only)
    cancelled --move_to_draft--> draft
    cancelled --resubmit-->      pending

RULES:
1. No other transitions exist. rejected is terminal.
2. Only approve and cancel touch stock.
3. The status check happens inside the same unit of work as the mutation
   it guards, on a row read with lock_for_update.
"""

from __future__ import annotations

from typing import Literal

from ..models import Transaction, TRANSACTION_STATUSES
from ..validation import AlreadyProcessedError, InvalidInputError, InvalidTransitionError


Action = Literal["submit", "delete", "approve", "reject", "cancel", "move_to_draft", "resubmit"]

# action -> (required current status, resulting status)
TRANSITIONS: dict[str, tuple[str, str | None]] = {
    "submit": ("draft", "pending"),
    "delete": ("draft", None),
    "approve": ("pending", "approved"),
    "reject": ("pending", "rejected"),
    "cancel": ("approved", "cancelled"),
    "move_to_draft": ("cancelled", "draft"),
    "resubmit": ("cancelled", "pending"),
}

# Only these types may be cancelled
CANCELLABLE_TYPES = {"purchase"}

# Status in which line items and metadata may still be edited
EDITABLE_STATUSES = {"draft", "pending"}


def validate_status(status: str) -> None:
    if status not in TRANSACTION_STATUSES:
        raise InvalidInputError(
            f"Invalid status '{status}'. Must be one of: {', '.join(TRANSACTION_STATUSES)}"
        )


def can_transition(from_status: str, action: str) -> bool:
    validate_status(from_status)
    rule = TRANSITIONS.get(action)
    return rule is not None and rule[0] == from_status


def target_status(action: str) -> str | None:
    return TRANSITIONS[action][1]


def require_transition(transaction: Transaction, action: str) -> str | None:
    """
    Check that action is allowed from the transaction's status.

    Returns the status the transaction moves to (None for delete).
    Approve and reject on a non-pending transaction raise
    AlreadyProcessedError; any other mismatch raises InvalidTransitionError.
    """
    if action not in TRANSITIONS:
        raise InvalidInputError(f"Unknown action '{action}'")

    if action == "cancel" and transaction.type not in CANCELLABLE_TYPES:
        raise InvalidTransitionError("Only purchase transactions can be cancelled")

    if not can_transition(transaction.status, action):
        required = TRANSITIONS[action][0]
        if action in ("approve", "reject"):
            raise AlreadyProcessedError(
                f"Transaction already processed (status: {transaction.status})"
            )
        raise InvalidTransitionError(
            f"Cannot {action.replace('_', ' ')} a {transaction.status} transaction; "
            f"only {required} transactions allow it"
        )
    return target_status(action)


def require_editable(transaction: Transaction) -> None:
    if transaction.status not in EDITABLE_STATUSES:
        raise InvalidTransitionError("Can only edit pending or draft transactions")
