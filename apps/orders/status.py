"""
Order status state machine.

    pending -> processing -> shipped -> delivered
    pending | processing -> cancelled

`delivered` and `cancelled` are terminal. Nothing ever moves backwards.
"""
from apps.utils.exceptions import InvalidTransition
from .models.order import Order

Status = Order.Status

ALLOWED_TRANSITIONS = {
    Status.PENDING: frozenset({Status.PROCESSING, Status.CANCELLED}),
    Status.PROCESSING: frozenset({Status.SHIPPED, Status.CANCELLED}),
    Status.SHIPPED: frozenset({Status.DELIVERED}),
    Status.DELIVERED: frozenset(),
    Status.CANCELLED: frozenset(),
}

CANCELLABLE_STATUSES = frozenset({Status.PENDING, Status.PROCESSING})


def can_transition(current, new) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(current, new) -> bool:
    """
    Returns False when `new` equals `current` (idempotent no-op),
    True for a legal move, raises InvalidTransition otherwise.
    """
    if current == new:
        return False
    if not can_transition(current, new):
        raise InvalidTransition(current, new)
    return True


def is_cancellable(status) -> bool:
    return status in CANCELLABLE_STATUSES
