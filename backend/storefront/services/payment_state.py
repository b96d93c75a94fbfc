"""Payment state machine."""
from typing import Dict, FrozenSet

from ..exceptions import InvalidStateTransitionError
from ..models.payments import PaymentStatus

PAYMENT_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED}),
    PaymentStatus.PROCESSING: frozenset(),  # reserved for out-of-band settlement
    PaymentStatus.COMPLETED: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}

# completed still allows the refund transition but counts as terminal for processing
TERMINAL_STATES = frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED, PaymentStatus.REFUNDED})


def can_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    return PaymentStatus(target) in PAYMENT_TRANSITIONS.get(PaymentStatus(current), frozenset())


def assert_payment_transition(current: PaymentStatus, target: PaymentStatus) -> None:
    if not can_transition(current, target):
        raise InvalidStateTransitionError(PaymentStatus(current).value, PaymentStatus(target).value)
