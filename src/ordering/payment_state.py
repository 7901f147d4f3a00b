"""Canonical payment states shared by both order kinds.

Every rail-specific signal is reduced to one of three states before it can
change an order. Legal moves::

    PENDING -> PAID
    PENDING -> FAILED
    PAID    -> FAILED     (reversal, e.g. a chargeback)

PAID -> PENDING is never legal. FAILED is final. Asking for the state an
order already holds is not an error: it is reported as "already <state>".
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class PaymentState(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


_VALID_TRANSITIONS = {
    PaymentState.PENDING: {PaymentState.PAID, PaymentState.FAILED},
    PaymentState.PAID: {PaymentState.FAILED},
    PaymentState.FAILED: set(),
}


def can_transition(current: PaymentState, target: PaymentState) -> bool:
    return target in _VALID_TRANSITIONS[current]


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a state change request.

    ``changed`` is False for idempotent replays; ``message`` then reads
    "already <state>".
    """

    order: Any
    previous: str
    current: str
    changed: bool

    @property
    def already(self) -> bool:
        return not self.changed

    @property
    def message(self) -> str:
        return f"{self.previous} -> {self.current}" if self.changed else f"already {self.current}"
