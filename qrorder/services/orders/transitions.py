"""
Status Transition Rules

Order status changes all pass through one predicate, TransitionPolicy.allows.
The default policy is permissive: staff may set any known status from any
status (useful for correcting mistakes). StrictTransitionPolicy enforces the
kitchen workflow and can be swapped in through settings without touching
callers.

Payment status has two paths:
    - staff override: any status to any status
    - provider webhooks: only the moves in WEBHOOK_PAYMENT_TRANSITIONS
"""

import enum
from abc import ABC, abstractmethod
from typing import Any, Optional

from qrorder.core.errors import ValidationFailed
from qrorder.domain import OrderStatus, PaymentStatus

WORKFLOW = (
    OrderStatus.PLACED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.SERVED,
    OrderStatus.COMPLETED,
)
TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELED})


def parse_order_status(value: Any, field: str = "status") -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        valid = ", ".join(s.value for s in OrderStatus)
        raise ValidationFailed.for_field(field, f"Status must be one of: {valid}")


def parse_payment_status(value: Any, field: str = "status") -> PaymentStatus:
    try:
        return PaymentStatus(value)
    except ValueError:
        valid = ", ".join(s.value for s in PaymentStatus)
        raise ValidationFailed.for_field(field, f"Payment status must be one of: {valid}")


# =============================================================================
# ORDER STATUS
# =============================================================================

class TransitionPolicy(ABC):
    """Decides whether an order may move from one status to another."""

    name: str = "base"

    @abstractmethod
    def allows(self, current: OrderStatus, target: OrderStatus) -> bool:
        pass


class PermissiveTransitionPolicy(TransitionPolicy):
    """Any known status from any status."""

    name = "permissive"

    def allows(self, current: OrderStatus, target: OrderStatus) -> bool:
        return True


class StrictTransitionPolicy(TransitionPolicy):
    """
    One step forward along WORKFLOW at a time; canceled from any
    non-terminal status; setting the current status again is allowed.
    """

    name = "strict"

    def allows(self, current: OrderStatus, target: OrderStatus) -> bool:
        if current == target:
            return True
        if current in TERMINAL_STATUSES:
            return False
        if target == OrderStatus.CANCELED:
            return True
        position = WORKFLOW.index(current)
        return position + 1 < len(WORKFLOW) and WORKFLOW[position + 1] == target


def build_transition_policy(strict: bool) -> TransitionPolicy:
    return StrictTransitionPolicy() if strict else PermissiveTransitionPolicy()


# =============================================================================
# PAYMENT STATUS (WEBHOOK PATH)
# =============================================================================

class PaymentMove(str, enum.Enum):
    APPLY = "apply"
    NOOP = "noop"
    REJECT = "reject"


WEBHOOK_PAYMENT_TRANSITIONS: dict[Optional[PaymentStatus], frozenset[PaymentStatus]] = {
    None: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED}),
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED}),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
}


def webhook_payment_move(current: Optional[PaymentStatus], target: PaymentStatus) -> PaymentMove:
    """
    Classify a provider-driven payment change.

    Redelivered events land on the status they already produced and are
    reported as NOOP.
    """
    if current == target:
        return PaymentMove.NOOP
    if target in WEBHOOK_PAYMENT_TRANSITIONS.get(current, frozenset()):
        return PaymentMove.APPLY
    return PaymentMove.REJECT
