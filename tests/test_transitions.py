import pytest

from qrorder.core.errors import ValidationFailed
from qrorder.domain import OrderStatus, PaymentStatus
from qrorder.services.orders.transitions import (
    PaymentMove,
    PermissiveTransitionPolicy,
    StrictTransitionPolicy,
    build_transition_policy,
    parse_order_status,
    parse_payment_status,
    webhook_payment_move,
)


def test_parse_order_status():
    assert parse_order_status("ready") is OrderStatus.READY
    with pytest.raises(ValidationFailed) as exc_info:
        parse_order_status("cooking")
    assert exc_info.value.errors[0].field == "status"
    assert "placed" in exc_info.value.message


def test_parse_payment_status():
    assert parse_payment_status("refunded") is PaymentStatus.REFUNDED
    with pytest.raises(ValidationFailed):
        parse_payment_status("PAID")


def test_permissive_policy_allows_everything():
    policy = PermissiveTransitionPolicy()
    for current in OrderStatus:
        for target in OrderStatus:
            assert policy.allows(current, target)


@pytest.mark.parametrize("current, target", [
    (OrderStatus.PLACED, OrderStatus.PREPARING),
    (OrderStatus.PREPARING, OrderStatus.READY),
    (OrderStatus.READY, OrderStatus.SERVED),
    (OrderStatus.SERVED, OrderStatus.COMPLETED),
    (OrderStatus.PLACED, OrderStatus.CANCELED),
    (OrderStatus.SERVED, OrderStatus.CANCELED),
    (OrderStatus.READY, OrderStatus.READY),
])
def test_strict_policy_allowed_moves(current, target):
    assert StrictTransitionPolicy().allows(current, target)


@pytest.mark.parametrize("current, target", [
    (OrderStatus.PLACED, OrderStatus.READY),
    (OrderStatus.SERVED, OrderStatus.PREPARING),
    (OrderStatus.CANCELED, OrderStatus.PLACED),
    (OrderStatus.COMPLETED, OrderStatus.CANCELED),
])
def test_strict_policy_rejected_moves(current, target):
    assert not StrictTransitionPolicy().allows(current, target)


def test_build_transition_policy():
    assert isinstance(build_transition_policy(True), StrictTransitionPolicy)
    assert isinstance(build_transition_policy(False), PermissiveTransitionPolicy)


@pytest.mark.parametrize("current, target, move", [
    (None, PaymentStatus.PAID, PaymentMove.APPLY),
    (PaymentStatus.PENDING, PaymentStatus.PAID, PaymentMove.APPLY),
    (PaymentStatus.PENDING, PaymentStatus.FAILED, PaymentMove.APPLY),
    (PaymentStatus.PAID, PaymentStatus.REFUNDED, PaymentMove.APPLY),
    (PaymentStatus.PAID, PaymentStatus.PAID, PaymentMove.NOOP),
    (PaymentStatus.REFUNDED, PaymentStatus.REFUNDED, PaymentMove.NOOP),
    (PaymentStatus.REFUNDED, PaymentStatus.PAID, PaymentMove.REJECT),
    (PaymentStatus.PENDING, PaymentStatus.REFUNDED, PaymentMove.REJECT),
    (PaymentStatus.PAID, PaymentStatus.FAILED, PaymentMove.REJECT),
])
def test_webhook_payment_moves(current, target, move):
    assert webhook_payment_move(current, target) is move
