"""
Payment Webhook Processing

Reconciles order payment status with provider events.

Delivery contract (providers deliver at least once and retry on non-2xx):
    - signature failure      -> WebhookSignatureError, nothing is touched
    - anything after that    -> acknowledged, even if the order is unknown
                                or the write fails (logged instead)
    - redelivered events     -> no-op

Handled events:
    payment_intent.succeeded       order via metadata.order_id -> paid
    payment_intent.payment_failed  order via metadata.order_id -> failed
    charge.refunded                order via stored intent id  -> refunded
"""

import logging
from dataclasses import dataclass
from typing import Optional

from qrorder.domain import Order, Payment, PaymentStatus, StripeProviderData
from qrorder.repositories.base import OrderRepository
from qrorder.services.orders.guards import bounded
from qrorder.services.orders.transitions import PaymentMove, webhook_payment_move
from qrorder.services.payment.base import BasePaymentService, WebhookEvent

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"
CHARGE_REFUNDED = "charge.refunded"

EVENT_TARGETS = {
    PAYMENT_SUCCEEDED: PaymentStatus.PAID,
    PAYMENT_FAILED: PaymentStatus.FAILED,
    CHARGE_REFUNDED: PaymentStatus.REFUNDED,
}


@dataclass
class WebhookOutcome:
    """What happened to one delivery. ``received`` is always True."""
    received: bool = True
    event_type: Optional[str] = None
    order_id: Optional[str] = None
    applied: bool = False

    def to_dict(self) -> dict:
        return {
            "received": self.received,
            "event_type": self.event_type,
            "order_id": self.order_id,
            "applied": self.applied,
        }


class PaymentWebhookProcessor:
    """Verifies provider events and applies them to orders."""

    def __init__(
        self,
        orders: OrderRepository,
        payments: BasePaymentService,
        persistence_timeout: float = 5.0,
        max_update_attempts: int = 3,
    ):
        self.orders = orders
        self.payments = payments
        self.persistence_timeout = persistence_timeout
        self.max_update_attempts = max_update_attempts

    async def handle(self, raw_body: bytes, signature: Optional[str]) -> WebhookOutcome:
        """
        Process one webhook delivery.

        Raises:
            WebhookSignatureError: the body could not be verified
        """
        if not self.payments.accepts_webhooks:
            logger.info(f"Webhook received but {self.payments.provider_name} does not process webhooks")
            return WebhookOutcome()

        event = self.payments.verify_webhook(raw_body, signature)
        logger.info(f"Webhook verified: {event.type} ({event.id})")

        target = EVENT_TARGETS.get(event.type)
        if target is None:
            logger.info(f"Unhandled webhook event type: {event.type}")
            return WebhookOutcome(event_type=event.type)

        try:
            return await self._apply(event, target)
        except Exception:
            # Failing here would only make the provider redeliver an event
            # that cannot succeed.
            logger.exception(f"Failed to apply {event.type} ({event.id})")
            return WebhookOutcome(event_type=event.type)

    async def _find_order(self, event: WebhookEvent) -> tuple[Optional[Order], Optional[str]]:
        """Locate the order an event refers to. Returns (order, intent id)."""
        obj = event.data_object

        if event.type == CHARGE_REFUNDED:
            payment_intent_id = obj.get("payment_intent")
            if not payment_intent_id:
                return None, None
            order = await bounded(
                self.orders.find_by_payment_intent(payment_intent_id),
                self.persistence_timeout,
                "Order lookup",
            )
            return order, payment_intent_id

        metadata = obj.get("metadata") or {}
        order_id = metadata.get("order_id") or metadata.get("orderId")
        if not order_id:
            return None, obj.get("id")
        order = await bounded(self.orders.get(str(order_id)), self.persistence_timeout, "Order lookup")
        return order, obj.get("id")

    async def _apply(self, event: WebhookEvent, target: PaymentStatus) -> WebhookOutcome:
        order, payment_intent_id = await self._find_order(event)
        if order is None:
            logger.warning(f"{event.type}: no matching order (intent={payment_intent_id})")
            return WebhookOutcome(event_type=event.type)

        move = None
        provider = self.payments.provider_name

        def mutate(current: Order) -> Optional[bool]:
            nonlocal move
            move = webhook_payment_move(current.payment.status if current.payment else None, target)
            if move != PaymentMove.APPLY:
                return False
            if current.payment is None:
                current.payment = Payment(provider=provider)
            if current.payment.provider is None:
                current.payment.provider = provider
            if payment_intent_id and current.payment.payment_intent_id != payment_intent_id:
                # The intent that settled wins over a newer one created since
                current.payment.provider_data = StripeProviderData(payment_intent_id=payment_intent_id)
            current.payment.status = target
            return True

        updated = await bounded(
            self.orders.modify(order.id, mutate, attempts=self.max_update_attempts),
            self.persistence_timeout,
            "Order update",
        )

        if updated is None:
            logger.warning(f"{event.type}: order {order.id} disappeared before update")
            return WebhookOutcome(event_type=event.type, order_id=order.id)

        if move == PaymentMove.APPLY:
            logger.info(f"Order {updated.order_number}: payment -> {target.value}")
        elif move == PaymentMove.REJECT:
            current = updated.payment.status.value if updated.payment else "none"
            logger.warning(
                f"Order {updated.order_number}: ignoring {event.type} "
                f"(payment is {current})"
            )

        return WebhookOutcome(
            event_type=event.type,
            order_id=updated.id,
            applied=move == PaymentMove.APPLY,
        )
