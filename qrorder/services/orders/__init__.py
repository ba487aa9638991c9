"""
Order Lifecycle Engine package.

Usage:
    from qrorder.services.orders import OrderLifecycleEngine

    engine = OrderLifecycleEngine.from_settings(settings, repos.orders, repos.tables, payments)
    order = await engine.create_order(items=[{"name": "Pho", "price": "3.99", "qty": 2}])
"""

from qrorder.services.orders.engine import OrderLifecycleEngine, PaymentIntentOutcome
from qrorder.services.orders.transitions import (
    PermissiveTransitionPolicy,
    StrictTransitionPolicy,
    TransitionPolicy,
)
from qrorder.services.orders.webhooks import PaymentWebhookProcessor, WebhookOutcome

__all__ = [
    "OrderLifecycleEngine",
    "PaymentIntentOutcome",
    "TransitionPolicy",
    "PermissiveTransitionPolicy",
    "StrictTransitionPolicy",
    "PaymentWebhookProcessor",
    "WebhookOutcome",
]
