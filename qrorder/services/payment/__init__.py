"""
Payment Service Factory

Provides a single entry point for obtaining a payment service instance.
The factory pattern allows the rest of the application to remain agnostic
about which implementation is being used.

Usage:
    from qrorder.services.payment import build_payment_service

    payment_service = build_payment_service(settings)
    result = await payment_service.create_payment_intent(798, "usd", {"order_id": "..."})

Switching:
    - no STRIPE_SECRET_KEY → DemoPaymentService ("stripe-demo")
    - STRIPE_SECRET_KEY set → StripePaymentService
    - STRIPE_WEBHOOK_SECRET additionally enables webhook processing
"""

import logging

from qrorder.core.config import Settings
from qrorder.services.payment.base import (
    BasePaymentService,
    PaymentIntentResult,
    WebhookEvent,
)
from qrorder.services.payment.mock import DemoPaymentService
from qrorder.services.payment.stripe import StripePaymentService

logger = logging.getLogger(__name__)


def build_payment_service(settings: Settings) -> BasePaymentService:
    """
    Build the configured payment service instance.

    Returns:
        BasePaymentService: Demo or Stripe implementation
    """
    if not settings.payments_configured:
        logger.info("Payment Service: Using DemoPaymentService (no STRIPE_SECRET_KEY)")
        return DemoPaymentService()

    logger.info(f"Payment Service: Using StripePaymentService ({settings.env_mode.value} mode)")
    if not settings.stripe_webhook_secret:
        logger.warning("STRIPE_WEBHOOK_SECRET not set: webhooks will be acknowledged but ignored")

    return StripePaymentService(
        api_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
        api_version=settings.stripe_api_version,
    )


__all__ = [
    "build_payment_service",
    "BasePaymentService",
    "PaymentIntentResult",
    "WebhookEvent",
    "DemoPaymentService",
    "StripePaymentService",
]
