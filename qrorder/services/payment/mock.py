"""
Demo Payment Service Implementation

Used whenever no STRIPE_SECRET_KEY is configured. Lets the complete order
flow (place order -> create intent -> staff marks paid) run locally without
live payment credentials.

Behavior:
    - Synthesizes Stripe-like ids (pi_demo_xxx) and a fake client secret
    - Records provider "stripe-demo" on the order
    - Never accepts webhooks: there is no secret to verify them with
    - Optional simulated latency for load testing
"""

import asyncio
import logging
import random
import uuid
from typing import Optional

from qrorder.core.errors import WebhookSignatureError
from qrorder.domain import DemoProviderData
from qrorder.services.payment.base import (
    BasePaymentService,
    PaymentIntentResult,
    WebhookEvent,
)

logger = logging.getLogger(__name__)


class DemoPaymentService(BasePaymentService):
    """
    Demo implementation of the payment service.

    Attributes:
        base_provider: Name of the provider being stood in for
        min_latency: Minimum simulated response time in seconds
        max_latency: Maximum simulated response time in seconds
    """

    def __init__(
        self,
        base_provider: str = "stripe",
        min_latency: float = 0.0,
        max_latency: float = 0.0,
    ):
        self.base_provider = base_provider
        self.min_latency = min_latency
        self.max_latency = max_latency

        logger.info(
            f"DemoPaymentService initialized "
            f"(provider={self.provider_name}, latency={min_latency}-{max_latency}s)"
        )

    @property
    def provider_name(self) -> str:
        return f"{self.base_provider}-demo"

    @property
    def accepts_webhooks(self) -> bool:
        return False

    def _generate_payment_intent_id(self) -> str:
        """Generate a Stripe-like payment intent ID."""
        return f"pi_demo_{uuid.uuid4().hex[:24]}"

    async def _simulate_latency(self) -> float:
        """
        Simulate network latency.

        Returns:
            float: Actual latency in milliseconds
        """
        if self.max_latency <= 0:
            return 0.0
        latency = random.uniform(self.min_latency, self.max_latency)
        await asyncio.sleep(latency)
        return latency * 1000

    async def create_payment_intent(
        self,
        amount: int,
        currency: str,
        metadata: Optional[dict[str, str]] = None,
        description: Optional[str] = None,
    ) -> PaymentIntentResult:
        """
        Simulate creating a payment intent.

        The client secret is not usable with Stripe.js; it only marks the
        order as awaiting payment.
        """
        latency_ms = await self._simulate_latency()

        if amount <= 0:
            return PaymentIntentResult(
                success=False,
                error_message="Amount must be greater than 0",
                error_code="invalid_amount",
                response_time_ms=latency_ms,
            )

        payment_intent_id = self._generate_payment_intent_id()
        logger.info(f"Demo: Created payment intent {payment_intent_id} for {amount} {currency}")

        return PaymentIntentResult(
            success=True,
            provider=self.provider_name,
            provider_data=DemoProviderData(payment_intent_id=payment_intent_id),
            client_secret=f"demo_client_secret_{uuid.uuid4().hex[:16]}",
            amount=amount,
            currency=currency,
            response_time_ms=latency_ms,
        )

    def verify_webhook(
        self,
        payload: bytes,
        signature: Optional[str],
    ) -> WebhookEvent:
        """There is no signing secret in demo mode, so nothing verifies."""
        logger.warning("Demo: Refusing to verify webhook")
        raise WebhookSignatureError("Webhooks are not accepted in demo mode")

    async def health_check(self) -> bool:
        """Demo provider is always available."""
        return True
