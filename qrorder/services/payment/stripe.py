"""
Stripe Payment Service Implementation

Production implementation using the official Stripe Python SDK.
Used whenever STRIPE_SECRET_KEY is configured.

Requirements:
    - STRIPE_SECRET_KEY to create payment intents
    - STRIPE_WEBHOOK_SECRET to accept webhooks (without it webhooks are
      acknowledged but never processed)

Security Notes:
    - The API key is passed per request; the SDK's global state is untouched
    - Webhook signatures are checked against the raw request body
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Optional

import stripe

from qrorder.core.errors import WebhookSignatureError
from qrorder.domain import StripeProviderData
from qrorder.services.payment.base import (
    BasePaymentService,
    PaymentIntentResult,
    WebhookEvent,
)

logger = logging.getLogger(__name__)


class StripePaymentService(BasePaymentService):
    """
    Production Stripe payment service implementation.

    Example:
        >>> service = StripePaymentService(api_key="sk_test_...", webhook_secret="whsec_...")
        >>> result = await service.create_payment_intent(798, "usd", {"order_id": "abc"})
    """

    def __init__(
        self,
        api_key: str,
        webhook_secret: Optional[str] = None,
        api_version: str = "2023-10-16",
        webhook_tolerance: int = 300,
    ):
        """
        Raises:
            ValueError: If no API key is given
        """
        if not api_key:
            raise ValueError("A Stripe API key is required for StripePaymentService")

        self._api_key = api_key
        self._webhook_secret = webhook_secret
        self._api_version = api_version
        self._webhook_tolerance = webhook_tolerance

        logger.info(
            f"StripePaymentService initialized "
            f"(api_version={api_version}, webhooks={'on' if webhook_secret else 'off'})"
        )

    @property
    def provider_name(self) -> str:
        return "stripe"

    @property
    def accepts_webhooks(self) -> bool:
        return bool(self._webhook_secret)

    async def create_payment_intent(
        self,
        amount: int,
        currency: str,
        metadata: Optional[dict[str, str]] = None,
        description: Optional[str] = None,
    ) -> PaymentIntentResult:
        """
        Create a PaymentIntent for client-side confirmation.

        Returns a client_secret that the frontend uses with Stripe.js
        to complete the payment.
        """
        start_time = datetime.now()

        try:
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.create,
                api_key=self._api_key,
                stripe_version=self._api_version,
                amount=amount,
                currency=currency,
                metadata=metadata or {},
                description=description,
                automatic_payment_methods={"enabled": True},
            )

            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
            logger.info(f"Stripe: PaymentIntent created - {intent.id} - status={intent.status}")

            return PaymentIntentResult(
                success=True,
                provider=self.provider_name,
                provider_data=StripeProviderData(
                    payment_intent_id=intent.id,
                    client_secret=intent.client_secret,
                ),
                client_secret=intent.client_secret,
                amount=intent.amount,
                currency=intent.currency,
                response_time_ms=elapsed_ms,
            )

        except stripe.InvalidRequestError as e:
            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
            logger.error(f"Stripe: Invalid request - {e}")

            return PaymentIntentResult(
                success=False,
                error_message=str(e),
                error_code="invalid_request",
                response_time_ms=elapsed_ms,
            )

        except stripe.AuthenticationError as e:
            # API key issues
            logger.critical(f"Stripe: Authentication failed - {e}")

            return PaymentIntentResult(
                success=False,
                error_message="Payment service configuration error",
                error_code="authentication_error",
            )

        except stripe.APIConnectionError as e:
            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
            logger.error(f"Stripe: Connection error - {e}")

            return PaymentIntentResult(
                success=False,
                error_message="Payment service temporarily unavailable",
                error_code="connection_error",
                response_time_ms=elapsed_ms,
            )

        except stripe.StripeError as e:
            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
            logger.error(f"Stripe: Failed to create PaymentIntent - {e}")

            return PaymentIntentResult(
                success=False,
                error_message="Payment processing error",
                error_code="stripe_error",
                response_time_ms=elapsed_ms,
            )

    def verify_webhook(
        self,
        payload: bytes,
        signature: Optional[str],
    ) -> WebhookEvent:
        """
        Verify and parse a Stripe webhook event.

        Args:
            payload: Raw request body, exactly as received
            signature: Stripe-Signature header value

        Raises:
            WebhookSignatureError: if verification fails for any reason
        """
        if not self._webhook_secret:
            raise WebhookSignatureError("Webhook signing secret not configured")
        if not signature:
            raise WebhookSignatureError("Missing Stripe-Signature header")

        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError:
            raise WebhookSignatureError("Webhook payload is not valid UTF-8")

        try:
            stripe.WebhookSignature.verify_header(
                body,
                signature,
                self._webhook_secret,
                self._webhook_tolerance,
            )
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Stripe: Webhook signature invalid - {e}")
            raise WebhookSignatureError(detail=str(e))

        try:
            event = json.loads(body)
        except ValueError:
            raise WebhookSignatureError("Webhook payload is not valid JSON")
        if not isinstance(event, dict):
            raise WebhookSignatureError("Webhook payload is not an event object")

        logger.debug(f"Stripe: Webhook verified - {event.get('type')}")
        return WebhookEvent.from_payload(event)

    async def health_check(self) -> bool:
        """
        Verify Stripe API connectivity.

        Makes a lightweight API call to verify credentials and connectivity.
        """
        try:
            await asyncio.to_thread(stripe.Account.retrieve, api_key=self._api_key)
            logger.debug("Stripe: Health check passed")
            return True

        except stripe.StripeError as e:
            logger.error(f"Stripe: Health check failed - {e}")
            return False
