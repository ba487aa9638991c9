"""
Payment Service Abstract Base Class

Defines the interface contract for all payment service implementations.
Both DemoPaymentService and StripePaymentService implement these methods,
so the order engine behaves identically whichever one it was given.

Design Pattern: Strategy Pattern
    - The engine receives a payment service at construction
    - Tests substitute their own implementation

Version: 1.0.0
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from qrorder.domain import ProviderData


@dataclass
class PaymentIntentResult:
    """
    Standardized result from creating a payment intent.

    Attributes:
        success: Whether the intent was created
        provider: Provider name recorded on the order (e.g. "stripe", "stripe-demo")
        provider_data: Typed provider data to persist on the order
        client_secret: Secret the client uses to confirm the payment
        amount: Amount in minor units (cents)
        currency: Currency code (e.g., "usd")
        error_message: Error description if creation failed
        error_code: Machine-readable error code
        response_time_ms: Time taken by the provider
    """
    success: bool
    provider: Optional[str] = None
    provider_data: Optional[ProviderData] = None
    client_secret: Optional[str] = None
    amount: Optional[int] = None
    currency: str = "usd"
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    response_time_ms: float = 0.0

    @property
    def payment_intent_id(self) -> Optional[str]:
        return self.provider_data.payment_intent_id if self.provider_data else None


@dataclass
class WebhookEvent:
    """A verified provider event."""
    id: Optional[str]
    type: str
    data_object: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "WebhookEvent":
        data = payload.get("data") or {}
        return cls(
            id=payload.get("id"),
            type=payload.get("type", ""),
            data_object=data.get("object") or {},
        )


class BasePaymentService(ABC):
    """
    Abstract base class for payment services.

    All payment service implementations must inherit from this class
    and implement all abstract methods.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the payment provider.

        Returns:
            str: Provider name (e.g., "stripe", "stripe-demo")
        """
        pass

    @property
    @abstractmethod
    def accepts_webhooks(self) -> bool:
        """
        Whether provider webhooks can be verified and processed.

        False in demo mode and when no signing secret is configured; the
        webhook endpoint then acknowledges without touching any order.
        """
        pass

    @abstractmethod
    async def create_payment_intent(
        self,
        amount: int,
        currency: str,
        metadata: Optional[dict[str, str]] = None,
        description: Optional[str] = None,
    ) -> PaymentIntentResult:
        """
        Create a payment intent for client-side confirmation.

        Args:
            amount: Amount in minor units (cents)
            currency: Three-letter currency code
            metadata: Key-value data attached to the intent; must include
                the order id so webhooks can find the order again
            description: Statement description

        Returns:
            PaymentIntentResult: Contains client_secret for the frontend
        """
        pass

    @abstractmethod
    def verify_webhook(
        self,
        payload: bytes,
        signature: Optional[str],
    ) -> WebhookEvent:
        """
        Verify and parse a webhook from the payment provider.

        Args:
            payload: Raw, unparsed request body bytes
            signature: Signature header from the request

        Raises:
            WebhookSignatureError: signature missing, malformed or wrong
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify connectivity to the payment service.

        Returns:
            bool: True if service is reachable and operational
        """
        pass
