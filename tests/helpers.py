"""Test doubles and builders shared by the test modules."""

import hashlib
import hmac
import json
import time
from typing import Any, Optional

from qrorder.core.config import EnvironmentMode, Settings, StorageBackend
from qrorder.domain import Identity, Role, StripeProviderData
from qrorder.services.payment.base import BasePaymentService, PaymentIntentResult, WebhookEvent

WEBHOOK_SECRET = "whsec_test_0123456789"

ALICE = Identity(user_id="alice", role=Role.CUSTOMER)
BOB = Identity(user_id="bob", role=Role.CUSTOMER)
STAFF = Identity(user_id="kim", role=Role.STAFF)
ADMIN = Identity(user_id="root", role=Role.ADMIN)

PHO = {"name": "Pho", "price": 3.99, "qty": 2}
TEA = {"name": "Tea", "price": "1.50"}


class FakePaymentService(BasePaymentService):
    """Records intent requests; can be told to fail."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[dict[str, Any]] = []

    @property
    def provider_name(self) -> str:
        return "stripe"

    @property
    def accepts_webhooks(self) -> bool:
        return False

    async def create_payment_intent(self, amount, currency, metadata=None, description=None):
        self.calls.append({"amount": amount, "currency": currency, "metadata": metadata})
        if self.fail:
            return PaymentIntentResult(success=False, error_message="card_declined", error_code="stripe_error")
        intent_id = f"pi_fake_{len(self.calls)}"
        return PaymentIntentResult(
            success=True,
            provider="stripe",
            provider_data=StripeProviderData(payment_intent_id=intent_id, client_secret=f"{intent_id}_secret"),
            client_secret=f"{intent_id}_secret",
            amount=amount,
            currency=currency,
        )

    def verify_webhook(self, payload: bytes, signature: Optional[str]) -> WebhookEvent:
        raise NotImplementedError

    async def health_check(self) -> bool:
        return True


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header the way Stripe does."""
    timestamp = timestamp or int(time.time())
    digest = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def stripe_event(event_type: str, obj: dict[str, Any], event_id: str = "evt_test_1") -> str:
    return json.dumps({"id": event_id, "object": "event", "type": event_type, "data": {"object": obj}})


def make_settings(**overrides) -> Settings:
    values = {
        "env_mode": EnvironmentMode.DEVELOPMENT,
        "storage_backend": StorageBackend.MEMORY,
        "access_token_secret": "test-access-secret",
        "refresh_token_secret": "test-refresh-secret",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)
