"""
Payment Endpoints

    POST /api/payments/create-intent   auth            intent for an order
    POST /api/payments/webhook         provider only   signed provider events

The webhook route reads the raw body: the signature covers the exact bytes
the provider sent, so the body must not be parsed before verification.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, Request

from qrorder.dependencies import get_engine, require_identity
from qrorder.domain import Identity
from qrorder.schemas import ApiResponse, ErrorResponse, PaymentIntentCreate, PaymentIntentResponse
from qrorder.services.orders.engine import OrderLifecycleEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post(
    "/create-intent",
    response_model=ApiResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Create Payment Intent",
)
async def create_payment_intent(
    body: PaymentIntentCreate,
    identity: Identity = Depends(require_identity),
    engine: OrderLifecycleEngine = Depends(get_engine),
) -> ApiResponse:
    """Returns the client secret the frontend confirms the payment with."""
    outcome = await engine.create_payment_intent(body.order_id, identity, currency=body.currency)
    return ApiResponse(
        message="Payment intent created",
        data=PaymentIntentResponse(**outcome.to_dict()),
    )


@router.post("/webhook", summary="Payment Provider Webhook")
async def payment_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    engine: OrderLifecycleEngine = Depends(get_engine),
) -> dict[str, Any]:
    """
    Receive provider events.

    Answers 400 only when the signature does not verify; every verified
    event is acknowledged so the provider stops redelivering it.
    """
    body = await request.body()
    outcome = await engine.handle_webhook(body, stripe_signature)
    return outcome.to_dict()
