"""
Order Endpoints

    POST  /api/orders                 optional auth    place an order
    GET   /api/orders                 auth             list (role-scoped)
    GET   /api/orders/{id}            optional auth    one order
    PATCH /api/orders/{id}/status     staff/admin      workflow status
    PATCH /api/orders/{id}/payment    staff/admin      payment override
    POST  /api/orders/{id}/cancel     owner or staff   cancel
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from qrorder.dependencies import get_engine, optional_identity, require_identity, require_staff
from qrorder.domain import Identity
from qrorder.schemas import (
    ApiResponse,
    ErrorResponse,
    OrderCreate,
    OrderCreated,
    OrderPaymentResponse,
    OrderResponse,
    OrderStatusResponse,
    PaymentResponse,
    PaymentStatusUpdate,
    StatusUpdate,
)
from qrorder.services.orders.engine import OrderLifecycleEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post(
    "",
    status_code=201,
    response_model=ApiResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Place Order",
)
async def create_order(
    order_data: OrderCreate,
    identity: Optional[Identity] = Depends(optional_identity),
    engine: OrderLifecycleEngine = Depends(get_engine),
) -> ApiResponse:
    """
    Place an order from a table (or without one).

    Guests may order without a token; a customer token attaches the order
    to that customer.
    """
    items = None
    if order_data.items is not None:
        items = [item.model_dump() for item in order_data.items]

    order = await engine.create_order(
        items=items,
        table_id=order_data.table_id,
        meta=order_data.meta,
        identity=identity,
    )
    return ApiResponse(message="Order placed successfully", data=OrderCreated.from_domain(order))


@router.get("", response_model=ApiResponse, summary="List Orders")
async def list_orders(
    table_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    identity: Identity = Depends(require_identity),
    engine: OrderLifecycleEngine = Depends(get_engine),
) -> ApiResponse:
    """Staff see every order (filterable); customers see their own."""
    orders = await engine.list_orders(identity, table_id=table_id, status=status)
    return ApiResponse(data=[OrderResponse.from_domain(order) for order in orders])


@router.get(
    "/{order_id}",
    response_model=ApiResponse,
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_order(
    order_id: str,
    identity: Optional[Identity] = Depends(optional_identity),
    engine: OrderLifecycleEngine = Depends(get_engine),
) -> ApiResponse:
    order = await engine.get_order(order_id, identity)
    return ApiResponse(data=OrderResponse.from_domain(order))


@router.patch("/{order_id}/status", response_model=ApiResponse, summary="Update Order Status")
async def update_order_status(
    order_id: str,
    body: StatusUpdate,
    identity: Identity = Depends(require_staff),
    engine: OrderLifecycleEngine = Depends(get_engine),
) -> ApiResponse:
    order = await engine.update_status(order_id, body.status)
    return ApiResponse(
        message="Order status updated",
        data=OrderStatusResponse(id=order.id, status=order.status.value),
    )


@router.patch("/{order_id}/payment", response_model=ApiResponse, summary="Override Payment Status")
async def update_payment_status(
    order_id: str,
    body: PaymentStatusUpdate,
    identity: Identity = Depends(require_staff),
    engine: OrderLifecycleEngine = Depends(get_engine),
) -> ApiResponse:
    order = await engine.update_payment(order_id, body.status)
    return ApiResponse(
        message="Payment status updated",
        data=OrderPaymentResponse(id=order.id, payment=PaymentResponse.from_domain(order.payment)),
    )


@router.post("/{order_id}/cancel", response_model=ApiResponse, summary="Cancel Order")
async def cancel_order(
    order_id: str,
    identity: Identity = Depends(require_identity),
    engine: OrderLifecycleEngine = Depends(get_engine),
) -> ApiResponse:
    order = await engine.cancel_order(order_id, identity)
    return ApiResponse(
        message="Order canceled",
        data=OrderStatusResponse(id=order.id, status=order.status.value),
    )
