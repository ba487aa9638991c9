"""
Pydantic Schemas for Request/Response Validation

Request models are deliberately loose about line-item values (price and
qty accept numbers or numeric strings): the order engine owns those rules
and reports them per field, e.g. ``items[2].price``.

Every response is wrapped in ApiResponse (``success``/``message``/``data``);
errors use ErrorResponse.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from qrorder.domain import Order, OrderLine, Payment, Role, Table


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class OrderItemIn(BaseModel):
    """Single line as sent by the client; values are validated by the engine."""
    menu_item_id: Optional[str] = Field(None, examples=["64f1c0ffee"])
    name: Optional[str] = Field(None, examples=["Pho Bo"])
    price: Any = Field(None, examples=[3.99])
    qty: Any = Field(None, examples=[2])
    note: Optional[str] = Field(None, max_length=500)


class OrderCreate(BaseModel):
    """Request schema for placing an order."""
    items: Optional[List[OrderItemIn]] = None
    table_id: Optional[str] = Field(None, examples=["a1b2c3"])
    meta: Optional[Dict[str, Any]] = Field(None, examples=[{"qr_slug": "table-4"}])


class StatusUpdate(BaseModel):
    status: str = Field(..., examples=["preparing"])


class PaymentStatusUpdate(BaseModel):
    status: str = Field(..., examples=["paid"])


class PaymentIntentCreate(BaseModel):
    order_id: str = Field(..., min_length=1)
    currency: Optional[str] = Field(None, examples=["usd"])


class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class DevTokenRequest(BaseModel):
    """Development-only token request."""
    user_id: str = Field(..., min_length=1, max_length=64)
    role: Role = Role.CUSTOMER


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class OrderLineResponse(BaseModel):
    menu_item_id: Optional[str]
    name: str
    price: float
    qty: int
    note: str

    @classmethod
    def from_domain(cls, line: OrderLine) -> "OrderLineResponse":
        return cls(
            menu_item_id=line.menu_item_id,
            name=line.name,
            price=float(line.price),
            qty=line.qty,
            note=line.note,
        )


class PaymentResponse(BaseModel):
    """Payment state as shown to clients. Client secrets are never echoed."""
    status: str
    provider: Optional[str]
    payment_intent_id: Optional[str]

    @classmethod
    def from_domain(cls, payment: Optional[Payment]) -> Optional["PaymentResponse"]:
        if payment is None:
            return None
        return cls(
            status=payment.status.value,
            provider=payment.provider,
            payment_intent_id=payment.payment_intent_id,
        )


class OrderResponse(BaseModel):
    """Response schema for a single order."""
    id: str
    order_number: str
    table_id: Optional[str]
    customer_id: Optional[str]
    items: List[OrderLineResponse]
    totals: float
    status: str
    payment: Optional[PaymentResponse]
    meta: Dict[str, Any]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_domain(cls, order: Order) -> "OrderResponse":
        return cls(
            id=order.id,
            order_number=order.order_number,
            table_id=order.table_id,
            customer_id=order.customer_id,
            items=[OrderLineResponse.from_domain(line) for line in order.items],
            totals=float(order.totals),
            status=order.status.value,
            payment=PaymentResponse.from_domain(order.payment),
            meta=order.meta,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class OrderCreated(BaseModel):
    """Summary returned after placing an order."""
    id: str
    order_number: str
    status: str
    totals: float
    created_at: Optional[datetime]

    @classmethod
    def from_domain(cls, order: Order) -> "OrderCreated":
        return cls(
            id=order.id,
            order_number=order.order_number,
            status=order.status.value,
            totals=float(order.totals),
            created_at=order.created_at,
        )


class OrderStatusResponse(BaseModel):
    id: str
    status: str


class OrderPaymentResponse(BaseModel):
    id: str
    payment: Optional[PaymentResponse]


class PaymentIntentResponse(BaseModel):
    order_id: str
    client_secret: Optional[str]
    payment_intent_id: Optional[str]
    amount: int
    currency: str
    provider: str


class TableResponse(BaseModel):
    id: str
    number: int
    qr_slug: str
    occupied: bool
    active_session_id: Optional[str]

    @classmethod
    def from_domain(cls, table: Table) -> "TableResponse":
        return cls(
            id=table.id,
            number=table.number,
            qr_slug=table.qr_slug,
            occupied=table.occupied,
            active_session_id=table.active_session_id,
        )


class ApiResponse(BaseModel):
    """Standard success envelope."""
    success: bool = True
    message: Optional[str] = None
    data: Any = None


class FieldErrorResponse(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None
    errors: List[FieldErrorResponse] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    storage: str
    payments: str
    payment_provider: str
    timestamp: datetime
