"""
Domain Model

Plain dataclasses shared by the order engine and every repository
implementation. Repositories hand out copies, so mutating an Order only
changes storage once it is written back through ``OrderRepository.update``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Union


class OrderStatus(str, enum.Enum):
    """Order workflow status."""
    PLACED = "placed"
    PREPARING = "preparing"
    READY = "ready"
    SERVED = "served"
    COMPLETED = "completed"
    CANCELED = "canceled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class Role(str, enum.Enum):
    CUSTOMER = "customer"
    STAFF = "staff"
    ADMIN = "admin"


STAFF_ROLES = frozenset({Role.STAFF, Role.ADMIN})


@dataclass(frozen=True)
class Identity:
    """Authenticated caller, as carried by an access token."""
    user_id: str
    role: Role

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


# =============================================================================
# PAYMENT PROVIDER DATA
# =============================================================================

@dataclass
class DemoProviderData:
    """Recorded when no payment credentials are configured."""
    payment_intent_id: str

    kind = "demo"


@dataclass
class StripeProviderData:
    payment_intent_id: str
    client_secret: Optional[str] = None

    kind = "stripe"


ProviderData = Union[DemoProviderData, StripeProviderData]

_PROVIDER_DATA_TYPES = {
    DemoProviderData.kind: DemoProviderData,
    StripeProviderData.kind: StripeProviderData,
}


def provider_data_to_dict(data: Optional[ProviderData]) -> Optional[dict[str, Any]]:
    if data is None:
        return None
    payload = {"kind": data.kind, "payment_intent_id": data.payment_intent_id}
    if isinstance(data, StripeProviderData):
        payload["client_secret"] = data.client_secret
    return payload


def provider_data_from_dict(payload: Optional[dict[str, Any]]) -> Optional[ProviderData]:
    if not payload:
        return None
    kind = payload.get("kind")
    cls = _PROVIDER_DATA_TYPES.get(kind)
    if cls is None:
        raise ValueError(f"Unknown provider data kind: {kind!r}")
    if cls is StripeProviderData:
        return StripeProviderData(
            payment_intent_id=payload["payment_intent_id"],
            client_secret=payload.get("client_secret"),
        )
    return DemoProviderData(payment_intent_id=payload["payment_intent_id"])


@dataclass
class Payment:
    status: PaymentStatus = PaymentStatus.PENDING
    provider: Optional[str] = None
    provider_data: Optional[ProviderData] = None

    @property
    def payment_intent_id(self) -> Optional[str]:
        return self.provider_data.payment_intent_id if self.provider_data else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "provider": self.provider,
            "provider_data": provider_data_to_dict(self.provider_data),
        }

    @classmethod
    def from_dict(cls, payload: Optional[dict[str, Any]]) -> Optional["Payment"]:
        if payload is None:
            return None
        return cls(
            status=PaymentStatus(payload.get("status", PaymentStatus.PENDING.value)),
            provider=payload.get("provider"),
            provider_data=provider_data_from_dict(payload.get("provider_data")),
        )


# =============================================================================
# ORDERS
# =============================================================================

@dataclass
class OrderLine:
    """Snapshot of a menu item at the moment the order was placed."""
    name: str
    price: Decimal
    qty: int
    menu_item_id: Optional[str] = None
    note: str = ""

    @property
    def line_total(self) -> Decimal:
        return self.price * self.qty

    def to_dict(self) -> dict[str, Any]:
        # Prices are stored as strings so JSON columns keep exact cents.
        return {
            "menu_item_id": self.menu_item_id,
            "name": self.name,
            "price": str(self.price),
            "qty": self.qty,
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "OrderLine":
        return cls(
            menu_item_id=payload.get("menu_item_id"),
            name=payload["name"],
            price=Decimal(str(payload["price"])),
            qty=int(payload["qty"]),
            note=payload.get("note") or "",
        )


@dataclass
class Order:
    id: str
    order_number: str
    items: list[OrderLine]
    totals: Decimal
    status: OrderStatus = OrderStatus.PLACED
    customer_id: Optional[str] = None
    table_id: Optional[str] = None
    payment: Optional[Payment] = None
    meta: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 0

    @property
    def is_guest_order(self) -> bool:
        return self.customer_id is None

    def is_owned_by(self, identity: Optional[Identity]) -> bool:
        return (
            identity is not None
            and self.customer_id is not None
            and self.customer_id == identity.user_id
        )


@dataclass
class Table:
    id: str
    number: int
    qr_slug: str
    occupied: bool = False
    active_session_id: Optional[str] = None
    created_at: Optional[datetime] = None
