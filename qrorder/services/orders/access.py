"""
Order Access Rules

Who may see or act on which order:
    - staff/admin: every order
    - customer: only orders carrying their own customer_id
    - anonymous: may view a single guest order (no customer_id), nothing else

Viewing a guest order by id without a token is deliberately allowed so a
guest can follow their order's progress; anyone holding the id can do so.
"""

from dataclasses import dataclass
from typing import Optional

from qrorder.core.errors import AuthenticationRequired, PermissionDenied
from qrorder.domain import Identity, Order, OrderStatus


@dataclass(frozen=True)
class ListScope:
    """Filters a listing is actually run with."""
    customer_id: Optional[str] = None
    table_id: Optional[str] = None
    status: Optional[OrderStatus] = None


def can_act_on(order: Order, identity: Optional[Identity]) -> bool:
    return identity is not None and (identity.is_staff or order.is_owned_by(identity))


def ensure_can_view(order: Order, identity: Optional[Identity]) -> None:
    if identity is None:
        if not order.is_guest_order:
            raise AuthenticationRequired()
        return
    if not can_act_on(order, identity):
        raise PermissionDenied("Access denied to this order")


def ensure_owner_or_staff(order: Order, identity: Optional[Identity], action: str) -> None:
    if identity is None:
        raise AuthenticationRequired()
    if not can_act_on(order, identity):
        raise PermissionDenied(f"Access denied to {action} this order")


def listing_scope(
    identity: Optional[Identity],
    table_id: Optional[str] = None,
    status: Optional[OrderStatus] = None,
) -> ListScope:
    """Customers always get their own orders; filters are a staff feature."""
    if identity is None:
        raise AuthenticationRequired("Authentication required to list orders")
    if identity.is_staff:
        return ListScope(table_id=table_id, status=status)
    return ListScope(customer_id=identity.user_id)
