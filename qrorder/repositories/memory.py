"""
In-Memory Repositories

Dictionary-backed storage for development mode and tests. Behaves like the
SQL implementation: unique order numbers, versioned updates, copies in and out.
"""

import copy
import itertools
import logging
from datetime import datetime, timezone
from typing import Optional

from qrorder.core.errors import ConcurrencyConflict, DuplicateOrderNumber, PersistenceError
from qrorder.domain import Order, OrderStatus, Table
from qrorder.repositories.base import OrderRepository, TableRepository

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryOrderRepository(OrderRepository):
    """Orders kept in a dict keyed by id."""

    def __init__(self):
        self._orders: dict[str, Order] = {}
        self._by_number: dict[str, str] = {}
        # Tie-breaker for orders created within the same clock tick
        self._sequence: dict[str, int] = {}
        self._counter = itertools.count()

    async def add(self, order: Order) -> Order:
        if order.order_number in self._by_number:
            raise DuplicateOrderNumber(detail=order.order_number)
        if order.id in self._orders:
            raise PersistenceError(detail=f"duplicate id {order.id}")

        stored = copy.deepcopy(order)
        stored.created_at = stored.updated_at = _now()
        stored.version = 0

        self._orders[stored.id] = stored
        self._by_number[stored.order_number] = stored.id
        self._sequence[stored.id] = next(self._counter)
        return copy.deepcopy(stored)

    async def get(self, order_id: str) -> Optional[Order]:
        order = self._orders.get(order_id)
        return copy.deepcopy(order) if order else None

    async def find_by_payment_intent(self, payment_intent_id: str) -> Optional[Order]:
        for order in self._orders.values():
            if order.payment and order.payment.payment_intent_id == payment_intent_id:
                return copy.deepcopy(order)
        return None

    async def list(
        self,
        customer_id: Optional[str] = None,
        table_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        limit: int = 200,
    ) -> list[Order]:
        matches = [
            o for o in self._orders.values()
            if (customer_id is None or o.customer_id == customer_id)
            and (table_id is None or o.table_id == table_id)
            and (status is None or o.status == status)
        ]
        matches.sort(key=lambda o: (o.created_at, self._sequence[o.id]), reverse=True)
        return [copy.deepcopy(o) for o in matches[:limit]]

    async def update(self, order: Order) -> Order:
        current = self._orders.get(order.id)
        if current is None or current.version != order.version:
            raise ConcurrencyConflict()

        stored = copy.deepcopy(order)
        # Immutable fields always come from storage
        stored.order_number = current.order_number
        stored.items = current.items
        stored.totals = current.totals
        stored.created_at = current.created_at
        stored.updated_at = _now()
        stored.version = current.version + 1

        self._orders[order.id] = stored
        return copy.deepcopy(stored)

    async def health_check(self) -> bool:
        return True


class InMemoryTableRepository(TableRepository):
    """Tables kept in a dict keyed by id."""

    def __init__(self):
        self._tables: dict[str, Table] = {}

    async def add(self, table: Table) -> Table:
        for existing in self._tables.values():
            if existing.number == table.number or existing.qr_slug == table.qr_slug:
                raise PersistenceError(detail=f"table {table.number} already exists")
        stored = copy.deepcopy(table)
        stored.created_at = _now()
        self._tables[stored.id] = stored
        return copy.deepcopy(stored)

    async def get(self, table_id: str) -> Optional[Table]:
        table = self._tables.get(table_id)
        return copy.deepcopy(table) if table else None

    async def get_by_slug(self, qr_slug: str) -> Optional[Table]:
        for table in self._tables.values():
            if table.qr_slug == qr_slug:
                return copy.deepcopy(table)
        return None

    async def count(self) -> int:
        return len(self._tables)

    async def set_active_session(self, table_id: str, session_id: str) -> Optional[Table]:
        table = self._tables.get(table_id)
        if table is None:
            return None
        table.active_session_id = session_id
        return copy.deepcopy(table)
