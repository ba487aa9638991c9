"""
Repository Abstract Base Classes

Defines the persistence contract the order engine depends on. Two
implementations exist: InMemory* (development, tests) and Sql* (async
SQLAlchemy, staging/production).

Contract highlights:
    - add() rejects a duplicate order_number with DuplicateOrderNumber
    - update() is a conditional write on Order.version and raises
      ConcurrencyConflict when the stored version moved on
    - every method returns copies; callers never share state with storage
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from qrorder.core.errors import ConcurrencyConflict
from qrorder.domain import Order, OrderStatus, Table

logger = logging.getLogger(__name__)

# Mutators edit the order in place; returning False means "nothing to write".
OrderMutator = Callable[[Order], Optional[bool]]


class OrderRepository(ABC):
    """Storage for orders."""

    @abstractmethod
    async def add(self, order: Order) -> Order:
        """Insert a new order; storage assigns timestamps and version 0."""

    @abstractmethod
    async def get(self, order_id: str) -> Optional[Order]:
        """Fetch one order by id."""

    @abstractmethod
    async def find_by_payment_intent(self, payment_intent_id: str) -> Optional[Order]:
        """Fetch the order whose stored payment data references the intent."""

    @abstractmethod
    async def list(
        self,
        customer_id: Optional[str] = None,
        table_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        limit: int = 200,
    ) -> list[Order]:
        """Newest first, at most ``limit`` orders."""

    @abstractmethod
    async def update(self, order: Order) -> Order:
        """
        Write back an order read earlier.

        Raises:
            ConcurrencyConflict: the stored version no longer matches order.version
        """

    @abstractmethod
    async def health_check(self) -> bool:
        """Check storage connectivity."""

    async def modify(
        self,
        order_id: str,
        mutator: OrderMutator,
        attempts: int = 3,
    ) -> Optional[Order]:
        """
        Read-modify-write loop with optimistic concurrency.

        The mutator may be called several times, each time on a freshly read
        order, so it must not have side effects outside the order.

        Returns:
            The stored order after the update, or None if the order is unknown.
        """
        for attempt in range(1, attempts + 1):
            order = await self.get(order_id)
            if order is None:
                return None

            if mutator(order) is False:
                return order

            try:
                return await self.update(order)
            except ConcurrencyConflict:
                logger.info(
                    f"Version conflict on order {order_id} "
                    f"(attempt {attempt}/{attempts})"
                )

        raise ConcurrencyConflict()


class TableRepository(ABC):
    """Storage for dining tables."""

    @abstractmethod
    async def add(self, table: Table) -> Table:
        pass

    @abstractmethod
    async def get(self, table_id: str) -> Optional[Table]:
        pass

    @abstractmethod
    async def get_by_slug(self, qr_slug: str) -> Optional[Table]:
        pass

    @abstractmethod
    async def count(self) -> int:
        pass

    @abstractmethod
    async def set_active_session(self, table_id: str, session_id: str) -> Optional[Table]:
        pass
