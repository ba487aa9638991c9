"""
SQLAlchemy Repositories

Async SQLAlchemy implementation of the repository contract. Driver errors are
translated into PersistenceError / DuplicateOrderNumber so nothing above this
module needs to know about SQLAlchemy.
"""

import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import AsyncIterator, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from qrorder.core.errors import ConcurrencyConflict, DuplicateOrderNumber, PersistenceError
from qrorder.domain import Order, OrderLine, OrderStatus, Payment, Table
from qrorder.models import OrderRow, TableRow, utcnow
from qrorder.repositories.base import OrderRepository, TableRepository

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


# =============================================================================
# ROW <-> DOMAIN MAPPING
# =============================================================================

def _order_from_row(row: OrderRow) -> Order:
    return Order(
        id=row.id,
        order_number=row.order_number,
        items=[OrderLine.from_dict(item) for item in row.items],
        totals=Decimal(row.totals).quantize(CENT),
        status=OrderStatus(row.status),
        customer_id=row.customer_id,
        table_id=row.table_id,
        payment=Payment.from_dict(row.payment),
        meta=dict(row.meta or {}),
        created_at=row.created_at,
        updated_at=row.updated_at,
        version=row.version,
    )


def _payment_columns(order: Order) -> dict:
    payment = order.payment
    return {
        "payment": payment.to_dict() if payment else None,
        "payment_status": payment.status if payment else None,
        "payment_intent_id": payment.payment_intent_id if payment else None,
    }


def _table_from_row(row: TableRow) -> Table:
    return Table(
        id=row.id,
        number=row.number,
        qr_slug=row.qr_slug,
        occupied=row.occupied,
        active_session_id=row.active_session_id,
        created_at=row.created_at,
    )


class _SqlRepository:
    """Shared session handling."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        async with self._session_maker() as session:
            try:
                yield session
            except IntegrityError as exc:
                await session.rollback()
                if "order_number" in str(exc.orig):
                    raise DuplicateOrderNumber(detail=str(exc.orig)) from exc
                raise PersistenceError(detail=str(exc.orig)) from exc
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.error(f"Database error: {exc}")
                raise PersistenceError(detail=str(exc)) from exc


class SqlOrderRepository(_SqlRepository, OrderRepository):
    """Orders stored in the ``orders`` table."""

    async def add(self, order: Order) -> Order:
        row = OrderRow(
            id=order.id,
            order_number=order.order_number,
            table_id=order.table_id,
            customer_id=order.customer_id,
            items=[line.to_dict() for line in order.items],
            totals=order.totals,
            status=order.status,
            meta=order.meta or {},
            version=0,
            **_payment_columns(order),
        )
        async with self._session() as session:
            session.add(row)
            await session.commit()
        return _order_from_row(row)

    async def get(self, order_id: str) -> Optional[Order]:
        async with self._session() as session:
            row = await session.get(OrderRow, order_id)
            return _order_from_row(row) if row else None

    async def find_by_payment_intent(self, payment_intent_id: str) -> Optional[Order]:
        query = select(OrderRow).where(OrderRow.payment_intent_id == payment_intent_id).limit(1)
        async with self._session() as session:
            result = await session.execute(query)
            row = result.scalar_one_or_none()
            return _order_from_row(row) if row else None

    async def list(
        self,
        customer_id: Optional[str] = None,
        table_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        limit: int = 200,
    ) -> list[Order]:
        query = select(OrderRow).order_by(OrderRow.created_at.desc())
        if customer_id is not None:
            query = query.where(OrderRow.customer_id == customer_id)
        if table_id is not None:
            query = query.where(OrderRow.table_id == table_id)
        if status is not None:
            query = query.where(OrderRow.status == status)

        async with self._session() as session:
            result = await session.execute(query.limit(limit))
            return [_order_from_row(row) for row in result.scalars().all()]

    async def update(self, order: Order) -> Order:
        now = utcnow()
        statement = (
            update(OrderRow)
            .where(OrderRow.id == order.id, OrderRow.version == order.version)
            .values(
                table_id=order.table_id,
                status=order.status,
                meta=order.meta or {},
                version=order.version + 1,
                updated_at=now,
                **_payment_columns(order),
            )
            .execution_options(synchronize_session=False)
        )
        async with self._session() as session:
            result = await session.execute(statement)
            await session.commit()

        if result.rowcount == 0:
            raise ConcurrencyConflict()

        order.version += 1
        order.updated_at = now
        return order

    async def health_check(self) -> bool:
        try:
            async with self._session() as session:
                await session.execute(select(1))
            return True
        except PersistenceError:
            return False


class SqlTableRepository(_SqlRepository, TableRepository):
    """Tables stored in the ``tables`` table."""

    async def add(self, table: Table) -> Table:
        row = TableRow(
            id=table.id,
            number=table.number,
            qr_slug=table.qr_slug,
            occupied=table.occupied,
            active_session_id=table.active_session_id,
        )
        async with self._session() as session:
            session.add(row)
            await session.commit()
        return _table_from_row(row)

    async def get(self, table_id: str) -> Optional[Table]:
        async with self._session() as session:
            row = await session.get(TableRow, table_id)
            return _table_from_row(row) if row else None

    async def get_by_slug(self, qr_slug: str) -> Optional[Table]:
        async with self._session() as session:
            result = await session.execute(select(TableRow).where(TableRow.qr_slug == qr_slug))
            row = result.scalar_one_or_none()
            return _table_from_row(row) if row else None

    async def count(self) -> int:
        async with self._session() as session:
            result = await session.execute(select(func.count(TableRow.id)))
            return result.scalar() or 0

    async def set_active_session(self, table_id: str, session_id: str) -> Optional[Table]:
        async with self._session() as session:
            row = await session.get(TableRow, table_id)
            if row is None:
                return None
            row.active_session_id = session_id
            await session.commit()
            return _table_from_row(row)
