"""
SQLAlchemy Database Models

Row classes for the SQL repository. Line items, payment and meta are JSON
documents on the order row; the payment intent id is copied into its own
indexed column so refund webhooks can find the order.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)

from qrorder.database import Base
from qrorder.domain import OrderStatus, PaymentStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderRow(Base):
    """
    Orders table.

    ``version`` is the optimistic-concurrency token: every update is a
    conditional write on the version the caller read.
    """
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("order_number", name="uq_orders_order_number"),
    )

    id = Column(String(32), primary_key=True)
    order_number = Column(String(40), nullable=False, index=True)

    # =========================================================================
    # REFERENCES
    # =========================================================================
    table_id = Column(String(32), nullable=True, index=True)
    customer_id = Column(String(64), nullable=True, index=True)

    # =========================================================================
    # ORDER DETAILS
    # =========================================================================
    items = Column(JSON, nullable=False)
    totals = Column(Numeric(12, 2), nullable=False)
    status = Column(
        Enum(OrderStatus, values_callable=lambda e: [m.value for m in e], name="order_status"),
        default=OrderStatus.PLACED,
        nullable=False,
        index=True,
    )
    meta = Column(JSON, nullable=False, default=dict)

    # =========================================================================
    # PAYMENT
    # =========================================================================
    payment = Column(JSON, nullable=True)
    payment_status = Column(
        Enum(PaymentStatus, values_callable=lambda e: [m.value for m in e], name="payment_status"),
        nullable=True,
    )
    payment_intent_id = Column(String(100), nullable=True, index=True)

    # =========================================================================
    # BOOKKEEPING
    # =========================================================================
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Order {self.order_number} - {self.status.value}>"


class TableRow(Base):
    """Dining tables, each reachable through its printed QR slug."""
    __tablename__ = "tables"

    id = Column(String(32), primary_key=True)
    number = Column(Integer, nullable=False, unique=True)
    qr_slug = Column(String(64), nullable=False, unique=True, index=True)
    occupied = Column(Boolean, nullable=False, default=False)
    active_session_id = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self):
        return f"<Table #{self.number} ({self.qr_slug})>"
