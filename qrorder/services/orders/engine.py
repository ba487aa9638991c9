"""
Order Lifecycle Engine

Owns every rule about orders: creation and pricing, who may see or act on
an order, status and payment transitions, payment intents and provider
webhooks. Storage and the payment provider are injected, so the engine runs
unchanged against in-memory repositories and the demo provider (development,
tests) or SQL repositories and Stripe (production).

Operations:
    - create_order           validate items, price, number and persist
    - list_orders/get_order  role-scoped queries
    - update_status          staff workflow changes via TransitionPolicy
    - update_payment         staff override of the payment status
    - cancel_order           owner or staff
    - create_payment_intent  provider intent for an order's total
    - handle_webhook         provider events (see webhooks.py)

Every write is a read-modify-write on Order.version through
OrderRepository.modify, and every storage/provider call is bounded by a
timeout.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence, TypeVar

from qrorder.core.config import Settings
from qrorder.core.errors import (
    DuplicateOrderNumber,
    InvalidTransition,
    NotFoundError,
    OrderPlacementError,
    PaymentProviderError,
    PersistenceError,
    ServiceUnavailable,
    ValidationFailed,
)
from qrorder.domain import (
    Identity,
    Order,
    OrderStatus,
    Payment,
    PaymentStatus,
    Table,
)
from qrorder.repositories.base import OrderMutator, OrderRepository, TableRepository
from qrorder.services.orders.access import ensure_can_view, ensure_owner_or_staff, listing_scope
from qrorder.services.orders.guards import bounded
from qrorder.services.orders.pricing import (
    compute_totals,
    generate_order_number,
    normalize_items,
    normalize_table_id,
    to_minor_units,
)
from qrorder.services.orders.transitions import (
    PermissiveTransitionPolicy,
    TransitionPolicy,
    build_transition_policy,
    parse_order_status,
    parse_payment_status,
)
from qrorder.services.orders.webhooks import PaymentWebhookProcessor, WebhookOutcome
from qrorder.services.payment.base import BasePaymentService

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Settled payments cannot be charged again.
SETTLED_PAYMENT_STATUSES = frozenset({PaymentStatus.PAID, PaymentStatus.REFUNDED})


@dataclass
class PaymentIntentOutcome:
    """What the client needs to confirm a payment."""
    order_id: str
    client_secret: Optional[str]
    payment_intent_id: Optional[str]
    amount: int
    currency: str
    provider: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "client_secret": self.client_secret,
            "payment_intent_id": self.payment_intent_id,
            "amount": self.amount,
            "currency": self.currency,
            "provider": self.provider,
        }


def _parse_currency(value: Optional[str], default: str) -> str:
    currency = (value or default).strip().lower()
    if len(currency) != 3 or not currency.isalpha():
        raise ValidationFailed.for_field("currency", "Currency must be a three-letter code")
    return currency


def _ensure_payable(order: Order) -> None:
    if order.status == OrderStatus.CANCELED:
        raise ValidationFailed.for_field("order_id", "Cannot pay for a canceled order")
    if order.payment is not None and order.payment.status in SETTLED_PAYMENT_STATUSES:
        raise ValidationFailed.for_field(
            "order_id", f"Order payment is already {order.payment.status.value}"
        )


class OrderLifecycleEngine:
    """
    The order engine.

    Attributes:
        orders: Order storage
        tables: Table storage, read to validate table ids
        payments: Payment provider
        transition_policy: Decides which status changes are allowed
        default_currency: Currency used when a payment request names none
        page_size: Maximum orders returned by list_orders
    """

    def __init__(
        self,
        orders: OrderRepository,
        tables: TableRepository,
        payments: BasePaymentService,
        transition_policy: Optional[TransitionPolicy] = None,
        default_currency: str = "usd",
        page_size: int = 200,
        max_update_attempts: int = 3,
        persistence_timeout: float = 5.0,
        payment_timeout: float = 15.0,
        order_number_factory: Callable[[], str] = generate_order_number,
    ):
        self.orders = orders
        self.tables = tables
        self.payments = payments
        self.transition_policy = transition_policy or PermissiveTransitionPolicy()
        self.default_currency = default_currency
        self.page_size = page_size
        self.max_update_attempts = max_update_attempts
        self.persistence_timeout = persistence_timeout
        self.payment_timeout = payment_timeout
        self.order_number_factory = order_number_factory

        self.webhooks = PaymentWebhookProcessor(
            orders=orders,
            payments=payments,
            persistence_timeout=persistence_timeout,
            max_update_attempts=max_update_attempts,
        )

        logger.info(
            f"OrderLifecycleEngine initialized "
            f"(payments={payments.provider_name}, transitions={self.transition_policy.name})"
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        orders: OrderRepository,
        tables: TableRepository,
        payments: BasePaymentService,
    ) -> "OrderLifecycleEngine":
        return cls(
            orders=orders,
            tables=tables,
            payments=payments,
            transition_policy=build_transition_policy(settings.strict_status_transitions),
            default_currency=settings.default_currency,
            page_size=settings.order_page_size,
            max_update_attempts=settings.max_update_attempts,
            persistence_timeout=settings.persistence_timeout_seconds,
            payment_timeout=settings.payment_timeout_seconds,
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _storage(self, awaitable: Awaitable[T], what: str = "Storage call") -> T:
        return await bounded(awaitable, self.persistence_timeout, what)

    async def _load(self, order_id: str) -> Order:
        order = await self._storage(self.orders.get(order_id), "Order lookup")
        if order is None:
            raise NotFoundError("Order not found")
        return order

    async def _modify(self, order_id: str, mutator: OrderMutator) -> Order:
        updated = await self._storage(
            self.orders.modify(order_id, mutator, attempts=self.max_update_attempts),
            "Order update",
        )
        if updated is None:
            raise NotFoundError("Order not found")
        return updated

    def _transition(self, target: OrderStatus) -> OrderMutator:
        """Mutator moving an order to ``target`` through the transition policy."""
        policy = self.transition_policy

        def mutate(order: Order) -> Optional[bool]:
            if not policy.allows(order.status, target):
                raise InvalidTransition(
                    f"Cannot change order status from {order.status.value} to {target.value}"
                )
            if order.status == target:
                return False
            order.status = target
            return True

        return mutate

    # =========================================================================
    # CREATION
    # =========================================================================

    async def create_order(
        self,
        items: Optional[Sequence[Mapping[str, Any]]],
        table_id: Optional[str] = None,
        meta: Optional[Mapping[str, Any]] = None,
        identity: Optional[Identity] = None,
    ) -> Order:
        """
        Validate, price and persist a new order.

        Raises:
            ValidationFailed: bad items or meta
            NotFoundError: table_id names no table
            OrderPlacementError: storage refused the order
        """
        lines = normalize_items(items)
        table_id = normalize_table_id(table_id)

        if meta is None:
            meta = {}
        elif not isinstance(meta, Mapping):
            raise ValidationFailed.for_field("meta", "Meta must be an object")

        if table_id is not None:
            table = await self._storage(self.tables.get(table_id), "Table lookup")
            if table is None:
                raise NotFoundError(f"Table {table_id} not found")

        totals = compute_totals(lines)
        customer_id = identity.user_id if identity else None

        for attempt in (1, 2):
            order = Order(
                id=uuid.uuid4().hex,
                order_number=self.order_number_factory(),
                items=lines,
                totals=totals,
                status=OrderStatus.PLACED,
                customer_id=customer_id,
                table_id=table_id,
                payment=Payment(status=PaymentStatus.PENDING),
                meta=dict(meta),
            )
            try:
                created = await self._storage(self.orders.add(order), "Order insert")
            except DuplicateOrderNumber:
                if attempt == 1:
                    logger.warning(f"Order number {order.order_number} collided, retrying")
                    continue
                logger.error(f"Order number collided twice ({order.order_number})")
                raise OrderPlacementError()
            except (PersistenceError, ServiceUnavailable) as e:
                logger.error(f"Could not persist order: {e.message} {e.detail or ''}".rstrip())
                raise OrderPlacementError() from e

            logger.info(
                f"Order {created.order_number} placed: {len(lines)} line(s), "
                f"total {created.totals}, table={table_id or '-'}, "
                f"customer={customer_id or 'guest'}"
            )
            return created

        # Loop always returns or raises.
        raise OrderPlacementError()

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def list_orders(
        self,
        identity: Optional[Identity],
        table_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[Order]:
        """
        Newest orders first, scoped to what the caller may see.

        Staff may filter by table and status. Customers always get exactly
        their own orders; filters they send are ignored.
        """
        status_filter = None
        if identity is not None and identity.is_staff and status:
            status_filter = parse_order_status(status)

        scope = listing_scope(identity, normalize_table_id(table_id), status_filter)
        return await self._storage(
            self.orders.list(
                customer_id=scope.customer_id,
                table_id=scope.table_id,
                status=scope.status,
                limit=self.page_size,
            ),
            "Order listing",
        )

    async def get_order(self, order_id: str, identity: Optional[Identity]) -> Order:
        order = await self._load(order_id)
        ensure_can_view(order, identity)
        return order

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    async def update_status(self, order_id: str, new_status: Any) -> Order:
        """
        Move an order to another status.

        Callers are responsible for restricting this to staff.

        Raises:
            ValidationFailed: unknown status
            NotFoundError: unknown order
            InvalidTransition: rejected by the transition policy
        """
        target = parse_order_status(new_status)
        updated = await self._modify(order_id, self._transition(target))
        logger.info(f"Order {updated.order_number}: status -> {updated.status.value}")
        return updated

    async def update_payment(self, order_id: str, new_status: Any) -> Order:
        """Staff override of the payment status. Any status to any status."""
        target = parse_payment_status(new_status)

        def mutate(order: Order) -> Optional[bool]:
            if order.payment is not None and order.payment.status == target:
                return False
            if order.payment is None:
                order.payment = Payment()
            order.payment.status = target
            return True

        updated = await self._modify(order_id, mutate)
        logger.info(f"Order {updated.order_number}: payment set to {target.value} by staff")
        return updated

    async def cancel_order(self, order_id: str, identity: Optional[Identity]) -> Order:
        order = await self._load(order_id)
        ensure_owner_or_staff(order, identity, "cancel")

        updated = await self._modify(order_id, self._transition(OrderStatus.CANCELED))
        logger.info(f"Order {updated.order_number} canceled by {identity.role.value} {identity.user_id}")
        return updated

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    async def create_payment_intent(
        self,
        order_id: str,
        identity: Optional[Identity],
        currency: Optional[str] = None,
    ) -> PaymentIntentOutcome:
        """
        Create a provider payment intent for the order total.

        Raises:
            AuthenticationRequired / PermissionDenied: not owner or staff
            ValidationFailed: bad currency, canceled or already settled order
            PaymentProviderError: provider refused the intent
            ServiceUnavailable: provider or storage timed out
        """
        order = await self._load(order_id)
        ensure_owner_or_staff(order, identity, "pay for")
        currency = _parse_currency(currency, self.default_currency)

        _ensure_payable(order)

        amount = to_minor_units(order.totals)
        result = await bounded(
            self.payments.create_payment_intent(
                amount=amount,
                currency=currency,
                metadata={"order_id": order.id, "order_number": order.order_number},
                description=f"Order {order.order_number}",
            ),
            self.payment_timeout,
            "Payment intent",
        )

        if not result.success:
            logger.error(
                f"Payment intent for order {order.order_number} failed: "
                f"[{result.error_code}] {result.error_message}"
            )
            raise PaymentProviderError("Could not create payment intent")

        def mutate(current: Order) -> Optional[bool]:
            # Staff or a webhook may have settled the order during the provider call
            try:
                _ensure_payable(current)
            except ValidationFailed:
                logger.warning(
                    f"Order {current.order_number}: dropping payment intent "
                    f"{result.payment_intent_id}, order changed while it was created"
                )
                raise
            current.payment = Payment(
                status=PaymentStatus.PENDING,
                provider=result.provider,
                provider_data=result.provider_data,
            )
            return True

        await self._modify(order.id, mutate)
        logger.info(
            f"Order {order.order_number}: payment intent {result.payment_intent_id} "
            f"({amount} {currency}, {result.provider}, {result.response_time_ms:.0f}ms)"
        )

        return PaymentIntentOutcome(
            order_id=order.id,
            client_secret=result.client_secret,
            payment_intent_id=result.payment_intent_id,
            amount=amount,
            currency=currency,
            provider=result.provider,
        )

    async def handle_webhook(self, raw_body: bytes, signature: Optional[str]) -> WebhookOutcome:
        return await self.webhooks.handle(raw_body, signature)

    # =========================================================================
    # TABLES
    # =========================================================================

    async def open_table_session(self, qr_slug: str) -> Table:
        """Resolve a scanned QR slug and start a fresh session on that table."""
        slug = (qr_slug or "").strip()
        table = await self._storage(self.tables.get_by_slug(slug), "Table lookup") if slug else None
        if table is None:
            raise NotFoundError("Table not found")

        session_id = uuid.uuid4().hex
        updated = await self._storage(
            self.tables.set_active_session(table.id, session_id),
            "Table update",
        )
        if updated is None:
            raise NotFoundError("Table not found")

        logger.info(f"Table {updated.number}: new session {session_id}")
        return updated

    # =========================================================================
    # HEALTH
    # =========================================================================

    async def health(self) -> dict[str, str]:
        """Status of each collaborator: "healthy" or "unhealthy"."""
        checks = {
            "storage": (self.orders.health_check(), self.persistence_timeout),
            "payments": (self.payments.health_check(), self.payment_timeout),
        }
        report = {}
        for name, (check, timeout) in checks.items():
            try:
                healthy = await bounded(check, timeout, f"{name} health check")
            except Exception as e:
                logger.error(f"{name} health check failed: {e}")
                healthy = False
            report[name] = "healthy" if healthy else "unhealthy"
        return report
