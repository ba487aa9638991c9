"""Both repository implementations honour the same contract."""

import asyncio
from decimal import Decimal

import pytest

from qrorder.core.errors import ConcurrencyConflict, DuplicateOrderNumber
from qrorder.database import build_engine, build_session_maker, init_db
from qrorder.domain import (
    DemoProviderData,
    Order,
    OrderLine,
    OrderStatus,
    Payment,
    PaymentStatus,
    StripeProviderData,
    Table,
)
from qrorder.repositories.memory import InMemoryOrderRepository, InMemoryTableRepository
from qrorder.repositories.sql import SqlOrderRepository, SqlTableRepository
from qrorder.services.orders.engine import OrderLifecycleEngine
from tests.helpers import PHO, FakePaymentService


@pytest.fixture(params=["memory", "sql"])
async def repos(request):
    if request.param == "memory":
        yield InMemoryOrderRepository(), InMemoryTableRepository()
        return

    engine = build_engine("sqlite+aiosqlite:///:memory:")
    await init_db(engine)
    session_maker = build_session_maker(engine)
    yield SqlOrderRepository(session_maker), SqlTableRepository(session_maker)
    await engine.dispose()


def make_order(order_id="o1", number="ORD-1-AAAAAA", customer_id=None, table_id=None) -> Order:
    return Order(
        id=order_id,
        order_number=number,
        items=[
            OrderLine(menu_item_id="m1", name="Pho", price=Decimal("3.99"), qty=2, note="extra basil"),
            OrderLine(name="Tea", price=Decimal("1.50"), qty=1),
        ],
        totals=Decimal("9.48"),
        customer_id=customer_id,
        table_id=table_id,
        payment=Payment(status=PaymentStatus.PENDING),
        meta={"qr_slug": "table-4", "device_info": {"ua": "test"}},
    )


async def test_add_and_get_keep_the_snapshot(repos):
    orders, _ = repos
    created = await orders.add(make_order())

    fetched = await orders.get("o1")

    assert fetched.items == created.items
    assert fetched.items[0].price == Decimal("3.99")
    assert fetched.totals == Decimal("9.48")
    assert fetched.meta == {"qr_slug": "table-4", "device_info": {"ua": "test"}}
    assert fetched.payment == Payment(status=PaymentStatus.PENDING)
    assert fetched.version == 0
    assert fetched.created_at is not None
    assert await orders.get("missing") is None


async def test_duplicate_order_number_is_rejected(repos):
    orders, _ = repos
    await orders.add(make_order())
    with pytest.raises(DuplicateOrderNumber):
        await orders.add(make_order(order_id="o2"))


async def test_update_is_conditional_on_version(repos):
    orders, _ = repos
    await orders.add(make_order())

    first = await orders.get("o1")
    stale = await orders.get("o1")

    first.status = OrderStatus.PREPARING
    updated = await orders.update(first)
    assert updated.version == 1

    stale.status = OrderStatus.CANCELED
    with pytest.raises(ConcurrencyConflict):
        await orders.update(stale)

    assert (await orders.get("o1")).status is OrderStatus.PREPARING


async def test_modify_round_trips_provider_data(repos):
    orders, _ = repos
    await orders.add(make_order())

    def attach(order):
        order.payment = Payment(
            status=PaymentStatus.PENDING,
            provider="stripe",
            provider_data=StripeProviderData(payment_intent_id="pi_42", client_secret="pi_42_secret"),
        )

    await orders.modify("o1", attach)

    stored = await orders.get("o1")
    assert stored.payment.provider_data == StripeProviderData("pi_42", "pi_42_secret")
    assert (await orders.find_by_payment_intent("pi_42")).id == "o1"
    assert await orders.find_by_payment_intent("pi_other") is None


async def test_demo_provider_data_round_trips(repos):
    orders, _ = repos
    order = make_order()
    order.payment = Payment(provider="stripe-demo", provider_data=DemoProviderData("pi_demo_1"))
    await orders.add(order)

    assert (await orders.get("o1")).payment.provider_data == DemoProviderData("pi_demo_1")


async def test_modify_unknown_order_returns_none(repos):
    orders, _ = repos
    assert await orders.modify("missing", lambda order: None) is None


async def test_modify_skips_write_when_mutator_declines(repos):
    orders, _ = repos
    await orders.add(make_order())

    result = await orders.modify("o1", lambda order: False)

    assert result.version == 0
    assert (await orders.get("o1")).version == 0


async def test_list_filters_and_orders_newest_first(repos):
    orders, _ = repos
    await orders.add(make_order("o1", "ORD-1", customer_id="alice", table_id="t1"))
    await orders.add(make_order("o2", "ORD-2", table_id="t1"))
    await orders.add(make_order("o3", "ORD-3", customer_id="alice", table_id="t2"))
    await orders.modify("o2", lambda order: setattr(order, "status", OrderStatus.READY))

    assert [o.id for o in await orders.list()] == ["o3", "o2", "o1"]
    assert [o.id for o in await orders.list(customer_id="alice")] == ["o3", "o1"]
    assert [o.id for o in await orders.list(table_id="t1")] == ["o2", "o1"]
    assert [o.id for o in await orders.list(status=OrderStatus.READY)] == ["o2"]
    assert [o.id for o in await orders.list(limit=1)] == ["o3"]


async def test_tables(repos):
    _, tables = repos
    assert await tables.count() == 0

    await tables.add(Table(id="t4", number=4, qr_slug="table-4"))

    assert await tables.count() == 1
    assert (await tables.get("t4")).qr_slug == "table-4"
    assert (await tables.get_by_slug("table-4")).id == "t4"
    assert await tables.get_by_slug("table-5") is None

    updated = await tables.set_active_session("t4", "sess-1")
    assert updated.active_session_id == "sess-1"
    assert (await tables.get("t4")).active_session_id == "sess-1"
    assert await tables.set_active_session("missing", "sess-2") is None


async def test_health_check(repos):
    orders, _ = repos
    assert await orders.health_check() is True


@pytest.fixture(params=["memory", "sql"])
async def order_store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryOrderRepository(), 200
        return

    # A file database so every session gets its own connection
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    await init_db(engine)
    yield SqlOrderRepository(build_session_maker(engine)), 100
    await engine.dispose()


async def test_concurrent_placement_never_repeats_order_numbers(order_store):
    orders, count = order_store
    engine = OrderLifecycleEngine(orders, InMemoryTableRepository(), FakePaymentService())

    placed = await asyncio.gather(*(engine.create_order([PHO]) for _ in range(count)))

    numbers = {order.order_number for order in placed}
    assert len(numbers) == count
    stored = [await orders.get(order.id) for order in placed]
    assert {order.order_number for order in stored} == numbers
