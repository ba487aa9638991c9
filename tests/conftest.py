"""Shared fixtures: an engine over in-memory storage and test payment services."""

import pytest

from qrorder.domain import Table
from qrorder.repositories import Repositories
from qrorder.repositories.memory import InMemoryOrderRepository, InMemoryTableRepository
from qrorder.services.orders.engine import OrderLifecycleEngine
from qrorder.services.payment.stripe import StripePaymentService
from tests.helpers import WEBHOOK_SECRET, FakePaymentService


@pytest.fixture
def order_repo() -> InMemoryOrderRepository:
    return InMemoryOrderRepository()


@pytest.fixture
def table_repo() -> InMemoryTableRepository:
    return InMemoryTableRepository()


@pytest.fixture
async def table(table_repo) -> Table:
    return await table_repo.add(Table(id="t4", number=4, qr_slug="table-4"))


@pytest.fixture
def payments() -> FakePaymentService:
    return FakePaymentService()


@pytest.fixture
def engine(order_repo, table_repo, payments) -> OrderLifecycleEngine:
    return OrderLifecycleEngine(orders=order_repo, tables=table_repo, payments=payments)


@pytest.fixture
def stripe_service() -> StripePaymentService:
    return StripePaymentService(api_key="sk_test_dummy", webhook_secret=WEBHOOK_SECRET)


@pytest.fixture
def webhook_engine(order_repo, table_repo, stripe_service) -> OrderLifecycleEngine:
    return OrderLifecycleEngine(orders=order_repo, tables=table_repo, payments=stripe_service)


@pytest.fixture
def repositories(order_repo, table_repo) -> Repositories:
    return Repositories(orders=order_repo, tables=table_repo)
