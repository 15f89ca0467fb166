"""Shared fixtures for order lifecycle tests."""

import random
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from storefront.core.errors import PersistenceError
from storefront.core.notifications import NotificationSink
from storefront.database import build_engine, create_db_and_tables
from storefront.repositories.order_repo import OrderBackend, SQLOrderBackend, StoredDocument
from storefront.schemas.order import (
    Address,
    CustomerInfo,
    Order,
    OrderItem,
    StatusHistoryEntry,
)
from storefront.services.notifier import InProcessEventBus
from storefront.services.order_service import OrderService
from storefront.services.order_store import OrderStore, serialize_order

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    """Deterministic clock; advance() moves it forward."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingSink(NotificationSink):
    def __init__(self):
        self.toasts: list[tuple[str, str, str]] = []

    def notify(self, level, title, message):
        self.toasts.append((level, title, message))

    @property
    def levels(self) -> list[str]:
        return [t[0] for t in self.toasts]


class FlakyBackend(OrderBackend):
    """
    Wraps a backend and fails the next `fail_writes` writes / `fail_loads`
    loads with PersistenceError.
    """

    def __init__(self, inner: OrderBackend, fail_writes: int = 0, fail_loads: int = 0):
        self.inner = inner
        self.fail_writes = fail_writes
        self.fail_loads = fail_loads
        self.write_calls = 0

    def load_documents(self):
        if self.fail_loads > 0:
            self.fail_loads -= 1
            raise PersistenceError("load", RuntimeError("backend offline"))
        return self.inner.load_documents()

    def fetch_document(self, order_id):
        return self.inner.fetch_document(order_id)

    def write_documents(self, upserts, deletes=None):
        self.write_calls += 1
        if self.fail_writes > 0:
            self.fail_writes -= 1
            raise PersistenceError("write", RuntimeError("backend offline"))
        return self.inner.write_documents(upserts, deletes)


def put(backend, *orders):
    """Write orders straight to a backend as fresh inserts."""
    backend.write_documents(
        [StoredDocument(id=o.id, version=1, data=serialize_order(o)) for o in orders]
    )


def make_order(
    order_id: str = "o1",
    order_number: str = "ORD-1",
    email: str = "alice@example.com",
    name: str = "Alice Smith",
    status: str = "pending",
    total_amount: float = 100.0,
    created_at: datetime = NOW,
    **overrides,
) -> Order:
    """Minimal valid order whose history ends in `status`."""
    history = [
        StatusHistoryEntry(
            status="pending", timestamp=created_at, updated_by="system", note="Order placed"
        )
    ]
    if status != "pending":
        history.append(
            StatusHistoryEntry(status=status, timestamp=created_at, updated_by="admin")
        )
    address = Address(street="1 Main St", city="Springfield", country="USA")
    fields = dict(
        id=order_id,
        order_number=order_number,
        customer=CustomerInfo(id=f"cust_{order_id}", email=email, display_name=name),
        items=[OrderItem(product_id="p1", name="Widget", price=total_amount, quantity=1)],
        subtotal=total_amount,
        total_amount=total_amount,
        status=status,
        status_history=history,
        shipping_address=address,
        billing_address=address,
        created_at=created_at,
        updated_at=created_at,
    )
    fields.update(overrides)
    return Order(**fields)


def checkout_draft(**overrides) -> dict:
    draft = {
        "customer": {
            "id": "cust_100",
            "email": "dana@example.com",
            "display_name": "Dana Scully",
        },
        "items": [
            {"product_id": "prod_x", "name": "Mug", "price": 20.0, "quantity": 1},
            {"product_id": "prod_y", "name": "Tea", "price": 15.0, "quantity": 2},
        ],
        "shipping_address": {
            "name": "Dana Scully",
            "street": "42 Elm St",
            "city": "Washington",
            "country": "USA",
        },
        "payment_method": "Credit Card",
    }
    draft.update(overrides)
    return draft


@pytest.fixture
def engine():
    eng = build_engine("sqlite://")
    create_db_and_tables(eng)
    return eng


@pytest.fixture
def sql_backend(engine):
    return SQLOrderBackend(engine)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def bus():
    return InProcessEventBus()


@pytest.fixture
def make_store(sql_backend, clock, bus, sleeps):
    """Factory for stores over the in-memory SQL backend (empty, no seeding)."""

    def _make(backend=None, **kwargs):
        kwargs.setdefault("seed_on_empty", False)
        kwargs.setdefault("sleep", sleeps.append)
        kwargs.setdefault("clock", clock)
        kwargs.setdefault(
            "seeder", lambda count: _seeded(count, clock())
        )
        return OrderStore(backend or sql_backend, bus, **kwargs)

    return _make


def _seeded(count: int, now: datetime) -> list[Order]:
    from storefront.services.seed import seed_orders

    return seed_orders(count, rng=random.Random(7), now=now)


@pytest.fixture
def store(make_store):
    return make_store()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def service(store, sink):
    return OrderService(store, sink=sink)


@pytest.fixture
def client(service):
    from storefront.core.auth import LOCAL_ADMIN, require_admin
    from storefront.dependencies import get_order_service
    from storefront.main import app

    app.dependency_overrides[get_order_service] = lambda: service
    app.dependency_overrides[require_admin] = lambda: LOCAL_ADMIN
    yield TestClient(app)
    app.dependency_overrides.clear()
