# storefront/services/seed.py
"""
Synthetic orders for an empty store and for test fixtures.

Structure is deterministic (1-3 line items, a "pending" history entry
plus one entry for the final status, milestones consistent with that
status); content is random. Pass a seeded random.Random for repeatable
fixtures.
"""

import random
from datetime import datetime, timedelta
from typing import Iterable

from storefront.schemas.order import (
    Address,
    CustomerInfo,
    Order,
    OrderItem,
    ShippingInfo,
    StatusHistoryEntry,
    utc_now,
)
from storefront.services.pricing import (
    items_subtotal,
    shipping_for,
    tax_for,
    total_for,
)

FIXTURE_PRODUCTS: list[dict] = [
    {
        "product_id": "prod_001",
        "name": "Premium Wireless Headphones",
        "price": 199.99,
        "image": "https://via.placeholder.com/400x400/007bff/ffffff?text=Headphones",
    },
    {
        "product_id": "prod_002",
        "name": "Smart Watch Pro",
        "price": 299.99,
        "image": "https://via.placeholder.com/400x400/28a745/ffffff?text=Smart+Watch",
    },
    {
        "product_id": "prod_003",
        "name": "Organic Cotton T-Shirt",
        "price": 29.99,
        "image": "https://via.placeholder.com/400x400/ffc107/ffffff?text=T-Shirt",
    },
    {
        "product_id": "prod_004",
        "name": "Professional Coffee Maker",
        "price": 149.99,
        "image": "https://via.placeholder.com/400x400/dc3545/ffffff?text=Coffee+Maker",
    },
    {
        "product_id": "prod_005",
        "name": "Wireless Gaming Mouse",
        "price": 79.99,
        "image": "https://via.placeholder.com/400x400/6610f2/ffffff?text=Gaming+Mouse",
    },
]

FIXTURE_CUSTOMERS: list[CustomerInfo] = [
    CustomerInfo(id="cust_001", email="alice@example.com", display_name="Alice Smith", phone="555-1234"),
    CustomerInfo(id="cust_002", email="bob@example.com", display_name="Bob Johnson", phone="555-5678"),
    CustomerInfo(id="cust_003", email="carol@example.com", display_name="Carol Williams", phone="555-8765"),
    CustomerInfo(id="cust_004", email="dave@example.com", display_name="Dave Brown", phone="555-4321"),
    CustomerInfo(id="cust_005", email="erin@example.com", display_name="Erin Davis"),
]

FIXTURE_ADDRESSES: list[Address] = [
    Address(name="Alice Smith", street="123 Main St", city="Springfield", state="IL", zip_code="62701", country="USA", phone="555-1234"),
    Address(name="Bob Johnson", street="456 Oak Ave", city="Centerville", state="CA", zip_code="90210", country="USA", phone="555-5678"),
    Address(name="Carol Williams", street="789 Pine Rd", city="Lakeview", state="NY", zip_code="10001", country="USA", phone="555-8765"),
]

SEED_STATUSES = [
    "pending",
    "confirmed",
    "processing",
    "packed",
    "shipped",
    "out_for_delivery",
    "delivered",
    "cancelled",
]

# Statuses that imply the order was confirmed / shipped / delivered
_CONFIRMED_OR_LATER = {"confirmed", "processing", "packed", "shipped", "out_for_delivery", "delivered"}
_SHIPPED_OR_LATER = {"shipped", "out_for_delivery", "delivered"}

SIZES = ["S", "M", "L", "XL"]
COLORS = ["Black", "White", "Blue", "Red", "Gray"]
PAYMENT_METHODS = ["Credit Card", "PayPal", "Apple Pay", "Google Pay"]
COURIERS = ["FedEx", "UPS", "DHL", "USPS"]
CUSTOMER_NOTES = [
    "Please leave at door",
    "Call before delivery",
    "Gift wrap requested",
    "Rush delivery needed",
    "Fragile - handle with care",
]
ADMIN_NOTES = [
    "Customer called about delivery",
    "Special packaging requested",
    "VIP customer",
    "Address verified",
]


def generate_order_number(
    now: datetime | None = None,
    rng: random.Random | None = None,
    taken: Iterable[str] = (),
) -> str:
    """
    ORD-<last 6 digits of epoch millis>-<3 random digits>, unique within `taken`.
    """
    rng = rng or random.Random()
    now = now or utc_now()
    stamp = str(int(now.timestamp() * 1000))[-6:].rjust(6, "0")
    taken = set(taken)
    while True:
        candidate = f"ORD-{stamp}-{rng.randrange(1000):03d}"
        if candidate not in taken:
            return candidate


def _random_created_at(now: datetime, rng: random.Random, days_ago: int = 30) -> datetime:
    return now - timedelta(
        days=rng.randrange(days_ago),
        hours=rng.randrange(24),
        minutes=rng.randrange(60),
    )


def seed_order(
    order_id: str,
    order_number: str,
    now: datetime,
    rng: random.Random,
) -> Order:
    customer = rng.choice(FIXTURE_CUSTOMERS)
    address = rng.choice(FIXTURE_ADDRESSES)

    items: list[OrderItem] = []
    for _ in range(rng.randint(1, 3)):
        product = rng.choice(FIXTURE_PRODUCTS)
        items.append(
            OrderItem(
                **product,
                quantity=rng.randint(1, 3),
                selected_size=rng.choice(SIZES) if rng.random() > 0.7 else None,
                selected_color=rng.choice(COLORS) if rng.random() > 0.7 else None,
            )
        )

    subtotal = items_subtotal(items)
    shipping_cost = shipping_for(subtotal)
    tax_amount = tax_for(subtotal)
    # 10% discount on roughly one order in five
    discount_amount = round(subtotal * 0.1, 2) if rng.random() > 0.8 else 0.0

    status = rng.choice(SEED_STATUSES)
    created_at = _random_created_at(now, rng)

    history = [
        StatusHistoryEntry(
            status="pending",
            timestamp=created_at,
            updated_by="system",
            note="Order placed",
        )
    ]
    status_at = created_at
    if status != "pending":
        status_at = created_at + timedelta(seconds=rng.uniform(0, 86400))
        history.append(
            StatusHistoryEntry(
                status=status,
                timestamp=status_at,
                updated_by="admin",
                note=f"Order {status}",
            )
        )

    shipping_info = None
    if status in _SHIPPED_OR_LATER or rng.random() > 0.5:
        shipping_info = ShippingInfo(
            courier=rng.choice(COURIERS),
            tracking_number=f"TRK{rng.randrange(10**12):012d}",
            tracking_url="https://tracking.example.com",
        )

    return Order(
        id=order_id,
        order_number=order_number,
        customer=customer.model_copy(),
        items=items,
        subtotal=subtotal,
        shipping_cost=shipping_cost,
        tax_amount=tax_amount,
        discount_amount=discount_amount,
        total_amount=total_for(subtotal, shipping_cost, tax_amount, discount_amount),
        status=status,
        payment_status="paid" if rng.random() > 0.2 else "pending",
        status_history=history,
        shipping_address=address.model_copy(),
        billing_address=address.model_copy(),
        payment_method=rng.choice(PAYMENT_METHODS),
        payment_transaction_id=f"txn_{int(now.timestamp())}_{rng.randrange(16**9):09x}",
        shipping_info=shipping_info,
        customer_notes=rng.choice(CUSTOMER_NOTES) if rng.random() > 0.7 else None,
        admin_notes=rng.choice(ADMIN_NOTES) if rng.random() > 0.8 else "",
        priority=rng.choice(["low", "normal", "high", "urgent"]),
        source=rng.choice(["website", "mobile_app", "phone", "admin"]),
        created_at=created_at,
        updated_at=status_at,
        confirmed_at=status_at if status in _CONFIRMED_OR_LATER else None,
        shipped_at=status_at if status in _SHIPPED_OR_LATER else None,
        delivered_at=status_at if status == "delivered" else None,
    )


def seed_orders(
    count: int = 25,
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> list[Order]:
    """
    Generate `count` synthetic orders, newest created_at first.
    """
    rng = rng or random.Random()
    now = now or utc_now()

    orders: list[Order] = []
    numbers: set[str] = set()
    for i in range(1, count + 1):
        number = generate_order_number(now, rng, numbers)
        numbers.add(number)
        orders.append(seed_order(f"order_{i:03d}", number, now, rng))

    return sorted(orders, key=lambda o: o.created_at, reverse=True)
