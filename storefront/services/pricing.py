# storefront/services/pricing.py
from typing import Iterable

from storefront.schemas.order import OrderItem

# Fixed tax rate (8%)
TAX_RATE = 0.08

# Orders at or above this subtotal ship free
FREE_SHIPPING_THRESHOLD = 50.0
FLAT_SHIPPING_COST = 9.99

# Fields whose change invalidates a stored total_amount
PRICING_FIELDS = frozenset(
    {"items", "subtotal", "shipping_cost", "tax_amount", "discount_amount"}
)


def items_subtotal(items: Iterable[OrderItem]) -> float:
    return round(sum(item.line_total for item in items), 2)


def shipping_for(subtotal: float) -> float:
    return 0.0 if subtotal >= FREE_SHIPPING_THRESHOLD else FLAT_SHIPPING_COST


def tax_for(subtotal: float) -> float:
    return round(subtotal * TAX_RATE, 2)


def total_for(
    subtotal: float,
    shipping_cost: float,
    tax_amount: float,
    discount_amount: float,
) -> float:
    return round(subtotal + shipping_cost + tax_amount - discount_amount, 2)


def reprice(fields: dict, current: dict) -> dict:
    """
    Keep total_amount consistent after a partial update.

    `fields` is the update being applied, `current` the order as it is
    now (both plain dicts). Returns the update with subtotal and
    total_amount filled in where they are derived:

      - items given without subtotal -> subtotal from line items
      - any pricing component given without total_amount -> total recomputed

    An explicit total_amount always wins (externally sourced orders).
    """
    if not PRICING_FIELDS.intersection(fields):
        return fields

    out = dict(fields)
    if "items" in out and "subtotal" not in out:
        items = [OrderItem.model_validate(it) for it in out["items"]]
        out["subtotal"] = items_subtotal(items)

    if "total_amount" not in out:
        merged = {**current, **out}
        out["total_amount"] = total_for(
            float(merged.get("subtotal") or 0.0),
            float(merged.get("shipping_cost") or 0.0),
            float(merged.get("tax_amount") or 0.0),
            float(merged.get("discount_amount") or 0.0),
        )
    return out
