# storefront/services/order_query.py
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, Literal

from storefront.schemas.order import Order

SortKey = Literal["created_at", "total_amount", "status"]

SORT_KEYS: dict[str, Callable[[Order], object]] = {
    "created_at": lambda o: o.created_at,
    "total_amount": lambda o: o.total_amount,
    "status": lambda o: o.status,
}


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class DateRange:
    """Inclusive bounds on created_at; either side may be open."""

    start: datetime | None = None
    end: datetime | None = None

    def contains(self, moment: datetime) -> bool:
        moment = _aware(moment)
        if self.start is not None and moment < _aware(self.start):
            return False
        if self.end is not None and moment > _aware(self.end):
            return False
        return True


def matches_search(order: Order, term: str) -> bool:
    """Case-insensitive substring match on order number, customer name or email."""
    needle = term.lower()
    return (
        needle in order.order_number.lower()
        or needle in order.customer.display_name.lower()
        or needle in order.customer.email.lower()
    )


def filter_orders(
    orders: Iterable[Order],
    status: str | None = None,
    search_term: str | None = None,
    date_range: DateRange | None = None,
) -> list[Order]:
    """
    AND-combine the given filters; a missing (or empty) filter does not
    constrain. Input order is preserved.
    """
    result: list[Order] = []
    for order in orders:
        if status and order.status != status:
            continue
        if search_term and not matches_search(order, search_term):
            continue
        if date_range is not None and not date_range.contains(order.created_at):
            continue
        result.append(order)
    return result


def sort_orders(
    orders: Iterable[Order],
    key: SortKey = "created_at",
    descending: bool = True,
) -> list[Order]:
    """
    Stable sort: ties keep their input order in both directions.
    """
    try:
        key_fn = SORT_KEYS[key]
    except KeyError:
        raise ValueError(f"Unsupported sort key: {key}")
    return sorted(orders, key=key_fn, reverse=descending)


def paginate(orders: list[Order], skip: int = 0, limit: int = 50) -> list[Order]:
    skip = max(skip, 0)
    if limit <= 0:
        return []
    return orders[skip : skip + limit]
