# storefront/services/stats_service.py
import math
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Iterable

from storefront.schemas.order import ORDER_STATUSES, Order, utc_now
from storefront.schemas.stats import DailyRevenue, OrderStats, StatusCount

PROCESSING_STATUSES = frozenset({"confirmed", "processing", "packed"})
SHIPPED_STATUSES = frozenset({"shipped", "out_for_delivery"})
CANCELLED_STATUSES = frozenset({"cancelled", "returned", "refunded"})

# Revenue is recognised once an order is in transit or complete
REVENUE_STATUSES = frozenset({"shipped", "out_for_delivery", "delivered"})


def _local_day_bounds(now: datetime) -> tuple[datetime, datetime]:
    local_now = now.astimezone()
    start = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


def _local_date(moment: datetime) -> date:
    return moment.astimezone().date()


def compute_order_stats(orders: Iterable[Order], now: datetime | None = None) -> OrderStats:
    """
    Pure summary of an order set.

    Same input -> same output: sums use math.fsum, so the result does not
    depend on the order of the collection.
    """
    orders = list(orders)
    now = now or utc_now()
    day_start, day_end = _local_day_bounds(now)

    counts = Counter(o.status for o in orders)
    total = len(orders)

    revenue = math.fsum(o.total_amount for o in orders if o.status in REVENUE_STATUSES)
    all_amounts = math.fsum(o.total_amount for o in orders)

    today_orders = sum(
        1 for o in orders if day_start <= o.created_at.astimezone() < day_end
    )

    return OrderStats(
        total=total,
        pending=counts["pending"],
        processing=sum(counts[s] for s in PROCESSING_STATUSES),
        shipped=sum(counts[s] for s in SHIPPED_STATUSES),
        delivered=counts["delivered"],
        cancelled=sum(counts[s] for s in CANCELLED_STATUSES),
        today_orders=today_orders,
        revenue=revenue,
        average_order_value=revenue / total if total > 0 else 0.0,
        average_order_value_all=all_amounts / total if total > 0 else 0.0,
    )


def status_distribution(orders: Iterable[Order]) -> list[StatusCount]:
    """Count per raw status, zero-filled, in pipeline order."""
    counts = Counter(o.status for o in orders)
    return [StatusCount(status=s, count=counts[s]) for s in ORDER_STATUSES]


def revenue_trend(
    orders: Iterable[Order],
    days: int = 7,
    today: date | None = None,
) -> list[DailyRevenue]:
    """
    Recognised revenue for each local calendar day of the window ending today.
    """
    if days < 1:
        raise ValueError("days must be at least 1")

    today = today or _local_date(utc_now())
    window = [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]

    amounts: dict[date, list[float]] = {day: [] for day in window}
    for order in orders:
        if order.status not in REVENUE_STATUSES:
            continue
        day = _local_date(order.created_at)
        if day in amounts:
            amounts[day].append(order.total_amount)

    return [
        DailyRevenue(date=day, revenue=math.fsum(amounts[day]), order_count=len(amounts[day]))
        for day in window
    ]


class StatsService:
    """
    Read-side dashboard metrics over the store's current snapshot.
    """

    def __init__(self, store):
        self.store = store

    def get_order_stats(self, now: datetime | None = None) -> OrderStats:
        return compute_order_stats(self.store.load_all(), now=now)

    def get_status_distribution(self) -> list[StatusCount]:
        return status_distribution(self.store.load_all())

    def get_revenue_trend(self, days: int = 7, today: date | None = None) -> list[DailyRevenue]:
        return revenue_trend(self.store.load_all(), days=days, today=today)
