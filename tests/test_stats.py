import random
from datetime import timedelta

import pytest

from conftest import NOW, make_order, put
from storefront.schemas.order import ORDER_STATUSES
from storefront.services.stats_service import (
    StatsService,
    compute_order_stats,
    revenue_trend,
    status_distribution,
)


def orders_with(statuses, amount=10.0, created_at=NOW):
    return [
        make_order(f"o{i}", f"ORD-{i}", status=s, total_amount=amount, created_at=created_at)
        for i, s in enumerate(statuses)
    ]


def test_empty_collection():
    stats = compute_order_stats([], now=NOW)

    assert stats.total == 0
    assert stats.revenue == 0.0
    assert stats.average_order_value == 0.0
    assert stats.average_order_value_all == 0.0


def test_buckets():
    stats = compute_order_stats(orders_with(ORDER_STATUSES), now=NOW)

    assert stats.total == 10
    assert stats.pending == 1
    assert stats.processing == 3
    assert stats.shipped == 2
    assert stats.delivered == 1
    assert stats.cancelled == 3


def test_buckets_add_up_for_random_collections():
    rng = random.Random(11)
    for _ in range(20):
        statuses = [rng.choice(ORDER_STATUSES) for _ in range(rng.randint(0, 40))]
        s = compute_order_stats(orders_with(statuses), now=NOW)
        assert s.pending + s.processing + s.shipped + s.delivered + s.cancelled == s.total


def test_revenue_counts_only_recognised_statuses():
    orders = [
        make_order("a", "ORD-A", status="shipped", total_amount=30.0),
        make_order("b", "ORD-B", status="out_for_delivery", total_amount=20.0),
        make_order("c", "ORD-C", status="delivered", total_amount=50.0),
        make_order("d", "ORD-D", status="pending", total_amount=1000.0),
        make_order("e", "ORD-E", status="refunded", total_amount=70.0),
    ]

    stats = compute_order_stats(orders, now=NOW)

    assert stats.revenue == 100.0
    assert stats.average_order_value == 20.0
    assert stats.average_order_value_all == pytest.approx(1170.0 / 5)


def test_revenue_never_exceeds_total_amounts():
    rng = random.Random(3)
    for _ in range(20):
        statuses = [rng.choice(ORDER_STATUSES) for _ in range(rng.randint(1, 30))]
        orders = [
            make_order(f"o{i}", f"ORD-{i}", status=s, total_amount=round(rng.uniform(1, 500), 2))
            for i, s in enumerate(statuses)
        ]
        stats = compute_order_stats(orders, now=NOW)
        everything = sum(o.total_amount for o in orders)
        assert stats.revenue <= everything + 1e-9
        if all(s in {"shipped", "out_for_delivery", "delivered"} for s in statuses):
            assert stats.revenue == pytest.approx(everything)


def test_today_orders_uses_the_calendar_day():
    orders = [
        make_order("now", "ORD-1", created_at=NOW),
        make_order("old", "ORD-2", created_at=NOW - timedelta(days=2)),
        make_order("next", "ORD-3", created_at=NOW + timedelta(days=2)),
    ]

    assert compute_order_stats(orders, now=NOW).today_orders == 1


def test_stats_are_independent_of_input_order():
    orders = [
        make_order(f"o{i}", f"ORD-{i}", status="delivered", total_amount=0.1 * (i + 1))
        for i in range(30)
    ]

    forward = compute_order_stats(orders, now=NOW)
    backward = compute_order_stats(list(reversed(orders)), now=NOW)

    assert forward == backward


def test_status_distribution_is_zero_filled_in_pipeline_order():
    dist = status_distribution(orders_with(["shipped", "shipped", "pending"]))

    assert [d.status for d in dist] == list(ORDER_STATUSES)
    counts = {d.status: d.count for d in dist}
    assert counts["shipped"] == 2
    assert counts["pending"] == 1
    assert counts["refunded"] == 0


def test_revenue_trend():
    today = NOW.astimezone().date()
    orders = [
        make_order("a", "ORD-A", status="delivered", total_amount=40.0, created_at=NOW),
        make_order("b", "ORD-B", status="shipped", total_amount=10.0, created_at=NOW),
        make_order("c", "ORD-C", status="delivered", total_amount=25.0, created_at=NOW - timedelta(days=1)),
        make_order("d", "ORD-D", status="pending", total_amount=99.0, created_at=NOW),
        make_order("e", "ORD-E", status="delivered", total_amount=5.0, created_at=NOW - timedelta(days=9)),
    ]

    trend = revenue_trend(orders, days=3, today=today)

    assert [d.date for d in trend] == [today - timedelta(days=2), today - timedelta(days=1), today]
    assert [(d.revenue, d.order_count) for d in trend] == [(0.0, 0), (25.0, 1), (50.0, 2)]


def test_revenue_trend_rejects_empty_window():
    with pytest.raises(ValueError):
        revenue_trend([], days=0)


def test_stats_service_reads_the_store(store, sql_backend):
    put(sql_backend, make_order(status="delivered", total_amount=12.5))

    stats = StatsService(store).get_order_stats(now=NOW)

    assert stats.total == 1
    assert stats.delivered == 1
    assert stats.revenue == 12.5
