from datetime import timedelta

import pytest

from conftest import NOW, make_order
from storefront.core.errors import InvalidTransitionError, OrderValidationError
from storefront.services.status_engine import (
    ALLOWED_TRANSITIONS,
    PERMISSIVE,
    STRICT,
    apply_status_change,
)
from storefront.schemas.order import ORDER_STATUSES


def test_status_change_appends_history_and_sets_status():
    order = make_order()
    later = NOW + timedelta(hours=1)

    updated = apply_status_change(order, "confirmed", "Payment received", "ops@example.com", now=later)

    assert updated.status == "confirmed"
    assert updated.updated_at == later
    assert len(updated.status_history) == 2
    entry = updated.status_history[-1]
    assert entry.status == "confirmed"
    assert entry.timestamp == later
    assert entry.updated_by == "ops@example.com"
    assert entry.note == "Payment received"
    assert updated.confirmed_at == later


def test_status_change_does_not_mutate_input():
    order = make_order()

    apply_status_change(order, "shipped", now=NOW)

    assert order.status == "pending"
    assert len(order.status_history) == 1
    assert order.shipped_at is None


def test_milestone_is_set_only_once():
    order = make_order()
    first = NOW + timedelta(hours=1)
    second = NOW + timedelta(days=2)

    order = apply_status_change(order, "delivered", now=first)
    order = apply_status_change(order, "delivered", note="Re-marked", now=second)

    assert order.delivered_at == first
    assert len(order.status_history) == 3
    assert order.status_history[-1].timestamp == second


def test_milestones_survive_a_detour_through_other_statuses():
    order = make_order()
    t1 = NOW + timedelta(hours=1)

    order = apply_status_change(order, "confirmed", now=t1)
    order = apply_status_change(order, "pending", now=t1 + timedelta(hours=1))
    order = apply_status_change(order, "confirmed", now=t1 + timedelta(hours=2))

    assert order.confirmed_at == t1


def test_history_is_append_only_and_matches_status():
    order = make_order()
    sequence = ["confirmed", "processing", "cancelled", "refunded", "pending", "delivered"]

    for n, new_status in enumerate(sequence, start=1):
        before = list(order.status_history)
        order = apply_status_change(order, new_status, now=NOW + timedelta(minutes=n))
        assert order.status_history[: len(before)] == before
        assert len(order.status_history) >= n + 1
        assert order.status == order.status_history[-1].status


def test_permissive_policy_allows_any_move():
    order = make_order(status="refunded")

    updated = apply_status_change(order, "pending", now=NOW, policy=PERMISSIVE)

    assert updated.status == "pending"


def test_strict_policy_rejects_moves_outside_the_table():
    order = make_order(status="delivered")

    with pytest.raises(InvalidTransitionError) as exc_info:
        apply_status_change(order, "pending", now=NOW, policy=STRICT)

    assert exc_info.value.current == "delivered"
    assert exc_info.value.new == "pending"


def test_strict_policy_allows_table_moves_and_reentry():
    order = make_order()

    order = apply_status_change(order, "confirmed", now=NOW, policy=STRICT)
    order = apply_status_change(order, "confirmed", now=NOW, policy=STRICT)

    assert order.status == "confirmed"


def test_unknown_status_is_a_validation_error():
    order = make_order()

    with pytest.raises(OrderValidationError):
        apply_status_change(order, "teleported", now=NOW)


def test_transition_table_covers_every_status():
    assert set(ALLOWED_TRANSITIONS) == set(ORDER_STATUSES)
    for targets in ALLOWED_TRANSITIONS.values():
        assert targets <= set(ORDER_STATUSES)
