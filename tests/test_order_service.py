import pytest

from conftest import NOW, FlakyBackend, checkout_draft, make_order, put
from storefront.core.errors import OrderNotFoundError, OrderValidationError
from storefront.schemas.order import OrderCreate, OrderUpdate, ShippingInfoUpdate
from storefront.services.catalog import CatalogProduct, InMemoryProductCatalog
from storefront.services.order_query import DateRange
from storefront.services.order_service import OrderService


def test_create_and_progress_to_delivered(service, sink, clock):
    created = service.create_order(OrderCreate(**checkout_draft()))
    order = created.order

    assert order.subtotal == 50.0
    assert order.shipping_cost == 0.0
    assert order.tax_amount == 4.0
    assert order.total_amount == 54.0
    assert order.billing_address == order.shipping_address

    for status in ["confirmed", "shipped", "delivered"]:
        clock.advance(hours=1)
        service.update_order_status(order.id, status)

    order = service.get_order(order.id)
    assert [h.status for h in order.status_history] == ["pending", "confirmed", "shipped", "delivered"]
    assert order.delivered_at == clock()

    stats = service.get_order_stats(now=NOW)
    assert stats.delivered == 1
    assert (stats.pending, stats.processing, stats.shipped, stats.cancelled) == (0, 0, 0, 0)
    assert stats.revenue == 54.0

    assert sink.levels == ["success"] * 4


def test_checkout_actor_is_system_by_default(service):
    order = service.create_order(OrderCreate(**checkout_draft())).order

    assert order.status_history[0].updated_by == "system"


def test_manual_entry_records_the_admin(service):
    order = service.create_order(OrderCreate(**checkout_draft()), actor="ops@example.com").order

    assert order.status_history[0].updated_by == "ops@example.com"


def test_create_snapshots_catalog_name_and_price(service):
    draft = checkout_draft(items=[{"product_id": "prod_003", "quantity": 2}])

    order = service.create_order(OrderCreate(**draft)).order

    [item] = order.items
    assert item.name == "Organic Cotton T-Shirt"
    assert item.price == 29.99
    assert order.subtotal == 59.98
    assert order.shipping_cost == 0.0
    assert order.total_amount == round(59.98 + 4.8, 2)


def test_catalog_is_not_consulted_after_creation(store, sink):
    catalog = InMemoryProductCatalog([CatalogProduct(product_id="p1", name="Lamp", price=40.0)])
    service = OrderService(store, catalog=catalog, sink=sink)
    order = service.create_order(
        OrderCreate(**checkout_draft(items=[{"product_id": "p1", "quantity": 1}]))
    ).order

    catalog._products["p1"] = CatalogProduct(product_id="p1", name="Lamp", price=99.0)
    service.update_order_status(order.id, "confirmed")

    assert service.get_order(order.id).items[0].price == 40.0


def test_small_order_pays_flat_shipping(service):
    draft = checkout_draft(items=[{"product_id": "x", "name": "Pen", "price": 5.0, "quantity": 2}])

    order = service.create_order(OrderCreate(**draft)).order

    assert order.shipping_cost == 9.99
    assert order.total_amount == round(10.0 + 9.99 + 0.8, 2)


def test_unknown_product_without_price_is_rejected(service, sink):
    draft = checkout_draft(items=[{"product_id": "nope", "quantity": 1}])

    with pytest.raises(OrderValidationError) as exc_info:
        service.create_order(OrderCreate(**draft))

    assert exc_info.value.errors == [{"product_id": "nope", "reason": "Product not found"}]
    assert sink.toasts[-1][:2] == ("error", "Error")
    assert service.fetch_orders() == []


def test_update_order_with_payload(service, sql_backend):
    put(sql_backend, make_order())

    result = service.update_order("o1", OrderUpdate(priority="urgent", payment_status="paid"))

    assert result.order.priority == "urgent"
    assert result.order.payment_status == "paid"
    assert result.order.admin_notes == ""


def test_update_missing_order_toasts_error(service, sink):
    with pytest.raises(OrderNotFoundError):
        service.update_order("ghost", {"priority": "low"})

    assert sink.toasts == [("error", "Error", "Failed to update order: Order not found: ghost")]


def test_admin_note_replaces_previous_note(service, sql_backend):
    put(sql_backend, make_order(admin_notes="old"))

    result = service.add_admin_note("o1", "Customer called")

    assert result.order.admin_notes == "Customer called"


def test_shipping_info_merges_over_existing(service, sql_backend):
    put(sql_backend, make_order())

    service.update_shipping_info("o1", ShippingInfoUpdate(courier="UPS"))
    result = service.update_shipping_info(
        "o1", ShippingInfoUpdate(tracking_number="1Z", estimated_delivery=NOW)
    )

    info = result.order.shipping_info
    assert info.courier == "UPS"
    assert info.tracking_number == "1Z"
    assert info.estimated_delivery == NOW


def test_shipping_info_defaults_when_absent(service, sql_backend):
    put(sql_backend, make_order())

    info = service.update_shipping_info("o1", {"tracking_url": "https://t.example.com"}).order.shipping_info

    assert (info.courier, info.tracking_number) == ("", "")


def test_bulk_update_five_of_ten(service, sql_backend, sink):
    put(sql_backend, *[make_order(f"o{i}", f"ORD-{i}") for i in range(10)])
    chosen = ["o0", "o2", "o4", "o6", "o8"]

    result = service.bulk_update_status(chosen, "cancelled")

    assert len(result.orders) == 5
    assert len(service.filter_orders(status="cancelled")) == 5
    assert len(service.filter_orders(status="pending")) == 5
    assert sink.toasts[-1] == ("success", "Success", "5 orders updated to cancelled")


def test_delete_order(service, sql_backend, sink):
    put(sql_backend, make_order())

    service.delete_order("o1")
    service.delete_order("o1")

    assert service.fetch_orders() == []
    assert sink.levels == ["success", "success"]


def test_unsaved_change_warns(make_store, sql_backend, sink):
    put(sql_backend, make_order())
    flaky = FlakyBackend(sql_backend)
    service = OrderService(make_store(flaky), sink=sink)
    service.fetch_orders()
    flaky.fail_writes = 3

    result = service.update_order_status("o1", "confirmed")

    assert not result.report.persisted
    assert service.get_order("o1").status == "confirmed"
    level, title, message = sink.toasts[-1]
    assert (level, title) == ("warning", "Not saved")
    assert "could not be saved" in message


def test_list_orders_filters_sorts_and_pages(service, sql_backend):
    put(
        sql_backend,
        make_order("o1", "ORD-1", email="a@x.com", total_amount=10.0),
        make_order("o2", "ORD-2", email="b@x.com", total_amount=30.0),
        make_order("o3", "ORD-3", email="a@y.com", total_amount=20.0),
    )

    page, count = service.list_orders(search_term="a@", sort="total_amount", descending=True, limit=1)

    assert count == 2
    assert [o.id for o in page] == ["o3"]


def test_filter_orders_by_date_range(service, sql_backend):
    put(sql_backend, make_order())

    assert len(service.filter_orders(date_range=DateRange(start=NOW, end=NOW))) == 1


def test_subscribe_to_orders(service, sql_backend):
    put(sql_backend, make_order())
    events = []
    unsubscribe = service.subscribe_to_orders(events.append)

    service.add_admin_note("o1", "hi")
    unsubscribe()
    service.add_admin_note("o1", "bye")

    assert [(e.kind, e.order_ids) for e in events] == [("updated", ("o1",))]


def test_reset_and_refresh(service):
    result = service.reset(6)

    assert len(result.orders) == 6
    assert len(service.refresh()) == 6
