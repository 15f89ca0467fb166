# storefront/services/order_service.py
from datetime import date, datetime
from typing import Callable, Iterable, TypeVar

from storefront.core.errors import OrderValidationError, StorefrontError
from storefront.core.notifications import LoggingNotificationSink, NotificationSink
from storefront.schemas.order import (
    Order,
    OrderCreate,
    OrderItem,
    OrderUpdate,
    ShippingInfo,
    ShippingInfoUpdate,
)
from storefront.schemas.stats import DailyRevenue, OrderStats, StatusCount
from storefront.services.catalog import InMemoryProductCatalog, ProductCatalog
from storefront.services.notifier import OrderCallback, Unsubscribe
from storefront.services.order_query import (
    DateRange,
    SortKey,
    filter_orders,
    paginate,
    sort_orders,
)
from storefront.services.order_store import OrderStore, WriteReport, WriteResult
from storefront.services.pricing import items_subtotal, shipping_for, tax_for, total_for
from storefront.services.stats_service import StatsService

T = TypeVar("T", WriteResult, WriteReport)


class OrderService:
    """
    Admin-facing order operations.

    Responsibilities:
      - Snapshot catalog name/price into new line items and price the order
      - Delegate every mutation to the OrderStore
      - Report each outcome to the notification sink:
          success              -> ("success", "Success", ...)
          not persisted        -> ("warning", "Not saved", ...)
          domain error         -> ("error", "Error", ...), then re-raised
    """

    def __init__(
        self,
        store: OrderStore,
        catalog: ProductCatalog | None = None,
        sink: NotificationSink | None = None,
    ):
        self.store = store
        self.catalog = catalog or InMemoryProductCatalog()
        self.sink = sink or LoggingNotificationSink()
        self.stats = StatsService(store)

    # -------- Reads --------

    def fetch_orders(self) -> list[Order]:
        """All orders, newest first."""
        try:
            return self.store.load_all()
        except StorefrontError as e:
            self.sink.notify("error", "Error", f"Failed to load orders: {e}")
            raise

    def get_order(self, order_id: str) -> Order:
        return self.store.get(order_id)

    def filter_orders(
        self,
        status: str | None = None,
        search_term: str | None = None,
        date_range: DateRange | None = None,
    ) -> list[Order]:
        return filter_orders(self.fetch_orders(), status, search_term, date_range)

    def list_orders(
        self,
        status: str | None = None,
        search_term: str | None = None,
        date_range: DateRange | None = None,
        sort: SortKey = "created_at",
        descending: bool = True,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[Order], int]:
        """
        Filter, sort and page the collection.

        Returns the page and the number of matches before paging.
        """
        matched = self.filter_orders(status, search_term, date_range)
        ordered = sort_orders(matched, sort, descending)
        return paginate(ordered, skip, limit), len(matched)

    def get_order_stats(self, now: datetime | None = None) -> OrderStats:
        return self.stats.get_order_stats(now)

    def get_status_distribution(self) -> list[StatusCount]:
        return self.stats.get_status_distribution()

    def get_revenue_trend(self, days: int = 7, today: date | None = None) -> list[DailyRevenue]:
        return self.stats.get_revenue_trend(days, today)

    def subscribe_to_orders(self, callback: OrderCallback) -> Unsubscribe:
        return self.store.notifier.subscribe(callback)

    def refresh(self) -> list[Order]:
        return self.store.refresh()

    # -------- Mutations --------

    def create_order(self, payload: OrderCreate, actor: str = "system") -> WriteResult:
        """
        Create an order from a checkout or manual admin draft.

        Steps:
          1. Snapshot name/price for line items that omit them.
          2. Compute subtotal; shipping and tax default to the pricing rule.
          3. Hand the priced draft to the store (id, number, history, timestamps).

        Raises:
            OrderValidationError: unknown product with no price supplied.
        """
        return self._run(
            lambda: self.store.create(self._price_draft(payload), actor),
            "Order created successfully",
            "Failed to create order",
        )

    def update_order(
        self,
        order_id: str,
        payload: OrderUpdate | dict,
        actor: str = "admin",
    ) -> WriteResult:
        if isinstance(payload, OrderUpdate):
            fields = payload.model_dump(exclude_unset=True)
        else:
            fields = dict(payload)
        return self._run(
            lambda: self.store.patch(order_id, fields, actor),
            "Order updated successfully",
            "Failed to update order",
        )

    def delete_order(self, order_id: str) -> WriteReport:
        return self._run(
            lambda: self.store.delete(order_id),
            "Order deleted successfully",
            "Failed to delete order",
        )

    def update_order_status(
        self,
        order_id: str,
        status: str,
        note: str | None = None,
        actor: str = "admin",
    ) -> WriteResult:
        return self._run(
            lambda: self.store.apply_status(order_id, status, note, actor),
            f"Order status updated to {status}",
            "Failed to update order status",
        )

    def bulk_update_status(
        self,
        order_ids: Iterable[str],
        status: str,
        actor: str = "admin",
    ) -> WriteResult:
        order_ids = list(order_ids)
        return self._run(
            lambda: self.store.bulk_status(order_ids, status, actor),
            f"{len(order_ids)} orders updated to {status}",
            "Failed to update orders",
        )

    def add_admin_note(self, order_id: str, note: str, actor: str = "admin") -> WriteResult:
        """Replace the internal admin note."""
        return self._run(
            lambda: self.store.patch(order_id, {"admin_notes": note}, actor),
            "Admin note added",
            "Failed to add admin note",
        )

    def update_shipping_info(
        self,
        order_id: str,
        payload: ShippingInfoUpdate | dict,
        actor: str = "admin",
    ) -> WriteResult:
        """
        Merge tracking details over the order's existing shipping info.
        """
        if isinstance(payload, ShippingInfoUpdate):
            fields = payload.model_dump(exclude_unset=True)
        else:
            fields = dict(payload)

        def run() -> WriteResult:
            current = self.store.get(order_id).shipping_info
            base = current.model_dump() if current else ShippingInfo().model_dump()
            merged = ShippingInfo.model_validate({**base, **fields})
            return self.store.patch(order_id, {"shipping_info": merged.model_dump()}, actor)

        return self._run(run, "Shipping info updated", "Failed to update shipping info")

    def reset(self, count: int | None = None) -> WriteResult:
        """Wipe and reseed the collection (demo / staging tooling)."""
        return self._run(
            lambda: self.store.reset(count),
            "Demo orders regenerated",
            "Failed to reset orders",
        )

    # -------- Helpers --------

    def _run(self, action: Callable[[], T], success: str, failure: str) -> T:
        try:
            result = action()
        except StorefrontError as e:
            self.sink.notify("error", "Error", f"{failure}: {e}")
            raise

        report = result.report if isinstance(result, WriteResult) else result
        if report.persisted:
            self.sink.notify("success", "Success", success)
        else:
            self.sink.notify(
                "warning",
                "Not saved",
                f"{success}, but the change could not be saved: {report.error}",
            )
        return result

    def _price_draft(self, payload: OrderCreate) -> dict:
        errors: list[dict[str, str]] = []
        items: list[OrderItem] = []

        for draft in payload.items:
            name, price, image = draft.name, draft.price, draft.image
            if name is None or price is None:
                product = self.catalog.lookup(draft.product_id)
                if product is None and price is None:
                    errors.append(
                        {"product_id": draft.product_id, "reason": "Product not found"}
                    )
                    continue
                if product is not None:
                    name = name or product.name
                    price = price if price is not None else product.price
                    image = image or product.image
                else:
                    name = draft.product_id

            items.append(
                OrderItem(
                    product_id=draft.product_id,
                    name=name,
                    price=price,
                    quantity=draft.quantity,
                    image=image,
                    selected_size=draft.selected_size,
                    selected_color=draft.selected_color,
                )
            )

        if errors:
            raise OrderValidationError("Order validation failed", errors)

        subtotal = items_subtotal(items)
        shipping_cost = (
            payload.shipping_cost if payload.shipping_cost is not None else shipping_for(subtotal)
        )
        tax_amount = payload.tax_amount if payload.tax_amount is not None else tax_for(subtotal)

        draft = payload.model_dump(
            exclude={"items", "shipping_cost", "tax_amount", "order_number"}
        )
        if payload.order_number:
            draft["order_number"] = payload.order_number
        if draft.get("billing_address") is None:
            draft["billing_address"] = draft["shipping_address"]

        draft.update(
            items=[it.model_dump() for it in items],
            subtotal=subtotal,
            shipping_cost=shipping_cost,
            tax_amount=tax_amount,
            total_amount=total_for(subtotal, shipping_cost, tax_amount, payload.discount_amount),
        )
        return draft
