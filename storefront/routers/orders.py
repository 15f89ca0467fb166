# storefront/routers/orders.py
from datetime import datetime

from fastapi import APIRouter, Depends, Query, Response, status

from storefront.core.auth import Principal, require_admin
from storefront.dependencies import get_order_service
from storefront.schemas.order import (
    AdminNoteUpdate,
    BulkMutationRead,
    BulkStatusUpdate,
    Order,
    OrderCreate,
    OrderListRead,
    OrderMutationRead,
    OrderStatus,
    OrderStatusUpdate,
    OrderUpdate,
    ShippingInfoUpdate,
)
from storefront.services.order_query import DateRange, SortKey
from storefront.services.order_service import OrderService
from storefront.services.order_store import WriteResult

router = APIRouter(prefix="/orders", tags=["Orders"])


def _single(result: WriteResult) -> OrderMutationRead:
    return OrderMutationRead(
        order=result.order,
        persisted=result.report.persisted,
        error=result.report.error,
    )


@router.get("", response_model=OrderListRead)
def list_orders(
    status_filter: OrderStatus | None = Query(default=None, alias="status"),
    q: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    sort: SortKey = "created_at",
    desc: bool = True,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=500),
    service: OrderService = Depends(get_order_service),
    _: Principal = Depends(require_admin),
):
    """
    List orders (admin only).

    Filters are AND-combined; `count` is the number of matches before
    skip/limit are applied.
    """
    date_range = DateRange(start, end) if start or end else None
    orders, count = service.list_orders(
        status=status_filter,
        search_term=q,
        date_range=date_range,
        sort=sort,
        descending=desc,
        skip=skip,
        limit=limit,
    )
    return OrderListRead(orders=orders, count=count)


@router.post(
    "",
    response_model=OrderMutationRead,
    status_code=status.HTTP_201_CREATED,
)
def create_order(
    payload: OrderCreate,
    service: OrderService = Depends(get_order_service),
    principal: Principal = Depends(require_admin),
):
    """
    Create an order (manual admin entry or checkout relay).

    Backend assigns id, order_number (if absent), timestamps, pricing
    defaults and the initial "Order placed" history entry.
    """
    return _single(service.create_order(payload, actor=principal.actor))


@router.post("/bulk-status", response_model=BulkMutationRead)
def bulk_update_status(
    payload: BulkStatusUpdate,
    service: OrderService = Depends(get_order_service),
    principal: Principal = Depends(require_admin),
):
    """
    Move every listed order to the same status. Unknown ids are skipped.
    """
    result = service.bulk_update_status(payload.order_ids, payload.status, actor=principal.actor)
    return BulkMutationRead(
        orders=result.orders,
        updated_count=len(result.orders),
        persisted=result.report.persisted,
        error=result.report.error,
    )


@router.get("/{order_id}", response_model=Order)
def get_order(
    order_id: str,
    service: OrderService = Depends(get_order_service),
    _: Principal = Depends(require_admin),
):
    return service.get_order(order_id)


@router.patch("/{order_id}", response_model=OrderMutationRead)
def update_order(
    order_id: str,
    payload: OrderUpdate,
    service: OrderService = Depends(get_order_service),
    principal: Principal = Depends(require_admin),
):
    """
    Partial update. A `status` here is applied through the status engine.
    """
    return _single(service.update_order(order_id, payload, actor=principal.actor))


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_order(
    order_id: str,
    service: OrderService = Depends(get_order_service),
    _: Principal = Depends(require_admin),
):
    """
    Hard delete. Deleting an unknown id succeeds without effect.
    """
    service.delete_order(order_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{order_id}/status", response_model=OrderMutationRead)
def update_order_status(
    order_id: str,
    payload: OrderStatusUpdate,
    service: OrderService = Depends(get_order_service),
    principal: Principal = Depends(require_admin),
):
    """
    Change order status (admin only).

    Permissive by default; with STRICT_TRANSITIONS=true a move outside
    the transition table answers 409.
    """
    result = service.update_order_status(
        order_id, payload.status, payload.note, actor=principal.actor
    )
    return _single(result)


@router.patch("/{order_id}/admin-note", response_model=OrderMutationRead)
def add_admin_note(
    order_id: str,
    payload: AdminNoteUpdate,
    service: OrderService = Depends(get_order_service),
    principal: Principal = Depends(require_admin),
):
    return _single(service.add_admin_note(order_id, payload.note, actor=principal.actor))


@router.patch("/{order_id}/shipping", response_model=OrderMutationRead)
def update_shipping_info(
    order_id: str,
    payload: ShippingInfoUpdate,
    service: OrderService = Depends(get_order_service),
    principal: Principal = Depends(require_admin),
):
    return _single(service.update_shipping_info(order_id, payload, actor=principal.actor))
