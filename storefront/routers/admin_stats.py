# storefront/routers/admin_stats.py
from fastapi import APIRouter, Depends, Query

from storefront.core.auth import require_admin
from storefront.dependencies import get_order_service
from storefront.schemas.order import BulkMutationRead
from storefront.schemas.stats import DailyRevenue, OrderStats, StatusCount
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/admin", tags=["Admin Stats"])


@router.get(
    "/stats",
    response_model=OrderStats,
    dependencies=[Depends(require_admin)],
)
def get_order_stats(service: OrderService = Depends(get_order_service)):
    """
    Dashboard summary over the whole collection.

    Buckets:
      - processing = confirmed + processing + packed
      - shipped    = shipped + out_for_delivery
      - cancelled  = cancelled + returned + refunded

    revenue counts shipped, out_for_delivery and delivered orders only.
    """
    return service.get_order_stats()


@router.get(
    "/stats/status-distribution",
    response_model=list[StatusCount],
    dependencies=[Depends(require_admin)],
)
def get_status_distribution(service: OrderService = Depends(get_order_service)):
    return service.get_status_distribution()


@router.get(
    "/stats/revenue-trend",
    response_model=list[DailyRevenue],
    dependencies=[Depends(require_admin)],
)
def get_revenue_trend(
    days: int = Query(default=7, ge=1, le=365),
    service: OrderService = Depends(get_order_service),
):
    """
    Recognised revenue per local calendar day, oldest day first.
    """
    return service.get_revenue_trend(days)


@router.post(
    "/orders/reset",
    response_model=BulkMutationRead,
    dependencies=[Depends(require_admin)],
)
def reset_orders(
    count: int | None = Query(default=None, ge=0, le=1000),
    service: OrderService = Depends(get_order_service),
):
    """
    Wipe the order collection and reseed it with demo data.
    """
    result = service.reset(count)
    return BulkMutationRead(
        orders=result.orders,
        updated_count=len(result.orders),
        persisted=result.report.persisted,
        error=result.report.error,
    )
