# storefront/schemas/stats.py
import datetime

from pydantic import ConfigDict
from sqlmodel import SQLModel

from storefront.schemas.order import OrderStatus


class OrderStats(SQLModel):
    """
    Summary metrics for the admin orders dashboard.

    Buckets:
      - processing = confirmed + processing + packed
      - shipped    = shipped + out_for_delivery
      - cancelled  = cancelled + returned + refunded

    average_order_value is revenue / total; average_order_value_all is the
    mean total_amount over every order regardless of status.
    """
    model_config = ConfigDict(extra="forbid")

    total: int
    pending: int
    processing: int
    shipped: int
    delivered: int
    cancelled: int
    today_orders: int
    revenue: float
    average_order_value: float
    average_order_value_all: float


class StatusCount(SQLModel):
    """
    Number of orders currently in one raw status.
    """
    model_config = ConfigDict(extra="forbid")

    status: OrderStatus
    count: int


class DailyRevenue(SQLModel):
    """
    Recognised revenue per local calendar day.
    """
    model_config = ConfigDict(extra="forbid")

    date: datetime.date
    revenue: float
    order_count: int
