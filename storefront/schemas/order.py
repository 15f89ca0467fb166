# storefront/schemas/order.py
from datetime import datetime, timezone
from typing import Literal, get_args

from pydantic import ConfigDict, field_validator, model_validator
from sqlmodel import SQLModel, Field

OrderStatus = Literal[
    "pending",
    "confirmed",
    "processing",
    "packed",
    "shipped",
    "out_for_delivery",
    "delivered",
    "cancelled",
    "returned",
    "refunded",
]
PaymentStatus = Literal["pending", "paid", "failed", "refunded", "partial_refund"]
OrderPriority = Literal["low", "normal", "high", "urgent"]
OrderSource = Literal["website", "mobile_app", "phone", "admin"]

# Enumeration order is the pipeline order; stats and charts rely on it.
ORDER_STATUSES: tuple[str, ...] = get_args(OrderStatus)
PAYMENT_STATUSES: tuple[str, ...] = get_args(PaymentStatus)


def parse_timestamp(value):
    """
    Strict timestamp parsing for persisted documents.

    Accepts datetime objects and ISO-8601 strings only. Naive values are
    taken as UTC. Anything else (epoch numbers, free-form strings) is
    rejected so a corrupt record is never coerced into "now".
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value)
        except ValueError:
            raise ValueError(f"not an ISO-8601 timestamp: {value!r}")
    else:
        raise ValueError(f"unsupported timestamp type: {type(value).__name__}")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Embedded value objects
# ---------------------------------------------------------------------------


class CustomerInfo(SQLModel):
    """
    Snapshot of the customer at order time (not a live reference).
    """

    id: str
    email: str
    display_name: str
    phone: str | None = None

    @field_validator("email", "display_name")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v


class OrderItem(SQLModel):
    """
    Line item with name and unit price copied from the catalog at order time.
    """

    product_id: str
    name: str
    price: float = Field(ge=0)
    quantity: int = Field(gt=0)
    image: str | None = None
    selected_size: str | None = None
    selected_color: str | None = None

    @property
    def line_total(self) -> float:
        return self.price * self.quantity


class Address(SQLModel):
    """Shipping / billing address."""

    name: str = ""
    street: str
    city: str
    state: str = ""
    zip_code: str = ""
    country: str
    phone: str = ""


class ShippingInfo(SQLModel):
    courier: str = ""
    tracking_number: str = ""
    tracking_url: str | None = None
    estimated_delivery: datetime | None = None
    actual_delivery: datetime | None = None

    @field_validator("estimated_delivery", "actual_delivery", mode="before")
    @classmethod
    def parse_dates(cls, v):
        # Legacy documents store missing dates as ""
        if v == "":
            return None
        return parse_timestamp(v)


class StatusHistoryEntry(SQLModel):
    """One immutable step of the fulfillment timeline."""

    status: OrderStatus
    timestamp: datetime
    updated_by: str
    note: str | None = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def parse_ts(cls, v):
        if v is None or v == "":
            raise ValueError("timestamp is required")
        return parse_timestamp(v)


# ---------------------------------------------------------------------------
# Order document
# ---------------------------------------------------------------------------


class Order(SQLModel):
    """
    Purchase as it moves through the fulfillment pipeline.

    Invariants maintained by the store and status engine:
      - status_history is append-only and never empty
      - status == status_history[-1].status
      - total_amount == subtotal + shipping_cost + tax_amount - discount_amount
        whenever the pricing components are known
      - confirmed_at / shipped_at / delivered_at are set once
    """

    id: str
    order_number: str

    customer: CustomerInfo
    items: list[OrderItem] = Field(default_factory=list)

    # Pricing breakdown
    subtotal: float = 0.0
    shipping_cost: float = 0.0
    tax_amount: float = 0.0
    discount_amount: float = 0.0
    total_amount: float = 0.0

    # Status and tracking
    status: OrderStatus = "pending"
    payment_status: PaymentStatus = "pending"
    status_history: list[StatusHistoryEntry] = Field(default_factory=list)

    # Addresses
    shipping_address: Address
    billing_address: Address

    # Payment and shipping metadata, supplied by external actors
    payment_method: str = ""
    payment_transaction_id: str | None = None
    shipping_info: ShippingInfo | None = None

    # Notes and metadata
    customer_notes: str | None = None
    admin_notes: str = ""
    priority: OrderPriority = "normal"
    source: OrderSource = "website"

    # Timestamps
    created_at: datetime
    updated_at: datetime
    confirmed_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def parse_required_ts(cls, v):
        if v is None or v == "":
            raise ValueError("timestamp is required")
        return parse_timestamp(v)

    @field_validator("confirmed_at", "shipped_at", "delivered_at", mode="before")
    @classmethod
    def parse_optional_ts(cls, v):
        if v == "":
            return None
        return parse_timestamp(v)

    @model_validator(mode="after")
    def status_matches_history(self):
        if not self.status_history:
            raise ValueError("status_history cannot be empty")
        if self.status != self.status_history[-1].status:
            raise ValueError(
                f"status {self.status!r} does not match last history entry "
                f"{self.status_history[-1].status!r}"
            )
        return self


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class OrderItemDraft(SQLModel):
    """
    Line item as submitted at checkout.

    name/price are optional: when omitted they are snapshotted from
    the product catalog.
    """

    model_config = ConfigDict(extra="forbid")

    product_id: str
    quantity: int = Field(gt=0)
    name: str | None = None
    price: float | None = Field(default=None, ge=0)
    image: str | None = None
    selected_size: str | None = None
    selected_color: str | None = None


class OrderCreate(SQLModel):
    """
    Payload for creating an order (checkout or manual admin entry).

    Backend derives:
      - id, created_at, updated_at
      - status = 'pending' and the "Order placed" history entry
      - pricing components the caller did not supply
    """

    model_config = ConfigDict(extra="forbid")

    order_number: str | None = None
    customer: CustomerInfo
    items: list[OrderItemDraft] = Field(min_length=1)
    shipping_address: Address
    billing_address: Address | None = None

    payment_method: str = ""
    payment_status: PaymentStatus = "pending"
    payment_transaction_id: str | None = None

    shipping_cost: float | None = Field(default=None, ge=0)
    tax_amount: float | None = Field(default=None, ge=0)
    discount_amount: float = Field(default=0.0, ge=0)

    customer_notes: str | None = None
    priority: OrderPriority = "normal"
    source: OrderSource = "website"

    @field_validator("order_number", "customer_notes")
    @classmethod
    def normalize_optional(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class OrderUpdate(SQLModel):
    """
    Partial update payload. All fields are optional.

    id, created_at, status_history and customer_notes are not patchable.
    """

    model_config = ConfigDict(extra="forbid")

    customer: CustomerInfo | None = None
    items: list[OrderItem] | None = None
    subtotal: float | None = Field(default=None, ge=0)
    shipping_cost: float | None = Field(default=None, ge=0)
    tax_amount: float | None = Field(default=None, ge=0)
    discount_amount: float | None = Field(default=None, ge=0)
    total_amount: float | None = Field(default=None, ge=0)
    status: OrderStatus | None = None
    payment_status: PaymentStatus | None = None
    shipping_address: Address | None = None
    billing_address: Address | None = None
    payment_method: str | None = None
    payment_transaction_id: str | None = None
    shipping_info: ShippingInfo | None = None
    admin_notes: str | None = None
    priority: OrderPriority | None = None
    source: OrderSource | None = None


class OrderStatusUpdate(SQLModel):
    """
    Admin payload to change order status.
    """

    model_config = ConfigDict(extra="forbid")

    status: OrderStatus
    note: str | None = None


class BulkStatusUpdate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    order_ids: list[str] = Field(min_length=1)
    status: OrderStatus


class AdminNoteUpdate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    note: str


class ShippingInfoUpdate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    courier: str | None = None
    tracking_number: str | None = None
    tracking_url: str | None = None
    estimated_delivery: datetime | None = None
    actual_delivery: datetime | None = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class OrderMutationRead(SQLModel):
    """
    Result of a single-order mutation.

    persisted=False means the change is live in memory but the write to
    the document store failed after retries.
    """

    order: Order
    persisted: bool
    error: str | None = None


class BulkMutationRead(SQLModel):
    orders: list[Order]
    updated_count: int
    persisted: bool
    error: str | None = None


class OrderListRead(SQLModel):
    orders: list[Order]
    count: int
