# storefront/models/order.py
from datetime import datetime, timezone

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field


class OrderDocument(SQLModel, table=True):
    """
    One order, stored as a JSON document keyed by order id.

    The document in `data` is the source of truth. order_number, status
    and created_at are denormalised copies so the table can be browsed
    and indexed without unpacking JSON.

    version is the optimistic-concurrency token: every successful write
    bumps it by one, and updates are conditional on the previous value.
    """

    __tablename__ = "order_documents"

    id: str = Field(
        primary_key=True,
        index=True,
        max_length=64,
    )

    order_number: str = Field(
        unique=True,
        index=True,
        description="Human-readable order number (ORD-<6digits>-<3digits>)",
    )

    # pending | confirmed | ... | refunded
    status: str = Field(
        index=True,
        description="Current status copied from the document",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
        description="Creation timestamp copied from the document",
    )

    version: int = Field(
        default=1,
        ge=1,
        description="Optimistic-concurrency counter",
    )

    data: dict = Field(
        sa_column=Column(JSON, nullable=False),
        description="Full order document (ISO-8601 dates)",
    )
