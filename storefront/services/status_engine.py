# storefront/services/status_engine.py
from dataclasses import dataclass
from datetime import datetime
from storefront.core.errors import InvalidTransitionError, OrderValidationError
from storefront.schemas.order import (
    ORDER_STATUSES,
    Order,
    StatusHistoryEntry,
    utc_now,
)

# Forward moves of the fulfillment pipeline plus the exits to
# cancelled / returned / refunded. Only consulted in strict mode.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"confirmed", "cancelled"}),
    "confirmed": frozenset({"processing", "packed", "shipped", "cancelled"}),
    "processing": frozenset({"packed", "shipped", "cancelled"}),
    "packed": frozenset({"shipped", "cancelled"}),
    "shipped": frozenset({"out_for_delivery", "delivered", "returned"}),
    "out_for_delivery": frozenset({"delivered", "returned"}),
    "delivered": frozenset({"returned", "refunded"}),
    "cancelled": frozenset({"refunded"}),
    "returned": frozenset({"refunded"}),
    "refunded": frozenset(),
}

# Status -> timestamp field stamped the first time the status is reached
MILESTONE_FIELDS: dict[str, str] = {
    "confirmed": "confirmed_at",
    "shipped": "shipped_at",
    "delivered": "delivered_at",
}


@dataclass(frozen=True)
class TransitionPolicy:
    """
    Decides whether a status change is allowed.

    Permissive by default: any status may follow any other so admins can
    make manual corrections. strict=True enforces ALLOWED_TRANSITIONS.
    Re-entering the current status is always allowed.
    """

    strict: bool = False

    def check(self, current: str, new: str) -> None:
        if new not in ORDER_STATUSES:
            raise OrderValidationError(f"Unknown order status: {new}")
        if not self.strict or current == new:
            return
        if new not in ALLOWED_TRANSITIONS.get(current, frozenset()):
            raise InvalidTransitionError(current, new)


PERMISSIVE = TransitionPolicy(strict=False)
STRICT = TransitionPolicy(strict=True)


def apply_status_change(
    order: Order,
    new_status: str,
    note: str | None = None,
    actor: str = "admin",
    *,
    now: datetime | None = None,
    policy: TransitionPolicy = PERMISSIVE,
) -> Order:
    """
    Return a copy of `order` moved to `new_status`.

    - appends {status, timestamp, updated_by, note} to status_history
    - sets status and updated_at
    - stamps confirmed_at / shipped_at / delivered_at only if still unset

    The input order is not modified.
    """
    policy.check(order.status, new_status)
    now = now or utc_now()

    entry = StatusHistoryEntry(
        status=new_status,
        timestamp=now,
        updated_by=actor,
        note=note,
    )
    update = {
        "status": new_status,
        "updated_at": now,
        "status_history": [*order.status_history, entry],
    }

    milestone = MILESTONE_FIELDS.get(new_status)
    if milestone and getattr(order, milestone) is None:
        update[milestone] = now

    return order.model_copy(update=update)


def bulk_note(new_status: str) -> str:
    return f"Bulk update to {new_status}"

