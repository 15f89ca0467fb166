# storefront/services/notifier.py
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Literal

from storefront.schemas.order import utc_now

logger = logging.getLogger(__name__)

ChangeKind = Literal[
    "created",
    "updated",
    "status_changed",
    "bulk_updated",
    "deleted",
    "reset",
]


@dataclass(frozen=True)
class OrderChangeEvent:
    """Published after a mutation has been applied to the collection."""

    kind: ChangeKind
    order_ids: tuple[str, ...]
    at: datetime = field(default_factory=utc_now)


OrderCallback = Callable[[OrderChangeEvent], None]
Unsubscribe = Callable[[], None]


class ChangeNotifier(ABC):
    """
    Seam for live-update delivery.

    The store calls publish() after every successful mutation; observers
    register with subscribe() and get back a function that deregisters
    them.
    """

    @abstractmethod
    def subscribe(self, callback: OrderCallback) -> Unsubscribe:
        pass

    @abstractmethod
    def publish(self, event: OrderChangeEvent) -> None:
        pass


class NullNotifier(ChangeNotifier):
    """Inert default: accepts subscriptions, delivers nothing."""

    def subscribe(self, callback: OrderCallback) -> Unsubscribe:
        logger.info("Order subscription started (no live channel attached)")

        def unsubscribe() -> None:
            logger.info("Order subscription ended")

        return unsubscribe

    def publish(self, event: OrderChangeEvent) -> None:
        pass


class InProcessEventBus(ChangeNotifier):
    """
    Synchronous fan-out to in-process subscribers.

    A subscriber that raises is logged and skipped; it never affects the
    other subscribers or the mutation that triggered the event.
    """

    def __init__(self):
        self._subscribers: dict[int, OrderCallback] = {}
        self._next_token = 0
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: OrderCallback) -> Unsubscribe:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = callback

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(token, None)

        return unsubscribe

    def publish(self, event: OrderChangeEvent) -> None:
        with self._lock:
            callbacks = list(self._subscribers.values())

        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Order subscriber failed on %s event for %s",
                    event.kind,
                    ", ".join(event.order_ids),
                )
