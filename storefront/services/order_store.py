# storefront/services/order_store.py
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable

from pydantic import ValidationError

from storefront.core.errors import (
    ConcurrencyConflictError,
    CorruptDocumentError,
    OrderNotFoundError,
    OrderValidationError,
    PersistenceError,
)
from storefront.repositories.order_repo import OrderBackend, StoredDocument
from storefront.schemas.order import Order, StatusHistoryEntry, utc_now
from storefront.services.notifier import (
    ChangeKind,
    ChangeNotifier,
    NullNotifier,
    OrderChangeEvent,
)
from storefront.services.pricing import reprice
from storefront.services.seed import generate_order_number, seed_orders
from storefront.services.status_engine import (
    PERMISSIVE,
    TransitionPolicy,
    apply_status_change,
    bulk_note,
)

logger = logging.getLogger(__name__)

# Fields a generic patch may not touch
PROTECTED_FIELDS = frozenset(
    {"id", "order_number", "created_at", "status_history", "customer_notes"}
)

Mutator = Callable[[Order], Order]


@dataclass
class WriteReport:
    """Outcome of the durability half of a mutation."""

    persisted: bool = True
    error: str | None = None


@dataclass
class WriteResult:
    orders: list[Order] = field(default_factory=list)
    report: WriteReport = field(default_factory=WriteReport)

    @property
    def order(self) -> Order:
        return self.orders[0]


def serialize_order(order: Order) -> dict:
    """Order -> JSON-safe document (datetimes as ISO-8601 strings)."""
    return order.model_dump(mode="json")


def parse_order(doc: StoredDocument) -> Order:
    """
    Document -> Order.

    Raises:
        CorruptDocumentError: if the document does not validate,
        including non-ISO required timestamps.
    """
    try:
        return Order.model_validate(doc.data)
    except ValidationError as e:
        raise CorruptDocumentError(doc.id, str(e))


def new_order_id() -> str:
    return uuid.uuid4().hex


class OrderStore:
    """
    Canonical owner of the order collection.

    Responsibilities:
      - keep the collection in memory, loading it lazily from the backend
      - seed an empty (or corrupt) collection
      - apply every mutation as read snapshot -> compute next -> write back
      - retry persistence I/O with backoff, re-applying the mutation when
        another writer got there first (version conflict)
      - tell the notifier after every applied mutation

    Readers get deep copies; nothing outside the store mutates its orders.

    A failed write does not roll back memory: the result carries
    persisted=False and the next successful write of that order catches
    the backend up.
    """

    def __init__(
        self,
        backend: OrderBackend,
        notifier: ChangeNotifier | None = None,
        *,
        policy: TransitionPolicy = PERMISSIVE,
        seed_on_empty: bool = True,
        seed_count: int = 25,
        max_attempts: int = 3,
        backoff_seconds: float = 0.2,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = utc_now,
        seeder: Callable[[int], list[Order]] = seed_orders,
    ):
        self.backend = backend
        self.notifier = notifier or NullNotifier()
        self.policy = policy
        self.seed_on_empty = seed_on_empty
        self.seed_count = seed_count
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep
        self._clock = clock
        self._seeder = seeder

        self._orders: dict[str, Order] = {}
        # Last version confirmed by the backend, per order id
        self._versions: dict[str, int] = {}
        self._loaded = False
        self._lock = threading.RLock()

    # ---- reads ----

    def load_all(self) -> list[Order]:
        """
        Full collection, newest created_at first (deep copies).
        """
        with self._lock:
            self._ensure_loaded()
            orders = [o.model_copy(deep=True) for o in self._orders.values()]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    def get(self, order_id: str) -> Order:
        with self._lock:
            self._ensure_loaded()
            order = self._orders.get(order_id)
            if order is None:
                raise OrderNotFoundError(order_id)
            return order.model_copy(deep=True)

    def refresh(self) -> list[Order]:
        """Drop the in-memory collection and reload it from the backend."""
        with self._lock:
            self._loaded = False
            self._orders.clear()
            self._versions.clear()
        return self.load_all()

    # ---- mutations ----

    def create(self, draft: dict, actor: str = "system") -> WriteResult:
        """
        Insert a new order.

        Assigns id / order_number when absent, stamps created_at and
        updated_at, and makes sure status_history holds the creation entry.

        Raises:
            OrderValidationError: malformed draft or duplicate id / number.
        """
        with self._lock:
            self._ensure_loaded()
            now = self._clock()

            data = dict(draft)
            data["id"] = data.get("id") or new_order_id()
            if data["id"] in self._orders:
                raise OrderValidationError(f"Order id already exists: {data['id']}")

            taken = {o.order_number for o in self._orders.values()}
            if not data.get("order_number"):
                data["order_number"] = generate_order_number(now, taken=taken)
            elif data["order_number"] in taken:
                raise OrderValidationError(
                    f"Order number already exists: {data['order_number']}"
                )

            data["created_at"] = now
            data["updated_at"] = now
            data.setdefault("status", "pending")
            if not data.get("status_history"):
                data["status_history"] = [
                    StatusHistoryEntry(
                        status=data["status"],
                        timestamp=now,
                        updated_by=actor,
                        note="Order placed",
                    )
                ]
            if "total_amount" not in data:
                data = reprice(data, {})

            order = self._validate(data)
            self._orders[order.id] = order
            report = self._persist({order.id: order})
            logger.info("Created order %s (%s)", order.id, order.order_number)
            self._publish("created", [order.id])
            return WriteResult([order.model_copy(deep=True)], report)

    def patch(self, order_id: str, fields: dict, actor: str = "admin") -> WriteResult:
        """
        Shallow-merge `fields` into an existing order and stamp updated_at.

        A status value is routed through the status engine (history entry,
        milestones). Pricing changes recompute total_amount unless it is
        given explicitly.

        Raises:
            OrderNotFoundError: unknown id (a patch never creates).
            OrderValidationError: protected field or invalid value.
        """
        protected = PROTECTED_FIELDS.intersection(fields)
        if protected:
            raise OrderValidationError(
                f"Fields cannot be patched: {', '.join(sorted(protected))}"
            )

        def mutator(order: Order) -> Order:
            return self._merge(order, fields, actor)

        return self._mutate([order_id], mutator, "updated", strict_ids=True)

    def apply_status(
        self,
        order_id: str,
        new_status: str,
        note: str | None = None,
        actor: str = "admin",
    ) -> WriteResult:
        """
        Move one order to `new_status` through the status engine.
        """

        def mutator(order: Order) -> Order:
            return apply_status_change(
                order, new_status, note, actor, now=self._clock(), policy=self.policy
            )

        return self._mutate([order_id], mutator, "status_changed", strict_ids=True)

    def bulk_patch(self, order_ids: Iterable[str], fields: dict, actor: str = "admin") -> WriteResult:
        """
        Apply the same merge to every existing id; unknown ids are skipped.
        """
        protected = PROTECTED_FIELDS.intersection(fields)
        if protected:
            raise OrderValidationError(
                f"Fields cannot be patched: {', '.join(sorted(protected))}"
            )

        def mutator(order: Order) -> Order:
            return self._merge(order, fields, actor)

        return self._mutate(order_ids, mutator, "bulk_updated")

    def bulk_status(self, order_ids: Iterable[str], new_status: str, actor: str = "admin") -> WriteResult:
        """
        Status change for every existing id with the note "Bulk update to <status>".
        """
        note = bulk_note(new_status)

        def mutator(order: Order) -> Order:
            return apply_status_change(
                order, new_status, note, actor, now=self._clock(), policy=self.policy
            )

        return self._mutate(order_ids, mutator, "bulk_updated")

    def delete(self, order_id: str) -> WriteReport:
        """
        Hard delete. Deleting an unknown id is a no-op.
        """
        with self._lock:
            self._ensure_loaded()
            if order_id not in self._orders:
                logger.info("Delete of unknown order %s ignored", order_id)
                return WriteReport()

            del self._orders[order_id]
            self._versions.pop(order_id, None)
            report = self._persist({}, deletes=[order_id])
            logger.info("Deleted order %s", order_id)
            self._publish("deleted", [order_id])
            return report

    def reset(self, count: int | None = None) -> WriteResult:
        """
        Replace the collection with freshly seeded orders.

        The stored orders are deleted in the same backend write that
        inserts the seed, so the backend never holds an empty or half
        seeded collection.
        """
        with self._lock:
            stale = set(self._orders)
            try:
                stale.update(d.id for d in self._with_retry("load", self.backend.load_documents))
            except PersistenceError as e:
                logger.error("Could not list stored orders for reset: %s", e)
                report = WriteReport(persisted=False, error=str(e))
            else:
                report = None

            orders = self._seeder(count if count is not None else self.seed_count)
            self._orders = {o.id: o for o in orders}
            self._versions = {}
            self._loaded = True

            if report is None:
                report = self._persist(dict(self._orders), deletes=sorted(stale))
            logger.info("Reset order collection with %d seeded orders", len(orders))
            self._publish("reset", list(self._orders))
            return WriteResult([o.model_copy(deep=True) for o in orders], report)

    # ---- internals ----

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return

        docs = self._with_retry("load", self.backend.load_documents)

        orders: dict[str, Order] = {}
        versions: dict[str, int] = {}
        corrupt = False
        for doc in docs:
            try:
                orders[doc.id] = parse_order(doc)
                versions[doc.id] = doc.version
            except CorruptDocumentError as e:
                logger.error("%s; discarding persisted orders", e)
                corrupt = True
                break

        stale_ids: list[str] = []
        if corrupt:
            stale_ids = [doc.id for doc in docs]
            orders, versions = {}, {}

        self._orders = orders
        self._versions = versions
        self._loaded = True

        if not orders and (self.seed_on_empty or corrupt):
            seeded = self._seeder(self.seed_count)
            self._orders = {o.id: o for o in seeded}
            logger.info("Seeded %d orders into empty collection", len(seeded))
            report = self._persist(dict(self._orders), deletes=stale_ids)
            if not report.persisted:
                logger.error("Seeded orders are in memory only: %s", report.error)
        else:
            logger.info("Loaded %d orders", len(orders))

    def _validate(self, data: dict) -> Order:
        try:
            return Order.model_validate(data)
        except ValidationError as e:
            raise OrderValidationError(
                "Order validation failed",
                [
                    {"field": ".".join(str(p) for p in err["loc"]), "reason": err["msg"]}
                    for err in e.errors()
                ],
            )

    def _merge(self, order: Order, fields: dict, actor: str) -> Order:
        now = self._clock()
        update = dict(fields)
        new_status = update.pop("status", None)

        current = order.model_dump()
        update = reprice(update, current)
        merged = self._validate({**current, **update, "updated_at": now})

        if new_status is not None and new_status != merged.status:
            merged = apply_status_change(
                merged, new_status, "Status updated", actor, now=now, policy=self.policy
            )
        return merged

    def _mutate(
        self,
        order_ids: Iterable[str],
        mutator: Mutator,
        kind: ChangeKind,
        strict_ids: bool = False,
    ) -> WriteResult:
        with self._lock:
            self._ensure_loaded()

            ids: list[str] = []
            for order_id in dict.fromkeys(order_ids):
                if order_id in self._orders:
                    ids.append(order_id)
                elif strict_ids:
                    raise OrderNotFoundError(order_id)

            # Compute every next state before touching the collection, so a
            # rejected change leaves nothing half-applied.
            changed = {oid: mutator(self._orders[oid].model_copy(deep=True)) for oid in ids}
            if not changed:
                return WriteResult([], WriteReport())

            # Memory takes the new states only once the write has settled;
            # a rebase may drop orders deleted remotely or reject the change.
            report = self._persist(changed, mutator=mutator)
            self._orders.update(changed)

            gone = [oid for oid in ids if oid not in changed]
            if gone and strict_ids:
                raise OrderNotFoundError(gone[0])
            if not changed:
                return WriteResult([], report)
            logger.info("Applied %s to %d order(s)", kind, len(changed))
            self._publish(kind, list(changed))
            return WriteResult([self._orders[oid].model_copy(deep=True) for oid in changed], report)

    def _persist(
        self,
        changed: dict[str, Order],
        deletes: list[str] | None = None,
        mutator: Mutator | None = None,
    ) -> WriteReport:
        """
        Write changed orders (and deletions) back in one backend call.

        Persistence failures are retried with exponential backoff. A
        version conflict reloads the conflicting order from the backend and,
        when a mutator is available, re-applies it before the next try.
        """
        last_error: Exception | None = None
        for attempt in range(self.max_attempts):
            if not changed and not deletes:
                return WriteReport()
            docs = [
                StoredDocument(
                    id=oid,
                    version=self._versions.get(oid, 0) + 1,
                    data=serialize_order(order),
                )
                for oid, order in changed.items()
            ]
            try:
                self.backend.write_documents(docs, deletes)
            except ConcurrencyConflictError as e:
                last_error = e
                logger.warning("%s; retrying (attempt %d)", e, attempt + 1)
                self._rebase(e.order_id, changed, mutator)
                continue
            except PersistenceError as e:
                last_error = e
                logger.warning(
                    "Order write failed (attempt %d/%d): %s",
                    attempt + 1,
                    self.max_attempts,
                    e,
                )
                if attempt + 1 < self.max_attempts:
                    self._sleep(self.backoff_seconds * (2 ** attempt))
                continue

            for doc in docs:
                self._versions[doc.id] = doc.version
            return WriteReport()

        logger.error("Failed to persist orders: %s", last_error)
        return WriteReport(persisted=False, error=str(last_error))

    def _rebase(self, order_id: str, changed: dict[str, Order], mutator: Mutator | None) -> None:
        try:
            remote = self.backend.fetch_document(order_id)
        except PersistenceError as e:
            logger.warning("Could not reload order %s: %s", order_id, e)
            return

        if remote is None:
            self._versions.pop(order_id, None)
            if mutator is not None:
                # Deleted by another writer; an update must not recreate it
                logger.info("Order %s was deleted remotely; dropping the change", order_id)
                self._orders.pop(order_id, None)
                changed.pop(order_id, None)
            return

        self._versions[order_id] = remote.version
        if mutator is None:
            return
        try:
            base = parse_order(remote)
        except CorruptDocumentError as e:
            logger.error("%s; overwriting with local copy", e)
            return
        self._orders[order_id] = base
        changed[order_id] = mutator(base.model_copy(deep=True))

    def _with_retry(self, operation: str, fn: Callable):
        last_error: PersistenceError | None = None
        for attempt in range(self.max_attempts):
            try:
                return fn()
            except PersistenceError as e:
                last_error = e
                logger.warning(
                    "Order %s failed (attempt %d/%d): %s",
                    operation,
                    attempt + 1,
                    self.max_attempts,
                    e,
                )
                if attempt + 1 < self.max_attempts:
                    self._sleep(self.backoff_seconds * (2 ** attempt))
        raise last_error

    def _publish(self, kind: ChangeKind, order_ids: list[str]) -> None:
        self.notifier.publish(OrderChangeEvent(kind=kind, order_ids=tuple(order_ids), at=self._clock()))
