# storefront/dependencies.py
from functools import lru_cache

from storefront.core.config import Settings, get_settings
from storefront.repositories.order_repo import OrderBackend, SQLOrderBackend
from storefront.services.notifier import InProcessEventBus
from storefront.services.order_service import OrderService
from storefront.services.order_store import OrderStore
from storefront.services.status_engine import PERMISSIVE, STRICT


def build_backend(settings: Settings) -> OrderBackend:
    """
    Pick the order document backend from ORDER_BACKEND.
    """
    if settings.ORDER_BACKEND == "supabase":
        from storefront.core.supabase_client import supabase_admin
        from storefront.repositories.supabase_order_repo import SupabaseOrderBackend

        return SupabaseOrderBackend(supabase_admin(), settings.ORDERS_TABLE)

    from storefront.database import engine

    return SQLOrderBackend(engine)


def build_order_service(settings: Settings, backend: OrderBackend | None = None) -> OrderService:
    store = OrderStore(
        backend or build_backend(settings),
        InProcessEventBus(),
        policy=STRICT if settings.STRICT_TRANSITIONS else PERMISSIVE,
        seed_on_empty=settings.SEED_ON_EMPTY,
        seed_count=settings.SEED_ORDER_COUNT,
        max_attempts=settings.PERSIST_MAX_ATTEMPTS,
        backoff_seconds=settings.PERSIST_BACKOFF_SECONDS,
    )
    return OrderService(store)


@lru_cache
def get_order_service() -> OrderService:
    """
    One OrderService (and so one in-memory collection) per process.

    Routers depend on this; tests replace it via app.dependency_overrides.
    """
    return build_order_service(get_settings())
