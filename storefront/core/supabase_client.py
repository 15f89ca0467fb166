# storefront/core/supabase_client.py
from functools import lru_cache

from supabase import create_client, Client

from storefront.core.config import get_settings


@lru_cache
def supabase_admin() -> Client:
    """
    Create a Supabase client for the order document table.

    Prefers the service role key (bypasses RLS, backend only) and falls
    back to the anon key for projects where the orders table is exposed
    through RLS policies.

    WARNING:
      - Never expose service role key to frontend.

    Raises:
        RuntimeError: if SUPABASE_URL or both keys are missing.
    """
    settings = get_settings()
    key = settings.SUPABASE_SERVICE_ROLE_KEY or settings.SUPABASE_KEY
    if not settings.SUPABASE_URL or not key:
        raise RuntimeError(
            "ORDER_BACKEND=supabase needs SUPABASE_URL and "
            "SUPABASE_SERVICE_ROLE_KEY (or SUPABASE_KEY) in .env"
        )
    return create_client(settings.SUPABASE_URL, key)
