# storefront/core/config.py
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Everything has a local-friendly default so the API boots against a
    SQLite file with no .env at all.

    Remote document store (ORDER_BACKEND=supabase):
      - SUPABASE_URL
      - SUPABASE_KEY (anon key) or SUPABASE_SERVICE_ROLE_KEY
    """

    PROJECT_NAME: str = "Storefront Orders API"
    API_V1_STR: str = "/api/v1"

    # Persistence
    DATABASE_URL: str = "sqlite:///./storefront.db"
    ORDER_BACKEND: Literal["sql", "supabase"] = "sql"
    ORDERS_TABLE: str = "orders"

    # Supabase (remote document store)
    SUPABASE_URL: str | None = None
    SUPABASE_KEY: str | None = None
    # Service role key bypasses RLS (backend only)
    SUPABASE_SERVICE_ROLE_KEY: str | None = None

    # Admin JWT verification
    JWT_SECRET: str = "change-me"
    JWT_ALG: str = "HS256"
    AUTH_DISABLED: bool = False

    # Bootstrap
    SEED_ON_EMPTY: bool = True
    SEED_ORDER_COUNT: int = 25

    # Order lifecycle
    STRICT_TRANSITIONS: bool = False

    # Persistence retry (attempts include the first try)
    PERSIST_MAX_ATTEMPTS: int = 3
    PERSIST_BACKOFF_SECONDS: float = 0.2

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
