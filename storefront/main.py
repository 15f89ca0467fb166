# storefront/main.py
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront.core.config import get_settings
from storefront.core.errors import (
    ConcurrencyConflictError,
    CorruptDocumentError,
    InvalidTransitionError,
    OrderNotFoundError,
    OrderValidationError,
    PersistenceError,
    StorefrontError,
)
from storefront.database import create_db_and_tables
from storefront.dependencies import get_order_service

# Routers
from storefront.routers.orders import router as orders_router
from storefront.routers.admin_stats import router as admin_stats_router

settings = get_settings()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Create the order document table (SQL backend).
      - Load the order collection, seeding it when empty.

    Shutdown:
      - No special cleanup needed for sync engine.
    """
    if settings.ORDER_BACKEND == "sql":
        logger.info("Startup: connecting to order database...")
        try:
            create_db_and_tables()
            logger.info("Startup: DB connection OK, tables verified.")
        except Exception as e:
            logger.error(f"Startup: DB connection FAILED: {e}")
            raise

    provider = app.dependency_overrides.get(get_order_service, get_order_service)
    try:
        orders = provider().fetch_orders()
        logger.info(f"Startup: {len(orders)} orders loaded.")
    except PersistenceError as e:
        # Serve anyway; reads retry on the next request
        logger.error(f"Startup: could not load orders: {e}")
    yield


app = FastAPI(
    title=settings.PROJECT_NAME or "Storefront Orders API",
    version="0.1.0",
    lifespan=lifespan,
)


# --- CORS configuration ---
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Global exception handler ---

# Map exception types to HTTP status codes
ERROR_STATUS_CODES: dict[type, int] = {
    OrderNotFoundError: 404,
    OrderValidationError: 400,
    InvalidTransitionError: 409,
    ConcurrencyConflictError: 409,
    PersistenceError: 503,
    CorruptDocumentError: 500,
}


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    """Map StorefrontError subclasses to HTTP responses."""
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    content = {"detail": str(exc), "error_type": type(exc).__name__}
    if isinstance(exc, OrderValidationError) and exc.errors:
        content["errors"] = exc.errors
    return JSONResponse(status_code=status_code, content=content)


# Versioned API prefix, e.g. /api/v1
app.include_router(orders_router, prefix=settings.API_V1_STR)
app.include_router(admin_stats_router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "storefront-orders"}
