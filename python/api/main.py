"""
FastAPI Main Application

Entry point for the bookkeeping API.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from cache import CacheInvalidationDispatcher, CacheStore, CacheTTL, StatisticsCache
from storage import LocalStorage

from .auth import config_dir
from .database import get_db_context, init_db
from .routes import (
    bank_accounts_router,
    cache_router,
    calendar_router,
    clients_router,
    companies_router,
    data_migration_router,
    digital_wallets_router,
    entries_router,
    invoices_router,
    notes_router,
    payment_methods_router,
    products_router,
    transactions_router,
    vendors_router,
)
from .statistics import compute_company_statistics

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting Bookkeeping Hub API...")
    init_db()
    yield
    # Shutdown
    logger.info("Shutting down Bookkeeping Hub API...")


def _error_response(status_code: int, detail, headers=None) -> JSONResponse:
    if isinstance(detail, dict) and "error" in detail:
        body = detail
    else:
        body = {"error": detail}
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body), headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """Map every error to the {"error", "details"} response shape."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _error_response(exc.status_code, exc.detail, getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _error_response(
            400,
            {"error": "Invalid request", "details": exc.errors()},
        )

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
        return _error_response(409, "Conflict with existing data")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return _error_response(500, "Internal server error")


def create_app() -> FastAPI:
    """Build the application with its own cache instances."""
    configure_logging()

    app = FastAPI(
        title="Bookkeeping Hub API",
        description="API for company onboarding, invoicing and bookkeeping records",
        version="1.0.0",
        lifespan=lifespan,
    )

    cache_config = config_dir() / "cache.yaml"
    ttl = CacheTTL.from_yaml(cache_config)
    app.state.cache_ttl = ttl
    app.state.cache_store = CacheStore.from_yaml(cache_config)
    app.state.statistics_cache = StatisticsCache(ttl_seconds=ttl.company_stats)
    app.state.cache_dispatcher = CacheInvalidationDispatcher(
        app.state.cache_store, app.state.statistics_cache
    )
    app.state.local_storage = LocalStorage()

    async def warm_company_statistics():
        async def fetch():
            with get_db_context() as db:
                return compute_company_statistics(db)

        return await app.state.statistics_cache.refresh(fetch)

    app.state.cache_dispatcher.register_warmer(warm_company_statistics)

    # CORS configuration
    cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Include routers
    for router in (
        companies_router,
        clients_router,
        vendors_router,
        products_router,
        invoices_router,
        payment_methods_router,
        bank_accounts_router,
        digital_wallets_router,
        entries_router,
        transactions_router,
        notes_router,
        calendar_router,
        cache_router,
        data_migration_router,
    ):
        app.include_router(router, prefix="/api")

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": "Bookkeeping Hub API",
            "version": "1.0.0",
            "status": "running",
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/api")
    async def api_info():
        """API information endpoint."""
        return {
            "endpoints": {
                "companies": "/api/companies",
                "clients": "/api/clients",
                "vendors": "/api/vendors",
                "products": "/api/products",
                "invoices": "/api/invoices",
                "payment_methods": "/api/payment-methods",
                "bank_accounts": "/api/bank-accounts",
                "digital_wallets": "/api/digital-wallets",
                "entries": "/api/entries",
                "transactions": "/api/transactions",
                "notes": "/api/notes",
                "calendar": "/api/calendar/events",
                "cache": "/api/cache/invalidate",
                "data_migration": "/api/data-migration/import",
            },
            "authentication": "auth-token cookie or Bearer token required outside development",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=os.getenv("ENVIRONMENT", "development") == "development",
    )
