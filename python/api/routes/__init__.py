"""
API Routes Package

Contains all route modules for the bookkeeping API.
"""

from .bank_accounts import router as bank_accounts_router
from .cache import router as cache_router
from .calendar import router as calendar_router
from .clients import router as clients_router
from .companies import router as companies_router
from .data_migration import router as data_migration_router
from .digital_wallets import router as digital_wallets_router
from .entries import router as entries_router
from .invoices import router as invoices_router
from .notes import router as notes_router
from .payment_methods import router as payment_methods_router
from .products import router as products_router
from .transactions import router as transactions_router
from .vendors import router as vendors_router

__all__ = [
    "bank_accounts_router",
    "cache_router",
    "calendar_router",
    "clients_router",
    "companies_router",
    "data_migration_router",
    "digital_wallets_router",
    "entries_router",
    "invoices_router",
    "notes_router",
    "payment_methods_router",
    "products_router",
    "transactions_router",
    "vendors_router",
]
