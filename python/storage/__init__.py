"""
Local Storage Module

Persists JSON arrays of companies, products, bank accounts and digital
wallets under fixed keys for client-side caching.
"""

from .local_storage import (
    LocalStorage,
    StorageError,
    COMPANIES_KEY,
    PRODUCTS_KEY,
    BANK_ACCOUNTS_KEY,
    DIGITAL_WALLETS_KEY,
)
from .banks_wallets import BanksWalletsData, BanksWalletsStorage

__all__ = [
    "LocalStorage",
    "StorageError",
    "COMPANIES_KEY",
    "PRODUCTS_KEY",
    "BANK_ACCOUNTS_KEY",
    "DIGITAL_WALLETS_KEY",
    "BanksWalletsData",
    "BanksWalletsStorage",
]
