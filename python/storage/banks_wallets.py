"""
Banks & Wallets Storage

Loads and saves bank accounts and digital wallets as a pair.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from .local_storage import BANK_ACCOUNTS_KEY, DIGITAL_WALLETS_KEY, LocalStorage

logger = logging.getLogger(__name__)


@dataclass
class BanksWalletsData:
    """Bank accounts and digital wallets held in storage."""

    bank_accounts: list[dict[str, Any]] = field(default_factory=list)
    digital_wallets: list[dict[str, Any]] = field(default_factory=list)


class BanksWalletsStorage:
    """Storage service for bank accounts and digital wallets."""

    def __init__(self, storage: LocalStorage):
        self.storage = storage

    def load(self) -> BanksWalletsData:
        return BanksWalletsData(
            bank_accounts=self.storage.get_items(BANK_ACCOUNTS_KEY),
            digital_wallets=self.storage.get_items(DIGITAL_WALLETS_KEY),
        )

    def save(self, data: BanksWalletsData) -> None:
        self.storage.set_items(BANK_ACCOUNTS_KEY, data.bank_accounts)
        self.storage.set_items(DIGITAL_WALLETS_KEY, data.digital_wallets)
        logger.info(
            f"Saved {len(data.bank_accounts)} bank accounts and "
            f"{len(data.digital_wallets)} digital wallets"
        )

    def clear(self) -> None:
        self.storage.remove(BANK_ACCOUNTS_KEY)
        self.storage.remove(DIGITAL_WALLETS_KEY)

    def has_data(self) -> bool:
        return self.storage.has(BANK_ACCOUNTS_KEY) or self.storage.has(DIGITAL_WALLETS_KEY)
