"""
Local Storage Migration

Moves companies, products, bank accounts and digital wallets between the
local storage keys and the database.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from storage import (
    BANK_ACCOUNTS_KEY,
    COMPANIES_KEY,
    DIGITAL_WALLETS_KEY,
    PRODUCTS_KEY,
    BanksWalletsData,
    BanksWalletsStorage,
    LocalStorage,
)
from validation import validate_logo

from .models import BankAccount, Base, Company, DigitalWallet, Product

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def to_snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def normalize_record(record: dict[str, Any]) -> dict[str, Any]:
    """Convert camelCase keys (as written by the web client) to snake_case."""
    return {to_snake_case(key): value for key, value in record.items()}


@dataclass
class MigrationReport:
    """Per-key counts of one migration run."""

    migrated: dict[str, int] = field(default_factory=dict)
    skipped: dict[str, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    @property
    def migrated_count(self) -> int:
        return sum(self.migrated.values())

    @property
    def skipped_count(self) -> int:
        return sum(self.skipped.values())

    def to_dict(self) -> dict:
        return {
            "migrated": self.migrated,
            "skipped": self.skipped,
            "migrated_count": self.migrated_count,
            "skipped_count": self.skipped_count,
            "errors": self.errors,
        }


def _columns(model: type[Base], record: dict[str, Any]) -> dict[str, Any]:
    """Keep only the keys that are columns of the model (id excluded)."""
    columns = model.__table__.columns
    return {key: value for key, value in record.items() if key in columns and key != "id"}


def _parse_date(value: Any) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


class LocalStorageMigrator:
    """Copies records between LocalStorage and the database."""

    def __init__(self, db: Session, storage: LocalStorage):
        self.db = db
        self.storage = storage
        self.banks_wallets = BanksWalletsStorage(storage)

    def import_all(self) -> MigrationReport:
        """Import every storage key into the database and commit once.

        Records that already exist (same registration number, same IBAN or
        wallet address) or that reference a missing company are skipped.
        """
        report = MigrationReport()
        self._import_companies(report)
        self.db.flush()

        data = self.banks_wallets.load()
        self._import_bank_accounts(data.bank_accounts, report)
        self._import_digital_wallets(data.digital_wallets, report)
        self._import_products(report)

        self.db.commit()
        logger.info(
            f"Local storage import finished: {report.migrated_count} migrated, "
            f"{report.skipped_count} skipped"
        )
        return report

    def _import_companies(self, report: MigrationReport) -> None:
        migrated = skipped = 0
        for raw in self.storage.get_items(COMPANIES_KEY):
            record = normalize_record(raw)
            registration_no = record.get("registration_no")
            if not registration_no or not record.get("legal_name") or not record.get("trading_name"):
                report.errors.append(f"Company without required fields skipped: {raw.get('id')}")
                skipped += 1
                continue
            if self.db.scalar(select(Company.id).where(Company.registration_no == registration_no)):
                skipped += 1
                continue

            values = _columns(Company, record)
            values["registration_date"] = _parse_date(values.get("registration_date"))
            values.pop("created_at", None)
            values.pop("updated_at", None)
            values["logo"] = validate_logo(values.get("logo"), values["trading_name"])
            self.db.add(Company(**values))
            migrated += 1

        report.migrated[COMPANIES_KEY] = migrated
        report.skipped[COMPANIES_KEY] = skipped

    def _company_exists(self, company_id: Any) -> bool:
        try:
            return self.db.get(Company, int(company_id)) is not None
        except (TypeError, ValueError):
            return False

    def _import_bank_accounts(self, accounts: list[dict[str, Any]], report: MigrationReport) -> None:
        migrated = skipped = 0
        for raw in accounts:
            record = normalize_record(raw)
            if not self._company_exists(record.get("company_id")):
                report.errors.append(f"Bank account {raw.get('id')} references an unknown company")
                skipped += 1
                continue
            iban = record.get("iban")
            if iban and self.db.scalar(select(BankAccount.id).where(BankAccount.iban == iban)):
                skipped += 1
                continue

            values = _columns(BankAccount, record)
            values["company_id"] = int(values["company_id"])
            values.pop("created_at", None)
            values.pop("updated_at", None)
            self.db.add(BankAccount(**values))
            migrated += 1

        report.migrated[BANK_ACCOUNTS_KEY] = migrated
        report.skipped[BANK_ACCOUNTS_KEY] = skipped

    def _import_digital_wallets(self, wallets: list[dict[str, Any]], report: MigrationReport) -> None:
        migrated = skipped = 0
        for raw in wallets:
            record = normalize_record(raw)
            if not self._company_exists(record.get("company_id")):
                report.errors.append(f"Digital wallet {raw.get('id')} references an unknown company")
                skipped += 1
                continue
            address = record.get("wallet_address")
            if address and self.db.scalar(
                select(DigitalWallet.id).where(DigitalWallet.wallet_address == address)
            ):
                skipped += 1
                continue

            values = _columns(DigitalWallet, record)
            values["company_id"] = int(values["company_id"])
            values.setdefault("currencies", [values["currency"]] if values.get("currency") else [])
            values.pop("created_at", None)
            values.pop("updated_at", None)
            self.db.add(DigitalWallet(**values))
            migrated += 1

        report.migrated[DIGITAL_WALLETS_KEY] = migrated
        report.skipped[DIGITAL_WALLETS_KEY] = skipped

    def _import_products(self, report: MigrationReport) -> None:
        migrated = skipped = 0
        for raw in self.storage.get_items(PRODUCTS_KEY):
            record = normalize_record(raw)
            if not record.get("name"):
                skipped += 1
                continue
            values = _columns(Product, record)
            values.pop("vendor_id", None)
            values.pop("created_at", None)
            values.pop("updated_at", None)
            if values.get("company_id") is not None and not self._company_exists(values["company_id"]):
                values["company_id"] = None
            self.db.add(Product(**values))
            migrated += 1

        report.migrated[PRODUCTS_KEY] = migrated
        report.skipped[PRODUCTS_KEY] = skipped

    def export_all(self) -> dict[str, int]:
        """Write the database records to their storage keys.

        Returns:
            Number of records written per key
        """
        companies = [company.to_dict() for company in self.db.scalars(select(Company)).all()]
        products = [product.to_dict() for product in self.db.scalars(select(Product)).all()]
        data = BanksWalletsData(
            bank_accounts=[a.to_dict() for a in self.db.scalars(select(BankAccount)).all()],
            digital_wallets=[w.to_dict() for w in self.db.scalars(select(DigitalWallet)).all()],
        )

        self.storage.set_items(COMPANIES_KEY, companies)
        self.storage.set_items(PRODUCTS_KEY, products)
        self.banks_wallets.save(data)

        return {
            COMPANIES_KEY: len(companies),
            PRODUCTS_KEY: len(products),
            BANK_ACCOUNTS_KEY: len(data.bank_accounts),
            DIGITAL_WALLETS_KEY: len(data.digital_wallets),
        }
