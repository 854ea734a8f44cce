"""
ORM Models

SQLAlchemy models for every persisted resource.
"""

import uuid
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    def to_dict(self) -> dict[str, Any]:
        """Column values keyed by attribute name, dates as ISO strings."""
        result = {}
        for column in self.__table__.columns:
            value = getattr(self, column.key)
            if isinstance(value, (date, datetime)):
                value = value.isoformat()
            result[column.key] = value
        return result


def _uuid() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def Money(**kwargs) -> Column:
    return Column(Numeric(15, 2, asdecimal=False), **kwargs)


class TimestampMixin:
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)


class Company(Base, TimestampMixin):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    legal_name = Column(String(255), nullable=False)
    trading_name = Column(String(255), nullable=False)
    registration_no = Column(String(100), nullable=False, unique=True)
    registration_date = Column(Date, nullable=True)
    country_of_registration = Column(String(100), nullable=True)
    base_currency = Column(String(10), nullable=True)
    business_license_nr = Column(String(100), nullable=True)
    vat_number = Column(String(50), nullable=True)
    industry = Column(String(100), nullable=True, index=True)
    entity_type = Column(String(100), nullable=True)
    address = Column(Text, nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    website = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default="Active", index=True)
    logo = Column(Text, nullable=True)
    facebook_url = Column(String(255), nullable=True)
    instagram_url = Column(String(255), nullable=True)
    x_url = Column(String(255), nullable=True)
    youtube_url = Column(String(255), nullable=True)
    whatsapp_number = Column(String(50), nullable=True)
    telegram_number = Column(String(50), nullable=True)
    main_contact_email = Column(String(255), nullable=True)
    main_contact_type = Column(String(50), nullable=True)


class Client(Base, TimestampMixin):
    __tablename__ = "clients"

    id = Column(String(32), primary_key=True, default=_uuid)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=True, index=True)
    client_type = Column(String(20), nullable=True)
    name = Column(String(255), nullable=False)
    contact_person_name = Column(String(255), nullable=True)
    contact_person_position = Column(String(255), nullable=True)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    website = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    zip_code = Column(String(20), nullable=True)
    country = Column(String(100), nullable=True)
    industry = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default="ACTIVE", index=True)
    notes = Column(Text, nullable=True)
    registration_number = Column(String(100), nullable=True)
    vat_number = Column(String(50), nullable=True)
    passport_number = Column(String(50), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    total_invoiced = Money(nullable=False, default=0)
    total_paid = Money(nullable=False, default=0)
    last_invoice_date = Column(Date, nullable=True)

    company = relationship("Company")


class Vendor(Base, TimestampMixin):
    __tablename__ = "vendors"

    id = Column(String(32), primary_key=True, default=_uuid)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=True, index=True)
    company_name = Column(String(255), nullable=False)
    contact_person = Column(String(255), nullable=True)
    contact_email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    website = Column(String(255), nullable=True)
    payment_terms = Column(Integer, nullable=False, default=30)
    currency = Column(String(10), nullable=True)
    payment_method = Column(String(50), nullable=True)
    billing_address = Column(Text, nullable=True)
    items_services_sold = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    company_registration_nr = Column(String(100), nullable=True)
    vat_number = Column(String(50), nullable=True)
    vendor_country = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    company = relationship("Company")


class Product(Base, TimestampMixin):
    __tablename__ = "products"

    id = Column(String(32), primary_key=True, default=_uuid)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=True, index=True)
    vendor_id = Column(String(32), ForeignKey("vendors.id"), nullable=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Money(nullable=False, default=0)
    currency = Column(String(10), nullable=False, default="USD")
    cost = Money(nullable=True)
    cost_currency = Column(String(10), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    vendor = relationship("Vendor")


invoice_payment_methods = Table(
    "invoice_payment_methods",
    Base.metadata,
    Column("invoice_id", String(32), ForeignKey("invoices.id", ondelete="CASCADE"), primary_key=True),
    Column("payment_method_id", String(32), ForeignKey("payment_methods.id"), primary_key=True),
)


class PaymentMethod(Base, TimestampMixin):
    __tablename__ = "payment_methods"

    id = Column(String(32), primary_key=True, default=_uuid)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=True, index=True)
    type = Column(String(20), nullable=False)
    name = Column(String(255), nullable=False)
    account_name = Column(String(255), nullable=True)
    bank_name = Column(String(255), nullable=True)
    bank_address = Column(Text, nullable=True)
    iban = Column(String(50), nullable=True)
    swift_code = Column(String(20), nullable=True)
    account_number = Column(String(50), nullable=True)
    wallet_address = Column(String(255), nullable=True)
    currency = Column(String(10), nullable=True)
    details = Column(Text, nullable=True)

    invoices = relationship(
        "Invoice", secondary=invoice_payment_methods, back_populates="payment_methods"
    )


class Invoice(Base, TimestampMixin):
    __tablename__ = "invoices"

    id = Column(String(32), primary_key=True, default=_uuid)
    invoice_number = Column(String(50), nullable=False, unique=True, index=True)
    client_id = Column(String(32), ForeignKey("clients.id"), nullable=True, index=True)
    from_company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    client_name = Column(String(255), nullable=False)
    client_email = Column(String(255), nullable=True)
    client_address = Column(Text, nullable=True)
    subtotal = Money(nullable=False, default=0)
    tax_rate = Column(Float, nullable=False, default=0)
    tax_amount = Money(nullable=False, default=0)
    total_amount = Money(nullable=False, default=0)
    currency = Column(String(10), nullable=False, default="USD")
    status = Column(String(20), nullable=False, default="draft", index=True)
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    paid_date = Column(Date, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    template = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)

    client = relationship("Client")
    from_company = relationship("Company")
    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
    )
    payment_methods = relationship(
        "PaymentMethod", secondary=invoice_payment_methods, back_populates="invoices"
    )


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(String(32), primary_key=True, default=_uuid)
    invoice_id = Column(String(32), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(32), ForeignKey("products.id"), nullable=True)
    position = Column(Integer, nullable=False, default=0)
    product_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    quantity = Column(Float, nullable=False, default=1)
    unit_price = Money(nullable=False, default=0)
    currency = Column(String(10), nullable=True)
    total = Money(nullable=False, default=0)

    invoice = relationship("Invoice", back_populates="items")


class BankAccount(Base, TimestampMixin):
    __tablename__ = "bank_accounts"

    id = Column(String(32), primary_key=True, default=_uuid)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    bank_name = Column(String(255), nullable=False)
    bank_address = Column(Text, nullable=True)
    currency = Column(String(10), nullable=False)
    iban = Column(String(50), nullable=True)
    swift_code = Column(String(20), nullable=True)
    account_number = Column(String(50), nullable=True)
    account_name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    notes = Column(Text, nullable=True)

    company = relationship("Company")


class DigitalWallet(Base, TimestampMixin):
    __tablename__ = "digital_wallets"

    id = Column(String(32), primary_key=True, default=_uuid)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    wallet_type = Column(String(50), nullable=False)
    wallet_name = Column(String(255), nullable=False)
    wallet_address = Column(String(255), nullable=False)
    currency = Column(String(10), nullable=False)
    currencies = Column(JSON, nullable=False, default=list)
    description = Column(Text, nullable=True)
    blockchain = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    notes = Column(Text, nullable=True)

    company = relationship("Company")


class BookkeepingEntry(Base, TimestampMixin):
    __tablename__ = "bookkeeping_entries"

    id = Column(String(32), primary_key=True, default=_uuid)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    type = Column(String(20), nullable=False, index=True)
    category = Column(String(100), nullable=False)
    subcategory = Column(String(100), nullable=True)
    description = Column(Text, nullable=False)
    amount = Money(nullable=False)
    currency = Column(String(10), nullable=False)
    date = Column(Date, nullable=False, index=True)
    reference = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    account_id = Column(String(32), nullable=True)
    account_type = Column(String(20), nullable=True)
    cogs = Money(nullable=True)
    cogs_paid = Money(nullable=True)
    is_from_invoice = Column(Boolean, nullable=False, default=False)
    invoice_id = Column(String(32), ForeignKey("invoices.id"), nullable=True)

    company = relationship("Company")


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id = Column(String(32), primary_key=True, default=_uuid)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    paid_by = Column(String(255), nullable=False)
    paid_to = Column(String(255), nullable=False)
    net_amount = Money(nullable=False)
    incoming_amount = Money(nullable=True)
    outgoing_amount = Money(nullable=True)
    currency = Column(String(10), nullable=False)
    base_currency = Column(String(10), nullable=False)
    base_currency_amount = Money(nullable=False)
    exchange_rate = Column(Float, nullable=True)
    account_id = Column(String(32), nullable=False)
    account_type = Column(String(20), nullable=False)
    reference = Column(String(100), nullable=True)
    category = Column(String(100), nullable=True)
    subcategory = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    linked_entry_id = Column(String(32), ForeignKey("bookkeeping_entries.id"), nullable=True, index=True)
    linked_entry_type = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default="PENDING", index=True)
    reconciliation_status = Column(String(20), nullable=False, default="UNRECONCILED")
    approval_status = Column(String(20), nullable=False, default="PENDING")
    is_deleted = Column(Boolean, nullable=False, default=False, index=True)
    deleted_at = Column(DateTime, nullable=True)

    company = relationship("Company")
    linked_entry = relationship("BookkeepingEntry")


class Note(Base, TimestampMixin):
    __tablename__ = "notes"

    id = Column(String(32), primary_key=True, default=_uuid)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=True, index=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=True)
    is_completed = Column(Boolean, nullable=False, default=False)
    event_id = Column(String(32), ForeignKey("calendar_events.id"), nullable=True)


class CalendarEvent(Base, TimestampMixin):
    __tablename__ = "calendar_events"

    id = Column(String(32), primary_key=True, default=_uuid)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    date = Column(Date, nullable=False, index=True)
    time = Column(String(10), nullable=True)
    type = Column(String(20), nullable=False, default="other")
    priority = Column(String(20), nullable=False, default="medium")
