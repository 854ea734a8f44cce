"""
Transactions API Routes

Bank and wallet transactions with soft delete, links to bookkeeping
entries and CSV/Excel export.
"""

import datetime as dt
import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from fastapi.responses import Response
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from exports import EXPORT_FORMATS, TransactionExporter, export_filename

from ..auth import User, get_current_user, require_edit, require_permission
from ..crud import (
    apply_sort,
    apply_updates,
    bad_request,
    cursor_paginate,
    get_or_404,
    paginate,
    require_fields,
    require_non_null_updates,
    search_filter,
)
from ..database import get_db
from ..dependencies import schedule_invalidation
from ..models import BankAccount, BookkeepingEntry, Company, DigitalWallet, Transaction

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transactions", tags=["transactions"])

RESOURCE = "transactions"
REQUIRED_FIELDS = [
    "company_id",
    "date",
    "paid_by",
    "paid_to",
    "net_amount",
    "currency",
    "account_id",
    "account_type",
]
ACCOUNT_TYPES = ("bank", "wallet")
TRANSACTION_STATUSES = ("PENDING", "CLEARED", "CANCELLED")
SEARCH_FIELDS = ["paid_by", "paid_to", "reference", "description", "category", "currency"]
SORT_FIELDS = ["date", "net_amount", "paid_by", "paid_to", "created_at"]
DATE_RANGES = ("this_month", "last_month", "this_year", "last_year")


class TransactionInput(BaseModel):
    """Input model for creating or updating a transaction."""

    company_id: int | None = None
    date: dt.date | None = None
    paid_by: str | None = None
    paid_to: str | None = None
    net_amount: float | None = None
    incoming_amount: float | None = None
    outgoing_amount: float | None = None
    currency: str | None = None
    base_currency: str | None = None
    exchange_rate: float | None = None
    account_id: str | None = None
    account_type: str | None = None
    reference: str | None = None
    category: str | None = None
    subcategory: str | None = None
    description: str | None = None
    notes: str | None = None
    status: str | None = None
    reconciliation_status: str | None = None
    approval_status: str | None = None


class LinkInput(BaseModel):
    """Input model for linking a transaction to an entry."""

    entry_id: str | None = None


def serialize_transaction(tx: Transaction) -> dict[str, Any]:
    data = tx.to_dict()
    data["company_name"] = tx.company.trading_name if tx.company else None
    data["linked_entry"] = (
        {
            "id": tx.linked_entry.id,
            "type": tx.linked_entry.type,
            "category": tx.linked_entry.category,
            "amount": tx.linked_entry.amount,
            "currency": tx.linked_entry.currency,
        }
        if tx.linked_entry
        else None
    )
    return data


def date_range_bounds(name: str, today: dt.date | None = None) -> tuple[dt.date, dt.date]:
    """Resolve a named range to inclusive (start, end) dates."""
    today = today or dt.date.today()
    if name == "this_month":
        return today.replace(day=1), today
    if name == "last_month":
        end = today.replace(day=1) - dt.timedelta(days=1)
        return end.replace(day=1), end
    if name == "this_year":
        return today.replace(month=1, day=1), today
    if name == "last_year":
        return dt.date(today.year - 1, 1, 1), dt.date(today.year - 1, 12, 31)
    raise bad_request("Invalid date range", {"valid_ranges": list(DATE_RANGES)})


def _filters(
    company_id: int | None,
    search: str | None,
    status_filter: str | None,
    reconciliation_status: str | None,
    approval_status: str | None,
    account_id: str | None,
    account_type: str | None,
    currency: str | None,
    date_range: str | None,
    date_from: dt.date | None,
    date_to: dt.date | None,
) -> list:
    where = [Transaction.is_deleted.is_(False)]
    if company_id is not None:
        where.append(Transaction.company_id == company_id)
    if search:
        where.append(search_filter(Transaction, search, SEARCH_FIELDS))
    if status_filter and status_filter != "all":
        where.append(Transaction.status == status_filter.upper())
    if reconciliation_status and reconciliation_status != "all":
        where.append(Transaction.reconciliation_status == reconciliation_status.upper())
    if approval_status and approval_status != "all":
        where.append(Transaction.approval_status == approval_status.upper())
    if account_id and account_id != "all":
        where.append(Transaction.account_id == account_id)
    if account_type and account_type != "all":
        where.append(Transaction.account_type == account_type)
    if currency and currency != "all":
        where.append(Transaction.currency == currency)

    if date_range and date_range != "all":
        start, end = date_range_bounds(date_range)
        where.extend([Transaction.date >= start, Transaction.date <= end])
    else:
        if date_from:
            where.append(Transaction.date >= date_from)
        if date_to:
            where.append(Transaction.date <= date_to)

    return where


def _transaction_statistics(db: Session, where: list) -> dict[str, Any]:
    totals = db.execute(
        select(
            func.count(Transaction.id),
            func.coalesce(func.sum(Transaction.incoming_amount), 0),
            func.coalesce(func.sum(Transaction.outgoing_amount), 0),
            func.coalesce(func.sum(Transaction.net_amount), 0),
        ).where(*where)
    ).one()
    by_status = dict(
        db.execute(
            select(Transaction.status, func.count(Transaction.id)).where(*where).group_by(Transaction.status)
        ).all()
    )
    return {
        "total_transactions": totals[0],
        "total_incoming": float(totals[1]),
        "total_outgoing": float(totals[2]),
        "net_amount": float(totals[3]),
        "by_status": by_status,
    }


def _check_account(db: Session, account_type: str, account_id: str) -> None:
    if account_type not in ACCOUNT_TYPES:
        raise bad_request("Invalid account type", {"valid_types": list(ACCOUNT_TYPES)})
    model = BankAccount if account_type == "bank" else DigitalWallet
    get_or_404(db, model, account_id, "Bank account" if account_type == "bank" else "Digital wallet")


def _derive_amounts(data: dict[str, Any], tx: Transaction | None = None) -> None:
    """Fill incoming/outgoing and base currency amounts from the net amount."""
    net = data.get("net_amount", tx.net_amount if tx else None)
    if net is None:
        return
    if "net_amount" in data:
        data.setdefault("incoming_amount", net if net > 0 else 0)
        data.setdefault("outgoing_amount", -net if net < 0 else 0)

    rate = data.get("exchange_rate", tx.exchange_rate if tx else None) or 1
    if "net_amount" in data or "exchange_rate" in data:
        data["base_currency_amount"] = round(net * rate, 2)


def _check_status(data: dict[str, Any]) -> None:
    if data.get("status") is not None:
        data["status"] = data["status"].upper()
        if data["status"] not in TRANSACTION_STATUSES:
            raise bad_request("Invalid status", {"valid_statuses": list(TRANSACTION_STATUSES)})


@router.get("")
async def list_transactions(
    company_id: int | None = Query(None),
    search: str | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    reconciliation_status: str | None = Query(None),
    approval_status: str | None = Query(None),
    account_id: str | None = Query(None),
    account_type: str | None = Query(None),
    currency: str | None = Query(None),
    date_range: str | None = Query(None),
    date_from: dt.date | None = Query(None),
    date_to: dt.date | None = Query(None),
    sort_by: str = Query("date"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    cursor: str | None = Query(None),
    take: int | None = Query(None, ge=1, le=100),
    include_stats: bool = Query(False),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    """List transactions that are not deleted.

    Passing cursor or take switches to cursor pagination; otherwise page and
    page_size apply.

    Args:
        date_range: this_month, last_month, this_year or last_year (overrides date_from/date_to)
        include_stats: Attach incoming/outgoing totals

    Returns:
        Paginated list of transactions
    """
    where = _filters(
        company_id, search, status_filter, reconciliation_status, approval_status,
        account_id, account_type, currency, date_range, date_from, date_to,
    )
    query = select(Transaction).where(*where)

    if cursor is not None or take is not None:
        sort_field = sort_by if sort_by in ("date", "created_at") else "date"
        result = cursor_paginate(
            db, query, Transaction, sort_field, sort_order, cursor, take or 20, serialize_transaction
        )
    else:
        query = apply_sort(query, Transaction, sort_by, sort_order, SORT_FIELDS, default="date")
        result = paginate(db, query, page, page_size, serialize_transaction)

    if include_stats:
        result["statistics"] = _transaction_statistics(db, where)

    return result


@router.get("/export")
async def export_transactions(
    export_format: str = Query("csv", alias="format"),
    company_id: int | None = Query(None),
    search: str | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    reconciliation_status: str | None = Query(None),
    approval_status: str | None = Query(None),
    account_id: str | None = Query(None),
    account_type: str | None = Query(None),
    currency: str | None = Query(None),
    date_range: str | None = Query(None),
    date_from: dt.date | None = Query(None),
    date_to: dt.date | None = Query(None),
    user: User = Depends(require_permission("export")),
    db: Session = Depends(get_db),
) -> Response:
    """Export the filtered transactions as a CSV or xlsx download.

    Args:
        export_format: csv or xlsx

    Returns:
        File download response
    """
    if export_format not in EXPORT_FORMATS:
        raise bad_request("Unsupported export format", {"valid_formats": list(EXPORT_FORMATS)})

    where = _filters(
        company_id, search, status_filter, reconciliation_status, approval_status,
        account_id, account_type, currency, date_range, date_from, date_to,
    )
    transactions = db.scalars(
        select(Transaction).where(*where).order_by(Transaction.date.desc(), Transaction.id.desc())
    ).all()

    content = TransactionExporter().export(
        (serialize_transaction(tx) for tx in transactions), export_format
    )
    filename = export_filename(export_format)
    logger.info(f"{user.id} exported {len(transactions)} transactions as {export_format}")

    return Response(
        content=content,
        media_type=EXPORT_FORMATS[export_format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{transaction_id}")
async def get_transaction(
    transaction_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    """Get a transaction by ID."""
    return serialize_transaction(get_or_404(db, Transaction, transaction_id, "Transaction"))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_transaction(
    body: TransactionInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Record a transaction against a bank account or digital wallet.

    Base currency defaults to the company's, exchange rate to 1.
    """
    data = body.model_dump(exclude_unset=True)
    require_fields(data, REQUIRED_FIELDS)
    _check_status(data)

    company = get_or_404(db, Company, data["company_id"], "Company")
    _check_account(db, data["account_type"], data["account_id"])

    data.setdefault("base_currency", company.base_currency or data["currency"])
    if data.get("exchange_rate") is None:
        data["exchange_rate"] = 1.0
    _derive_amounts(data)

    tx = Transaction(**data)
    db.add(tx)
    db.commit()
    db.refresh(tx)

    schedule_invalidation(background_tasks, request, RESOURCE, tx.company_id)
    return serialize_transaction(tx)


@router.put("/{transaction_id}")
async def update_transaction(
    transaction_id: str,
    body: TransactionInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Update the provided fields of a transaction."""
    tx = get_or_404(db, Transaction, transaction_id, "Transaction")
    updates = body.model_dump(exclude_unset=True)
    require_non_null_updates(Transaction, updates)
    if updates.get("company_id") is not None:
        get_or_404(db, Company, updates["company_id"], "Company")

    _check_status(updates)

    if "account_type" in updates or "account_id" in updates:
        _check_account(
            db,
            updates.get("account_type", tx.account_type),
            updates.get("account_id", tx.account_id),
        )
    _derive_amounts(updates, tx)

    apply_updates(tx, updates)
    db.commit()
    db.refresh(tx)

    schedule_invalidation(background_tasks, request, RESOURCE, tx.company_id)
    return serialize_transaction(tx)


@router.delete("/{transaction_id}")
async def delete_transaction(
    transaction_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Soft delete a transaction."""
    tx = get_or_404(db, Transaction, transaction_id, "Transaction")

    tx.is_deleted = True
    tx.deleted_at = dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)
    db.commit()

    schedule_invalidation(background_tasks, request, RESOURCE, tx.company_id)
    return {"message": "Transaction deleted successfully"}


@router.post("/{transaction_id}/link")
async def link_transaction(
    transaction_id: str,
    body: LinkInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Link a transaction to a bookkeeping entry of the same company.

    Args:
        transaction_id: Transaction ID
        body: Entry to link

    Returns:
        Updated transaction
    """
    require_fields(body.model_dump(), ["entry_id"])
    tx = get_or_404(db, Transaction, transaction_id, "Transaction")
    entry = get_or_404(db, BookkeepingEntry, body.entry_id, "Entry")

    if entry.company_id != tx.company_id:
        raise bad_request("Transaction and entry belong to different companies")

    tx.linked_entry_id = entry.id
    tx.linked_entry_type = entry.type
    db.commit()
    db.refresh(tx)

    schedule_invalidation(background_tasks, request, RESOURCE, tx.company_id)
    return serialize_transaction(tx)


@router.post("/{transaction_id}/unlink")
async def unlink_transaction(
    transaction_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Remove a transaction's link to its bookkeeping entry."""
    tx = get_or_404(db, Transaction, transaction_id, "Transaction")

    if tx.linked_entry_id is None:
        raise bad_request("Transaction is not linked to an entry")

    tx.linked_entry_id = None
    tx.linked_entry_type = None
    db.commit()
    db.refresh(tx)

    schedule_invalidation(background_tasks, request, RESOURCE, tx.company_id)
    return serialize_transaction(tx)
