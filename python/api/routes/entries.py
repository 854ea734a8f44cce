"""
Bookkeeping Entries API Routes

Revenue and expense entries with aggregate statistics.
"""

import logging
import datetime as dt
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..auth import User, get_current_user, require_edit
from ..crud import (
    apply_sort,
    apply_updates,
    bad_request,
    get_or_404,
    paginate,
    require_fields,
    require_non_null_updates,
    search_filter,
)
from ..database import get_db
from ..dependencies import schedule_invalidation
from ..models import BookkeepingEntry, Company, Transaction

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/entries", tags=["entries"])

RESOURCE = "entries"
REQUIRED_FIELDS = ["company_id", "type", "category", "description", "amount", "currency", "date"]
ENTRY_TYPES = ("revenue", "expense")
SEARCH_FIELDS = ["description", "category", "subcategory", "reference"]
SORT_FIELDS = ["date", "amount", "category", "created_at"]


class EntryInput(BaseModel):
    """Input model for creating or updating a bookkeeping entry."""

    company_id: int | None = None
    type: str | None = None
    category: str | None = None
    subcategory: str | None = None
    description: str | None = None
    amount: float | None = None
    currency: str | None = None
    date: dt.date | None = None
    reference: str | None = None
    notes: str | None = None
    account_id: str | None = None
    account_type: str | None = None
    cogs: float | None = None
    cogs_paid: float | None = None
    is_from_invoice: bool | None = None
    invoice_id: str | None = None


def serialize_entry(entry: BookkeepingEntry) -> dict[str, Any]:
    data = entry.to_dict()
    data["company"] = (
        {"id": entry.company.id, "trading_name": entry.company.trading_name}
        if entry.company
        else None
    )
    return data


def _check_entry(data: dict[str, Any]) -> None:
    if "type" in data and data["type"] not in ENTRY_TYPES:
        raise bad_request("Invalid entry type", {"valid_types": list(ENTRY_TYPES)})
    if data.get("amount") is not None and data["amount"] < 0:
        raise bad_request("Amount cannot be negative")


def entry_statistics(db: Session, where: list) -> dict[str, Any]:
    """Totals for the filtered entries, split by revenue and expense."""
    overall = db.execute(
        select(
            func.count(BookkeepingEntry.id),
            func.coalesce(func.sum(BookkeepingEntry.amount), 0),
            func.coalesce(func.avg(BookkeepingEntry.amount), 0),
            func.coalesce(func.sum(BookkeepingEntry.cogs), 0),
            func.coalesce(func.sum(BookkeepingEntry.cogs_paid), 0),
        ).where(*where)
    ).one()

    by_type = {
        entry_type: (total_count, float(total_amount))
        for entry_type, total_count, total_amount in db.execute(
            select(
                BookkeepingEntry.type,
                func.count(BookkeepingEntry.id),
                func.coalesce(func.sum(BookkeepingEntry.amount), 0),
            )
            .where(*where)
            .group_by(BookkeepingEntry.type)
        ).all()
    }
    income_count, income_total = by_type.get("revenue", (0, 0.0))
    expense_count, expense_total = by_type.get("expense", (0, 0.0))

    return {
        "count": overall[0],
        "total_amount": float(overall[1]),
        "average_amount": round(float(overall[2]), 2),
        "total_cogs": float(overall[3]),
        "total_cogs_paid": float(overall[4]),
        "income": {"total": income_total, "count": income_count},
        "expense": {"total": expense_total, "count": expense_count},
        "net_profit": round(income_total - expense_total, 2),
    }


@router.get("")
async def list_entries(
    company_id: int | None = Query(None),
    type_filter: str | None = Query(None, alias="type"),
    category: str | None = Query(None),
    currency: str | None = Query(None),
    date_from: dt.date | None = Query(None),
    date_to: dt.date | None = Query(None),
    search: str | None = Query(None),
    sort_by: str = Query("date"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    include_stats: bool = Query(False),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    """List bookkeeping entries.

    Args:
        company_id: Owning company
        type_filter: revenue or expense
        date_from: Earliest entry date (inclusive)
        date_to: Latest entry date (inclusive)
        include_stats: Attach revenue/expense totals for the filtered set

    Returns:
        Paginated list of entries
    """
    where = []
    if company_id is not None:
        where.append(BookkeepingEntry.company_id == company_id)
    if type_filter and type_filter != "all":
        where.append(BookkeepingEntry.type == type_filter)
    if category:
        where.append(BookkeepingEntry.category == category)
    if currency:
        where.append(BookkeepingEntry.currency == currency)
    if date_from:
        where.append(BookkeepingEntry.date >= date_from)
    if date_to:
        where.append(BookkeepingEntry.date <= date_to)
    if search:
        where.append(search_filter(BookkeepingEntry, search, SEARCH_FIELDS))

    query = apply_sort(
        select(BookkeepingEntry).where(*where),
        BookkeepingEntry,
        sort_by,
        sort_order,
        SORT_FIELDS,
        default="date",
    )
    result = paginate(db, query, page, page_size, serialize_entry)

    if include_stats:
        result["statistics"] = entry_statistics(db, where)

    return result


@router.get("/{entry_id}")
async def get_entry(
    entry_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    """Get an entry with the transactions linked to it."""
    entry = get_or_404(db, BookkeepingEntry, entry_id, "Entry")
    data = serialize_entry(entry)

    linked = db.scalars(
        select(Transaction).where(
            Transaction.linked_entry_id == entry_id,
            Transaction.is_deleted.is_(False),
        )
    ).all()
    data["linked_transactions"] = [
        {"id": tx.id, "date": tx.date.isoformat(), "net_amount": tx.net_amount, "currency": tx.currency}
        for tx in linked
    ]
    return data


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_entry(
    body: EntryInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Create a bookkeeping entry."""
    data = body.model_dump(exclude_unset=True)
    require_fields(data, REQUIRED_FIELDS)
    _check_entry(data)
    get_or_404(db, Company, data["company_id"], "Company")

    entry = BookkeepingEntry(**data)
    db.add(entry)
    db.commit()
    db.refresh(entry)

    schedule_invalidation(background_tasks, request, RESOURCE, entry.company_id)
    return serialize_entry(entry)


@router.put("/{entry_id}")
async def update_entry(
    entry_id: str,
    body: EntryInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Update the provided fields of an entry."""
    entry = get_or_404(db, BookkeepingEntry, entry_id, "Entry")
    updates = body.model_dump(exclude_unset=True)
    require_non_null_updates(BookkeepingEntry, updates)
    if updates.get("company_id") is not None:
        get_or_404(db, Company, updates["company_id"], "Company")

    _check_entry(updates)

    apply_updates(entry, updates)
    db.commit()
    db.refresh(entry)

    schedule_invalidation(background_tasks, request, RESOURCE, entry.company_id)
    return serialize_entry(entry)


@router.delete("/{entry_id}")
async def delete_entry(
    entry_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Delete an entry that no transaction is linked to."""
    entry = get_or_404(db, BookkeepingEntry, entry_id, "Entry")

    linked = db.scalar(
        select(func.count(Transaction.id)).where(
            Transaction.linked_entry_id == entry_id,
            Transaction.is_deleted.is_(False),
        )
    )
    if linked:
        raise bad_request(
            "Cannot delete entry with linked transactions. Unlink them first.",
            {"linked_transactions": linked},
        )

    company_id = entry.company_id
    db.delete(entry)
    db.commit()

    schedule_invalidation(background_tasks, request, RESOURCE, company_id)
    return {"message": "Entry deleted successfully"}
