"""
Invoices API Routes

Invoices with line items and payment methods, the send action and status
transitions.
"""

import datetime as dt
import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from cache import CacheStore, CacheTTL

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
from ..dependencies import get_cache_store, get_cache_ttl, list_cache_key, schedule_invalidation
from ..models import BookkeepingEntry, Client, Company, Invoice, InvoiceItem, PaymentMethod

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invoices", tags=["invoices"])

RESOURCE = "invoices"
REQUIRED_FIELDS = ["from_company_id", "client_name", "issue_date", "due_date"]
SEARCH_FIELDS = ["invoice_number", "client_name", "client_email"]
SORT_FIELDS = ["invoice_number", "client_name", "total_amount", "issue_date", "due_date", "status", "created_at"]

INVOICE_STATUSES = ("draft", "sent", "paid", "overdue", "archived")

# Allowed target statuses per current status
STATUS_TRANSITIONS = {
    "draft": {"sent", "archived"},
    "sent": {"paid", "overdue", "archived"},
    "overdue": {"paid", "archived"},
    "paid": {"archived"},
    "archived": set(),
}


class InvoiceItemInput(BaseModel):
    """Input model for an invoice line."""

    product_id: str | None = None
    product_name: str | None = None
    description: str | None = None
    quantity: float = 1
    unit_price: float = 0
    currency: str | None = None


class InvoiceInput(BaseModel):
    """Input model for creating or updating an invoice."""

    invoice_number: str | None = None
    client_id: str | None = None
    from_company_id: int | None = None
    client_name: str | None = None
    client_email: str | None = None
    client_address: str | None = None
    tax_rate: float | None = None
    currency: str | None = None
    issue_date: dt.date | None = None
    due_date: dt.date | None = None
    template: str | None = None
    notes: str | None = None
    items: list[InvoiceItemInput] | None = None
    payment_method_ids: list[str] | None = None


class StatusInput(BaseModel):
    """Input model for a status change."""

    status: str | None = None


class BulkStatusInput(BaseModel):
    """Input model for changing the status of several invoices."""

    ids: list[str] = []
    status: str | None = None


def is_valid_transition(current: str, target: str) -> bool:
    return target in STATUS_TRANSITIONS.get(current, set())


def calculate_totals(items: list[InvoiceItem], tax_rate: float) -> tuple[float, float, float]:
    """Return (subtotal, tax_amount, total_amount) rounded to cents."""
    subtotal = round(sum(item.total for item in items), 2)
    tax_amount = round(subtotal * (tax_rate or 0) / 100, 2)
    return subtotal, tax_amount, round(subtotal + tax_amount, 2)


def serialize_invoice(invoice: Invoice) -> dict[str, Any]:
    data = invoice.to_dict()
    data["items"] = [item.to_dict() for item in invoice.items]
    data["payment_methods"] = [
        {"id": method.id, "type": method.type, "name": method.name}
        for method in invoice.payment_methods
    ]
    data["from_company"] = (
        {"id": invoice.from_company.id, "trading_name": invoice.from_company.trading_name}
        if invoice.from_company
        else None
    )
    return data


def _build_items(items: list[InvoiceItemInput], currency: str) -> list[InvoiceItem]:
    lines = []
    for position, item in enumerate(items):
        if item.quantity <= 0:
            raise bad_request("Item quantity must be greater than zero")
        if item.unit_price < 0:
            raise bad_request("Item unit price cannot be negative")
        lines.append(
            InvoiceItem(
                position=position,
                product_id=item.product_id,
                product_name=item.product_name or "",
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                currency=item.currency or currency,
                total=round(item.quantity * item.unit_price, 2),
            )
        )
    return lines


def _load_payment_methods(db: Session, ids: list[str]) -> list[PaymentMethod]:
    methods = db.scalars(select(PaymentMethod).where(PaymentMethod.id.in_(ids))).all()
    missing = sorted(set(ids) - {method.id for method in methods})
    if missing:
        raise bad_request("Unknown payment methods", {"missing": missing})
    return list(methods)


def _next_invoice_number(db: Session, issue_date: dt.date) -> str:
    """Next INV-<year>-NNNN number after the highest one issued that year."""
    prefix = f"INV-{issue_date.year}-"
    numbers = db.scalars(
        select(Invoice.invoice_number).where(Invoice.invoice_number.like(f"{prefix}%"))
    ).all()
    suffixes = [int(number[len(prefix):]) for number in numbers if number[len(prefix):].isdigit()]
    return f"{prefix}{max(suffixes, default=0) + 1:04d}"


def _number_taken(db: Session, invoice_number: str, exclude_id: str | None = None) -> bool:
    query = select(Invoice.id).where(Invoice.invoice_number == invoice_number)
    if exclude_id is not None:
        query = query.where(Invoice.id != exclude_id)
    return db.scalar(query) is not None


def _number_conflict() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail="Invoice with this number already exists",
    )


def _add_client_totals(client: Client | None, invoice: Invoice, sign: int = 1) -> None:
    """Add (or with sign=-1 remove) an invoice's amounts on its client."""
    if client is None:
        return
    client.total_invoiced = round((client.total_invoiced or 0) + sign * invoice.total_amount, 2)
    if invoice.status == "paid":
        client.total_paid = round((client.total_paid or 0) + sign * invoice.total_amount, 2)
    if sign > 0 and (client.last_invoice_date is None or invoice.issue_date > client.last_invoice_date):
        client.last_invoice_date = invoice.issue_date


def _invoice_statistics(db: Session, where: list) -> dict[str, Any]:
    rows = db.execute(
        select(
            Invoice.status,
            func.count(Invoice.id),
            func.coalesce(func.sum(Invoice.total_amount), 0),
        )
        .where(*where)
        .group_by(Invoice.status)
    ).all()

    by_status = {row[0]: {"count": row[1], "total": float(row[2])} for row in rows}
    return {
        "total_invoices": sum(row[1] for row in rows),
        "total_value": round(sum(float(row[2]) for row in rows), 2),
        "paid_value": by_status.get("paid", {}).get("total", 0.0),
        "outstanding_value": round(
            sum(by_status.get(s, {}).get("total", 0.0) for s in ("sent", "overdue")), 2
        ),
        "by_status": by_status,
    }


def _apply_status(invoice: Invoice, target: str) -> None:
    invoice.status = target
    if target == "paid":
        invoice.paid_date = dt.date.today()
        if invoice.client is not None:
            invoice.client.total_paid = round((invoice.client.total_paid or 0) + invoice.total_amount, 2)


@router.get("")
async def list_invoices(
    request: Request,
    company_id: int | None = Query(None),
    client_id: str | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    date_from: dt.date | None = Query(None),
    date_to: dt.date | None = Query(None),
    search: str | None = Query(None),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    include_stats: bool = Query(False),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    store: CacheStore = Depends(get_cache_store),
    ttl: CacheTTL = Depends(get_cache_ttl),
) -> dict:
    """List invoices.

    Args:
        company_id: Issuing company
        client_id: Billed client
        status_filter: Invoice status or all
        date_from: Earliest issue date (inclusive)
        date_to: Latest issue date (inclusive)
        include_stats: Attach totals by status

    Returns:
        Paginated list of invoices
    """
    cache_key = list_cache_key(request, RESOURCE)
    cached = store.get(cache_key)
    if cached is not None:
        return cached

    where = []
    if company_id is not None:
        where.append(Invoice.from_company_id == company_id)
    if client_id:
        where.append(Invoice.client_id == client_id)
    if status_filter and status_filter != "all":
        where.append(Invoice.status == status_filter.lower())
    if date_from:
        where.append(Invoice.issue_date >= date_from)
    if date_to:
        where.append(Invoice.issue_date <= date_to)
    if search:
        where.append(search_filter(Invoice, search, SEARCH_FIELDS))

    query = apply_sort(select(Invoice).where(*where), Invoice, sort_by, sort_order, SORT_FIELDS)
    result = paginate(db, query, page, page_size, serialize_invoice)

    if include_stats:
        result["statistics"] = _invoice_statistics(db, where)

    store.set(cache_key, result, ttl.for_resource(RESOURCE))
    return result


@router.get("/{invoice_id}")
async def get_invoice(
    invoice_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    """Get an invoice with items and payment methods."""
    return serialize_invoice(get_or_404(db, Invoice, invoice_id, "Invoice"))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_invoice(
    body: InvoiceInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Create a draft invoice.

    Totals are computed from the items and tax rate. Client contact details
    default to the linked client's.
    """
    data = body.model_dump(exclude_unset=True, exclude={"items", "payment_method_ids"})

    client = None
    if data.get("client_id"):
        client = get_or_404(db, Client, data["client_id"], "Client")
        data.setdefault("client_name", client.name)
        data.setdefault("client_email", client.email)
        data.setdefault("client_address", client.address)

    require_fields(data, REQUIRED_FIELDS)
    if not body.items:
        raise bad_request("Missing required fields", {"missing": ["items"]})
    if data["due_date"] < data["issue_date"]:
        raise bad_request("Due date cannot be before issue date")

    get_or_404(db, Company, data["from_company_id"], "Company")

    data.setdefault("currency", "USD")
    data.setdefault("tax_rate", 0)
    if not data.get("invoice_number"):
        data["invoice_number"] = _next_invoice_number(db, data["issue_date"])
    elif _number_taken(db, data["invoice_number"]):
        raise _number_conflict()

    invoice = Invoice(**data, status="draft")
    invoice.items = _build_items(body.items, data["currency"])
    if body.payment_method_ids:
        invoice.payment_methods = _load_payment_methods(db, body.payment_method_ids)
    invoice.subtotal, invoice.tax_amount, invoice.total_amount = calculate_totals(
        invoice.items, invoice.tax_rate
    )

    _add_client_totals(client, invoice)

    db.add(invoice)
    db.commit()
    db.refresh(invoice)

    logger.info(f"Invoice {invoice.invoice_number} created by {user.id}")
    schedule_invalidation(background_tasks, request, RESOURCE, invoice.from_company_id)
    if client is not None:
        schedule_invalidation(background_tasks, request, "clients")

    return serialize_invoice(invoice)


@router.put("/{invoice_id}")
async def update_invoice(
    invoice_id: str,
    body: InvoiceInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Update the provided fields of an invoice.

    Replacing items or changing the tax rate recomputes the totals. The
    client's totals follow the invoice's amount and client.
    """
    invoice = get_or_404(db, Invoice, invoice_id, "Invoice")
    updates = body.model_dump(exclude_unset=True, exclude={"items", "payment_method_ids"})
    require_non_null_updates(Invoice, updates)

    if updates.get("from_company_id") is not None:
        get_or_404(db, Company, updates["from_company_id"], "Company")
    if updates.get("client_id"):
        get_or_404(db, Client, updates["client_id"], "Client")
    if updates.get("invoice_number") and _number_taken(db, updates["invoice_number"], invoice.id):
        raise _number_conflict()

    issue_date = updates.get("issue_date") or invoice.issue_date
    due_date = updates.get("due_date") or invoice.due_date
    if due_date < issue_date:
        raise bad_request("Due date cannot be before issue date")

    if body.items is not None and not body.items:
        raise bad_request("Invoice must have at least one item")

    previous_client = invoice.client
    _add_client_totals(previous_client, invoice, sign=-1)
    apply_updates(invoice, updates)

    if body.items is not None:
        invoice.items = _build_items(body.items, invoice.currency)
    if body.payment_method_ids is not None:
        invoice.payment_methods = _load_payment_methods(db, body.payment_method_ids)
    if body.items is not None or "tax_rate" in updates:
        invoice.subtotal, invoice.tax_amount, invoice.total_amount = calculate_totals(
            invoice.items, invoice.tax_rate
        )

    client = db.get(Client, invoice.client_id) if invoice.client_id else None
    _add_client_totals(client, invoice)

    db.commit()
    db.refresh(invoice)

    schedule_invalidation(background_tasks, request, RESOURCE, invoice.from_company_id)
    if previous_client is not None or client is not None:
        schedule_invalidation(background_tasks, request, "clients")
    return serialize_invoice(invoice)


@router.delete("/{invoice_id}")
async def delete_invoice(
    invoice_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Delete an invoice that has no bookkeeping entries.

    Its amounts are taken off the client's totals.
    """
    invoice = get_or_404(db, Invoice, invoice_id, "Invoice")

    entries = db.scalar(
        select(func.count(BookkeepingEntry.id)).where(BookkeepingEntry.invoice_id == invoice_id)
    )
    if entries:
        raise bad_request("Cannot delete invoice with bookkeeping entries", {"entries": entries})

    company_id = invoice.from_company_id
    client = invoice.client
    _add_client_totals(client, invoice, sign=-1)
    db.delete(invoice)
    db.commit()

    schedule_invalidation(background_tasks, request, RESOURCE, company_id)
    if client is not None:
        schedule_invalidation(background_tasks, request, "clients")
    return {"message": "Invoice deleted successfully"}


@router.post("/{invoice_id}/send")
async def send_invoice(
    invoice_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Mark a draft invoice as sent.

    An invoice whose due date has already passed is then marked overdue in
    a second update.

    Args:
        invoice_id: Invoice ID

    Returns:
        Updated invoice
    """
    invoice = get_or_404(db, Invoice, invoice_id, "Invoice")

    if invoice.status != "draft":
        raise bad_request(f"Cannot send invoice with status {invoice.status}")

    invoice.status = "sent"
    invoice.sent_at = dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)
    db.commit()

    if invoice.due_date < dt.date.today():
        invoice.status = "overdue"
        db.commit()
        logger.info(f"Invoice {invoice.invoice_number} is past due, marked overdue")

    db.refresh(invoice)
    schedule_invalidation(background_tasks, request, RESOURCE, invoice.from_company_id)

    return serialize_invoice(invoice)


@router.patch("/{invoice_id}/status")
async def update_invoice_status(
    invoice_id: str,
    body: StatusInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Move an invoice to another status.

    Args:
        invoice_id: Invoice ID
        body: Target status

    Returns:
        Updated invoice
    """
    invoice = get_or_404(db, Invoice, invoice_id, "Invoice")
    require_fields(body.model_dump(), ["status"])

    target = body.status.lower()
    if target not in INVOICE_STATUSES:
        raise bad_request("Invalid status", {"valid_statuses": list(INVOICE_STATUSES)})
    if not is_valid_transition(invoice.status, target):
        raise bad_request(f"Invalid status transition from {invoice.status} to {target}")

    _apply_status(invoice, target)
    db.commit()
    db.refresh(invoice)

    schedule_invalidation(background_tasks, request, RESOURCE, invoice.from_company_id)
    if target == "paid" and invoice.client_id:
        schedule_invalidation(background_tasks, request, "clients")
    return serialize_invoice(invoice)


@router.post("/bulk/status")
async def bulk_update_status(
    body: BulkStatusInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Move several invoices to one status.

    Nothing changes when any invoice cannot make the transition.
    """
    if not body.ids or not body.status:
        raise bad_request(
            "Missing required fields",
            {"missing": [name for name in ("ids", "status") if not getattr(body, name)]},
        )

    target = body.status.lower()
    if target not in INVOICE_STATUSES:
        raise bad_request("Invalid status", {"valid_statuses": list(INVOICE_STATUSES)})

    invoices = db.scalars(select(Invoice).where(Invoice.id.in_(body.ids))).all()
    missing = sorted(set(body.ids) - {invoice.id for invoice in invoices})
    if missing:
        raise bad_request("Unknown invoices", {"missing": missing})

    invalid = [invoice.invoice_number for invoice in invoices if not is_valid_transition(invoice.status, target)]
    if invalid:
        raise bad_request(f"Invalid status transition for invoices: {', '.join(invalid)}")

    for invoice in invoices:
        _apply_status(invoice, target)
    db.commit()

    for company_id in {invoice.from_company_id for invoice in invoices}:
        schedule_invalidation(background_tasks, request, RESOURCE, company_id)
    if target == "paid":
        schedule_invalidation(background_tasks, request, "clients")

    return {"updated": len(invoices), "status": target}
