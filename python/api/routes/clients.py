"""
Clients API Routes

Client records (legal entities and individuals) owned by companies.
"""

import logging
from datetime import date
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from cache import CacheStore, CacheTTL
from validation import validate_client_form

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
    validation_failed,
)
from ..database import get_db
from ..dependencies import get_cache_store, get_cache_ttl, list_cache_key, schedule_invalidation
from ..models import Client, Company, Invoice

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clients", tags=["clients"])

RESOURCE = "clients"
REQUIRED_FIELDS = ["name", "email"]
SEARCH_FIELDS = ["name", "email", "contact_person_name", "industry", "city", "country"]
SORT_FIELDS = ["name", "email", "industry", "total_invoiced", "last_invoice_date", "created_at"]


class ClientInput(BaseModel):
    """Input model for creating or updating a client."""

    company_id: int | None = None
    client_type: str | None = None
    name: str | None = None
    contact_person_name: str | None = None
    contact_person_position: str | None = None
    email: str | None = None
    phone: str | None = None
    website: str | None = None
    address: str | None = None
    city: str | None = None
    zip_code: str | None = None
    country: str | None = None
    industry: str | None = None
    status: str | None = None
    notes: str | None = None
    registration_number: str | None = None
    vat_number: str | None = None
    passport_number: str | None = None
    date_of_birth: date | None = None


def serialize_client(client: Client) -> dict[str, Any]:
    data = client.to_dict()
    data["company"] = (
        {
            "id": client.company.id,
            "trading_name": client.company.trading_name,
            "legal_name": client.company.legal_name,
            "logo": client.company.logo,
        }
        if client.company
        else None
    )
    return data


def _client_statistics(db: Session, where: list) -> dict[str, Any]:
    totals = db.execute(
        select(
            func.count(Client.id),
            func.coalesce(func.sum(Client.total_invoiced), 0),
            func.coalesce(func.sum(Client.total_paid), 0),
        ).where(*where)
    ).one()
    by_status = {
        client_status.lower(): total
        for client_status, total in db.execute(
            select(Client.status, func.count(Client.id)).where(*where).group_by(Client.status)
        ).all()
    }
    return {
        "total_clients": totals[0],
        "total_invoiced": float(totals[1]),
        "total_paid": float(totals[2]),
        "by_status": by_status,
    }


@router.get("")
async def list_clients(
    request: Request,
    company_id: int | None = Query(None),
    search: str | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    industry: str | None = Query(None),
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
    """List clients with filters.

    Args:
        company_id: Owning company
        search: Substring matched against name, email, contact, industry and location
        status_filter: ACTIVE, INACTIVE, LEAD, ARCHIVED or all
        include_stats: Attach totals and counts by status

    Returns:
        Paginated list of clients
    """
    cache_key = list_cache_key(request, RESOURCE)
    cached = store.get(cache_key)
    if cached is not None:
        return cached

    where = []
    if company_id is not None:
        where.append(Client.company_id == company_id)
    if search:
        where.append(search_filter(Client, search, SEARCH_FIELDS))
    if status_filter and status_filter != "all":
        where.append(Client.status == status_filter.upper())
    if industry:
        where.append(Client.industry == industry)

    query = apply_sort(select(Client).where(*where), Client, sort_by, sort_order, SORT_FIELDS)
    result = paginate(db, query, page, page_size, serialize_client)

    if include_stats:
        result["statistics"] = _client_statistics(db, where)

    store.set(cache_key, result, ttl.for_resource(RESOURCE))
    return result


@router.get("/{client_id}")
async def get_client(
    client_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    """Get a client with its most recent invoices."""
    client = get_or_404(db, Client, client_id, "Client")
    data = serialize_client(client)

    invoices = db.scalars(
        select(Invoice)
        .where(Invoice.client_id == client_id)
        .order_by(Invoice.issue_date.desc())
        .limit(5)
    ).all()
    data["recent_invoices"] = [
        {
            "id": invoice.id,
            "invoice_number": invoice.invoice_number,
            "total_amount": invoice.total_amount,
            "currency": invoice.currency,
            "status": invoice.status,
            "issue_date": invoice.issue_date.isoformat(),
            "due_date": invoice.due_date.isoformat(),
        }
        for invoice in invoices
    ]
    return data


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_client(
    body: ClientInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Create a client.

    Legal entities need a contact person and registration number;
    individuals need a passport number.
    """
    data = body.model_dump(exclude_unset=True)
    require_fields(data, REQUIRED_FIELDS)

    validation = validate_client_form(data)
    if not validation.is_valid:
        raise validation_failed(validation)

    if data.get("company_id") is not None:
        get_or_404(db, Company, data["company_id"], "Company")

    client = Client(**data)
    db.add(client)
    db.commit()
    db.refresh(client)

    schedule_invalidation(background_tasks, request, RESOURCE, client.company_id)
    return serialize_client(client)


@router.put("/{client_id}")
async def update_client(
    client_id: str,
    body: ClientInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Update the provided fields of a client."""
    client = get_or_404(db, Client, client_id, "Client")
    updates = body.model_dump(exclude_unset=True)
    require_non_null_updates(Client, updates)
    if updates.get("company_id") is not None:
        get_or_404(db, Company, updates["company_id"], "Company")

    # Type-specific requirements are checked against the merged record
    validation = validate_client_form({**client.to_dict(), **updates}, partial=True)
    if not validation.is_valid:
        raise validation_failed(validation)

    apply_updates(client, updates)
    db.commit()
    db.refresh(client)

    schedule_invalidation(background_tasks, request, RESOURCE, client.company_id)
    return serialize_client(client)


@router.delete("/{client_id}")
async def delete_client(
    client_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Delete a client that has no invoices."""
    client = get_or_404(db, Client, client_id, "Client")

    invoice_count = db.scalar(select(func.count(Invoice.id)).where(Invoice.client_id == client_id))
    if invoice_count:
        raise bad_request(
            "Cannot delete client with existing invoices",
            {"invoices": invoice_count},
        )

    company_id = client.company_id
    db.delete(client)
    db.commit()

    schedule_invalidation(background_tasks, request, RESOURCE, company_id)
    return {"message": "Client deleted successfully"}
