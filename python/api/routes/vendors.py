"""
Vendors API Routes
"""

import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from cache import CacheStore, CacheTTL
from validation import parse_payment_terms, validate_vendor_form

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
from ..models import Product, Vendor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/vendors", tags=["vendors"])

RESOURCE = "vendors"
REQUIRED_FIELDS = ["company_name", "contact_email"]
SEARCH_FIELDS = ["company_name", "contact_person", "contact_email", "vendor_country"]
SORT_FIELDS = ["company_name", "contact_email", "payment_terms", "created_at"]


class VendorInput(BaseModel):
    """Input model for creating or updating a vendor."""

    company_id: int | None = None
    company_name: str | None = None
    contact_person: str | None = None
    contact_email: str | None = None
    phone: str | None = None
    website: str | None = None
    payment_terms: int | str | None = None
    custom_payment_terms: int | str | None = None
    currency: str | None = None
    payment_method: str | None = None
    billing_address: str | None = None
    items_services_sold: str | None = None
    notes: str | None = None
    company_registration_nr: str | None = None
    vat_number: str | None = None
    vendor_country: str | None = None
    is_active: bool | None = None


def serialize_vendor(vendor: Vendor) -> dict[str, Any]:
    data = vendor.to_dict()
    data["company"] = (
        {"id": vendor.company.id, "trading_name": vendor.company.trading_name}
        if vendor.company
        else None
    )
    return data


def _normalize(data: dict[str, Any]) -> dict[str, Any]:
    """Resolve payment terms to days and drop input-only fields."""
    custom = data.pop("custom_payment_terms", None)
    if "payment_terms" in data:
        data["payment_terms"] = parse_payment_terms(data["payment_terms"], custom)
    return data


@router.get("")
async def list_vendors(
    request: Request,
    company_id: int | None = Query(None),
    search: str | None = Query(None),
    is_active: bool | None = Query(None),
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
    """List vendors with filters.

    Args:
        company_id: Owning company
        search: Substring matched against name, contact and country
        is_active: Active flag
        include_stats: Attach active/inactive counts and average payment terms

    Returns:
        Paginated list of vendors
    """
    cache_key = list_cache_key(request, RESOURCE)
    cached = store.get(cache_key)
    if cached is not None:
        return cached

    where = []
    if company_id is not None:
        where.append(Vendor.company_id == company_id)
    if search:
        where.append(search_filter(Vendor, search, SEARCH_FIELDS))
    if is_active is not None:
        where.append(Vendor.is_active == is_active)

    query = apply_sort(select(Vendor).where(*where), Vendor, sort_by, sort_order, SORT_FIELDS)
    result = paginate(db, query, page, page_size, serialize_vendor)

    if include_stats:
        active = db.scalar(
            select(func.count(Vendor.id)).where(*where, Vendor.is_active.is_(True))
        )
        average_terms = db.scalar(select(func.avg(Vendor.payment_terms)).where(*where))
        result["statistics"] = {
            "total_vendors": result["total"],
            "active_vendors": active,
            "inactive_vendors": result["total"] - active,
            "average_payment_terms": round(float(average_terms or 0), 1),
        }

    store.set(cache_key, result, ttl.for_resource(RESOURCE))
    return result


@router.get("/{vendor_id}")
async def get_vendor(
    vendor_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    """Get a vendor by ID."""
    vendor = get_or_404(db, Vendor, vendor_id, "Vendor")
    return serialize_vendor(vendor)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_vendor(
    body: VendorInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Create a vendor. Payment terms default to 30 days."""
    data = body.model_dump(exclude_unset=True)
    require_fields(data, REQUIRED_FIELDS)
    data.setdefault("payment_terms", 30)

    validation = validate_vendor_form(data)
    if not validation.is_valid:
        raise validation_failed(validation)

    vendor = Vendor(**_normalize(data))
    db.add(vendor)
    db.commit()
    db.refresh(vendor)

    schedule_invalidation(background_tasks, request, RESOURCE, vendor.company_id)
    return serialize_vendor(vendor)


@router.put("/{vendor_id}")
async def update_vendor(
    vendor_id: str,
    body: VendorInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Update the provided fields of a vendor."""
    vendor = get_or_404(db, Vendor, vendor_id, "Vendor")
    updates = body.model_dump(exclude_unset=True)
    require_non_null_updates(Vendor, updates)

    validation = validate_vendor_form(updates, partial=True)
    if not validation.is_valid:
        raise validation_failed(validation)

    apply_updates(vendor, _normalize(updates))
    db.commit()
    db.refresh(vendor)

    schedule_invalidation(background_tasks, request, RESOURCE, vendor.company_id)
    schedule_invalidation(background_tasks, request, "products")
    return serialize_vendor(vendor)


@router.delete("/{vendor_id}")
async def delete_vendor(
    vendor_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Delete a vendor that supplies no products."""
    vendor = get_or_404(db, Vendor, vendor_id, "Vendor")

    products = db.scalar(select(func.count(Product.id)).where(Product.vendor_id == vendor_id))
    if products:
        raise bad_request("Cannot delete vendor with linked products", {"products": products})

    company_id = vendor.company_id
    db.delete(vendor)
    db.commit()

    schedule_invalidation(background_tasks, request, RESOURCE, company_id)
    return {"message": "Vendor deleted successfully"}
