"""
Products API Routes
"""

import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
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
from ..models import InvoiceItem, Product, Vendor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])

RESOURCE = "products"
REQUIRED_FIELDS = ["name", "price", "currency"]
SEARCH_FIELDS = ["name", "description"]
SORT_FIELDS = ["name", "price", "currency", "created_at"]


class ProductInput(BaseModel):
    """Input model for creating or updating a product."""

    company_id: int | None = None
    vendor_id: str | None = None
    name: str | None = None
    description: str | None = None
    price: float | None = None
    currency: str | None = None
    cost: float | None = None
    cost_currency: str | None = None
    is_active: bool | None = None


def serialize_product(product: Product) -> dict[str, Any]:
    data = product.to_dict()
    data["vendor"] = (
        {"id": product.vendor.id, "company_name": product.vendor.company_name}
        if product.vendor
        else None
    )
    return data


def _check_amounts(data: dict[str, Any]) -> None:
    for key in ("price", "cost"):
        if data.get(key) is not None and data[key] < 0:
            raise bad_request(f"{key.capitalize()} cannot be negative")


@router.get("")
async def list_products(
    request: Request,
    company_id: int | None = Query(None),
    vendor_id: str | None = Query(None),
    search: str | None = Query(None),
    currency: str | None = Query(None),
    is_active: bool | None = Query(None),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    store: CacheStore = Depends(get_cache_store),
    ttl: CacheTTL = Depends(get_cache_ttl),
) -> dict:
    """List products with filters."""
    cache_key = list_cache_key(request, RESOURCE)
    cached = store.get(cache_key)
    if cached is not None:
        return cached

    where = []
    if company_id is not None:
        where.append(Product.company_id == company_id)
    if vendor_id:
        where.append(Product.vendor_id == vendor_id)
    if search:
        where.append(search_filter(Product, search, SEARCH_FIELDS))
    if currency:
        where.append(Product.currency == currency)
    if is_active is not None:
        where.append(Product.is_active == is_active)

    query = apply_sort(select(Product).where(*where), Product, sort_by, sort_order, SORT_FIELDS)
    result = paginate(db, query, page, page_size, serialize_product)
    store.set(cache_key, result, ttl.for_resource(RESOURCE))
    return result


@router.get("/{product_id}")
async def get_product(
    product_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    """Get a product by ID."""
    return serialize_product(get_or_404(db, Product, product_id, "Product"))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_product(
    body: ProductInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Create a product."""
    data = body.model_dump(exclude_unset=True)
    require_fields(data, REQUIRED_FIELDS)
    _check_amounts(data)

    if data.get("vendor_id"):
        get_or_404(db, Vendor, data["vendor_id"], "Vendor")

    product = Product(**data)
    db.add(product)
    db.commit()
    db.refresh(product)

    schedule_invalidation(background_tasks, request, RESOURCE, product.company_id)
    return serialize_product(product)


@router.put("/{product_id}")
async def update_product(
    product_id: str,
    body: ProductInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Update the provided fields of a product."""
    product = get_or_404(db, Product, product_id, "Product")
    updates = body.model_dump(exclude_unset=True)
    require_non_null_updates(Product, updates)
    _check_amounts(updates)

    if updates.get("vendor_id"):
        get_or_404(db, Vendor, updates["vendor_id"], "Vendor")

    apply_updates(product, updates)
    db.commit()
    db.refresh(product)

    schedule_invalidation(background_tasks, request, RESOURCE, product.company_id)
    return serialize_product(product)


@router.delete("/{product_id}")
async def delete_product(
    product_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Delete a product that no invoice line refers to."""
    product = get_or_404(db, Product, product_id, "Product")

    lines = db.scalar(select(func.count(InvoiceItem.id)).where(InvoiceItem.product_id == product_id))
    if lines:
        raise bad_request("Cannot delete product used in invoices", {"invoice_items": lines})

    company_id = product.company_id
    db.delete(product)
    db.commit()

    schedule_invalidation(background_tasks, request, RESOURCE, company_id)
    return {"message": "Product deleted successfully"}
