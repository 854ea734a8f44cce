"""
Companies API Routes

Company onboarding records, cached list/detail reads and statistics.
"""

import logging
from datetime import date
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from cache import CacheKeys, CacheStore, CacheTTL, StatisticsCache
from validation import validate_company_form, validate_logo

from ..auth import User, get_current_user, require_edit
from ..crud import (
    apply_sort,
    apply_updates,
    cursor_paginate,
    get_or_404,
    paginate,
    require_fields,
    search_filter,
    validation_failed,
)
from ..database import get_db
from ..dependencies import (
    get_cache_store,
    get_cache_ttl,
    get_statistics_cache,
    schedule_company_invalidation,
)
from ..models import Client, Company, Invoice
from ..statistics import compute_company_statistics

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/companies", tags=["companies"])

REQUIRED_FIELDS = [
    "legal_name",
    "trading_name",
    "registration_no",
    "registration_date",
    "country_of_registration",
    "base_currency",
    "email",
]
SEARCH_FIELDS = ["legal_name", "trading_name", "industry", "email", "registration_no"]
SORT_FIELDS = ["id", "legal_name", "trading_name", "industry", "status", "created_at", "updated_at"]
CURSOR_SORT_FIELDS = ["id", "legal_name", "trading_name", "created_at"]


class CompanyInput(BaseModel):
    """Input model for creating or updating a company."""

    legal_name: str | None = None
    trading_name: str | None = None
    registration_no: str | None = None
    registration_date: date | None = None
    country_of_registration: str | None = None
    base_currency: str | None = None
    business_license_nr: str | None = None
    vat_number: str | None = None
    industry: str | None = None
    entity_type: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    website: str | None = None
    status: str | None = None
    logo: str | None = None
    facebook_url: str | None = None
    instagram_url: str | None = None
    x_url: str | None = None
    youtube_url: str | None = None
    whatsapp_number: str | None = None
    telegram_number: str | None = None
    main_contact_email: str | None = None
    main_contact_type: str | None = None


def serialize_company(company: Company) -> dict[str, Any]:
    return company.to_dict()


def _filtered_query(search: str | None, status_filter: str | None, industry: str | None):
    query = select(Company)
    if search:
        query = query.where(search_filter(Company, search, SEARCH_FIELDS))
    if status_filter and status_filter != "all":
        query = query.where(Company.status == status_filter)
    if industry:
        query = query.where(Company.industry == industry)
    return query


def _registration_taken(db: Session, registration_no: str, exclude_id: int | None = None) -> bool:
    query = select(Company.id).where(Company.registration_no == registration_no)
    if exclude_id is not None:
        query = query.where(Company.id != exclude_id)
    return db.scalar(query) is not None


def _registration_conflict() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail="Company with this registration number already exists",
    )


@router.get("")
async def list_companies(
    search: str | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    industry: str | None = Query(None),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    store: CacheStore = Depends(get_cache_store),
    ttl: CacheTTL = Depends(get_cache_ttl),
) -> dict:
    """List companies with filters, served from cache when fresh.

    Args:
        search: Substring matched against names, industry, email and registration number
        status_filter: Active, Passive or all
        industry: Exact industry match
        sort_by: Sort column
        sort_order: asc or desc
        page: Page number
        page_size: Items per page
        user: Authenticated user

    Returns:
        Paginated list of companies
    """
    filters = {
        "status": status_filter,
        "industry": industry,
        "sort_by": sort_by,
        "sort_order": sort_order,
        "page": page,
        "page_size": page_size,
    }
    if search:
        cache_key = CacheKeys.company_search(search, filters)
        cache_ttl = ttl.company_search
    else:
        cache_key = CacheKeys.company_list(filters)
        cache_ttl = ttl.company_list

    cached = store.get(cache_key)
    if cached is not None:
        return cached

    query = _filtered_query(search, status_filter, industry)
    query = apply_sort(query, Company, sort_by, sort_order, SORT_FIELDS)
    result = paginate(db, query, page, page_size, serialize_company)

    store.set(cache_key, result, cache_ttl)
    return result


@router.get("/cursor")
async def list_companies_cursor(
    cursor: str | None = Query(None),
    take: int = Query(20, ge=1, le=100),
    search: str | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    industry: str | None = Query(None),
    sort_field: str = Query("created_at"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    include_stats: bool = Query(False),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    store: CacheStore = Depends(get_cache_store),
    ttl: CacheTTL = Depends(get_cache_ttl),
    stats_cache: StatisticsCache = Depends(get_statistics_cache),
) -> dict:
    """List companies with cursor pagination.

    Args:
        cursor: Opaque cursor from a previous page
        take: Page size
        include_stats: Attach company statistics and a total count

    Returns:
        Items, next_cursor and has_more (plus statistics when requested)
    """
    if sort_field not in CURSOR_SORT_FIELDS:
        sort_field = "created_at"

    filters = {
        "cursor": cursor,
        "take": take,
        "search": search,
        "status": status_filter,
        "industry": industry,
        "sort_field": sort_field,
        "sort_order": sort_order,
    }
    cache_key = CacheKeys.company_list(filters)

    result = store.get(cache_key)
    if result is None:
        query = _filtered_query(search, status_filter, industry)
        result = cursor_paginate(
            db, query, Company, sort_field, sort_order, cursor, take, serialize_company
        )
        store.set(cache_key, result, ttl.company_list)

    if include_stats:
        async def fetch():
            return compute_company_statistics(db)

        stats = await stats_cache.get_or_refresh(fetch)
        if stats is not None:
            result = {
                **result,
                "statistics": stats.to_dict(),
                "total_count": stats.total_active + stats.total_passive,
            }

    return result


@router.get("/statistics")
async def get_company_statistics(
    refresh: bool = Query(False),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    stats_cache: StatisticsCache = Depends(get_statistics_cache),
) -> dict:
    """Company counts by status and industry.

    Args:
        refresh: Bypass the cached value

    Returns:
        Statistics dictionary
    """
    async def fetch():
        return compute_company_statistics(db)

    if refresh:
        stats = await stats_cache.refresh(fetch)
    else:
        stats = await stats_cache.get_or_refresh(fetch)

    if stats is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Company statistics are unavailable",
        )

    return stats.to_dict()


@router.get("/{company_id}")
async def get_company(
    company_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    store: CacheStore = Depends(get_cache_store),
    ttl: CacheTTL = Depends(get_cache_ttl),
) -> dict:
    """Get a company by ID."""
    cache_key = CacheKeys.company_item(company_id)
    cached = store.get(cache_key)
    if cached is not None:
        return cached

    company = get_or_404(db, Company, company_id, "Company")
    result = serialize_company(company)
    store.set(cache_key, result, ttl.company_item)
    return result


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_company(
    body: CompanyInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Create a company.

    Args:
        body: Company fields

    Returns:
        Created company
    """
    data = body.model_dump(exclude_unset=True)
    require_fields(data, REQUIRED_FIELDS)

    validation = validate_company_form(data)
    if not validation.is_valid:
        raise validation_failed(validation)

    if _registration_taken(db, data["registration_no"]):
        raise _registration_conflict()

    data["logo"] = validate_logo(data.get("logo"), data["trading_name"])
    data.setdefault("status", "Active")

    company = Company(**data)
    db.add(company)
    db.commit()
    db.refresh(company)

    logger.info(f"Company {company.id} created by {user.id}")
    schedule_company_invalidation(background_tasks, request, company.id)

    return serialize_company(company)


@router.put("/{company_id}")
async def update_company(
    company_id: int,
    body: CompanyInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Update the provided fields of a company.

    Args:
        company_id: Company ID
        body: Fields to change

    Returns:
        Updated company
    """
    company = get_or_404(db, Company, company_id, "Company")
    updates = body.model_dump(exclude_unset=True)

    validation = validate_company_form(updates, partial=True)
    if not validation.is_valid:
        raise validation_failed(validation)

    registration_no = updates.get("registration_no")
    if registration_no and registration_no != company.registration_no:
        if _registration_taken(db, registration_no, exclude_id=company.id):
            raise _registration_conflict()

    if "logo" in updates:
        updates["logo"] = validate_logo(
            updates["logo"], updates.get("trading_name") or company.trading_name
        )

    apply_updates(company, updates)
    db.commit()
    db.refresh(company)

    schedule_company_invalidation(background_tasks, request, company.id)
    return serialize_company(company)


@router.delete("/{company_id}")
async def delete_company(
    company_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Delete a company that has no clients or invoices."""
    company = get_or_404(db, Company, company_id, "Company")

    clients = db.scalar(select(func.count(Client.id)).where(Client.company_id == company_id))
    invoices = db.scalar(select(func.count(Invoice.id)).where(Invoice.from_company_id == company_id))
    if clients or invoices:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "Cannot delete company with existing clients or invoices",
                "details": {"clients": clients, "invoices": invoices},
            },
        )

    db.delete(company)
    db.commit()

    logger.info(f"Company {company_id} deleted by {user.id}")
    schedule_company_invalidation(background_tasks, request, company_id)

    return {"message": "Company deleted successfully"}
