"""
Bank Accounts API Routes
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
from ..models import BankAccount, Company, Transaction

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bank-accounts", tags=["bank-accounts"])

RESOURCE = "bank-accounts"
REQUIRED_FIELDS = ["company_id", "bank_name", "account_name", "currency"]


class BankAccountInput(BaseModel):
    """Input model for creating or updating a bank account."""

    company_id: int | None = None
    bank_name: str | None = None
    bank_address: str | None = None
    currency: str | None = None
    iban: str | None = None
    swift_code: str | None = None
    account_number: str | None = None
    account_name: str | None = None
    is_active: bool | None = None
    notes: str | None = None


def serialize_bank_account(account: BankAccount) -> dict[str, Any]:
    data = account.to_dict()
    data["company"] = (
        {"id": account.company.id, "trading_name": account.company.trading_name}
        if account.company
        else None
    )
    return data


@router.get("")
async def list_bank_accounts(
    request: Request,
    company_id: int | None = Query(None),
    search: str | None = Query(None),
    currency: str | None = Query(None),
    is_active: bool | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    store: CacheStore = Depends(get_cache_store),
    ttl: CacheTTL = Depends(get_cache_ttl),
) -> dict:
    """List bank accounts, newest first."""
    cache_key = list_cache_key(request, RESOURCE)
    cached = store.get(cache_key)
    if cached is not None:
        return cached

    query = select(BankAccount)
    if company_id is not None:
        query = query.where(BankAccount.company_id == company_id)
    if search:
        query = query.where(search_filter(BankAccount, search, ["bank_name", "account_name", "iban"]))
    if currency:
        query = query.where(BankAccount.currency == currency)
    if is_active is not None:
        query = query.where(BankAccount.is_active == is_active)

    query = query.order_by(BankAccount.created_at.desc(), BankAccount.id.desc())
    result = paginate(db, query, page, page_size, serialize_bank_account)
    store.set(cache_key, result, ttl.for_resource(RESOURCE))
    return result


@router.get("/{account_id}")
async def get_bank_account(
    account_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    """Get a bank account by ID."""
    return serialize_bank_account(get_or_404(db, BankAccount, account_id, "Bank account"))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_bank_account(
    body: BankAccountInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Create a bank account for a company."""
    data = body.model_dump(exclude_unset=True)
    require_fields(data, REQUIRED_FIELDS)
    get_or_404(db, Company, data["company_id"], "Company")

    account = BankAccount(**data)
    db.add(account)
    db.commit()
    db.refresh(account)

    schedule_invalidation(background_tasks, request, RESOURCE, account.company_id)
    return serialize_bank_account(account)


@router.put("/{account_id}")
async def update_bank_account(
    account_id: str,
    body: BankAccountInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Update the provided fields of a bank account."""
    account = get_or_404(db, BankAccount, account_id, "Bank account")
    updates = body.model_dump(exclude_unset=True)
    require_non_null_updates(BankAccount, updates)

    if updates.get("company_id") is not None:
        get_or_404(db, Company, updates["company_id"], "Company")

    apply_updates(account, updates)
    db.commit()
    db.refresh(account)

    schedule_invalidation(background_tasks, request, RESOURCE, account.company_id)
    return serialize_bank_account(account)


@router.delete("/{account_id}")
async def delete_bank_account(
    account_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Delete a bank account with no recorded transactions."""
    account = get_or_404(db, BankAccount, account_id, "Bank account")

    transactions = db.scalar(
        select(func.count(Transaction.id)).where(
            Transaction.account_id == account_id,
            Transaction.account_type == "bank",
            Transaction.is_deleted.is_(False),
        )
    )
    if transactions:
        raise bad_request(
            "Cannot delete bank account with existing transactions",
            {"transactions": transactions},
        )

    company_id = account.company_id
    db.delete(account)
    db.commit()

    schedule_invalidation(background_tasks, request, RESOURCE, company_id)
    return {"message": "Bank account deleted successfully"}
