"""
Digital Wallets API Routes
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
from ..models import Company, DigitalWallet, Transaction

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/digital-wallets", tags=["digital-wallets"])

RESOURCE = "digital-wallets"
REQUIRED_FIELDS = ["company_id", "wallet_type", "wallet_name", "wallet_address", "currency"]


class DigitalWalletInput(BaseModel):
    """Input model for creating or updating a digital wallet."""

    company_id: int | None = None
    wallet_type: str | None = None
    wallet_name: str | None = None
    wallet_address: str | None = None
    currency: str | None = None
    currencies: list[str] | None = None
    description: str | None = None
    blockchain: str | None = None
    is_active: bool | None = None
    notes: str | None = None


def serialize_wallet(wallet: DigitalWallet) -> dict[str, Any]:
    data = wallet.to_dict()
    data["company"] = (
        {"id": wallet.company.id, "trading_name": wallet.company.trading_name}
        if wallet.company
        else None
    )
    return data


def _normalize_currencies(data: dict[str, Any], primary: str | None) -> None:
    """Keep the primary currency first in the supported currencies list."""
    currencies = data.get("currencies")
    if currencies is None:
        if "currency" in data:
            data["currencies"] = [primary] if primary else []
        return
    currencies = [c.upper() for c in currencies if c]
    if primary and primary.upper() not in currencies:
        currencies.insert(0, primary.upper())
    data["currencies"] = currencies


@router.get("")
async def list_digital_wallets(
    request: Request,
    company_id: int | None = Query(None),
    search: str | None = Query(None),
    wallet_type: str | None = Query(None),
    is_active: bool | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    store: CacheStore = Depends(get_cache_store),
    ttl: CacheTTL = Depends(get_cache_ttl),
) -> dict:
    """List digital wallets, newest first."""
    cache_key = list_cache_key(request, RESOURCE)
    cached = store.get(cache_key)
    if cached is not None:
        return cached

    query = select(DigitalWallet)
    if company_id is not None:
        query = query.where(DigitalWallet.company_id == company_id)
    if search:
        query = query.where(
            search_filter(DigitalWallet, search, ["wallet_name", "wallet_address", "blockchain"])
        )
    if wallet_type:
        query = query.where(DigitalWallet.wallet_type == wallet_type)
    if is_active is not None:
        query = query.where(DigitalWallet.is_active == is_active)

    query = query.order_by(DigitalWallet.created_at.desc(), DigitalWallet.id.desc())
    result = paginate(db, query, page, page_size, serialize_wallet)
    store.set(cache_key, result, ttl.for_resource(RESOURCE))
    return result


@router.get("/{wallet_id}")
async def get_digital_wallet(
    wallet_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    """Get a digital wallet by ID."""
    return serialize_wallet(get_or_404(db, DigitalWallet, wallet_id, "Digital wallet"))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_digital_wallet(
    body: DigitalWalletInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Create a digital wallet for a company."""
    data = body.model_dump(exclude_unset=True)
    require_fields(data, REQUIRED_FIELDS)
    get_or_404(db, Company, data["company_id"], "Company")
    _normalize_currencies(data, data["currency"])

    wallet = DigitalWallet(**data)
    db.add(wallet)
    db.commit()
    db.refresh(wallet)

    schedule_invalidation(background_tasks, request, RESOURCE, wallet.company_id)
    return serialize_wallet(wallet)


@router.put("/{wallet_id}")
async def update_digital_wallet(
    wallet_id: str,
    body: DigitalWalletInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Update the provided fields of a digital wallet."""
    wallet = get_or_404(db, DigitalWallet, wallet_id, "Digital wallet")
    updates = body.model_dump(exclude_unset=True)
    require_non_null_updates(DigitalWallet, updates)

    if updates.get("company_id") is not None:
        get_or_404(db, Company, updates["company_id"], "Company")
    if "currencies" in updates:
        _normalize_currencies(updates, updates.get("currency") or wallet.currency)

    apply_updates(wallet, updates)
    db.commit()
    db.refresh(wallet)

    schedule_invalidation(background_tasks, request, RESOURCE, wallet.company_id)
    return serialize_wallet(wallet)


@router.delete("/{wallet_id}")
async def delete_digital_wallet(
    wallet_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Delete a digital wallet with no recorded transactions."""
    wallet = get_or_404(db, DigitalWallet, wallet_id, "Digital wallet")

    transactions = db.scalar(
        select(func.count(Transaction.id)).where(
            Transaction.account_id == wallet_id,
            Transaction.account_type == "wallet",
            Transaction.is_deleted.is_(False),
        )
    )
    if transactions:
        raise bad_request(
            "Cannot delete digital wallet with existing transactions",
            {"transactions": transactions},
        )

    company_id = wallet.company_id
    db.delete(wallet)
    db.commit()

    schedule_invalidation(background_tasks, request, RESOURCE, company_id)
    return {"message": "Digital wallet deleted successfully"}
