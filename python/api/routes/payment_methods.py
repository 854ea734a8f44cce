"""
Payment Methods API Routes

Payment instructions that can be attached to invoices.
"""

import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..auth import User, get_current_user, require_edit
from ..crud import apply_updates, bad_request, get_or_404, require_fields, require_non_null_updates
from ..database import get_db
from ..dependencies import schedule_invalidation
from ..models import PaymentMethod, invoice_payment_methods

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payment-methods", tags=["payment-methods"])

RESOURCE = "payment-methods"
REQUIRED_FIELDS = ["type", "name"]
PAYMENT_METHOD_TYPES = ("BANK", "WALLET", "CASH", "STRIPE", "PAYPAL", "OTHER")


class PaymentMethodInput(BaseModel):
    """Input model for creating or updating a payment method."""

    company_id: int | None = None
    type: str | None = None
    name: str | None = None
    account_name: str | None = None
    bank_name: str | None = None
    bank_address: str | None = None
    iban: str | None = None
    swift_code: str | None = None
    account_number: str | None = None
    wallet_address: str | None = None
    currency: str | None = None
    details: str | None = None


def _check_type(data: dict[str, Any]) -> None:
    if "type" in data:
        data["type"] = str(data["type"]).upper()
        if data["type"] not in PAYMENT_METHOD_TYPES:
            raise bad_request(
                "Invalid payment method type",
                {"valid_types": list(PAYMENT_METHOD_TYPES)},
            )


@router.get("")
async def list_payment_methods(
    company_id: int | None = Query(None),
    type_filter: str | None = Query(None, alias="type"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    """List payment methods, optionally for one company and type."""
    query = select(PaymentMethod)
    if company_id is not None:
        query = query.where(PaymentMethod.company_id == company_id)
    if type_filter:
        query = query.where(PaymentMethod.type == type_filter.upper())

    methods = db.scalars(query.order_by(PaymentMethod.name)).all()
    return {"items": [method.to_dict() for method in methods], "total": len(methods)}


@router.get("/{method_id}")
async def get_payment_method(
    method_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    """Get a payment method by ID."""
    return get_or_404(db, PaymentMethod, method_id, "Payment method").to_dict()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_payment_method(
    body: PaymentMethodInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Create a payment method."""
    data = body.model_dump(exclude_unset=True)
    require_fields(data, REQUIRED_FIELDS)
    _check_type(data)

    method = PaymentMethod(**data)
    db.add(method)
    db.commit()
    db.refresh(method)

    schedule_invalidation(background_tasks, request, RESOURCE, method.company_id)
    return method.to_dict()


@router.put("/{method_id}")
async def update_payment_method(
    method_id: str,
    body: PaymentMethodInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Update the provided fields of a payment method."""
    method = get_or_404(db, PaymentMethod, method_id, "Payment method")
    updates = body.model_dump(exclude_unset=True)
    require_non_null_updates(PaymentMethod, updates)
    _check_type(updates)

    apply_updates(method, updates)
    db.commit()
    db.refresh(method)

    schedule_invalidation(background_tasks, request, RESOURCE, method.company_id)
    return method.to_dict()


@router.delete("/{method_id}")
async def delete_payment_method(
    method_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Delete a payment method that no invoice uses."""
    method = get_or_404(db, PaymentMethod, method_id, "Payment method")

    linked = db.scalar(
        select(func.count())
        .select_from(invoice_payment_methods)
        .where(invoice_payment_methods.c.payment_method_id == method_id)
    )
    if linked:
        raise bad_request("Cannot delete payment method used by invoices", {"invoices": linked})

    company_id = method.company_id
    db.delete(method)
    db.commit()

    schedule_invalidation(background_tasks, request, RESOURCE, company_id)
    return {"message": "Payment method deleted successfully"}
