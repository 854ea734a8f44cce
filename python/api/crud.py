"""
Shared Route Helpers

Lookup, required-field checks, partial updates, sorting and the two
pagination shapes used by every resource router.
"""

import base64
import binascii
import json
import logging
import math
from datetime import date, datetime
from typing import Any, Callable, Iterable

from fastapi import HTTPException, status
from sqlalchemy import Date, DateTime, and_, func, or_, select
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from .models import Base

logger = logging.getLogger(__name__)

Serializer = Callable[[Any], dict]


def error_detail(message: str, details: Any = None) -> dict:
    """Build the {"error", "details"} body carried by HTTPException."""
    body = {"error": message}
    if details is not None:
        body["details"] = details
    return body


def not_found(resource: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"{resource} not found",
    )


def bad_request(message: str, details: Any = None) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=error_detail(message, details),
    )


def get_or_404(db: Session, model: type[Base], record_id: Any, resource: str | None = None):
    """Fetch a record by primary key or raise 404."""
    record = db.get(model, record_id)
    if record is None or getattr(record, "is_deleted", False):
        raise not_found(resource or model.__name__)
    return record


def require_fields(data: dict[str, Any], fields: Iterable[str]) -> None:
    """Raise 400 listing every required field that is absent or blank."""
    missing = [
        name for name in fields
        if data.get(name) is None or (isinstance(data.get(name), str) and not data[name].strip())
    ]
    if missing:
        raise bad_request("Missing required fields", {"missing": missing})


def require_non_null_updates(model: type[Base], updates: dict[str, Any]) -> None:
    """Raise 400 when an update clears a column that cannot be null."""
    columns = model.__table__.columns
    require_fields(
        updates,
        [key for key in updates if key in columns and key != "id" and not columns[key].nullable],
    )


def apply_updates(record: Base, updates: dict[str, Any]) -> list[str]:
    """Assign only the provided fields.

    Returns:
        Names of the attributes that were set
    """
    changed = []
    for key, value in updates.items():
        if key in record.__table__.columns and key != "id":
            setattr(record, key, value)
            changed.append(key)
    return changed


def count(db: Session, query: Select) -> int:
    return db.scalar(select(func.count()).select_from(query.order_by(None).subquery())) or 0


def apply_sort(
    query: Select,
    model: type[Base],
    sort_by: str | None,
    sort_order: str,
    allowed: Iterable[str],
    default: str = "created_at",
) -> Select:
    """Order by an allow-listed column, id as tie breaker."""
    field = sort_by if sort_by in set(allowed) else default
    column = getattr(model, field)
    if sort_order == "asc":
        return query.order_by(column.asc(), model.id.asc())
    return query.order_by(column.desc(), model.id.desc())


def paginate(
    db: Session,
    query: Select,
    page: int,
    page_size: int,
    serializer: Serializer,
) -> dict[str, Any]:
    """Run an offset-paginated query.

    Returns:
        Dictionary with items, total, page, page_size and total_pages
    """
    total = count(db, query)
    rows = db.scalars(query.offset((page - 1) * page_size).limit(page_size)).unique().all()

    return {
        "items": [serializer(row) for row in rows],
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": math.ceil(total / page_size) if page_size else 0,
    }


def encode_cursor(value: Any, record_id: Any) -> str:
    if isinstance(value, (date, datetime)):
        value = value.isoformat()
    raw = json.dumps({"v": value, "id": record_id}).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_cursor(cursor: str) -> tuple[Any, Any]:
    """Decode an opaque cursor.

    Raises:
        HTTPException: 400 when the cursor is malformed
    """
    try:
        data = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")))
        return data["v"], data["id"]
    except (binascii.Error, UnicodeError, ValueError, KeyError, TypeError):
        raise bad_request("Invalid cursor") from None


def _cursor_value(column, value: Any) -> Any:
    if value is None:
        return None
    column_type = column.property.columns[0].type
    try:
        if isinstance(column_type, DateTime):
            return datetime.fromisoformat(value)
        if isinstance(column_type, Date):
            return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise bad_request("Invalid cursor") from None
    return value


def cursor_paginate(
    db: Session,
    query: Select,
    model: type[Base],
    sort_field: str,
    sort_order: str,
    cursor: str | None,
    take: int,
    serializer: Serializer,
) -> dict[str, Any]:
    """Run a keyset-paginated query ordered by (sort_field, id).

    Returns:
        Dictionary with items, next_cursor and has_more
    """
    column = getattr(model, sort_field)
    descending = sort_order != "asc"

    if cursor:
        raw_value, last_id = decode_cursor(cursor)
        value = _cursor_value(column, raw_value)
        if descending:
            query = query.where(or_(column < value, and_(column == value, model.id < last_id)))
        else:
            query = query.where(or_(column > value, and_(column == value, model.id > last_id)))

    if descending:
        query = query.order_by(column.desc(), model.id.desc())
    else:
        query = query.order_by(column.asc(), model.id.asc())

    # One extra row tells whether another page exists
    rows = db.scalars(query.limit(take + 1)).unique().all()
    has_more = len(rows) > take
    rows = rows[:take]

    next_cursor = None
    if has_more and rows:
        last = rows[-1]
        next_cursor = encode_cursor(getattr(last, sort_field), last.id)

    return {
        "items": [serializer(row) for row in rows],
        "next_cursor": next_cursor,
        "has_more": has_more,
    }


def search_filter(model: type[Base], term: str, fields: Iterable[str]):
    """Case-insensitive substring match across several columns."""
    pattern = f"%{term.lower()}%"
    return or_(*(func.lower(getattr(model, name)).like(pattern) for name in fields))


def validation_failed(result) -> HTTPException:
    """400 carrying a form ValidationResult."""
    return bad_request("Validation failed", result.to_dict())
