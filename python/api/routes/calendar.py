"""
Calendar API Routes

Calendar events (meetings, deadlines, reminders) per company.
"""

import datetime as dt
import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from pydantic import BaseModel
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from cache import CacheKeys, CacheStore, CacheTTL

from ..auth import User, get_current_user, require_edit
from ..crud import apply_updates, bad_request, get_or_404, require_fields, require_non_null_updates
from ..database import get_db
from ..dependencies import get_cache_store, get_cache_ttl, schedule_invalidation
from ..models import CalendarEvent, Note

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["calendar"])

RESOURCE = "calendar"
EVENT_TYPES = ("meeting", "deadline", "reminder", "other")
PRIORITIES = ("low", "medium", "high", "critical")


class EventInput(BaseModel):
    """Input model for creating or updating a calendar event."""

    company_id: int | None = None
    title: str | None = None
    description: str | None = None
    date: dt.date | None = None
    time: str | None = None
    type: str | None = None
    priority: str | None = None


def serialize_event(event: CalendarEvent) -> dict[str, Any]:
    return event.to_dict()


def _check_event(data: dict[str, Any]) -> None:
    if data.get("type") is not None and data["type"] not in EVENT_TYPES:
        raise bad_request("Invalid event type", {"valid_types": list(EVENT_TYPES)})
    if data.get("priority") is not None and data["priority"] not in PRIORITIES:
        raise bad_request("Invalid priority", {"valid_priorities": list(PRIORITIES)})


@router.get("/events")
async def list_events(
    company_id: int | None = Query(None),
    date_from: dt.date | None = Query(None),
    date_to: dt.date | None = Query(None),
    type_filter: str | None = Query(None, alias="type"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    store: CacheStore = Depends(get_cache_store),
    ttl: CacheTTL = Depends(get_cache_ttl),
) -> dict:
    """List events in date order, served from cache when fresh.

    Args:
        date_from: Earliest event date (inclusive)
        date_to: Latest event date (inclusive)

    Returns:
        Events and their count
    """
    cache_key = CacheKeys.calendar_events({
        "company_id": company_id,
        "date_from": date_from,
        "date_to": date_to,
        "type": type_filter,
    })
    cached = store.get(cache_key)
    if cached is not None:
        return cached

    query = select(CalendarEvent)
    if company_id is not None:
        query = query.where(CalendarEvent.company_id == company_id)
    if date_from:
        query = query.where(CalendarEvent.date >= date_from)
    if date_to:
        query = query.where(CalendarEvent.date <= date_to)
    if type_filter:
        query = query.where(CalendarEvent.type == type_filter)

    events = db.scalars(query.order_by(CalendarEvent.date, CalendarEvent.time, CalendarEvent.id)).all()
    result = {"items": [serialize_event(event) for event in events], "total": len(events)}

    store.set(cache_key, result, ttl.calendar_events)
    return result


@router.get("/events/{event_id}")
async def get_event(
    event_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    """Get an event with its notes."""
    event = get_or_404(db, CalendarEvent, event_id, "Calendar event")
    data = serialize_event(event)
    data["notes"] = [
        note.to_dict()
        for note in db.scalars(select(Note).where(Note.event_id == event_id)).all()
    ]
    return data


@router.post("/events", status_code=status.HTTP_201_CREATED)
async def create_event(
    body: EventInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Create a calendar event."""
    data = body.model_dump(exclude_unset=True)
    require_fields(data, ["title", "date"])
    _check_event(data)

    event = CalendarEvent(**data)
    db.add(event)
    db.commit()
    db.refresh(event)

    schedule_invalidation(background_tasks, request, RESOURCE)
    return serialize_event(event)


@router.put("/events/{event_id}")
async def update_event(
    event_id: str,
    body: EventInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Update the provided fields of an event."""
    event = get_or_404(db, CalendarEvent, event_id, "Calendar event")
    updates = body.model_dump(exclude_unset=True)
    require_non_null_updates(CalendarEvent, updates)
    _check_event(updates)

    apply_updates(event, updates)
    db.commit()
    db.refresh(event)

    schedule_invalidation(background_tasks, request, RESOURCE)
    return serialize_event(event)


@router.delete("/events/{event_id}")
async def delete_event(
    event_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Delete an event; its notes are kept and detached."""
    event = get_or_404(db, CalendarEvent, event_id, "Calendar event")

    db.execute(update(Note).where(Note.event_id == event_id).values(event_id=None))
    db.delete(event)
    db.commit()

    schedule_invalidation(background_tasks, request, RESOURCE)
    schedule_invalidation(background_tasks, request, "notes")
    return {"message": "Calendar event deleted successfully"}
