"""
Notes API Routes
"""

import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from cache import CacheKeys, CacheStore, CacheTTL

from ..auth import User, get_current_user, require_edit
from ..crud import apply_updates, get_or_404, paginate, require_fields, require_non_null_updates, search_filter
from ..database import get_db
from ..dependencies import get_cache_store, get_cache_ttl, schedule_invalidation
from ..models import CalendarEvent, Note

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notes", tags=["notes"])

RESOURCE = "notes"


class NoteInput(BaseModel):
    """Input model for creating or updating a note."""

    company_id: int | None = None
    title: str | None = None
    content: str | None = None
    is_completed: bool | None = None
    event_id: str | None = None


def serialize_note(note: Note) -> dict[str, Any]:
    return note.to_dict()


@router.get("")
async def list_notes(
    company_id: int | None = Query(None),
    is_completed: bool | None = Query(None),
    search: str | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    store: CacheStore = Depends(get_cache_store),
    ttl: CacheTTL = Depends(get_cache_ttl),
) -> dict:
    """List notes, newest first, served from cache when fresh."""
    cache_key = CacheKeys.notes_list({
        "company_id": company_id,
        "is_completed": is_completed,
        "search": search,
        "page": page,
        "page_size": page_size,
    })
    cached = store.get(cache_key)
    if cached is not None:
        return cached

    query = select(Note)
    if company_id is not None:
        query = query.where(Note.company_id == company_id)
    if is_completed is not None:
        query = query.where(Note.is_completed == is_completed)
    if search:
        query = query.where(search_filter(Note, search, ["title", "content"]))

    query = query.order_by(Note.created_at.desc(), Note.id.desc())
    result = paginate(db, query, page, page_size, serialize_note)

    store.set(cache_key, result, ttl.notes_list)
    return result


@router.get("/{note_id}")
async def get_note(
    note_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    """Get a note by ID."""
    return serialize_note(get_or_404(db, Note, note_id, "Note"))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_note(
    body: NoteInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Create a note, optionally attached to a calendar event."""
    data = body.model_dump(exclude_unset=True)
    require_fields(data, ["title"])
    if data.get("event_id"):
        get_or_404(db, CalendarEvent, data["event_id"], "Calendar event")

    note = Note(**data)
    db.add(note)
    db.commit()
    db.refresh(note)

    schedule_invalidation(background_tasks, request, RESOURCE)
    return serialize_note(note)


@router.put("/{note_id}")
async def update_note(
    note_id: str,
    body: NoteInput,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Update the provided fields of a note."""
    note = get_or_404(db, Note, note_id, "Note")
    updates = body.model_dump(exclude_unset=True)
    require_non_null_updates(Note, updates)
    if updates.get("event_id"):
        get_or_404(db, CalendarEvent, updates["event_id"], "Calendar event")

    apply_updates(note, updates)
    db.commit()
    db.refresh(note)

    schedule_invalidation(background_tasks, request, RESOURCE)
    return serialize_note(note)


@router.delete("/{note_id}")
async def delete_note(
    note_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_edit),
    db: Session = Depends(get_db),
) -> dict:
    """Delete a note."""
    note = get_or_404(db, Note, note_id, "Note")
    db.delete(note)
    db.commit()

    schedule_invalidation(background_tasks, request, RESOURCE)
    return {"message": "Note deleted successfully"}
