"""
Data Migration API Routes

Import local storage data into the database and export it back.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from storage import LocalStorage

from ..auth import User, require_admin
from ..database import get_db
from ..dependencies import get_dispatcher
from ..migration import LocalStorageMigrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/data-migration", tags=["data-migration"])


def get_local_storage(request: Request) -> LocalStorage:
    return request.app.state.local_storage


def _clear_all_caches(request: Request) -> None:
    try:
        get_dispatcher(request).clear_all()
    except Exception:
        logger.exception("Cache clear after migration failed")


@router.post("/import")
async def import_local_storage(
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: LocalStorage = Depends(get_local_storage),
) -> dict:
    """Import local storage records into the database.

    Returns:
        Migration report with per-key migrated and skipped counts
    """
    report = LocalStorageMigrator(db, storage).import_all()
    background_tasks.add_task(_clear_all_caches, request)
    return report.to_dict()


@router.post("/export")
async def export_local_storage(
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: LocalStorage = Depends(get_local_storage),
) -> dict:
    """Write database records to local storage.

    Returns:
        Number of records written per key
    """
    return {"exported": LocalStorageMigrator(db, storage).export_all()}
