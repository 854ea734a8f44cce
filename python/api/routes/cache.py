"""
Cache Administration API Routes
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from cache import (
    CacheInvalidationDispatcher,
    CacheStore,
    InvalidCacheTypeError,
    StatisticsCache,
)

from ..auth import User, require_admin
from ..crud import bad_request
from ..dependencies import get_cache_store, get_dispatcher, get_statistics_cache

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cache", tags=["cache"])


class InvalidateInput(BaseModel):
    """Input model for a cache invalidation request."""

    type: str | None = None
    id: str | int | None = None


@router.post("/invalidate")
async def invalidate_cache(
    body: InvalidateInput,
    user: User = Depends(require_admin),
    dispatcher: CacheInvalidationDispatcher = Depends(get_dispatcher),
) -> dict:
    """Invalidate cache entries by tag.

    Args:
        body: Invalidation tag and optional company id

    Returns:
        Dispatch result
    """
    if not body.type:
        raise bad_request("Missing required fields", {"missing": ["type"]})

    try:
        result = await dispatcher.dispatch(body.type, body.id)
    except InvalidCacheTypeError as e:
        raise bad_request(str(e), {"valid_types": e.valid_types}) from None
    except ValueError as e:
        raise bad_request(str(e)) from None

    logger.info(f"{user.id} invalidated cache '{body.type}' ({result.removed} removed)")
    return result.to_dict()


@router.get("/status")
async def cache_status(
    user: User = Depends(require_admin),
    store: CacheStore = Depends(get_cache_store),
    stats_cache: StatisticsCache = Depends(get_statistics_cache),
) -> dict:
    """Report cache sizes and statistics freshness."""
    cached_stats = stats_cache.get()
    return {
        "entries": len(store),
        "keys": sorted(store.keys()),
        "statistics_cached": cached_stats is not None,
        "statistics_refreshing": stats_cache.is_refreshing(),
        "statistics_last_updated": cached_stats.last_updated.isoformat() if cached_stats else None,
    }
