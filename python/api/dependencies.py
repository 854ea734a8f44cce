"""
Request Dependencies

Accessors for the per-application caches and the post-commit cache
invalidation tasks scheduled by mutating handlers.
"""

import logging

from fastapi import BackgroundTasks, Request

from cache import CacheInvalidationDispatcher, CacheKeys, CacheStore, CacheTTL, StatisticsCache

logger = logging.getLogger(__name__)


def get_cache_store(request: Request) -> CacheStore:
    return request.app.state.cache_store


def get_cache_ttl(request: Request) -> CacheTTL:
    return request.app.state.cache_ttl


def get_statistics_cache(request: Request) -> StatisticsCache:
    return request.app.state.statistics_cache


def get_dispatcher(request: Request) -> CacheInvalidationDispatcher:
    return request.app.state.cache_dispatcher


def list_cache_key(request: Request, resource: str) -> str:
    """Cache key for a list response, built from its query parameters."""
    return CacheKeys.resource_list(resource, dict(request.query_params))


def _invalidate_resource(
    dispatcher: CacheInvalidationDispatcher,
    resource: str,
    company_id: int | None,
) -> None:
    # Runs after the response is sent; a failure must not reach the client
    try:
        result = dispatcher.on_resource_mutation(resource, company_id)
        if not result.success:
            logger.warning(f"Cache invalidation for {resource} completed with errors")
    except Exception:
        logger.exception(f"Cache invalidation for {resource} failed")


def _invalidate_company(dispatcher: CacheInvalidationDispatcher, company_id: int | None) -> None:
    try:
        result = dispatcher.on_company_mutation(company_id)
        dispatcher.invalidate_search()
        if not result.success:
            logger.warning(f"Cache invalidation for company {company_id} completed with errors")
    except Exception:
        logger.exception(f"Cache invalidation for company {company_id} failed")


def schedule_invalidation(
    background_tasks: BackgroundTasks,
    request: Request,
    resource: str,
    company_id: int | None = None,
) -> None:
    """Queue best-effort invalidation of a resource's cached entries.

    Args:
        background_tasks: Request background task queue
        request: Current request (carries the dispatcher)
        resource: Resource key prefix, e.g. "clients"
        company_id: Owning company, if any
    """
    background_tasks.add_task(_invalidate_resource, get_dispatcher(request), resource, company_id)


def schedule_company_invalidation(
    background_tasks: BackgroundTasks,
    request: Request,
    company_id: int | None = None,
) -> None:
    """Queue best-effort invalidation after a company create, update or delete."""
    background_tasks.add_task(_invalidate_company, get_dispatcher(request), company_id)
