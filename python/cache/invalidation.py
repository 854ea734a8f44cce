"""
Cache Invalidation Dispatcher

Maps an invalidation tag to the cache keys and caches it clears.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

from .statistics import StatisticsCache
from .store import CacheKeys, CacheStore

logger = logging.getLogger(__name__)


class InvalidationType(str, Enum):
    """Invalidation tags accepted by the dispatcher."""

    COMPANY = "company"
    COMPANY_LIST = "company-list"
    COMPANY_STATS = "company-stats"
    SEARCH = "search"
    CALENDAR = "calendar"
    NOTES = "notes"
    COMPANY_MUTATION = "company-mutation"
    ALL = "all"
    WARM_UP = "warm-up"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


class InvalidCacheTypeError(ValueError):
    """Raised for a tag outside InvalidationType."""

    def __init__(self, tag: str):
        self.tag = tag
        self.valid_types = InvalidationType.values()
        super().__init__(
            f"Invalid cache type: {tag}. Valid types: {', '.join(self.valid_types)}"
        )


@dataclass
class InvalidationResult:
    """Outcome of one dispatch."""

    tag: str
    removed: int | bool
    success: bool = True

    def to_dict(self) -> dict:
        return {"type": self.tag, "removed": self.removed, "success": self.success}


Warmer = Callable[[], Awaitable[object]]


class CacheInvalidationDispatcher:
    """Clears cache entries by tag.

    Every action is idempotent; running one against empty caches reports
    zero / False rather than failing.
    """

    def __init__(
        self,
        store: CacheStore,
        statistics_cache: StatisticsCache,
        warmers: list[Warmer] | None = None,
    ):
        self.store = store
        self.statistics_cache = statistics_cache
        self.warmers: list[Warmer] = list(warmers or [])

    def register_warmer(self, warmer: Warmer) -> None:
        self.warmers.append(warmer)

    async def dispatch(self, tag: str, target_id: str | int | None = None) -> InvalidationResult:
        """Run the action for an invalidation tag.

        Args:
            tag: One of InvalidationType values
            target_id: Company id, required by the "company" tag

        Returns:
            InvalidationResult with the removed count (or flag)

        Raises:
            InvalidCacheTypeError: If the tag is unknown
            ValueError: If "company" is dispatched without target_id
        """
        try:
            kind = InvalidationType(tag)
        except ValueError:
            raise InvalidCacheTypeError(tag) from None

        if kind == InvalidationType.COMPANY:
            if target_id is None or target_id == "":
                raise ValueError("Company id is required for company invalidation")
            return InvalidationResult(kind.value, self.invalidate_company(target_id))

        if kind == InvalidationType.COMPANY_LIST:
            return InvalidationResult(kind.value, self.invalidate_company_lists())

        if kind == InvalidationType.COMPANY_STATS:
            return InvalidationResult(kind.value, self.invalidate_statistics())

        if kind == InvalidationType.SEARCH:
            return InvalidationResult(kind.value, self.invalidate_search())

        if kind == InvalidationType.CALENDAR:
            return InvalidationResult(kind.value, self.store.delete_pattern("calendar:*"))

        if kind == InvalidationType.NOTES:
            return InvalidationResult(kind.value, self.store.delete_pattern("notes:*"))

        if kind == InvalidationType.COMPANY_MUTATION:
            return self.on_company_mutation(target_id)

        if kind == InvalidationType.ALL:
            return InvalidationResult(kind.value, self.clear_all())

        return InvalidationResult(kind.value, await self.warm_up())

    def invalidate_company(self, company_id: str | int) -> bool:
        return self.store.delete(CacheKeys.company_item(company_id))

    def invalidate_company_lists(self) -> int:
        removed = self.store.delete_pattern("companies:list:*")
        removed += self.store.delete_pattern("companies:count:*")
        return removed

    def invalidate_statistics(self) -> bool:
        return self.statistics_cache.clear()

    def invalidate_search(self) -> int:
        return self.store.delete_pattern("companies:search:*")

    def on_company_mutation(self, company_id: str | int | None = None) -> InvalidationResult:
        """Clear everything a company create/update/delete can make stale.

        Steps run in order (entry, lists, statistics); a failing step is
        logged and the remaining steps still run.
        """
        steps = []
        if company_id is not None:
            steps.append(("company", lambda: self.invalidate_company(company_id)))
        steps.append(("company-list", self.invalidate_company_lists))
        steps.append(("company-stats", self.invalidate_statistics))

        removed = 0
        success = True
        for name, step in steps:
            try:
                removed += int(step())
            except Exception:
                logger.exception(f"Cache invalidation step '{name}' failed")
                success = False

        return InvalidationResult(InvalidationType.COMPANY_MUTATION.value, removed, success)

    def on_resource_mutation(
        self, resource: str, company_id: str | int | None = None
    ) -> InvalidationResult:
        """Clear the cached lists of a resource and, if scoped, its company.

        Args:
            resource: Resource name used as key prefix (e.g. "clients")
            company_id: Owning company whose cached entries should go too

        Returns:
            InvalidationResult tagged with the resource name
        """
        removed = self.store.delete_pattern(f"{resource}:*")
        success = True

        if company_id is not None:
            company_result = self.on_company_mutation(company_id)
            removed += company_result.removed
            success = company_result.success

        logger.debug(f"Invalidated {removed} cache entries for {resource}")
        return InvalidationResult(resource, removed, success)

    def clear_all(self) -> int:
        removed = self.store.clear()
        if self.statistics_cache.clear():
            removed += 1
        logger.info(f"Cleared all caches ({removed} entries)")
        return removed

    async def warm_up(self) -> bool:
        """Run the registered warmers.

        Returns:
            True if every warmer completed without raising
        """
        ok = True
        for warmer in self.warmers:
            try:
                await warmer()
            except Exception:
                logger.exception("Cache warm-up failed")
                ok = False
        return ok
