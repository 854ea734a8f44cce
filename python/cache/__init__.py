"""
Cache Module

Keyed TTL cache store, the company statistics cache and the invalidation
dispatcher that clears them after mutations.
"""

from .store import CacheStore, CacheKeys, CacheTTL
from .statistics import CachedStatistics, StatisticsCache
from .invalidation import (
    CacheInvalidationDispatcher,
    InvalidationResult,
    InvalidationType,
    InvalidCacheTypeError,
)

__all__ = [
    # Store
    "CacheStore",
    "CacheKeys",
    "CacheTTL",
    # Statistics
    "CachedStatistics",
    "StatisticsCache",
    # Invalidation
    "CacheInvalidationDispatcher",
    "InvalidationResult",
    "InvalidationType",
    "InvalidCacheTypeError",
]
