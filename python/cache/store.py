"""
Cache Store Module

In-memory keyed cache with per-entry TTL and glob-style pattern deletion.
"""

import fnmatch
import json
import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import yaml

logger = logging.getLogger(__name__)


def _filters_key(filters: dict[str, Any]) -> str:
    return json.dumps(filters, sort_keys=True, default=str)


class CacheKeys:
    """Deterministic cache key builders."""

    @staticmethod
    def company_list(filters: dict[str, Any]) -> str:
        return f"companies:list:{_filters_key(filters)}"

    @staticmethod
    def company_item(company_id: int | str) -> str:
        return f"companies:item:{company_id}"

    @staticmethod
    def company_search(term: str, filters: dict[str, Any]) -> str:
        return f"companies:search:{term}:{_filters_key(filters)}"

    @staticmethod
    def company_count(filters: dict[str, Any]) -> str:
        return f"companies:count:{_filters_key(filters)}"

    @staticmethod
    def calendar_events(filters: dict[str, Any]) -> str:
        return f"calendar:events:{_filters_key(filters)}"

    @staticmethod
    def notes_list(filters: dict[str, Any]) -> str:
        return f"notes:list:{_filters_key(filters)}"

    @staticmethod
    def resource_list(resource: str, filters: dict[str, Any]) -> str:
        return f"{resource}:list:{_filters_key(filters)}"


@dataclass
class CacheTTL:
    """Entry lifetimes in seconds, per cache namespace."""

    company_list: float = 2
    company_item: float = 5
    company_search: float = 2
    company_count: float = 2
    company_stats: float = 300
    calendar_events: float = 5 * 60
    notes_list: float = 10 * 60
    resource_list: dict[str, float] = field(default_factory=lambda: {
        "clients": 10 * 60,
        "vendors": 20 * 60,
        "products": 15 * 60,
        "invoices": 5 * 60,
        "bank-accounts": 30 * 60,
        "digital-wallets": 30 * 60,
    })
    default: float = 60

    @classmethod
    def from_yaml(cls, config_path: Path | str) -> "CacheTTL":
        """Load TTLs from a YAML file, keeping defaults for missing keys.

        Args:
            config_path: Path to cache.yaml

        Returns:
            CacheTTL
        """
        ttl = cls()
        config_path = Path(config_path)

        if not config_path.exists():
            logger.info(f"Cache config {config_path} not found, using defaults")
            return ttl

        with open(config_path) as f:
            config = yaml.safe_load(f) or {}

        for key, value in (config.get("ttl_seconds") or {}).items():
            if key == "resource_list" and isinstance(value, dict):
                ttl.resource_list.update({k: float(v) for k, v in value.items()})
            elif hasattr(ttl, key):
                setattr(ttl, key, float(value))
            else:
                logger.warning(f"Unknown cache TTL key in {config_path}: {key}")

        return ttl

    def for_resource(self, resource: str) -> float:
        return self.resource_list.get(resource, self.default)


class CacheStore:
    """Thread-safe in-memory cache with TTL expiry checked on read.

    When the store holds ``max_entries`` keys, a write first drops every
    expired entry and then the oldest written ones until there is room.
    """

    DEFAULT_MAX_ENTRIES = 1000

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[float, Any]] = {}  # key -> (expires_at, value), oldest write first
        self.max_entries = max_entries

    @classmethod
    def from_yaml(cls, config_path: Path | str, **kwargs) -> "CacheStore":
        """Build a store sized by the ``max_entries`` key of cache.yaml."""
        config_path = Path(config_path)
        if not config_path.exists():
            return cls(**kwargs)

        with open(config_path) as f:
            config = yaml.safe_load(f) or {}

        max_entries = config.get("max_entries")
        if max_entries is not None:
            kwargs.setdefault("max_entries", int(max_entries))
        return cls(**kwargs)

    def get(self, key: str) -> Any | None:
        """Return the cached value if still fresh, else None."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: float) -> None:
        with self._lock:
            now = self._clock()
            self._entries.pop(key, None)
            if len(self._entries) >= self.max_entries:
                self._evict(now)
            self._entries[key] = (now + ttl, value)

    def _evict(self, now: float) -> None:
        # Caller holds the lock
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]

        evicted = 0
        while len(self._entries) >= self.max_entries:
            del self._entries[next(iter(self._entries))]
            evicted += 1

        if expired or evicted:
            logger.debug(f"Cache full: dropped {len(expired)} expired and {evicted} oldest entries")

    def delete(self, key: str) -> bool:
        """Delete one key.

        Returns:
            True if the key was present
        """
        with self._lock:
            return self._entries.pop(key, None) is not None

    def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern such as "companies:list:*".

        Returns:
            Number of entries removed
        """
        with self._lock:
            matches = [k for k in self._entries if fnmatch.fnmatchcase(k, pattern)]
            for key in matches:
                del self._entries[key]

        if matches:
            logger.debug(f"Deleted {len(matches)} cache entries matching {pattern}")
        return len(matches)

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        return count

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
