"""
Local Storage Adapter

Key-value storage where every key holds a JSON-serialized array. Values are
read and written wholesale, and registered listeners are notified after
each write so other open views can refresh.
"""

import json
import logging
import os
import re
import threading
from pathlib import Path
from typing import Any, Callable

logger = logging.getLogger(__name__)

COMPANIES_KEY = "app-companies"
PRODUCTS_KEY = "app-products"
BANK_ACCOUNTS_KEY = "app-bank-accounts"
DIGITAL_WALLETS_KEY = "app-digital-wallets"

_KEY_PATTERN = re.compile(r"^[a-z0-9][a-z0-9\-_.]*$")

StorageListener = Callable[[str], None]


class StorageError(Exception):
    """Raised when a value cannot be written to storage."""


class LocalStorage:
    """File-backed JSON array storage, one file per key."""

    def __init__(self, directory: Path | str | None = None):
        """Initialize storage.

        Args:
            directory: Directory holding the key files. Defaults to
                LOCAL_STORAGE_DIR or ./.local_storage
        """
        if directory is None:
            directory = os.getenv("LOCAL_STORAGE_DIR", ".local_storage")

        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._listeners: list[StorageListener] = []

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def get_items(self, key: str) -> list[Any]:
        """Load the array stored under a key.

        Missing keys, unreadable files and non-array payloads all load as an
        empty list.

        Args:
            key: Storage key

        Returns:
            Stored items
        """
        path = self._path(key)

        if not path.exists():
            logger.debug(f"No data found in storage for {key}")
            return []

        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading {key} from storage: {e}")
            return []

        return data if isinstance(data, list) else []

    def set_items(self, key: str, items: list[Any]) -> None:
        """Replace the array stored under a key.

        Args:
            key: Storage key
            items: Items to store

        Raises:
            StorageError: If the items cannot be serialized or written
        """
        path = self._path(key)

        try:
            payload = json.dumps(list(items), default=str)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Cannot serialize {key}: {e}") from e

        tmp_path = path.with_suffix(".json.tmp")
        with self._lock:
            try:
                tmp_path.write_text(payload, encoding="utf-8")
                tmp_path.replace(path)
            except OSError as e:
                raise StorageError(f"Cannot write {key}: {e}") from e

        logger.debug(f"Saved {len(items)} items to storage under {key}")
        self._notify(key)

    def remove(self, key: str) -> bool:
        """Remove a key.

        Returns:
            True if the key existed
        """
        path = self._path(key)

        with self._lock:
            existed = path.exists()
            if existed:
                path.unlink()

        if existed:
            self._notify(key)
        return existed

    def has(self, key: str) -> bool:
        return self._path(key).exists()

    def subscribe(self, listener: StorageListener) -> Callable[[], None]:
        """Register a change listener.

        Args:
            listener: Called with the changed key after every write or removal

        Returns:
            Function that unregisters the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, key: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(key)
            except Exception as e:
                logger.error(f"Storage listener failed for {key}: {e}")
