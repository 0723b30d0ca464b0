"""
Cache Backends - Storage Behind the Generation Cache

This module defines the storage interface the cache layer writes through
and its two implementations. The backend is chosen once per CacheConfig by
capability detection; cache logic never branches on the environment.

Backends:
    FileSystemCacheBackend  → One <key>.json file per entry in a directory
    KeyValueCacheBackend    → Prefix-scoped entries in a quota-bounded
                              string key-value store

Selection (select_backend):
    1. Cache directory can be created and written → filesystem
    2. Otherwise → key-value store held in process memory

Every backend raises CacheError (never OSError or UnicodeDecodeError) so
the cache layer has a single failure type to swallow.
"""

import errno
import os
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Protocol, runtime_checkable

from loguru import logger

from medical_record_generation.core.config import CacheConfig
from medical_record_generation.core.exceptions import (
    CacheError,
    CorruptCacheEntryError,
    StorageQuotaExceededError,
)


# =============================================================================
# STAGE 1: BACKEND PROTOCOL
# =============================================================================


@runtime_checkable
class CacheBackend(Protocol):
    """
    Protocol for cache storage backends.

    Entries are opaque serialized strings addressed by cache key. Writes
    replace a whole entry; there is no partial update.
    """

    name: str

    def read(self, key: str) -> Optional[str]:
        """Serialized entry; None when absent, CorruptCacheEntryError if undecodable."""
        ...

    def write(self, key: str, payload: str) -> None:
        """Store ``payload`` under ``key``, replacing any previous entry."""
        ...

    def delete(self, key: str) -> None:
        """Remove ``key``; absent keys are ignored."""
        ...

    def keys(self) -> List[str]:
        """All cache keys currently stored by this backend."""
        ...

    def size_of(self, key: str) -> int:
        """Stored size of ``key`` in bytes (0 when absent)."""
        ...


# =============================================================================
# STAGE 2: FILESYSTEM BACKEND
# =============================================================================


class FileSystemCacheBackend:
    """
    Stores each entry as ``<directory>/<key>.json``.

    Writes go to a temporary file in the same directory and are moved into
    place with ``os.replace``, so readers never see a half-written entry.
    A full disk is reported as StorageQuotaExceededError.
    """

    name = "filesystem"

    def __init__(self, directory: str):
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, key: str) -> Path:
        return self._directory / f"{key}.json"

    def read(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as e:
            raise CorruptCacheEntryError(key, f"not UTF-8 ({e.reason})")
        except OSError as e:
            raise CacheError(f"Failed to read cache file: {e}", context={"key": key[:8]})

    def write(self, key: str, payload: str) -> None:
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(tmp_name, self._path(key))
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            if e.errno == errno.ENOSPC:
                raise StorageQuotaExceededError(len(payload.encode("utf-8")), 0)
            raise CacheError(f"Failed to write cache file: {e}", context={"key": key[:8]})

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise CacheError(f"Failed to delete cache file: {e}", context={"key": key[:8]})

    def keys(self) -> List[str]:
        if not self._directory.exists():
            return []
        try:
            return [path.stem for path in self._directory.glob("*.json")]
        except OSError as e:
            raise CacheError(f"Failed to list cache directory: {e}")

    def size_of(self, key: str) -> int:
        try:
            return self._path(key).stat().st_size
        except FileNotFoundError:
            return 0
        except OSError as e:
            raise CacheError(f"Failed to stat cache file: {e}", context={"key": key[:8]})


# =============================================================================
# STAGE 3: KEY-VALUE BACKEND
# =============================================================================


class InMemoryKeyValueStore:
    """
    String key-value store with a total byte quota.

    Sizes count UTF-8 bytes of keys and values. A write that would push the
    total past the quota raises StorageQuotaExceededError and leaves the
    store unchanged.
    """

    def __init__(self, quota_bytes: int):
        self._quota_bytes = quota_bytes
        self._items: Dict[str, str] = {}

    @staticmethod
    def _item_size(key: str, value: str) -> int:
        return len(key.encode("utf-8")) + len(value.encode("utf-8"))

    @property
    def used_bytes(self) -> int:
        return sum(self._item_size(k, v) for k, v in self._items.items())

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        current = self._item_size(key, self._items[key]) if key in self._items else 0
        requested = self._item_size(key, value)
        available = self._quota_bytes - (self.used_bytes - current)
        if requested > available:
            raise StorageQuotaExceededError(requested, max(available, 0))
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._items)


class KeyValueCacheBackend:
    """Cache entries stored as ``<prefix><key>`` items in a key-value store."""

    name = "key-value"

    def __init__(self, store: InMemoryKeyValueStore, prefix: str):
        self._store = store
        self._prefix = prefix

    def _storage_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def read(self, key: str) -> Optional[str]:
        return self._store.get_item(self._storage_key(key))

    def write(self, key: str, payload: str) -> None:
        self._store.set_item(self._storage_key(key), payload)

    def delete(self, key: str) -> None:
        self._store.remove_item(self._storage_key(key))

    def keys(self) -> List[str]:
        return [
            stored[len(self._prefix):]
            for stored in self._store.keys()
            if stored.startswith(self._prefix)
        ]

    def size_of(self, key: str) -> int:
        value = self.read(key)
        if value is None:
            return 0
        # Two bytes per character
        return (len(self._storage_key(key)) + len(value)) * 2


# =============================================================================
# STAGE 4: CAPABILITY-DETECTED FACTORY
# =============================================================================


def directory_is_writable(directory: str) -> bool:
    """True when ``directory`` exists (or can be created) and accepts writes."""
    try:
        Path(directory).mkdir(parents=True, exist_ok=True)
    except OSError:
        return False
    return os.access(directory, os.W_OK)


@lru_cache(maxsize=None)
def select_backend(config: CacheConfig) -> CacheBackend:
    """
    Choose the backend for ``config`` once and reuse it afterwards.

    Memoized per (frozen, hashable) CacheConfig, so the in-memory store
    keeps its entries for the life of the process.
    """
    if directory_is_writable(config.directory):
        logger.debug(f"Cache backend: filesystem ({config.directory})")
        return FileSystemCacheBackend(config.directory)

    logger.info(
        f"Cache directory {config.directory} is not writable; "
        f"using in-memory key-value store ({config.quota_bytes} bytes)"
    )
    return KeyValueCacheBackend(InMemoryKeyValueStore(config.quota_bytes), config.storage_prefix)
