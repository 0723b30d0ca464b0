"""
Cache Layer - Content-Addressed Memoization of Generations

This module stores successful, validated generations under a key derived
from the parameters that produced them, so equivalent requests do not pay
for another model call.

Why Content-Addressed:
    1. Same parameters (same order) always map to the same key
    2. The entity kind is part of the key material, so kinds never collide
    3. No bookkeeping of ids; an identical request finds its entry by hashing

Contract:
    make_key(*params)          → sha256 hex of the JSON-serialized tuple
    get(config, key)           → data, or None on miss/corrupt/expired
    put(config, key, data)     → advisory write; never raises
    clear(config)              → remove every entry; never raises
    clear_expired(config)      → remove expired or corrupt entries; never raises
    get_stats(config)          → CacheStats; never raises

Invariants:
    - get() never returns an expired or corrupt entry (both are deleted)
    - put() failures are logged, never propagated
    - On a quota failure put() sweeps expired entries and retries once
"""

import dataclasses
import hashlib
import json
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from loguru import logger
from pydantic import BaseModel

from medical_record_generation.cache.backends import CacheBackend, select_backend
from medical_record_generation.core.config import CacheConfig
from medical_record_generation.core.exceptions import (
    CacheError,
    CorruptCacheEntryError,
    StorageQuotaExceededError,
)
from medical_record_generation.core.models import CacheEntry, CacheStats, now_ms


# =============================================================================
# STAGE 1: KEY DERIVATION
# =============================================================================


def _to_jsonable(value: Any) -> Any:
    """``json.dumps`` default hook for parameter types used by generators."""
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, mode="json")
    if isinstance(value, Enum):
        return value.value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Cannot derive a cache key from {type(value).__name__}")


def make_key(*params: Any) -> str:
    """
    Deterministic digest of the parameter tuple.

    Mapping keys are sorted; sequence order is preserved, so
    ``make_key("a", 1) != make_key(1, "a")``.

    Example:
        >>> make_key("generatePatient", {"min": 18, "max": 85}, None) == \\
        ...     make_key("generatePatient", {"max": 85, "min": 18}, None)
        True
    """
    content = json.dumps(
        list(params), default=_to_jsonable, sort_keys=True, separators=(",", ":")
    )
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def _backend(config: CacheConfig, backend: Optional[CacheBackend]) -> CacheBackend:
    return backend if backend is not None else select_backend(config)


# =============================================================================
# STAGE 2: READ / WRITE
# =============================================================================


def _load_entry(store: CacheBackend, key: str) -> Optional[CacheEntry]:
    """
    Read and decode one entry.

    Raises:
        CorruptCacheEntryError: Stored bytes are not a decodable entry
    """
    payload = store.read(key)
    if payload is None:
        return None
    try:
        return CacheEntry.from_dict(json.loads(payload))
    except (ValueError, KeyError, TypeError) as e:
        raise CorruptCacheEntryError(key, str(e))


def get(config: CacheConfig, key: str, backend: Optional[CacheBackend] = None) -> Optional[Any]:
    """
    Look up ``key``.

    Returns:
        Cached data, or None if caching is disabled, the key is absent, the
        entry is corrupt, or it has expired. Corrupt and expired entries
        are deleted.
    """
    if not config.enabled:
        return None

    store = _backend(config, backend)
    try:
        try:
            entry = _load_entry(store, key)
        except CorruptCacheEntryError as e:
            logger.warning(f"{e}, removing")
            store.delete(key)
            return None

        if entry is None:
            return None

        if entry.is_expired():
            logger.debug(f"Cache expired for key: {key[:8]}...")
            store.delete(key)
            return None

        logger.debug(f"Cache hit ({store.name}) for key: {key[:8]}...")
        return entry.data

    except CacheError as e:
        logger.warning(f"Failed to read from cache: {e}")
        return None


def _build_entry(config: CacheConfig, key: str, data: Any) -> str:
    created_at = now_ms()
    expires_at = None
    if config.ttl_seconds is not None:
        expires_at = created_at + int(config.ttl_seconds * 1000)
    return json.dumps(CacheEntry(key, data, created_at, expires_at).to_dict())


def put(
    config: CacheConfig, key: str, data: Any, backend: Optional[CacheBackend] = None
) -> bool:
    """
    Store ``data`` under ``key``. Advisory: never raises.

    Returns:
        True if the entry was written
    """
    if not config.enabled:
        return False

    store = _backend(config, backend)
    try:
        payload = _build_entry(config, key, data)
    except (TypeError, ValueError) as e:
        logger.warning(f"Cache entry for {key[:8]}... is not serializable: {e}")
        return False

    try:
        store.write(key, payload)
        logger.debug(f"Cached response ({store.name}) for key: {key[:8]}...")
        return True

    except StorageQuotaExceededError:
        logger.warning("Cache storage quota exceeded. Clearing expired entries and retrying")
        clear_expired(config, backend=store)
        try:
            store.write(key, _build_entry(config, key, data))
            return True
        except CacheError as e:
            logger.warning(f"Failed to cache after clearing expired entries: {e}")
            return False

    except CacheError as e:
        logger.warning(f"Failed to write to cache: {e}")
        return False


# =============================================================================
# STAGE 3: MAINTENANCE
# =============================================================================


def clear(config: CacheConfig, backend: Optional[CacheBackend] = None) -> int:
    """Remove every entry. Returns the number removed."""
    store = _backend(config, backend)
    removed = 0
    try:
        for key in store.keys():
            store.delete(key)
            removed += 1
    except CacheError as e:
        logger.warning(f"Failed to clear cache: {e}")
    logger.info(f"Cleared {removed} cache entries")
    return removed


def clear_expired(config: CacheConfig, backend: Optional[CacheBackend] = None) -> int:
    """Remove expired and corrupt entries. Returns the number removed."""
    store = _backend(config, backend)
    removed = 0
    now = now_ms()
    try:
        for key in store.keys():
            try:
                entry = _load_entry(store, key)
                expired = entry is not None and entry.is_expired(now)
            except CorruptCacheEntryError:
                expired = True
            if expired:
                store.delete(key)
                removed += 1
    except CacheError as e:
        logger.warning(f"Failed to clear expired cache entries: {e}")
    if removed:
        logger.info(f"Cleared {removed} expired cache entries")
    return removed


def get_stats(config: CacheConfig, backend: Optional[CacheBackend] = None) -> CacheStats:
    """Entry counts and byte size of the backend for ``config``. Never raises."""
    store = _backend(config, backend)
    total = expired = size = 0
    now = now_ms()
    try:
        for key in store.keys():
            try:
                entry = _load_entry(store, key)
                if entry is None:
                    continue
                stale = entry.is_expired(now)
            except CorruptCacheEntryError:
                stale = True
            total += 1
            size += store.size_of(key)
            if stale:
                expired += 1
    except CacheError as e:
        logger.warning(f"Failed to get cache stats: {e}")
    return CacheStats(
        total_entries=total,
        valid_entries=total - expired,
        expired_entries=expired,
        total_size_bytes=size,
    )
