"""
Cache Layer - Generation Cache and Model Configuration Storage

Submodules:
    cache_layer.py    → make_key/get/put/clear/clear_expired/get_stats
    backends.py       → Filesystem and key-value backends, select_backend()
    config_storage.py → ModelConfigStore (save/load/clear/has)
"""

from medical_record_generation.cache.cache_layer import (
    make_key,
    get,
    put,
    clear,
    clear_expired,
    get_stats,
)
from medical_record_generation.cache.backends import (
    CacheBackend,
    FileSystemCacheBackend,
    KeyValueCacheBackend,
    InMemoryKeyValueStore,
    select_backend,
)
from medical_record_generation.cache.config_storage import ModelConfigStore

__all__ = [
    "make_key",
    "get",
    "put",
    "clear",
    "clear_expired",
    "get_stats",
    "CacheBackend",
    "FileSystemCacheBackend",
    "KeyValueCacheBackend",
    "InMemoryKeyValueStore",
    "select_backend",
    "ModelConfigStore",
]
