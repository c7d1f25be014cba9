"""
Storage backends for ClipKeep.

Provides the key-value collaborator used by every store.
"""

from clipkeep.database.kv_store import (
    KeyValueStore,
    MemoryKeyValueStore,
    RedisKeyValueStore,
    StorageKeys,
    load_collection,
    load_value,
    save_collection,
    save_value,
)

__all__ = [
    'KeyValueStore',
    'MemoryKeyValueStore',
    'RedisKeyValueStore',
    'StorageKeys',
    'load_collection',
    'load_value',
    'save_collection',
    'save_value',
]
