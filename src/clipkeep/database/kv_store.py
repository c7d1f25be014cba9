"""
Key-value persistence for ClipKeep.

Collections are stored as JSON arrays under stable keys, scalar settings as
JSON-encoded values under their own keys:

    clipboardItems   -> [ {item envelope}, ... ]
    pinboards        -> [ {pinboard}, ... ]
    savedRules       -> [ {rule}, ... ]       (order is significant)
    historyRetention, syncEnabled, sensitiveDataDelay, autoDeleteSensitive,
    ignoredAppIdentifiers, lastCleanupDate, lastSyncDate, recentSearches
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar

import redis

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StorageKeys:
    ITEMS = "clipboardItems"
    PINBOARDS = "pinboards"
    RULES = "savedRules"
    HISTORY_RETENTION = "historyRetention"
    SYNC_ENABLED = "syncEnabled"
    SENSITIVE_DATA_DELAY = "sensitiveDataDelay"
    AUTO_DELETE_SENSITIVE = "autoDeleteSensitive"
    IGNORED_APPS = "ignoredAppIdentifiers"
    LAST_CLEANUP_DATE = "lastCleanupDate"
    LAST_SYNC_DATE = "lastSyncDate"
    RECENT_SEARCHES = "recentSearches"


class KeyValueStore(ABC):

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass

    def close(self) -> None:
        pass

    def __enter__(self) -> "KeyValueStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class MemoryKeyValueStore(KeyValueStore):

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data)


class RedisKeyValueStore(KeyValueStore):

    def __init__(self, client: Optional[redis.Redis] = None, host: str = 'localhost',
                 port: int = 6379, db: int = 0, password: Optional[str] = None,
                 namespace: str = "clipkeep"):
        self.client = client or redis.Redis(
            host=host,
            port=port,
            db=db,
            password=password,
            decode_responses=True
        )
        self.namespace = namespace
        self._test_connection()

    def _test_connection(self):
        try:
            self.client.ping()
        except redis.ConnectionError:
            logger.error("Redis is not reachable")
            raise

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def get(self, key: str) -> Optional[str]:
        value = self.client.get(self._key(key))
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set(self, key: str, value: str) -> None:
        self.client.set(self._key(key), value)

    def delete(self, key: str) -> None:
        self.client.delete(self._key(key))

    def health_check(self) -> Dict[str, Any]:
        info = self.client.info()
        return {
            "status": "healthy",
            "connected_clients": info.get('connected_clients', 0),
            "used_memory": info.get('used_memory_human', 'unknown'),
            "total_keys": self.client.dbsize(),
        }

    def close(self):
        self.client.close()


def load_value(store: KeyValueStore, key: str, default: Any = None) -> Any:
    raw = store.get(key)
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        logger.warning(f"Could not decode value for {key!r}, using default")
        return default


def save_value(store: KeyValueStore, key: str, value: Any) -> None:
    if value is None:
        store.delete(key)
        return
    store.set(key, json.dumps(value))


def load_collection(store: KeyValueStore, key: str,
                    parse: Callable[[Dict[str, Any]], T]) -> List[T]:
    """Decode a persisted JSON array; anything unreadable counts as empty."""
    raw = store.get(key)
    if raw is None:
        return []
    try:
        records = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning(f"Stored collection {key!r} is not valid JSON, treating as empty")
        return []
    if not isinstance(records, list):
        logger.warning(f"Stored collection {key!r} is not a list, treating as empty")
        return []

    parsed: List[T] = []
    for record in records:
        if not isinstance(record, dict):
            logger.warning(f"Skipping malformed record in {key!r}")
            continue
        try:
            parsed.append(parse(record))
        except ValueError as e:
            logger.warning(f"Skipping undecodable record in {key!r}: {e}")
    return parsed


def save_collection(store: KeyValueStore, key: str, records: Iterable[Dict[str, Any]]) -> None:
    store.set(key, json.dumps(list(records)))
