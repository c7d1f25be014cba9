import logging
import threading
from typing import Any, Dict, Optional

from pydantic import ValidationError

from clipkeep.database.kv_store import KeyValueStore, StorageKeys, load_value, save_value
from clipkeep.models.settings import UserSettings
from clipkeep.services.events import EventBus, Topic

logger = logging.getLogger(__name__)

_FIELD_KEYS = {
    "historyRetention": StorageKeys.HISTORY_RETENTION,
    "syncEnabled": StorageKeys.SYNC_ENABLED,
    "sensitiveDataDelay": StorageKeys.SENSITIVE_DATA_DELAY,
    "autoDeleteSensitive": StorageKeys.AUTO_DELETE_SENSITIVE,
    "ignoredAppIdentifiers": StorageKeys.IGNORED_APPS,
    "lastCleanupDate": StorageKeys.LAST_CLEANUP_DATE,
    "lastSyncDate": StorageKeys.LAST_SYNC_DATE,
}


class SettingsStore:

    def __init__(self, store: KeyValueStore, events: Optional[EventBus] = None) -> None:
        self._store = store
        self.events = events or EventBus()
        self._lock = threading.RLock()
        self._settings = self._load()

    def _load(self) -> UserSettings:
        values: Dict[str, Any] = {}
        for name, key in _FIELD_KEYS.items():
            raw = load_value(self._store, key)
            if raw is None:
                continue
            try:
                # validate one field at a time so a bad value only resets itself
                UserSettings.model_validate({name: raw})
            except ValidationError:
                logger.warning(f"Ignoring invalid stored setting {name}={raw!r}")
                continue
            values[name] = raw
        return UserSettings.model_validate(values)

    @property
    def settings(self) -> UserSettings:
        with self._lock:
            return self._settings.model_copy(deep=True)

    def update(self, **changes: Any) -> UserSettings:
        unknown = set(changes) - set(_FIELD_KEYS)
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")

        with self._lock:
            merged = self._settings.model_dump()
            merged.update(changes)
            updated = UserSettings.model_validate(merged)
            serialized = updated.model_dump(mode="json")
            for name in changes:
                save_value(self._store, _FIELD_KEYS[name], serialized[name])
            self._settings = updated

        self.events.emit(Topic.SETTINGS, "updated", changes.keys())
        return self.settings

    def reset_to_defaults(self) -> UserSettings:
        """Restore user preferences; bookkeeping dates are kept."""
        current = self.settings
        defaults = UserSettings(
            lastCleanupDate=current.lastCleanupDate,
            lastSyncDate=current.lastSyncDate,
        )
        changes = defaults.model_dump(exclude={"lastCleanupDate", "lastSyncDate"})
        return self.update(**changes)
