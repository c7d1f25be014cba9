from clipkeep.services.clipboard_watcher import ClipboardWatcher, WatcherState, WatchStats
from clipkeep.services.container import ClipKeepServices, build_services
from clipkeep.services.events import EventBus, StoreEvent, Topic
from clipkeep.services.item_store import ItemStore
from clipkeep.services.pinboard_store import PinboardStore
from clipkeep.services.rule_store import RuleStore
from clipkeep.services.search import QuickFilter, SearchSession, search_items
from clipkeep.services.sensitivity import SensitivityClassifier, SensitivityVerdict
from clipkeep.services.settings_store import SettingsStore
from clipkeep.services.sync_service import (
    ConflictResolution,
    SyncService,
    SyncStatus,
    resolve_conflict,
)

__all__ = [
    'ClipboardWatcher',
    'WatcherState',
    'WatchStats',
    'ClipKeepServices',
    'build_services',
    'EventBus',
    'StoreEvent',
    'Topic',
    'ItemStore',
    'PinboardStore',
    'RuleStore',
    'QuickFilter',
    'SearchSession',
    'search_items',
    'SensitivityClassifier',
    'SensitivityVerdict',
    'SettingsStore',
    'ConflictResolution',
    'SyncService',
    'SyncStatus',
    'resolve_conflict',
]
