import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from clipkeep.config import AppConfig
from clipkeep.database.kv_store import KeyValueStore
from clipkeep.services.events import EventBus
from clipkeep.services.item_store import ItemStore
from clipkeep.services.pinboard_store import PinboardStore
from clipkeep.services.rule_store import RuleStore
from clipkeep.services.search import SearchSession
from clipkeep.services.sensitivity import SensitivityClassifier
from clipkeep.services.settings_store import SettingsStore
from clipkeep.services.sync_service import SyncBackend, SyncService

logger = logging.getLogger(__name__)


@dataclass
class ClipKeepServices:
    store: KeyValueStore
    events: EventBus
    settings: SettingsStore
    rules: RuleStore
    classifier: SensitivityClassifier
    items: ItemStore
    pinboards: PinboardStore
    search: SearchSession
    sync: SyncService

    def close(self) -> None:
        self.search.close()
        self.classifier.close()
        self.store.close()


def build_services(
    store: KeyValueStore,
    config: Optional[AppConfig] = None,
    clock: Callable[[], datetime] = datetime.now,
    sync_backend: Optional[SyncBackend] = None,
) -> ClipKeepServices:
    """Construct every store over one key-value backend and run the retention sweep."""
    config = config or AppConfig()
    events = EventBus()
    settings = SettingsStore(store, events=events)
    rules = RuleStore(store, events=events, clock=clock)
    classifier = SensitivityClassifier(rules, max_cache_size=config.cache_size)
    items = ItemStore(store, settings, events=events, max_items=config.max_items, clock=clock)
    pinboards = PinboardStore(store, items, events=events, clock=clock)
    search = SearchSession(items, store=store, debounce=config.search_debounce, events=events)
    sync = SyncService(settings, lambda: (items.items, pinboards.pinboards),
                       backend=sync_backend, clock=clock)

    removed = items.cleanup_if_needed()
    if removed:
        logger.info(f"Startup cleanup removed {removed} expired items")

    return ClipKeepServices(
        store=store,
        events=events,
        settings=settings,
        rules=rules,
        classifier=classifier,
        items=items,
        pinboards=pinboards,
        search=search,
        sync=sync,
    )
