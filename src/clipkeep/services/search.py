from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional, Set, Tuple

from clipkeep.database.kv_store import KeyValueStore, StorageKeys, load_value, save_value
from clipkeep.models.clipboarditem import ClipboardItem, ItemKind
from clipkeep.services.events import EventBus, Topic

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from clipkeep.services.item_store import ItemStore

logger = logging.getLogger(__name__)

DateRange = Tuple[datetime, datetime]

DEFAULT_DEBOUNCE = 0.3
MAX_RECENT_SEARCHES = 20


class QuickFilter(str, Enum):
    TODAY = "today"
    THIS_WEEK = "thisWeek"
    LINKS = "links"
    IMAGES = "images"
    PINNED = "pinned"


def matches_query(item: ClipboardItem, query: str) -> bool:
    needle = query.lower()
    preview = item.preview_text
    if preview and needle in preview.lower():
        return True
    if needle in item.raw_content.lower():
        return True
    return any(needle in tag.lower() for tag in item.tags)


def search_items(
    items: Iterable[ClipboardItem],
    query: str,
    types: Optional[Iterable[ItemKind]] = None,
    date_range: Optional[DateRange] = None,
) -> List[ClipboardItem]:
    """Filter in the given order: text AND kind AND inclusive date range."""
    kinds: Optional[Set[ItemKind]] = set(types) if types else None
    results = []
    for item in items:
        if query and not matches_query(item, query):
            continue
        if kinds and item.kind not in kinds:
            continue
        if date_range is not None:
            start, end = date_range
            if not (start <= item.timestamp <= end):
                continue
        results.append(item)
    return results


def quick_filter(items: Iterable[ClipboardItem], which: QuickFilter,
                 now: Optional[datetime] = None) -> List[ClipboardItem]:
    now = now or datetime.now()
    if which is QuickFilter.TODAY:
        start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return search_items(items, "", date_range=(start, now))
    if which is QuickFilter.THIS_WEEK:
        return search_items(items, "", date_range=(now - timedelta(days=7), now))
    if which is QuickFilter.LINKS:
        return search_items(items, "", types={ItemKind.LINK})
    if which is QuickFilter.IMAGES:
        return search_items(items, "", types={ItemKind.IMAGE})
    return [item for item in items if item.isPinned]


class SearchSession:
    """Debounced query state over an ItemStore.

    Each ``set_query`` call cancels the pending timer, so only the last query
    typed within the debounce window hits the store.
    """

    def __init__(
        self,
        item_store: ItemStore,
        store: Optional[KeyValueStore] = None,
        debounce: float = DEFAULT_DEBOUNCE,
        on_results: Optional[Callable[[List[ClipboardItem]], None]] = None,
        events: Optional[EventBus] = None,
    ) -> None:
        self.item_store = item_store
        self._store = store
        self._events = events
        self.debounce = debounce
        self._on_results = on_results
        self._lock = threading.RLock()
        self._timer: Optional[threading.Timer] = None
        self.query = ""
        self.type_filters: Set[ItemKind] = set()
        self.date_range: Optional[DateRange] = None
        self._results: List[ClipboardItem] = []
        self.is_searching = False
        self.recent_searches: List[str] = self._load_recent()

    def _load_recent(self) -> List[str]:
        if self._store is None:
            return []
        stored = load_value(self._store, StorageKeys.RECENT_SEARCHES, default=[])
        if not isinstance(stored, list):
            return []
        return [entry for entry in stored if isinstance(entry, str)]

    def _save_recent(self) -> None:
        if self._store is not None:
            save_value(self._store, StorageKeys.RECENT_SEARCHES, self.recent_searches)

    @property
    def results(self) -> List[ClipboardItem]:
        with self._lock:
            return list(self._results)

    def _publish(self, results: List[ClipboardItem]) -> None:
        with self._lock:
            self._results = results
            self.is_searching = False
        if self._on_results is not None:
            try:
                self._on_results(list(results))
            except Exception as e:
                logger.error(f"Search results callback failed: {e}")
        if self._events is not None:
            self._events.emit(Topic.SEARCH, "results", (item.itemId for item in results))

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def set_query(self, query: str) -> None:
        with self._lock:
            self._cancel_timer()
            self.query = query
            if not query:
                self._results = []
                self.is_searching = False
                return
            self.is_searching = True
            timer = threading.Timer(self.debounce, self._fire, args=(query,))
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _fire(self, query: str) -> None:
        with self._lock:
            if query != self.query:
                return
            self._timer = None
        self.search()

    def search(self) -> List[ClipboardItem]:
        with self._lock:
            query = self.query
            types = set(self.type_filters)
            date_range = self.date_range
        if not query and not types and date_range is None:
            self._publish([])
            return []
        results = self.item_store.search(query, types=types or None, date_range=date_range)
        self._publish(results)
        return results

    def toggle_type_filter(self, kind: ItemKind) -> List[ClipboardItem]:
        with self._lock:
            if kind in self.type_filters:
                self.type_filters.discard(kind)
            else:
                self.type_filters.add(kind)
        return self.search()

    def set_date_range(self, date_range: Optional[DateRange]) -> List[ClipboardItem]:
        with self._lock:
            self.date_range = date_range
        return self.search()

    def apply_quick_filter(self, which: QuickFilter,
                           now: Optional[datetime] = None) -> List[ClipboardItem]:
        self.clear()
        results = quick_filter(self.item_store.items, which, now=now)
        self._publish(results)
        return results

    def clear(self) -> None:
        with self._lock:
            self._cancel_timer()
            self.query = ""
            self.type_filters = set()
            self.date_range = None
            self._results = []
            self.is_searching = False

    # -- recent searches ---------------------------------------------------

    def save_recent_search(self) -> None:
        with self._lock:
            query = self.query
            if not query:
                return
            lowered = query.lower()
            recent = [entry for entry in self.recent_searches if entry.lower() != lowered]
            recent.insert(0, query)
            self.recent_searches = recent[:MAX_RECENT_SEARCHES]
            self._save_recent()

    def remove_recent_search(self, query: str) -> None:
        with self._lock:
            self.recent_searches = [entry for entry in self.recent_searches if entry != query]
            self._save_recent()

    def clear_recent_searches(self) -> None:
        with self._lock:
            self.recent_searches = []
            self._save_recent()

    def suggestions(self) -> List[str]:
        with self._lock:
            if not self.query:
                return list(self.recent_searches)
            lowered = self.query.lower()
            return [entry for entry in self.recent_searches if lowered in entry.lower()]

    def close(self) -> None:
        with self._lock:
            self._cancel_timer()
