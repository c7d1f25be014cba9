from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional, Set

from clipkeep.database.kv_store import (
    KeyValueStore,
    StorageKeys,
    load_collection,
    save_collection,
)
from clipkeep.models.clipboarditem import ClipboardItem, ItemKind
from clipkeep.services.events import EventBus, Topic
from clipkeep.services.search import DateRange, search_items
from clipkeep.services.settings_store import SettingsStore

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from clipkeep.services.pinboard_store import PinboardStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITEMS = 10000


class ItemStore:
    """Authoritative clipboard history.

    The list is kept newest-first by always inserting at the front, and every
    mutation is written through to the key-value store before returning.
    """

    def __init__(
        self,
        store: KeyValueStore,
        settings: SettingsStore,
        events: Optional[EventBus] = None,
        max_items: int = DEFAULT_MAX_ITEMS,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        if max_items < 1:
            raise ValueError("max_items must be positive")
        self._store = store
        self.settings = settings
        self.events = events or EventBus()
        self.max_items = max_items
        self._clock = clock
        # shared with PinboardStore so cascades are atomic
        self.lock = threading.RLock()
        self._pinboards: Optional[PinboardStore] = None
        self._items = self._load()

    def _load(self) -> List[ClipboardItem]:
        items = load_collection(self._store, StorageKeys.ITEMS, ClipboardItem.from_record)
        items.sort(key=lambda item: item.timestamp, reverse=True)
        return items

    def bind_pinboards(self, pinboards: PinboardStore) -> None:
        self._pinboards = pinboards

    # -- locked access (PinboardStore uses these too; hold ``lock``) -------

    def persist(self) -> None:
        """Write the current list through to the key-value store."""
        save_collection(self._store, StorageKeys.ITEMS,
                        (item.to_record() for item in self._items))

    def _index(self, item_id: str) -> Optional[int]:
        for index, item in enumerate(self._items):
            if item.itemId == item_id:
                return index
        return None

    def live_item(self, item_id: str) -> Optional[ClipboardItem]:
        index = self._index(item_id)
        return None if index is None else self._items[index]

    def live_items(self) -> List[ClipboardItem]:
        """The stored list itself, not a copy. Edits must be followed by ``persist()``."""
        return self._items

    def _front_timestamp(self, stamp: datetime) -> datetime:
        if self._items and stamp < self._items[0].timestamp:
            return self._items[0].timestamp
        return stamp

    # -- reads -------------------------------------------------------------

    @property
    def items(self) -> List[ClipboardItem]:
        with self.lock:
            return [item.model_copy(deep=True) for item in self._items]

    @property
    def count(self) -> int:
        with self.lock:
            return len(self._items)

    def __len__(self) -> int:
        return self.count

    def get(self, item_id: str) -> Optional[ClipboardItem]:
        with self.lock:
            item = self.live_item(item_id)
            return None if item is None else item.model_copy(deep=True)

    def items_of_kind(self, kind: ItemKind) -> List[ClipboardItem]:
        return [item for item in self.items if item.kind is kind]

    def recent(self, limit: int = 50) -> List[ClipboardItem]:
        with self.lock:
            return [item.model_copy(deep=True) for item in self._items[:limit]]

    def today(self, now: Optional[datetime] = None) -> List[ClipboardItem]:
        day = (now or self._clock()).date()
        return [item for item in self.items if item.timestamp.date() == day]

    def pinned(self) -> List[ClipboardItem]:
        return [item for item in self.items if item.isPinned]

    def search(self, query: str, types: Optional[Iterable[ItemKind]] = None,
               date_range: Optional[DateRange] = None) -> List[ClipboardItem]:
        return search_items(self.items, query, types=types, date_range=date_range)

    # -- insertion ---------------------------------------------------------

    def insert(self, candidate: ClipboardItem) -> ClipboardItem:
        with self.lock:
            index = next(
                (i for i, item in enumerate(self._items)
                 if item.raw_content == candidate.raw_content),
                None,
            )
            if index is not None:
                item = self._items.pop(index)
                item.timestamp = self._front_timestamp(self._clock())
                if not item.sourceApp and candidate.sourceApp:
                    item.sourceApp = candidate.sourceApp
                action = "bumped"
            else:
                item = candidate.model_copy(deep=True)
                if self._items and item.timestamp < self._items[0].timestamp:
                    item.timestamp = self._front_timestamp(self._clock())
                action = "inserted"

            self._items.insert(0, item)
            evicted = self._evict_overflow(keep=item.itemId)
            self.persist()
            snapshot = item.model_copy(deep=True)

        if action == "bumped":
            logger.debug(f"Duplicate content, moved {snapshot.itemId} to front")
        else:
            logger.info(f"Saved new {snapshot.kind.display_name} item")
        self.events.emit(Topic.ITEMS, action, (snapshot.itemId,))
        if evicted:
            logger.info(f"Evicted {len(evicted)} old items over the {self.max_items} item limit")
            self.events.emit(Topic.ITEMS, "evicted", evicted)
        return snapshot

    def _evict_overflow(self, keep: str) -> List[str]:
        evicted: List[str] = []
        index = len(self._items) - 1
        while len(self._items) > self.max_items and index >= 0:
            item = self._items[index]
            if not item.isPinned and item.itemId != keep:
                evicted.append(self._items.pop(index).itemId)
            index -= 1
        return evicted

    # -- updates -----------------------------------------------------------

    def update(self, item: ClipboardItem) -> bool:
        """Replace metadata by id; identity, timestamp and membership are kept."""
        with self.lock:
            index = self._index(item.itemId)
            if index is None:
                return False
            current = self._items[index]
            if item.kind is not current.kind:
                raise ValueError(f"Cannot change kind of {item.itemId} from "
                                 f"{current.kind.value} to {item.kind.value}")
            replacement = item.model_copy(deep=True)
            replacement.timestamp = current.timestamp
            replacement.pinboardIds = list(current.pinboardIds)
            self._items[index] = replacement
            self.persist()
        self.events.emit(Topic.ITEMS, "updated", (item.itemId,))
        return True

    def _edit_tags(self, item_id: str, edit: Callable[[List[str]], List[str]]) -> Optional[ClipboardItem]:
        with self.lock:
            item = self.live_item(item_id)
            if item is None:
                return None
            item.tags = edit(list(item.tags))
            self.persist()
            snapshot = item.model_copy(deep=True)
        self.events.emit(Topic.ITEMS, "tagged", (item_id,))
        return snapshot

    def add_tag(self, item_id: str, tag: str) -> Optional[ClipboardItem]:
        return self._edit_tags(item_id, lambda tags: tags + [tag])

    def remove_tag(self, item_id: str, tag: str) -> Optional[ClipboardItem]:
        return self._edit_tags(item_id, lambda tags: [t for t in tags if t != tag])

    def set_tags(self, item_id: str, tags: Iterable[str]) -> Optional[ClipboardItem]:
        new_tags = list(tags)
        return self._edit_tags(item_id, lambda _: new_tags)

    # -- removal -----------------------------------------------------------

    def _remove_where(self, predicate: Callable[[ClipboardItem], bool], action: str) -> List[str]:
        with self.lock:
            removed = [item.itemId for item in self._items if predicate(item)]
            if not removed:
                return []
            removed_set: Set[str] = set(removed)
            self._items = [item for item in self._items if item.itemId not in removed_set]
            self.persist()
            if self._pinboards is not None:
                self._pinboards.detach_items(removed_set)
        self.events.emit(Topic.ITEMS, action, removed)
        return removed

    def delete(self, item_id: str) -> bool:
        return bool(self._remove_where(lambda item: item.itemId == item_id, "deleted"))

    def delete_many(self, item_ids: Iterable[str]) -> int:
        wanted = set(item_ids)
        return len(self._remove_where(lambda item: item.itemId in wanted, "deleted"))

    def clear_history(self) -> int:
        """Drop everything that is not pinned."""
        removed = self._remove_where(lambda item: not item.isPinned, "cleared")
        logger.info(f"Cleared {len(removed)} history items")
        return len(removed)

    def cleanup_if_needed(self, now: Optional[datetime] = None) -> int:
        now = now or self._clock()
        settings = self.settings.settings

        last_run = settings.lastCleanupDate
        if last_run is not None and last_run.date() == now.date():
            return 0

        days = settings.historyRetention.days
        if days is None:
            return 0

        cutoff = now - timedelta(days=days)
        removed = self._remove_where(
            lambda item: not item.isPinned and item.timestamp < cutoff, "expired")
        self.settings.update(lastCleanupDate=now)

        if removed:
            logger.info(f"Cleaned up {len(removed)} old items")
        return len(removed)

