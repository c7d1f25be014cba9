import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Set

from clipkeep.database.kv_store import (
    KeyValueStore,
    StorageKeys,
    load_collection,
    save_collection,
)
from clipkeep.models.clipboarditem import ClipboardItem
from clipkeep.models.pinboard import Pinboard, ShareStatus
from clipkeep.services.events import EventBus, Topic
from clipkeep.services.item_store import ItemStore

logger = logging.getLogger(__name__)


class PinboardStore:
    """Named collections of items.

    Membership lives on both sides (``Pinboard.itemIds`` and
    ``ClipboardItem.pinboardIds``); every operation here changes both under
    the item store's lock and writes both collections before returning.
    """

    def __init__(
        self,
        store: KeyValueStore,
        item_store: ItemStore,
        events: Optional[EventBus] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self.item_store = item_store
        self.events = events or item_store.events
        self._clock = clock
        self.lock = item_store.lock
        self._pinboards = self._load()
        item_store.bind_pinboards(self)

    def _load(self) -> List[Pinboard]:
        pinboards = load_collection(self._store, StorageKeys.PINBOARDS, Pinboard.from_record)
        pinboards.sort(key=lambda pinboard: pinboard.sortOrder)
        return pinboards

    def _save_pinboards(self) -> None:
        save_collection(self._store, StorageKeys.PINBOARDS,
                        (pinboard.to_record() for pinboard in self._pinboards))

    def live_item(self, pinboard_id: str) -> Optional[Pinboard]:
        for pinboard in self._pinboards:
            if pinboard.pinboardId == pinboard_id:
                return pinboard
        return None

    # -- reads -------------------------------------------------------------

    @property
    def pinboards(self) -> List[Pinboard]:
        with self.lock:
            return [pinboard.model_copy(deep=True) for pinboard in self._pinboards]

    def get(self, pinboard_id: str) -> Optional[Pinboard]:
        with self.lock:
            pinboard = self.live_item(pinboard_id)
            return None if pinboard is None else pinboard.model_copy(deep=True)

    def items_for(self, pinboard_id: str) -> List[ClipboardItem]:
        """Members in pinboard order; ids with no stored item are skipped."""
        with self.lock:
            pinboard = self.live_item(pinboard_id)
            if pinboard is None:
                return []
            members = []
            for item_id in pinboard.itemIds:
                item = self.item_store.live_item(item_id)
                if item is not None:
                    members.append(item.model_copy(deep=True))
            return members

    # -- pinboard lifecycle ------------------------------------------------

    def create(self, name: str, icon_name: str = "pin.fill", color: str = "blue") -> Pinboard:
        now = self._clock()
        with self.lock:
            pinboard = Pinboard(
                name=name,
                iconName=icon_name,
                color=color,
                sortOrder=len(self._pinboards),
                creationDate=now,
                modifiedDate=now,
            )
            self._pinboards.append(pinboard)
            self._save_pinboards()
            snapshot = pinboard.model_copy(deep=True)
        logger.info(f"Created pinboard {name!r}")
        self.events.emit(Topic.PINBOARDS, "created", (snapshot.pinboardId,))
        return snapshot

    def update(self, pinboard: Pinboard) -> bool:
        """Replace display metadata; membership and ordering are kept."""
        with self.lock:
            current = self.live_item(pinboard.pinboardId)
            if current is None:
                return False
            current.name = pinboard.name
            current.iconName = pinboard.iconName
            current.color = pinboard.color
            current.shareStatus = pinboard.shareStatus
            current.shareUrl = pinboard.shareUrl
            current.sharedWith = list(pinboard.sharedWith)
            current.touch(self._clock())
            self._save_pinboards()
        self.events.emit(Topic.PINBOARDS, "updated", (pinboard.pinboardId,))
        return True

    def rename(self, pinboard_id: str, name: str) -> Optional[Pinboard]:
        with self.lock:
            pinboard = self.live_item(pinboard_id)
            if pinboard is None:
                return None
            pinboard.rename(name, self._clock())
            self._save_pinboards()
            snapshot = pinboard.model_copy(deep=True)
        self.events.emit(Topic.PINBOARDS, "updated", (pinboard_id,))
        return snapshot

    def set_share_status(self, pinboard_id: str, status: ShareStatus,
                         share_url: Optional[str] = None,
                         shared_with: Optional[Iterable[str]] = None) -> Optional[Pinboard]:
        with self.lock:
            pinboard = self.live_item(pinboard_id)
            if pinboard is None:
                return None
            pinboard.shareStatus = status
            if status is ShareStatus.PRIVATE:
                pinboard.shareUrl = None
                pinboard.sharedWith = []
            else:
                if share_url is not None:
                    pinboard.shareUrl = share_url
                if shared_with is not None:
                    pinboard.sharedWith = list(dict.fromkeys(shared_with))
            pinboard.touch(self._clock())
            self._save_pinboards()
            snapshot = pinboard.model_copy(deep=True)
        self.events.emit(Topic.PINBOARDS, "shared", (pinboard_id,))
        return snapshot

    def delete(self, pinboard_id: str) -> bool:
        with self.lock:
            pinboard = self.live_item(pinboard_id)
            if pinboard is None:
                return False
            touched = []
            for item in self.item_store.live_items():
                if item.detach_pinboard(pinboard_id):
                    touched.append(item.itemId)
            self._pinboards = [p for p in self._pinboards if p.pinboardId != pinboard_id]
            self.item_store.persist()
            self._save_pinboards()
        logger.info(f"Deleted pinboard {pinboard.name!r}, unpinned from {len(touched)} items")
        self.events.emit(Topic.PINBOARDS, "deleted", (pinboard_id,))
        if touched:
            self.events.emit(Topic.ITEMS, "unpinned", touched)
        return True

    def reorder(self, pinboard_ids: Iterable[str]) -> List[Pinboard]:
        """Assign sortOrder 0..n-1 following the given sequence.

        Pinboards missing from the sequence keep their relative order after
        the listed ones; unknown ids are ignored.
        """
        now = self._clock()
        with self.lock:
            by_id = {p.pinboardId: p for p in self._pinboards}
            ordered: List[Pinboard] = []
            for pinboard_id in dict.fromkeys(pinboard_ids):
                pinboard = by_id.pop(pinboard_id, None)
                if pinboard is not None:
                    ordered.append(pinboard)
            ordered.extend(p for p in self._pinboards if p.pinboardId in by_id)
            for index, pinboard in enumerate(ordered):
                pinboard.sortOrder = index
                pinboard.touch(now)
            self._pinboards = ordered
            self._save_pinboards()
            snapshot = [p.model_copy(deep=True) for p in ordered]
        self.events.emit(Topic.PINBOARDS, "reordered", (p.pinboardId for p in snapshot))
        return snapshot

    # -- membership --------------------------------------------------------

    def add_item(self, pinboard_id: str, item_id: str) -> bool:
        with self.lock:
            pinboard = self.live_item(pinboard_id)
            item = self.item_store.live_item(item_id)
            if pinboard is None or item is None:
                logger.warning(f"Cannot pin {item_id} to {pinboard_id}: unknown id")
                return False
            pinboard.add_item(item_id, self._clock())
            item.attach_pinboard(pinboard_id)
            self.item_store.persist()
            self._save_pinboards()
        self.events.emit(Topic.PINBOARDS, "item_added", (pinboard_id,))
        self.events.emit(Topic.ITEMS, "pinned", (item_id,))
        return True

    def remove_item(self, pinboard_id: str, item_id: str) -> bool:
        with self.lock:
            pinboard = self.live_item(pinboard_id)
            item = self.item_store.live_item(item_id)
            changed = False
            if pinboard is not None and pinboard.remove_item(item_id, self._clock()):
                changed = True
            if item is not None and item.detach_pinboard(pinboard_id):
                changed = True
            if not changed:
                return False
            self.item_store.persist()
            self._save_pinboards()
        self.events.emit(Topic.PINBOARDS, "item_removed", (pinboard_id,))
        self.events.emit(Topic.ITEMS, "unpinned", (item_id,))
        return True

    def reorder_items(self, pinboard_id: str, item_ids: Iterable[str]) -> Optional[Pinboard]:
        """Reorder members; ids that are not members are ignored, members left
        out of ``item_ids`` keep their relative order at the end."""
        with self.lock:
            pinboard = self.live_item(pinboard_id)
            if pinboard is None:
                return None
            members = set(pinboard.itemIds)
            ordered = [iid for iid in dict.fromkeys(item_ids) if iid in members]
            placed = set(ordered)
            ordered.extend(iid for iid in pinboard.itemIds if iid not in placed)
            pinboard.reorder_items(ordered, self._clock())
            self._save_pinboards()
            snapshot = pinboard.model_copy(deep=True)
        self.events.emit(Topic.PINBOARDS, "items_reordered", (pinboard_id,))
        return snapshot

    def detach_items(self, item_ids: Set[str]) -> List[str]:
        """Strip deleted item ids from every pinboard. Called by ItemStore."""
        with self.lock:
            now = self._clock()
            touched = []
            for pinboard in self._pinboards:
                if any(iid in item_ids for iid in pinboard.itemIds):
                    pinboard.itemIds = [iid for iid in pinboard.itemIds if iid not in item_ids]
                    pinboard.touch(now)
                    touched.append(pinboard.pinboardId)
            if touched:
                self._save_pinboards()
        if touched:
            self.events.emit(Topic.PINBOARDS, "items_detached", touched)
        return touched

    def reconcile(self) -> int:
        """Repair membership after an import.

        Ids pointing at nothing are dropped; one-sided links get their
        missing side restored. Returns the number of repairs.
        """
        repairs = 0
        with self.lock:
            pinboard_ids = {p.pinboardId for p in self._pinboards}
            items = self.item_store.live_items()
            item_ids = {item.itemId for item in items}

            for pinboard in self._pinboards:
                kept = [iid for iid in pinboard.itemIds if iid in item_ids]
                repairs += len(pinboard.itemIds) - len(kept)
                pinboard.itemIds = kept
                for iid in kept:
                    item = self.item_store.live_item(iid)
                    if pinboard.pinboardId not in item.pinboardIds:
                        item.attach_pinboard(pinboard.pinboardId)
                        repairs += 1

            for item in items:
                for pid in list(item.pinboardIds):
                    pinboard = self.live_item(pid)
                    if pid not in pinboard_ids:
                        item.detach_pinboard(pid)
                        repairs += 1
                    elif item.itemId not in pinboard.itemIds:
                        # one-sided membership: restore the pinboard side
                        pinboard.itemIds.append(item.itemId)
                        repairs += 1

            if repairs:
                self.item_store.persist()
                self._save_pinboards()
        if repairs:
            logger.warning(f"Repaired {repairs} dangling pinboard references")
            self.events.emit(Topic.PINBOARDS, "reconciled")
        return repairs
