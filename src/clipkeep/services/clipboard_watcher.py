import logging
import re
import threading
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, List, Optional, Set
from urllib.parse import urlparse

from clipkeep.clipboard.base import Pasteboard
from clipkeep.models.clipboarditem import ClipboardItem
from clipkeep.models.settings import UserSettings
from clipkeep.services.item_store import ItemStore
from clipkeep.services.sensitivity import SensitivityClassifier, content_hash
from clipkeep.services.settings_store import SettingsStore
from clipkeep.utils.thumbnails import make_thumbnail

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0
RECENT_HASH_LIMIT = 100

_WHITESPACE = re.compile(r"\s")
_BARE_SCHEMES = {"mailto", "tel"}


def looks_like_link(text: str) -> bool:
    """True for a single absolute URL such as ``https://example.com``."""
    candidate = text.strip()
    if not candidate or _WHITESPACE.search(candidate):
        return False
    parsed = urlparse(candidate)
    if parsed.scheme in _BARE_SCHEMES:
        return bool(parsed.path)
    return bool(parsed.scheme) and bool(parsed.netloc)


class WatcherState(str, Enum):
    IDLE = "idle"
    MONITORING = "monitoring"


@dataclass
class WatchStats:
    changes_seen: int = 0
    items_stored: int = 0
    ignored: int = 0
    duplicates_skipped: int = 0
    clears_scheduled: int = 0
    clears_performed: int = 0


class ScheduledClear:
    """Single-slot register for a delayed clipboard clear.

    Scheduling replaces whatever was pending. A timer that fires after the
    watcher stopped, or after the pasteboard changed again, does nothing.
    """

    def __init__(self, pasteboard: Pasteboard, is_active: Callable[[], bool],
                 on_cleared: Optional[Callable[[], None]] = None) -> None:
        self.pasteboard = pasteboard
        self._is_active = is_active
        self._on_cleared = on_cleared
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._token = 0
        self._baseline: Optional[int] = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self, delay: float, baseline: int) -> None:
        with self._lock:
            self._cancel_locked()
            self._token += 1
            self._baseline = baseline
            timer = threading.Timer(max(delay, 0.0), self._fire, args=(self._token,))
            timer.daemon = True
            self._timer = timer
            timer.start()
        logger.info(f"Clipboard clear scheduled in {delay:.1f}s")

    def cancel(self) -> None:
        with self._lock:
            self._cancel_locked()

    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._token += 1

    def _fire(self, token: int) -> bool:
        with self._lock:
            if token != self._token:
                return False
            self._timer = None
            baseline = self._baseline
        if not self._is_active():
            logger.debug("Watcher stopped, scheduled clear dropped")
            return False
        if self.pasteboard.change_count != baseline:
            logger.debug("Clipboard changed since scheduling, clear dropped")
            return False
        self.pasteboard.clear()
        logger.info("Cleared sensitive content from the clipboard")
        if self._on_cleared is not None:
            self._on_cleared()
        return True


class ClipboardWatcher:
    """Polls a pasteboard and feeds new content into the item store."""

    def __init__(
        self,
        pasteboard: Pasteboard,
        item_store: ItemStore,
        classifier: SensitivityClassifier,
        settings: SettingsStore,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        recent_hash_limit: int = RECENT_HASH_LIMIT,
    ) -> None:
        self.pasteboard = pasteboard
        self.item_store = item_store
        self.classifier = classifier
        self.settings = settings
        self.poll_interval = poll_interval
        self.stats = WatchStats()

        self._lock = threading.RLock()
        self._tick_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._poll_thread: Optional[threading.Thread] = None
        self._state = WatcherState.IDLE
        self._last_change_count: Optional[int] = None
        self._recent_hashes: Deque[str] = deque()
        self._recent_set: Set[str] = set()
        self._recent_limit = recent_hash_limit
        self._callbacks: List[Callable[[ClipboardItem], None]] = []
        self.pending_clear = ScheduledClear(pasteboard, lambda: self.is_running,
                                            on_cleared=self._count_clear)

    @property
    def state(self) -> WatcherState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is WatcherState.MONITORING

    def on_new_item(self, callback: Callable[[ClipboardItem], None]) -> None:
        self._callbacks.append(callback)

    def _count_clear(self) -> None:
        self.stats.clears_performed += 1

    # -- lifecycle ---------------------------------------------------------

    def start(self) -> None:
        with self._lock:
            if self._state is WatcherState.MONITORING:
                return

            self._last_change_count = self.pasteboard.change_count
            self._recent_hashes.clear()
            self._recent_set.clear()
            self._stop_event.clear()
            self._state = WatcherState.MONITORING
            self._poll_thread = threading.Thread(
                target=self._poll_loop, name="clipboard-watcher", daemon=True)
            self._poll_thread.start()
        logger.info(f"Clipboard monitoring started (every {self.poll_interval}s)")

    def stop(self) -> None:
        with self._lock:
            if self._state is WatcherState.IDLE:
                return

            self._state = WatcherState.IDLE
            self._stop_event.set()
            self.pending_clear.cancel()

        if self._poll_thread is not None:
            self._poll_thread.join(timeout=max(1.0, self.poll_interval * 2))
            self._poll_thread = None
        logger.info("Clipboard monitoring stopped")

    def run_forever(self) -> None:
        try:
            if not self.is_running:
                self.start()

            while not self._stop_event.wait(timeout=self.poll_interval):
                continue
        except KeyboardInterrupt:
            pass
        finally:
            self.stop()

    def _poll_loop(self) -> None:
        while not self._stop_event.wait(self.poll_interval):
            try:
                self._tick()
            except Exception as e:
                logger.error(f"Error while checking clipboard: {e}")

    def check_now(self) -> List[ClipboardItem]:
        """Run one tick immediately; returns the items stored by it."""
        if not self.is_running:
            return []
        return self._tick()

    def app_did_become_active(self) -> List[ClipboardItem]:
        return self.check_now()

    # -- tick --------------------------------------------------------------

    def _tick(self) -> List[ClipboardItem]:
        if not self._tick_lock.acquire(blocking=False):
            logger.debug("Previous clipboard check still running, skipping tick")
            return []
        try:
            count = self.pasteboard.change_count
            if count == self._last_change_count:
                return []
            self._last_change_count = count
            self.stats.changes_seen += 1
            self.pending_clear.cancel()
            return self._process_change(count)
        finally:
            self._tick_lock.release()

    def _process_change(self, count: int) -> List[ClipboardItem]:
        settings = self.settings.settings
        source = self.pasteboard.source_app()
        if source and source in settings.ignoredAppIdentifiers:
            self.stats.ignored += 1
            logger.debug(f"Ignoring clipboard content from {source}")
            return []

        candidates: List[ClipboardItem] = []
        text = self.pasteboard.text()
        if text and text.strip():
            candidate = self._from_text(text, source, settings, count)
            if candidate is not None:
                candidates.append(candidate)
        elif (url := self.pasteboard.url()):
            candidates.append(ClipboardItem.link(url, source_app=source))
        elif (image := self.pasteboard.image()):
            candidates.append(ClipboardItem.image(image, make_thumbnail(image), source_app=source))
        else:
            for file_url in self.pasteboard.file_urls():
                if urlparse(file_url).scheme == "file":
                    candidates.append(ClipboardItem.file(file_url, source_app=source))
                else:
                    candidates.append(ClipboardItem.link(file_url, source_app=source))

        stored = []
        for candidate in candidates:
            item = self.item_store.insert(candidate)
            self.stats.items_stored += 1
            stored.append(item)
            self._notify(item)
        return stored

    def _from_text(self, text: str, source: Optional[str], settings: UserSettings,
                   count: int) -> Optional[ClipboardItem]:
        verdict = self.classifier.classify(text)
        if verdict.should_ignore:
            self.stats.ignored += 1
            logger.info("Sensitive content detected, not saving")
            if verdict.should_clear and settings.autoDeleteSensitive:
                self.pending_clear.schedule(settings.sensitiveDataDelay, baseline=count)
                self.stats.clears_scheduled += 1
            return None

        digest = content_hash(text)
        if digest in self._recent_set:
            self.stats.duplicates_skipped += 1
            return None
        self._remember(digest)

        if looks_like_link(text):
            return ClipboardItem.link(text.strip(), source_app=source)
        return ClipboardItem.text(text, source_app=source)

    def _remember(self, digest: str) -> None:
        self._recent_hashes.append(digest)
        self._recent_set.add(digest)
        while len(self._recent_hashes) > self._recent_limit:
            self._recent_set.discard(self._recent_hashes.popleft())

    def _notify(self, item: ClipboardItem) -> None:
        for callback in list(self._callbacks):
            try:
                callback(item)
            except Exception as e:
                logger.error(f"Error in on_new_item: {e}")

    def __enter__(self) -> "ClipboardWatcher":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
