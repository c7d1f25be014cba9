"""
Shared pytest fixtures for ClipKeep tests.

Every test gets fresh stores over a fresh in-memory key-value store and a
controllable clock.
"""

from datetime import datetime, timedelta
from typing import Iterable

import pytest

from clipkeep.clipboard.memory import MemoryPasteboard
from clipkeep.config import AppConfig
from clipkeep.database.kv_store import MemoryKeyValueStore, StorageKeys, save_collection
from clipkeep.models.clipboarditem import ClipboardItem
from clipkeep.services.clipboard_watcher import ClipboardWatcher
from clipkeep.services.container import build_services
from clipkeep.services.events import EventBus
from clipkeep.services.item_store import ItemStore
from clipkeep.services.pinboard_store import PinboardStore
from clipkeep.services.rule_store import RuleStore
from clipkeep.services.sensitivity import SensitivityClassifier
from clipkeep.services.settings_store import SettingsStore


class FakeClock:
    def __init__(self, start: datetime = datetime(2024, 5, 1, 12, 0, 0)):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


def make_text(content: str, at: datetime, **fields) -> ClipboardItem:
    return ClipboardItem.text(content).model_copy(update={"timestamp": at, **fields})


def seed_items(kv: MemoryKeyValueStore, items: Iterable[ClipboardItem]) -> None:
    save_collection(kv, StorageKeys.ITEMS, (item.to_record() for item in items))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def settings_store(kv, events) -> SettingsStore:
    return SettingsStore(kv, events=events)


@pytest.fixture
def rule_store(kv, events, clock) -> RuleStore:
    return RuleStore(kv, events=events, clock=clock)


@pytest.fixture
def classifier(rule_store):
    classifier = SensitivityClassifier(rule_store)
    yield classifier
    classifier.close()


@pytest.fixture
def item_store(kv, settings_store, events, clock) -> ItemStore:
    return ItemStore(kv, settings_store, events=events, max_items=100, clock=clock)


@pytest.fixture
def pinboard_store(kv, item_store, events, clock) -> PinboardStore:
    return PinboardStore(kv, item_store, events=events, clock=clock)


@pytest.fixture
def pasteboard() -> MemoryPasteboard:
    return MemoryPasteboard()


@pytest.fixture
def watcher(pasteboard, item_store, pinboard_store, classifier, settings_store):
    # long interval: tests drive ticks through check_now()
    watcher = ClipboardWatcher(pasteboard, item_store, classifier, settings_store,
                               poll_interval=60.0)
    watcher.start()
    yield watcher
    watcher.stop()


@pytest.fixture
def services(kv, clock):
    services = build_services(kv, AppConfig(max_items=50), clock=clock)
    yield services
    services.close()
