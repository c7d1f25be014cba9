from datetime import timedelta
from unittest.mock import patch

import redis

from clipkeep.clipboard import MemoryPasteboard
from clipkeep.config import AppConfig, RedisConfig
from clipkeep.database.kv_store import MemoryKeyValueStore, StorageKeys, save_collection
from clipkeep.main import ClipKeepApp, open_store, parse_args
from clipkeep.models.clipboarditem import ClipboardItem
from clipkeep.models.settings import HistoryRetention
from clipkeep.services.container import build_services
from clipkeep.services.settings_store import SettingsStore

from conftest import make_text, seed_items


def test_parse_args_defaults():
    args = parse_args([])
    assert args.poll_interval is None
    assert args.no_redis is False
    assert args.serve is False


def test_parse_args_flags():
    args = parse_args(["-i", "0.25", "--no-redis", "--serve", "-p", "8080", "-v"])
    assert (args.poll_interval, args.no_redis, args.serve, args.port, args.verbose) == (
        0.25, True, True, 8080, True)


def test_open_store_without_redis():
    assert isinstance(open_store(use_redis=False), MemoryKeyValueStore)


def test_open_store_falls_back_when_redis_is_down():
    with patch("clipkeep.config.redis.Redis") as client_cls:
        client_cls.return_value.ping.side_effect = redis.ConnectionError("refused")
        store = open_store(redis_config=RedisConfig())
    assert isinstance(store, MemoryKeyValueStore)


def test_build_services_shares_one_backend(services):
    item = services.items.insert(ClipboardItem.text("x"))
    board = services.pinboards.create("Board")
    services.pinboards.add_item(board.pinboardId, item.itemId)

    assert services.pinboards.lock is services.items.lock
    assert services.items.max_items == 50
    assert services.sync.last_status is None


def test_build_services_runs_startup_cleanup(kv, clock):
    SettingsStore(kv).update(historyRetention=HistoryRetention.ONE_DAY)
    seed_items(kv, [make_text("stale", clock() - timedelta(days=3))])

    services = build_services(kv, AppConfig(), clock=clock)

    assert services.items.count == 0
    assert services.settings.settings.lastCleanupDate == clock()
    services.close()


def test_app_captures_clipboard_changes():
    pasteboard = MemoryPasteboard()
    app = ClipKeepApp(AppConfig(poll_interval=60.0), store=MemoryKeyValueStore(),
                      pasteboard=pasteboard)
    app.start()
    try:
        pasteboard.set_text("from the app")
        app.watcher.check_now()
        assert [i.raw_content for i in app.services.items.items] == ["from the app"]
    finally:
        app.stop()

    assert app.running is False
    assert app.watcher.is_running is False


def test_startup_cleanup_with_utc_records(kv, clock):
    SettingsStore(kv).update(historyRetention=HistoryRetention.ONE_WEEK)
    stale = make_text("stale", clock()).to_record()
    stale["timestamp"] = "2024-04-01T09:00:00+00:00"
    fresh = make_text("fresh", clock()).to_record()
    fresh["timestamp"] = "2024-04-30T12:00:00Z"
    save_collection(kv, StorageKeys.ITEMS, [fresh, stale])

    services = build_services(kv, AppConfig(), clock=clock)

    assert [item.raw_content for item in services.items.items] == ["fresh"]
    services.close()
