#!/usr/bin/env python3

import argparse
import logging
import signal
import sys
from dataclasses import replace
from typing import Optional

import redis
import uvicorn

from clipkeep.api.app import create_app
from clipkeep.clipboard import Pasteboard, get_pasteboard
from clipkeep.config import AppConfig, RedisConfig
from clipkeep.database.kv_store import KeyValueStore, MemoryKeyValueStore, RedisKeyValueStore
from clipkeep.models.clipboarditem import ClipboardItem
from clipkeep.services.clipboard_watcher import ClipboardWatcher
from clipkeep.services.container import ClipKeepServices, build_services

logger = logging.getLogger(__name__)


def open_store(use_redis: bool = True, redis_config: Optional[RedisConfig] = None) -> KeyValueStore:
    """Redis when reachable, otherwise an in-memory store."""
    if not use_redis:
        return MemoryKeyValueStore()
    try:
        client = (redis_config or RedisConfig.from_env()).create_client()
        return RedisKeyValueStore(client=client)
    except (redis.RedisError, ValueError) as e:
        logger.warning(f"Redis unavailable, history will not persist: {e}")
        return MemoryKeyValueStore()


class ClipKeepApp:

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        store: Optional[KeyValueStore] = None,
        pasteboard: Optional[Pasteboard] = None,
    ):
        self.config = config or AppConfig.from_env()
        self._store = store
        self._pasteboard = pasteboard
        self.services: Optional[ClipKeepServices] = None
        self.watcher: Optional[ClipboardWatcher] = None
        self.running = False

    def _on_new_item(self, item: ClipboardItem) -> None:
        logger.info(f"Captured {item.kind.display_name}: {item.preview_text!r}")

    def start(self) -> None:
        if self.running:
            return

        store = self._store if self._store is not None else open_store(self.config.use_redis)
        self.services = build_services(store, self.config)
        pasteboard = self._pasteboard or get_pasteboard()

        self.watcher = ClipboardWatcher(
            pasteboard,
            self.services.items,
            self.services.classifier,
            self.services.settings,
            poll_interval=self.config.poll_interval,
            recent_hash_limit=self.config.recent_hash_limit,
        )
        self.watcher.on_new_item(self._on_new_item)
        self.watcher.start()
        self.running = True
        logger.info(f"ClipKeep running with {self.services.items.count} items in history")

    def stop(self) -> None:
        if not self.running:
            return

        self.running = False
        if self.watcher is not None:
            self.watcher.stop()
        if self.services is not None:
            self.services.close()
        logger.info("ClipKeep stopped")

    def serve(self, host: Optional[str] = None, port: Optional[int] = None) -> None:
        self.start()
        try:
            uvicorn.run(create_app(self.services),
                        host=host or self.config.api_host,
                        port=port or self.config.api_port)
        finally:
            self.stop()

    def run_forever(self) -> None:
        self.start()
        try:
            self.watcher.run_forever()
        except KeyboardInterrupt:
            print("\nStopping...")
        finally:
            self.stop()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="ClipKeep - clipboard history with pinboards and sensitive-data rules"
    )

    parser.add_argument(
        "-i", "--poll-interval",
        type=float,
        default=None,
        help="Clipboard polling interval in seconds (default: 1.0)"
    )

    parser.add_argument(
        "--no-redis",
        action="store_true",
        help="Keep history in memory instead of Redis"
    )

    parser.add_argument(
        "--serve",
        action="store_true",
        help="Also expose the HTTP API"
    )

    parser.add_argument(
        "-p", "--port",
        type=int,
        default=None,
        help="HTTP API port (default: 3001)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose debug logging"
    )

    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(levelname)s: %(message)s')

    config = AppConfig.from_env()
    overrides = {}
    if args.poll_interval is not None:
        overrides["poll_interval"] = args.poll_interval
    if args.no_redis:
        overrides["use_redis"] = False
    if args.port is not None:
        overrides["api_port"] = args.port
    if overrides:
        config = replace(config, **overrides)

    app = ClipKeepApp(config)

    def signal_handler(signum, frame):
        app.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        if args.serve:
            app.serve()
        else:
            app.run_forever()
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
