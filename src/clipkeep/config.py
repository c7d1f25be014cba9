from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import redis
from dotenv import load_dotenv


def _load_env_file(env_path: Optional[Path] = None) -> None:
    if env_path is not None:
        load_dotenv(env_path, override=False)
    else:
        load_dotenv(override=False)


def _to_bool(value: Optional[str], default: bool = True) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _to_float(value: Optional[str], default: float) -> float:
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _to_int(value: Optional[str], default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class RedisConfig:
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    decode_responses: bool = True

    @classmethod
    def from_env(cls, *, env_path: Optional[Path] = None) -> "RedisConfig":
        _load_env_file(env_path)

        uri = os.getenv("REDIS_URI")
        if uri:
            return cls.from_uri(uri)

        host = os.getenv("REDIS_HOST", cls.host)
        password = os.getenv("REDIS_PASSWORD") or None
        decode = _to_bool(os.getenv("REDIS_DECODE_RESPONSES"), default=True)

        port = _to_int(os.getenv("REDIS_PORT"), cls.port)
        db = _to_int(os.getenv("REDIS_DB"), cls.db)

        return cls(host=host, port=port, db=db, password=password, decode_responses=decode)

    @classmethod
    def from_uri(cls, uri: str) -> "RedisConfig":
        parsed = urlparse(uri)
        if parsed.scheme not in {"redis", "rediss"}:
            raise ValueError(
                f"Unsupported Redis URI scheme: {parsed.scheme!r}")

        host = parsed.hostname or cls.host
        port = parsed.port or cls.port
        password = parsed.password or None
        db_fragment = parsed.path.lstrip("/")
        db = int(db_fragment) if db_fragment else cls.db

        decode = _to_bool(os.getenv("REDIS_DECODE_RESPONSES"), default=True)

        return cls(host=host, port=port, db=db, password=password, decode_responses=decode)

    def create_client(self) -> redis.Redis:
        return redis.Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            decode_responses=self.decode_responses,
        )


@dataclass(frozen=True)
class AppConfig:
    poll_interval: float = 1.0
    max_items: int = 10000
    cache_size: int = 500
    recent_hash_limit: int = 100
    search_debounce: float = 0.3
    use_redis: bool = True
    api_host: str = "127.0.0.1"
    api_port: int = 3001

    @classmethod
    def from_env(cls, *, env_path: Optional[Path] = None) -> "AppConfig":
        _load_env_file(env_path)

        return cls(
            poll_interval=_to_float(os.getenv("CLIPKEEP_POLL_INTERVAL"), cls.poll_interval),
            max_items=_to_int(os.getenv("CLIPKEEP_MAX_ITEMS"), cls.max_items),
            cache_size=_to_int(os.getenv("CLIPKEEP_CACHE_SIZE"), cls.cache_size),
            recent_hash_limit=_to_int(
                os.getenv("CLIPKEEP_RECENT_HASH_LIMIT"), cls.recent_hash_limit),
            search_debounce=_to_float(
                os.getenv("CLIPKEEP_SEARCH_DEBOUNCE"), cls.search_debounce),
            use_redis=_to_bool(os.getenv("CLIPKEEP_USE_REDIS"), default=cls.use_redis),
            api_host=os.getenv("CLIPKEEP_API_HOST", cls.api_host),
            api_port=_to_int(os.getenv("CLIPKEEP_API_PORT"), cls.api_port),
        )
