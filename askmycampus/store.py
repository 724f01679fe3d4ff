from __future__ import annotations

import json
import logging
from threading import Lock
from typing import Dict, List, Optional, Protocol

import redis
from pydantic import ValidationError

from .config import Settings
from .errors import HistoryCorruptedError
from .schemas import Turn

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def put(self, key: str, value: str) -> None: ...


class InMemoryStore:
    """Thread-safe in-RAM key-value store for local runs and tests."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._values: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._values.get(key)

    def put(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def ping(self) -> bool:
        return True


class RedisStore:
    def __init__(self, client: "redis.Redis", prefix: str = "", ttl_seconds: Optional[int] = None) -> None:
        self._client = client
        self._prefix = prefix
        self._ttl = ttl_seconds

    @classmethod
    def from_url(cls, url: str, prefix: str = "", ttl_seconds: Optional[int] = None) -> "RedisStore":
        return cls(redis.Redis.from_url(url, decode_responses=True), prefix=prefix, ttl_seconds=ttl_seconds)

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def get(self, key: str) -> Optional[str]:
        value = self._client.get(self._key(key))
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    def put(self, key: str, value: str) -> None:
        self._client.set(self._key(key), value, ex=self._ttl)

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError as e:
            logger.warning("Redis ping failed: %s", e)
            return False


class HistoryRepository:
    """Reads and writes a session's turns as a bare JSON array of {role, content}."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def load(self, session_id: str) -> List[Turn]:
        raw = self.store.get(session_id)
        if raw is None:
            return []
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise HistoryCorruptedError(f"history for session {session_id!r} is not valid JSON") from e
        if not isinstance(data, list):
            raise HistoryCorruptedError(f"history for session {session_id!r} is not a JSON array")
        try:
            return [Turn.model_validate(item) for item in data]
        except ValidationError as e:
            raise HistoryCorruptedError(f"history for session {session_id!r} has malformed turns") from e

    def save(self, session_id: str, history: List[Turn]) -> None:
        payload = json.dumps([t.model_dump() for t in history], ensure_ascii=False)
        self.store.put(session_id, payload)


def build_store(settings: Settings) -> KeyValueStore:
    if settings.store_backend == "redis":
        logger.info("Using Redis history store at %s", settings.redis_url)
        return RedisStore.from_url(
            settings.redis_url,
            prefix=settings.history_key_prefix,
            ttl_seconds=settings.history_ttl_seconds,
        )
    if settings.store_backend == "memory":
        logger.info("Using in-memory history store")
        return InMemoryStore()
    raise ValueError(f"Unsupported STORE_BACKEND: {settings.store_backend}")
