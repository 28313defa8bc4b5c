from __future__ import annotations

import json
import logging
import threading
import time
from typing import Any, Callable, Mapping

from redis import Redis
from redis.exceptions import RedisError

from ..application.interfaces import PendingSessionsCache

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300


class InMemoryPendingSessionsCache(PendingSessionsCache):
    """Per-process memo; each worker keeps its own copy."""

    def __init__(
        self,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, Mapping[str, Any]]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Mapping[str, Any] | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, payload = entry
            if self._clock() - stored_at >= self._ttl:
                del self._entries[key]
                return None
            return payload

    def set(self, key: str, payload: Mapping[str, Any]) -> None:
        with self._lock:
            now = self._clock()
            expired = [
                stale_key
                for stale_key, (stored_at, _) in self._entries.items()
                if now - stored_at >= self._ttl
            ]
            for stale_key in expired:
                del self._entries[stale_key]
            self._entries[key] = (now, payload)


class RedisPendingSessionsCache(PendingSessionsCache):
    def __init__(self, client: Redis, *, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        self._client = client
        self._ttl = ttl_seconds

    def _key(self, key: str) -> str:
        return f"uploads:pending:{key}"

    def get(self, key: str) -> Mapping[str, Any] | None:
        try:
            value = self._client.get(self._key(key))
        except RedisError as exc:
            logger.warning("Pending-session cache read failed for %s: %s", key, exc)
            return None
        return json.loads(value) if value is not None else None

    def set(self, key: str, payload: Mapping[str, Any]) -> None:
        try:
            self._client.setex(self._key(key), self._ttl, json.dumps(payload))
        except RedisError as exc:
            logger.warning("Pending-session cache write failed for %s: %s", key, exc)
