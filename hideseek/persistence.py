from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import redis

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "hideseek:"


class PersistenceGateway(Protocol):
    """Narrow key/value contract the stores persist through."""

    def save(self, key: str, data: Any) -> None: ...

    def load(self, key: str) -> Any | None: ...

    def remove(self, key: str) -> None: ...

    def clear(self) -> None: ...


class RedisPersistence:
    """Redis-backed gateway. Values are JSON text under a namespaced key."""

    def __init__(self, r: redis.Redis, *, prefix: str = DEFAULT_PREFIX) -> None:
        self._r = r
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def save(self, key: str, data: Any) -> None:
        try:
            self._r.set(self._key(key), json.dumps(data))
        except redis.RedisError:
            # The in-memory session stays authoritative; only the backup is lost.
            logger.exception("Failed to persist %s", self._key(key))

    def load(self, key: str) -> Any | None:
        try:
            raw = self._r.get(self._key(key))
        except redis.RedisError:
            logger.exception("Failed to load %s", self._key(key))
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring corrupted value stored under %s", self._key(key))
            return None

    def remove(self, key: str) -> None:
        try:
            self._r.delete(self._key(key))
        except redis.RedisError:
            logger.exception("Failed to remove %s", self._key(key))

    def clear(self) -> None:
        # Only our namespace; other apps may share the database.
        try:
            keys = list(self._r.scan_iter(match=f"{self._prefix}*"))
            if keys:
                self._r.delete(*keys)
        except redis.RedisError:
            logger.exception("Failed to clear keys under %s", self._prefix)
