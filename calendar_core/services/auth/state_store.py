# calendar_core/services/auth/state_store.py
"""Single-use keyed stores for OAuth2 authorization state"""
import json
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Tuple

import redis

from calendar_core.config.redis import RedisKeys, get_redis

logger = logging.getLogger(__name__)


class StateStore(ABC):
    """Key/value store with per-entry TTL and atomic get-and-delete"""

    @abstractmethod
    def put(self, key: str, value: dict, ttl_seconds: int) -> None:
        ...

    @abstractmethod
    def pop(self, key: str) -> Optional[dict]:
        """Return and remove the entry; None if absent or expired"""
        ...


class InMemoryStateStore(StateStore):
    """Process-local store, for tests and single-process deployments"""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._entries: Dict[str, Tuple[dict, datetime]] = {}
        self._lock = threading.Lock()

    def put(self, key: str, value: dict, ttl_seconds: int) -> None:
        expires_at = self._clock() + timedelta(seconds=ttl_seconds)
        with self._lock:
            self._purge_expired()
            self._entries[key] = (dict(value), expires_at)

    def pop(self, key: str) -> Optional[dict]:
        with self._lock:
            entry = self._entries.pop(key, None)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            logger.info("OAuth state expired before callback")
            return None
        return value

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired()
            return len(self._entries)

    def _purge_expired(self) -> None:
        now = self._clock()
        for key in [k for k, (_, expires_at) in self._entries.items() if now >= expires_at]:
            del self._entries[key]


class RedisStateStore(StateStore):
    """Shared store backed by Redis (SET EX + GETDEL, Redis >= 6.2)"""

    def __init__(self, client: Optional[redis.Redis] = None, key_pattern: str = RedisKeys.OAUTH_STATE):
        self._client = client
        self._key_pattern = key_pattern

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = get_redis()
        return self._client

    def _key(self, key: str) -> str:
        return self._key_pattern.format(state=key)

    def put(self, key: str, value: dict, ttl_seconds: int) -> None:
        self.client.set(self._key(key), json.dumps(value), ex=ttl_seconds)
        logger.debug(f"Stored OAuth state with TTL {ttl_seconds}s")

    def pop(self, key: str) -> Optional[dict]:
        raw = self.client.getdel(self._key(key))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode()
        return json.loads(raw)
