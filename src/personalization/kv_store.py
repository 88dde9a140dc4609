"""
Namespaced, TTL-aware local key/value store.

Wraps an async device store behind four operations (get, set, delete,
delete_all). Every operation is best-effort: backend failures are logged
and degrade to "absent" or a no-op, never an exception.

TTL is enforced lazily at read time against the injected clock. An expired
entry reads as missing but is left in place until overwritten or deleted.

Supports two backends:
1. InMemory: For development/testing (default)
2. Redis: When a persistent device store is wanted (redis.asyncio)
"""

import asyncio
import time
import weakref
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from core.logging import LoggerMixin


# =============================================================================
# Keys
# =============================================================================

class Namespace(str, Enum):
    """Record families in the local state layout."""
    FEED_CACHE = "feed_cache"            # viewer -> first feed page
    SEEN_IDS = "seen_ids"                # viewer -> bounded FIFO of item ids
    STYLE_COUNTERS = "style_counters"    # viewer -> tag counters
    PRODUCT_CACHE = "product_cache"      # item -> item record
    SIMILAR_CACHE = "similar_cache"      # item -> ranked similar items
    LAST_VIEW = "last_view"              # item -> view dedup marker
    RECENTLY_VIEWED = "recently_viewed"  # viewer -> most-recent-first ids
    VIEW_COUNT = "view_count"            # viewer -> cadence counter


StoreKey = Tuple[Namespace, str]


@dataclass
class StoredValue:
    """Payload plus the metadata needed for lazy expiry."""
    data: bytes
    stored_at: float
    ttl: Optional[float] = None

    def is_expired(self, now: float) -> bool:
        if self.ttl is None:
            return False
        return now - self.stored_at > self.ttl


# =============================================================================
# In-Memory Backend (Default)
# =============================================================================

class InMemoryBackend:
    """
    In-memory storage for development/testing.

    Note: Data is lost on restart.
    """

    def __init__(self):
        self._data: Dict[str, StoredValue] = {}

    async def get(self, key: str) -> Optional[StoredValue]:
        return self._data.get(key)

    async def set(self, key: str, value: StoredValue) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def delete_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._data.pop(key, None)

    def get_stats(self) -> Dict[str, Any]:
        return {"backend": "in_memory", "keys": len(self._data)}


# =============================================================================
# Redis Backend
# =============================================================================

class RedisBackend:
    """
    Redis storage. Each key is a hash holding ``data``, ``stored_at`` and
    ``ttl`` so expiry stays lazy and under the engine's clock.

    No Redis EXPIRE is set: expired entries stay until overwritten.
    """

    def __init__(self, client: Any):
        """
        Args:
            client: A ``redis.asyncio.Redis`` created with decode_responses=False
        """
        self._redis = client

    async def get(self, key: str) -> Optional[StoredValue]:
        raw = await self._redis.hgetall(key)
        if not raw:
            return None
        ttl_raw = raw.get(b"ttl", b"")
        return StoredValue(
            data=raw[b"data"],
            stored_at=float(raw[b"stored_at"]),
            ttl=float(ttl_raw) if ttl_raw else None,
        )

    async def set(self, key: str, value: StoredValue) -> None:
        await self._redis.hset(key, mapping={
            "data": value.data,
            "stored_at": repr(value.stored_at),
            "ttl": "" if value.ttl is None else repr(value.ttl),
        })

    async def delete(self, key: str) -> None:
        await self._redis.delete(key)

    async def delete_many(self, keys: Iterable[str]) -> None:
        keys = list(keys)
        if keys:
            await self._redis.delete(*keys)

    def get_stats(self) -> Dict[str, Any]:
        return {"backend": "redis"}


# =============================================================================
# Key/Value Store (Main Interface)
# =============================================================================

class KeyValueStore(LoggerMixin):
    """
    Best-effort namespaced store.

    Read-modify-write sequences on one key must hold ``lock(namespace, key)``
    for the whole sequence so concurrent writers of the same key don't lose
    updates. Different keys need no coordination.
    """

    def __init__(
        self,
        backend: Optional[Any] = None,
        clock: Callable[[], float] = time.time,
        key_prefix: str = "",
    ):
        self._backend = backend if backend is not None else InMemoryBackend()
        self._clock = clock
        self._prefix = key_prefix
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def now(self) -> float:
        return self._clock()

    def _key(self, namespace: Namespace, key: str) -> str:
        return f"{self._prefix}{Namespace(namespace).value}:{key}"

    def lock(self, namespace: Namespace, key: str) -> asyncio.Lock:
        """Lock guarding read-modify-write on one key."""
        full_key = self._key(namespace, key)
        lock = self._locks.get(full_key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[full_key] = lock
        return lock

    async def get(self, namespace: Namespace, key: str) -> Optional[bytes]:
        """Return the payload, or None if missing, expired or unreadable."""
        full_key = self._key(namespace, key)
        try:
            stored = await self._backend.get(full_key)
        except Exception as e:
            self.logger.warning("Local store read failed", key=full_key, error=str(e))
            return None
        if stored is None:
            return None
        if stored.is_expired(self.now()):
            self.logger.debug("Local entry expired", key=full_key)
            return None
        return stored.data

    async def set(
        self,
        namespace: Namespace,
        key: str,
        value: bytes,
        ttl: Optional[float] = None,
    ) -> None:
        full_key = self._key(namespace, key)
        try:
            await self._backend.set(full_key, StoredValue(data=value, stored_at=self.now(), ttl=ttl))
        except Exception as e:
            self.logger.warning("Local store write failed", key=full_key, error=str(e))

    async def delete(self, namespace: Namespace, key: str) -> None:
        full_key = self._key(namespace, key)
        try:
            await self._backend.delete(full_key)
        except Exception as e:
            self.logger.warning("Local store delete failed", key=full_key, error=str(e))

    async def delete_all(self, keys: Iterable[StoreKey]) -> None:
        full_keys = [self._key(namespace, key) for namespace, key in keys]
        try:
            await self._backend.delete_many(full_keys)
        except Exception as e:
            self.logger.warning("Local store bulk delete failed", keys=len(full_keys), error=str(e))

    def get_stats(self) -> Dict[str, Any]:
        return self._backend.get_stats()
