"""
Typed view over the local key/value store.

Maps each record family of the local state layout onto a namespace and a
pydantic model (or plain JSON for id lists and counters):

    feed_cache:{viewer}        FeedCacheEntry         15 min
    seen_ids:{viewer}          [item_id]              bounded 500, FIFO
    style_counters:{viewer}    StyleCounter
    product_cache:{item}       ProductCacheEntry      60 min
    similar_cache:{item}       SimilarCacheEntry      30 min
    last_view:{item}           timestamp              24 h
    recently_viewed:{viewer}   [item_id]              bounded 30, newest first
    view_count:{viewer}        int

Undecodable records read as missing.
"""

import json
from typing import Any, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from config.constants import CacheConfig, DEFAULT_CACHE_CONFIG
from core.logging import LoggerMixin
from personalization.errors import CacheCorruptionError
from personalization.kv_store import KeyValueStore, Namespace
from personalization.models import (
    FeedCacheEntry,
    FeedType,
    Item,
    ProductCacheEntry,
    SimilarCacheEntry,
    StyleCounter,
)


M = TypeVar("M", bound=BaseModel)


def _decode_model(raw: bytes, model: Type[M]) -> M:
    try:
        return model.model_validate_json(raw)
    except ValidationError as e:
        raise CacheCorruptionError(f"Invalid {model.__name__} record: {e}") from e


def _decode_json(raw: bytes) -> Any:
    try:
        return json.loads(raw)
    except (ValueError, TypeError) as e:
        raise CacheCorruptionError(f"Invalid JSON record: {e}") from e


def _decode_id_list(raw: bytes) -> List[str]:
    value = _decode_json(raw)
    if not isinstance(value, list):
        raise CacheCorruptionError("Expected a list of ids")
    return [str(v) for v in value]


class LocalCache(LoggerMixin):
    """Per-record accessors over a KeyValueStore."""

    def __init__(self, store: KeyValueStore, config: CacheConfig = None):
        self.store = store
        self.config = config or DEFAULT_CACHE_CONFIG

    def now(self) -> float:
        return self.store.now()

    def lock(self, namespace: Namespace, key: str):
        return self.store.lock(namespace, key)

    async def _load_model(self, namespace: Namespace, key: str, model: Type[M]) -> Optional[M]:
        raw = await self.store.get(namespace, key)
        if raw is None:
            return None
        try:
            return _decode_model(raw, model)
        except CacheCorruptionError as e:
            self.logger.warning("Corrupt local record", namespace=namespace.value, key=key, error=str(e))
            return None

    async def _load_ids(self, namespace: Namespace, key: str) -> List[str]:
        raw = await self.store.get(namespace, key)
        if raw is None:
            return []
        try:
            return _decode_id_list(raw)
        except CacheCorruptionError as e:
            self.logger.warning("Corrupt local record", namespace=namespace.value, key=key, error=str(e))
            return []

    async def _save_ids(self, namespace: Namespace, key: str, ids: List[str]) -> None:
        await self.store.set(namespace, key, json.dumps(ids).encode("utf-8"))

    # =========================================================================
    # Feed Cache
    # =========================================================================

    async def get_feed_cache(self, viewer_id: str) -> Optional[FeedCacheEntry]:
        """
        Cached first page, or None when missing, older than the feed TTL,
        or empty. An empty page is never served so a transient failure
        can't pin an empty feed.
        """
        entry = await self._load_model(Namespace.FEED_CACHE, viewer_id, FeedCacheEntry)
        if entry is None:
            return None
        if self.now() - entry.cached_at > self.config.FEED_TTL:
            return None
        if not entry.items:
            return None
        return entry

    async def set_feed_cache(self, viewer_id: str, items: List[Item], feed_type: FeedType) -> None:
        if not items:
            self.logger.debug("Skipping empty feed cache write", viewer_id=viewer_id)
            return
        entry = FeedCacheEntry(items=items, feed_type=feed_type, cached_at=self.now())
        await self.store.set(
            Namespace.FEED_CACHE, viewer_id, entry.model_dump_json().encode("utf-8"),
            ttl=self.config.FEED_TTL,
        )

    async def clear_feed_cache(self, viewer_id: str) -> None:
        await self.store.delete(Namespace.FEED_CACHE, viewer_id)

    # =========================================================================
    # Seen Item IDs
    # =========================================================================

    async def get_seen_ids(self, viewer_id: str) -> List[str]:
        return await self._load_ids(Namespace.SEEN_IDS, viewer_id)

    async def add_seen_id(self, viewer_id: str, item_id: str) -> None:
        """Idempotent insert; oldest ids are evicted first past the bound."""
        async with self.lock(Namespace.SEEN_IDS, viewer_id):
            ids = await self.get_seen_ids(viewer_id)
            if item_id in ids:
                return
            ids.append(item_id)
            if len(ids) > self.config.MAX_SEEN_IDS:
                ids = ids[len(ids) - self.config.MAX_SEEN_IDS:]
            await self._save_ids(Namespace.SEEN_IDS, viewer_id, ids)

    # =========================================================================
    # Style Counters
    # =========================================================================

    async def get_style_counters(self, viewer_id: str) -> StyleCounter:
        counters = await self._load_model(Namespace.STYLE_COUNTERS, viewer_id, StyleCounter)
        return counters if counters is not None else StyleCounter()

    async def set_style_counters(self, viewer_id: str, counters: StyleCounter) -> None:
        await self.store.set(
            Namespace.STYLE_COUNTERS, viewer_id, counters.model_dump_json().encode("utf-8"),
        )

    async def reset_style_counters(self, viewer_id: str) -> None:
        await self.store.delete(Namespace.STYLE_COUNTERS, viewer_id)

    # =========================================================================
    # Product Cache
    # =========================================================================

    async def get_cached_product(self, item_id: str) -> Optional[Item]:
        entry = await self._load_model(Namespace.PRODUCT_CACHE, item_id, ProductCacheEntry)
        return entry.item if entry is not None else None

    async def set_cached_product(self, item: Item) -> None:
        entry = ProductCacheEntry(item=item, cached_at=self.now())
        await self.store.set(
            Namespace.PRODUCT_CACHE, item.id, entry.model_dump_json().encode("utf-8"),
            ttl=self.config.PRODUCT_TTL,
        )

    # =========================================================================
    # Similar Items Cache
    # =========================================================================

    async def get_similar_cache(self, item_id: str) -> Optional[List[Item]]:
        entry = await self._load_model(Namespace.SIMILAR_CACHE, item_id, SimilarCacheEntry)
        return entry.items if entry is not None else None

    async def set_similar_cache(self, item_id: str, items: List[Item]) -> None:
        entry = SimilarCacheEntry(items=items, cached_at=self.now())
        await self.store.set(
            Namespace.SIMILAR_CACHE, item_id, entry.model_dump_json().encode("utf-8"),
            ttl=self.config.SIMILAR_TTL,
        )

    # =========================================================================
    # View Dedup
    # =========================================================================

    async def can_log_view(self, item_id: str) -> bool:
        """True unless a view of this item was logged inside the dedup window."""
        raw = await self.store.get(Namespace.LAST_VIEW, item_id)
        if raw is None:
            return True
        try:
            logged_at = float(raw)
        except ValueError:
            return True
        return self.now() - logged_at > self.config.VIEW_DEDUP_TTL

    async def mark_view_logged(self, item_id: str) -> None:
        await self.store.set(
            Namespace.LAST_VIEW, item_id, repr(self.now()).encode("utf-8"),
            ttl=self.config.VIEW_DEDUP_TTL,
        )

    # =========================================================================
    # Recently Viewed
    # =========================================================================

    async def get_recently_viewed(self, viewer_id: str) -> List[str]:
        return await self._load_ids(Namespace.RECENTLY_VIEWED, viewer_id)

    async def add_recently_viewed(self, viewer_id: str, item_id: str) -> None:
        """Move ``item_id`` to the front, keeping the newest 30."""
        async with self.lock(Namespace.RECENTLY_VIEWED, viewer_id):
            ids = [i for i in await self.get_recently_viewed(viewer_id) if i != item_id]
            ids.insert(0, item_id)
            await self._save_ids(
                Namespace.RECENTLY_VIEWED, viewer_id, ids[:self.config.MAX_RECENTLY_VIEWED],
            )

    # =========================================================================
    # View Cadence Counter
    # =========================================================================

    async def increment_view_count(self, viewer_id: str) -> int:
        async with self.lock(Namespace.VIEW_COUNT, viewer_id):
            raw = await self.store.get(Namespace.VIEW_COUNT, viewer_id)
            try:
                count = int(raw) + 1 if raw is not None else 1
            except ValueError:
                count = 1
            await self.store.set(Namespace.VIEW_COUNT, viewer_id, str(count).encode("utf-8"))
            return count

    # =========================================================================
    # Bulk Clear (logout)
    # =========================================================================

    async def clear_all(self, viewer_id: str) -> None:
        await self.store.delete_all([
            (Namespace.FEED_CACHE, viewer_id),
            (Namespace.SEEN_IDS, viewer_id),
            (Namespace.STYLE_COUNTERS, viewer_id),
            (Namespace.RECENTLY_VIEWED, viewer_id),
            (Namespace.VIEW_COUNT, viewer_id),
        ])
