"""
Engine factory.

Wires the local store, remote collaborators and services into one
PersonalizationEngine and hands out per-viewer sessions.

Usage:
    engine = await build_engine()            # Supabase + Redis from settings
    engine = PersonalizationEngine.in_memory(items=[...])   # offline

    session = engine.session(viewer_id)
    page = await session.open_feed()
"""

import random
import time
from typing import Callable, Dict, List, Optional

from config.constants import (
    CacheConfig,
    DEFAULT_CACHE_CONFIG,
    DEFAULT_FEED_CONFIG,
    DEFAULT_SIMILARITY_CONFIG,
    DEFAULT_SYNC_CONFIG,
    FeedConfig,
    SimilarityConfig,
    SyncConfig,
)
from config.settings import Settings, get_settings
from core.logging import LoggerMixin, configure_logging_from_settings, get_logger
from personalization.background import BackgroundTasks
from personalization.catalog import ItemRepository
from personalization.collaborators import (
    CatalogClient,
    InMemoryCatalog,
    InMemoryInteractions,
    InMemoryPreferences,
    InteractionClient,
    PreferenceClient,
)
from personalization.feed_selector import FeedSelector
from personalization.interaction_log import InteractionLog
from personalization.kv_store import KeyValueStore, RedisBackend
from personalization.local_cache import LocalCache
from personalization.models import Item, UserPreferences
from personalization.session import FeedListener, ViewerSession
from personalization.similarity import SimilarityEngine
from personalization.style_counters import StyleCounterStore
from personalization.sync_manager import SyncManager


logger = get_logger(__name__)


class PersonalizationEngine(LoggerMixin):
    """Shared services for every viewer session in one process."""

    def __init__(
        self,
        store: KeyValueStore,
        catalog: CatalogClient,
        preferences: PreferenceClient,
        interactions: InteractionClient,
        rng: Optional[random.Random] = None,
        cache_config: CacheConfig = None,
        feed_config: FeedConfig = None,
        similarity_config: SimilarityConfig = None,
        sync_config: SyncConfig = None,
    ):
        self.store = store
        self.catalog = catalog
        self.preferences = preferences
        self.interactions = interactions
        self.feed_config = feed_config or DEFAULT_FEED_CONFIG

        self.background = BackgroundTasks()
        self.cache = LocalCache(store, cache_config or DEFAULT_CACHE_CONFIG)
        self.items = ItemRepository(catalog, self.cache)
        self.interaction_log = InteractionLog(self.cache, interactions, self.background, self.feed_config)
        self.counters = StyleCounterStore(self.cache, sync_config or DEFAULT_SYNC_CONFIG)
        self.similarity = SimilarityEngine(self.items, self.cache, similarity_config or DEFAULT_SIMILARITY_CONFIG)
        self.feed_selector = FeedSelector(
            self.items,
            self.cache,
            self.interaction_log,
            preferences,
            rng=rng,
            config=self.feed_config,
            cache_config=cache_config or DEFAULT_CACHE_CONFIG,
        )
        self.sync = SyncManager(
            self.counters,
            self.cache,
            preferences,
            self.background,
            sync_config or DEFAULT_SYNC_CONFIG,
        )

    @classmethod
    def in_memory(
        cls,
        items: Optional[List[Item]] = None,
        preferences: Optional[Dict[str, UserPreferences]] = None,
        profile_genders: Optional[Dict[str, str]] = None,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
        **kwargs,
    ) -> "PersonalizationEngine":
        """Engine with in-memory store and collaborators."""
        return cls(
            store=KeyValueStore(clock=clock),
            catalog=InMemoryCatalog(items),
            preferences=InMemoryPreferences(preferences, profile_genders),
            interactions=InMemoryInteractions(clock=clock),
            rng=rng,
            **kwargs,
        )

    def session(
        self,
        viewer_id: Optional[str],
        on_feed_updated: Optional[FeedListener] = None,
    ) -> ViewerSession:
        """New session for ``viewer_id`` (None for an anonymous viewer)."""
        return ViewerSession(
            viewer_id,
            feed_selector=self.feed_selector,
            interaction_log=self.interaction_log,
            counters=self.counters,
            sync_manager=self.sync,
            similarity=self.similarity,
            items=self.items,
            cache=self.cache,
            background=self.background,
            on_feed_updated=on_feed_updated,
            config=self.feed_config,
        )

    async def get_item(self, item_id: str) -> Optional[Item]:
        return await self.items.get_item(item_id)

    async def similar(self, item: Item, limit: Optional[int] = None, exclude_ids=()) -> List[Item]:
        return await self.similarity.similar(item, limit, exclude_ids)

    async def shutdown(self) -> None:
        """Wait for in-flight background writes."""
        await self.background.drain()


async def build_engine(settings: Optional[Settings] = None) -> PersonalizationEngine:
    """
    Create an engine from settings.

    Supabase backs the collaborators when configured; otherwise the
    in-memory collaborators are used. Redis backs the local store when
    ``redis_enabled`` is set.
    """
    # Deferred so offline use doesn't pay for the client imports
    from config.database import get_redis_client, get_supabase_client
    from personalization.supabase_client import (
        SupabaseCatalog,
        SupabaseInteractions,
        SupabasePreferences,
    )

    settings = settings or get_settings()
    configure_logging_from_settings(settings)

    backend = None
    if settings.redis_enabled:
        backend = RedisBackend(get_redis_client(settings.redis_url))
    store = KeyValueStore(backend=backend, key_prefix=settings.kv_key_prefix)

    if settings.supabase_configured:
        client = await get_supabase_client(settings)
        catalog = SupabaseCatalog(client)
        preferences = SupabasePreferences(client)
        interactions = SupabaseInteractions(client)
    else:
        logger.warning("Supabase not configured, using in-memory collaborators")
        catalog = InMemoryCatalog()
        preferences = InMemoryPreferences()
        interactions = InMemoryInteractions()

    logger.info(
        "Engine ready",
        environment=settings.environment,
        store=store.get_stats()["backend"],
        remote="supabase" if settings.supabase_configured else "in_memory",
    )
    return PersonalizationEngine(store, catalog, preferences, interactions)
