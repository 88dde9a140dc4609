"""
Feed tier selection and ranking.

Tier order (first match wins):
1. behavioral  - viewer has interaction history in the last 30 days
2. preference  - viewer has style tags or favorite colors on file
3. cold_start  - everyone else, including anonymous viewers

Each tier ranks a gender-filtered candidate pool, drops seen and
caller-excluded items, applies the per-brand cap, then paginates.

Only the first page (offset 0) is cached, per viewer ("guest" for
anonymous viewers), for 15 minutes. Later pages and forced refreshes
always go to the catalog.
"""

import random
from typing import List, Optional

from config.constants import CacheConfig, DEFAULT_CACHE_CONFIG, DEFAULT_FEED_CONFIG, FeedConfig
from core.logging import LoggerMixin
from personalization.catalog import ItemRepository
from personalization.collaborators import CatalogFilter, PreferenceClient
from personalization.interaction_log import InteractionLog
from personalization.local_cache import LocalCache
from personalization.models import FeedOptions, FeedResult, FeedType, Item, UserPreferences
from personalization.scoring import (
    apply_brand_cap,
    behavioral_score,
    exclude_ids,
    paginate,
    preference_score,
    sort_scored,
    top_anchor_ids,
)


class FeedSelector(LoggerMixin):
    """Chooses a tier per viewer, ranks, caps, paginates and caches."""

    def __init__(
        self,
        items: ItemRepository,
        cache: LocalCache,
        interaction_log: InteractionLog,
        preferences: PreferenceClient,
        rng: Optional[random.Random] = None,
        config: FeedConfig = None,
        cache_config: CacheConfig = None,
    ):
        self.items = items
        self.cache = cache
        self.interaction_log = interaction_log
        self.preferences = preferences
        self.rng = rng or random.Random()
        self.config = config or DEFAULT_FEED_CONFIG
        self.cache_config = cache_config or DEFAULT_CACHE_CONFIG

    # =========================================================================
    # Viewer Context
    # =========================================================================

    async def determine_feed_type(self, viewer_id: Optional[str]) -> FeedType:
        """Behavioral beats preference beats cold start."""
        if not viewer_id:
            return FeedType.COLD_START

        if await self.interaction_log.has_history(viewer_id):
            return FeedType.BEHAVIORAL

        prefs = await self.get_user_preferences(viewer_id)
        if prefs is not None and prefs.has_explicit_taste:
            return FeedType.PREFERENCE

        return FeedType.COLD_START

    async def get_user_preferences(self, viewer_id: str) -> Optional[UserPreferences]:
        try:
            return await self.preferences.read_preferences(viewer_id)
        except Exception as e:
            self.logger.warning("Preference read failed", viewer_id=viewer_id, error=str(e))
            return None

    async def get_viewer_gender(self, viewer_id: str) -> Optional[str]:
        """Preference record gender, then profile gender, else None."""
        prefs = await self.get_user_preferences(viewer_id)
        if prefs is not None and prefs.gender:
            return prefs.gender
        try:
            return await self.preferences.read_profile_gender(viewer_id)
        except Exception as e:
            self.logger.warning("Profile gender read failed", viewer_id=viewer_id, error=str(e))
            return None

    # =========================================================================
    # Tiers
    # =========================================================================

    async def _candidate_pool(self, gender: Optional[str]) -> List[Item]:
        return await self.items.query(
            CatalogFilter(gender=gender, active_only=True),
            order=self.config.COLD_START_ORDER,
            limit=self.config.POOL_SIZE,
        )

    def _jitter(self, bound: float) -> float:
        return self.rng.random() * bound

    async def cold_start_feed(self, options: FeedOptions) -> List[Item]:
        """Featured first, then newest."""
        pool = await self._candidate_pool(options.gender)
        ranked = exclude_ids(pool, options.exclude_ids)
        ranked = apply_brand_cap(ranked, self.config.MAX_PER_BRAND)
        return paginate(ranked, options.limit, options.offset)

    async def preference_feed(self, prefs: UserPreferences, options: FeedOptions) -> List[Item]:
        """Scored by style/color/pattern match with a small jitter."""
        pool = await self._candidate_pool(options.gender or prefs.gender)
        candidates = exclude_ids(pool, options.exclude_ids)

        scored = [
            (preference_score(item, prefs, self.config) + self._jitter(self.config.PREFERENCE_JITTER), item)
            for item in candidates
        ]
        ranked = apply_brand_cap(sort_scored(scored), self.config.MAX_PER_BRAND)
        return paginate(ranked, options.limit, options.offset)

    async def behavioral_feed(
        self,
        viewer_id: str,
        prefs: Optional[UserPreferences],
        options: FeedOptions,
    ) -> List[Item]:
        """Similarity to top interacted items, blended with preference score."""
        interaction_scores = await self.interaction_log.scores(viewer_id)
        anchor_ids = top_anchor_ids(interaction_scores, self.config.ANCHOR_COUNT)
        anchors = await self.items.get_items(anchor_ids)

        gender = options.gender or (prefs.gender if prefs is not None else None)
        pool = await self._candidate_pool(gender)
        candidates = exclude_ids(pool, options.exclude_ids)

        scored = []
        for item in candidates:
            behavioral = behavioral_score(item, anchors, interaction_scores, self.config)
            preference = preference_score(item, prefs, self.config)
            total = (
                self.config.BEHAVIORAL_BLEND * behavioral
                + self.config.PREFERENCE_BLEND * preference
                + self._jitter(self.config.BEHAVIORAL_JITTER)
            )
            scored.append((total, item))

        ranked = apply_brand_cap(sort_scored(scored), self.config.MAX_PER_BRAND)
        return paginate(ranked, options.limit, options.offset)

    # =========================================================================
    # Entry Points
    # =========================================================================

    async def load_feed(
        self,
        viewer_id: Optional[str],
        options: Optional[FeedOptions] = None,
        force_refresh: bool = False,
    ) -> FeedResult:
        """
        Load one feed page.

        Args:
            viewer_id: Viewer, or None for anonymous
            options: Paging, exclusions and gender override
            force_refresh: Skip the cache read (the result is still cached)

        Returns:
            FeedResult; never raises. On any failure the result degrades
            toward an un-personalized or empty page.
        """
        options = options or FeedOptions()
        cache_key = viewer_id or self.cache_config.GUEST_VIEWER_ID
        first_page = options.offset == 0

        if first_page and not force_refresh:
            entry = await self.cache.get_feed_cache(cache_key)
            if entry is not None:
                self.logger.debug("Feed cache hit", viewer_id=cache_key, feed_type=entry.feed_type.value)
                return FeedResult(items=entry.items, feed_type=entry.feed_type, from_cache=True)

        seen = await self.cache.get_seen_ids(viewer_id) if viewer_id else []
        gender = options.gender
        if gender is None and viewer_id:
            gender = await self.get_viewer_gender(viewer_id)
        merged = options.model_copy(update={
            "exclude_ids": list(options.exclude_ids) + seen,
            "gender": gender,
        })

        feed_type = await self.determine_feed_type(viewer_id)
        try:
            items = await self._rank(viewer_id, feed_type, merged)
        except Exception as e:
            self.logger.error("Feed ranking failed, serving cold start", viewer_id=cache_key, feed_type=feed_type.value, error=str(e))
            feed_type = FeedType.COLD_START
            items = await self.cold_start_feed(merged)

        if first_page:
            await self.cache.set_feed_cache(cache_key, items, feed_type)

        self.logger.info(
            "Feed loaded",
            viewer_id=cache_key,
            feed_type=feed_type.value,
            count=len(items),
            offset=options.offset,
        )
        return FeedResult(items=items, feed_type=feed_type, from_cache=False)

    async def _rank(self, viewer_id: Optional[str], feed_type: FeedType, options: FeedOptions) -> List[Item]:
        if feed_type is FeedType.BEHAVIORAL:
            prefs = await self.get_user_preferences(viewer_id)
            return await self.behavioral_feed(viewer_id, prefs, options)
        if feed_type is FeedType.PREFERENCE:
            prefs = await self.get_user_preferences(viewer_id)
            if prefs is not None:
                return await self.preference_feed(prefs, options)
        return await self.cold_start_feed(options)

    async def refresh(self, viewer_id: Optional[str], options: Optional[FeedOptions] = None) -> FeedResult:
        """Pull-to-refresh: drop the cached page and fetch uncached."""
        cache_key = viewer_id or self.cache_config.GUEST_VIEWER_ID
        await self.cache.clear_feed_cache(cache_key)
        options = (options or FeedOptions()).model_copy(update={"offset": 0})
        return await self.load_feed(viewer_id, options, force_refresh=True)
