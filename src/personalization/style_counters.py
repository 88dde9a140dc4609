"""
Style counters learned from interactions.

Every logged interaction adds ``abs(weight)`` to the counter of each style,
color and pattern tag on the item. Counters never decay and never go down:
a dismiss still counts as signal about what the viewer looked at, and its
negative effect is handled by removing the item from candidate pools.

Tie-break for top-N: equal weights keep first-seen order (the order tags
were first inserted into the mapping). Python dicts and the JSON encoding
both preserve insertion order, and the sort is stable.
"""

from typing import Dict, Iterable, List

from config.constants import DEFAULT_SYNC_CONFIG, SyncConfig
from core.logging import LoggerMixin
from personalization.kv_store import Namespace
from personalization.local_cache import LocalCache
from personalization.models import DerivedPreferences, InteractionType, Item, StyleCounter


def increment_tags(scores: Dict[str, float], tags: Iterable[str], weight: float) -> None:
    """Add ``weight`` to each non-blank (stripped) tag."""
    for tag in tags:
        normalized = tag.strip() if tag else ""
        if normalized:
            scores[normalized] = scores.get(normalized, 0.0) + weight


def top_n(scores: Dict[str, float], n: int) -> List[str]:
    """Top ``n`` tags by descending weight; ties keep first-seen order."""
    ranked = sorted(scores.items(), key=lambda kv: -kv[1])
    return [tag for tag, _ in ranked[:n]]


class StyleCounterStore(LoggerMixin):
    """Per-viewer style/color/pattern counters in the local store."""

    def __init__(self, cache: LocalCache, config: SyncConfig = None):
        self.cache = cache
        self.config = config or DEFAULT_SYNC_CONFIG

    async def get(self, viewer_id: str) -> StyleCounter:
        return await self.cache.get_style_counters(viewer_id)

    async def update(
        self,
        viewer_id: str,
        item: Item,
        interaction_type: InteractionType,
    ) -> StyleCounter:
        """Increment the item's tags by the absolute interaction weight."""
        weight = abs(InteractionType(interaction_type).weight)

        async with self.cache.lock(Namespace.STYLE_COUNTERS, viewer_id):
            counters = await self.cache.get_style_counters(viewer_id)
            if item.style:
                increment_tags(counters.style_scores, item.style, weight)
            if item.colors:
                increment_tags(counters.color_scores, item.colors, weight)
            if item.pattern:
                increment_tags(counters.pattern_scores, [item.pattern], weight)
            await self.cache.set_style_counters(viewer_id, counters)

        return counters

    async def derived_preferences(self, viewer_id: str) -> DerivedPreferences:
        """Current all-time top-N tags (5 styles, 5 colors, 3 patterns)."""
        counters = await self.cache.get_style_counters(viewer_id)
        return DerivedPreferences(
            style_tags=top_n(counters.style_scores, self.config.TOP_STYLES),
            favorite_colors=top_n(counters.color_scores, self.config.TOP_COLORS),
            pattern_preferences=top_n(counters.pattern_scores, self.config.TOP_PATTERNS),
        )

    async def mark_synced(self, viewer_id: str, synced_at: float) -> None:
        async with self.cache.lock(Namespace.STYLE_COUNTERS, viewer_id):
            counters = await self.cache.get_style_counters(viewer_id)
            counters.last_synced_at = synced_at
            await self.cache.set_style_counters(viewer_id, counters)

    async def reset(self, viewer_id: str) -> None:
        """Forget learned taste and the feed built from it (style quiz retake)."""
        async with self.cache.lock(Namespace.STYLE_COUNTERS, viewer_id):
            await self.cache.reset_style_counters(viewer_id)
        await self.cache.clear_feed_cache(viewer_id)
        self.logger.info("Style counters reset", viewer_id=viewer_id)
