"""
Attribute-based similar-item ranking.

Scores catalog candidates against a source item with a weighted sum of
category, subcategory, style, color, pattern, gender, occasion and price
proximity. Embeddings are not used.

The top 20 per source item are cached for 30 minutes, keyed by item id
only. Callers' limit and exclusions are applied after the cache.
"""

from typing import Iterable, List, Optional, Set

from config.constants import DEFAULT_SIMILARITY_CONFIG, SimilarityConfig
from core.logging import LoggerMixin
from core.utils import count_shared, same_tag
from personalization.catalog import ItemRepository
from personalization.collaborators import CatalogFilter
from personalization.local_cache import LocalCache
from personalization.models import Item


def similarity_score(
    source: Item,
    candidate: Item,
    config: SimilarityConfig = DEFAULT_SIMILARITY_CONFIG,
) -> float:
    """Weighted attribute overlap between ``source`` and ``candidate``."""
    score = 0.0

    if source.category and source.category == candidate.category:
        score += config.CATEGORY_MATCH
    if source.subcategory and source.subcategory == candidate.subcategory:
        score += config.SUBCATEGORY_MATCH

    score += count_shared(source.style, candidate.style) * config.SHARED_STYLE
    score += count_shared(source.colors, candidate.colors) * config.SHARED_COLOR

    if same_tag(source.pattern, candidate.pattern):
        score += config.PATTERN_MATCH

    if source.gender == candidate.gender or candidate.gender == "unisex":
        score += config.GENDER_COMPATIBLE

    score += count_shared(source.occasion, candidate.occasion) * config.SHARED_OCCASION

    # Ratio only counts above the floor so a near-zero price can't dominate
    high = max(source.price, candidate.price)
    if high > 0:
        ratio = min(source.price, candidate.price) / high
        if ratio > config.PRICE_RATIO_FLOOR:
            score += ratio

    return score


def rank_similar(
    source: Item,
    candidates: Iterable[Item],
    config: SimilarityConfig = DEFAULT_SIMILARITY_CONFIG,
) -> List[Item]:
    """Candidates by descending score; equal scores keep pool order."""
    scored = [(similarity_score(source, c, config), c) for c in candidates]
    scored.sort(key=lambda pair: -pair[0])
    return [c for _, c in scored]


class SimilarityEngine(LoggerMixin):
    """Similar items for a product page, with a per-item result cache."""

    def __init__(
        self,
        items: ItemRepository,
        cache: LocalCache,
        config: SimilarityConfig = None,
    ):
        self.items = items
        self.cache = cache
        self.config = config or DEFAULT_SIMILARITY_CONFIG

    async def similar(
        self,
        item: Item,
        limit: Optional[int] = None,
        exclude_ids: Iterable[str] = (),
    ) -> List[Item]:
        """
        Up to ``limit`` items most similar to ``item``, never more than the
        cached top 20.

        Args:
            item: Source item
            limit: Max items to return (default 12)
            exclude_ids: Ids to drop (seen items, items already on screen)

        Returns:
            Ranked items; empty when nothing qualifies or the catalog fails.
        """
        limit = limit if limit is not None else self.config.DEFAULT_LIMIT
        exclude: Set[str] = set(exclude_ids)

        cached = await self.cache.get_similar_cache(item.id)
        if cached is not None:
            self.logger.debug("Similar cache hit", item_id=item.id, cached=len(cached))
            return [c for c in cached if c.id not in exclude][:limit]

        pool = await self.items.query(CatalogFilter(active_only=True), limit=self.config.POOL_SIZE)
        if not pool:
            return []

        excluded = exclude | {item.id}
        candidates = [c for c in pool if c.id not in excluded]
        ranked = rank_similar(item, candidates, self.config)

        top = ranked[:self.config.CACHED_RESULTS]
        await self.cache.set_similar_cache(item.id, top)
        # Same ceiling as a cache hit so repeat calls agree
        return top[:limit]
