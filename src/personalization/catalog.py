"""
Cached item lookups over the catalog collaborator.

Single-item reads go through the 60-minute product cache. Remote failures
degrade to "absent" / empty results.
"""

from typing import List, Optional

from core.logging import LoggerMixin
from personalization.collaborators import CatalogClient, CatalogFilter, OrderBy
from personalization.local_cache import LocalCache
from personalization.models import Item


class ItemRepository(LoggerMixin):
    """Read-through access to catalog items."""

    def __init__(self, catalog: CatalogClient, cache: LocalCache):
        self.catalog = catalog
        self.cache = cache

    async def get_item(self, item_id: str) -> Optional[Item]:
        cached = await self.cache.get_cached_product(item_id)
        if cached is not None:
            return cached
        try:
            item = await self.catalog.get_by_id(item_id)
        except Exception as e:
            self.logger.warning("Item lookup failed", item_id=item_id, error=str(e))
            return None
        if item is not None:
            await self.cache.set_cached_product(item)
        return item

    async def get_items(self, item_ids: List[str]) -> List[Item]:
        """Items for ``item_ids`` in the requested order; unknown ids dropped."""
        if not item_ids:
            return []
        try:
            items = await self.catalog.query(
                CatalogFilter(ids=list(item_ids), active_only=False),
                limit=len(item_ids),
            )
        except Exception as e:
            self.logger.warning("Item batch lookup failed", count=len(item_ids), error=str(e))
            return []
        by_id = {item.id: item for item in items}
        return [by_id[i] for i in item_ids if i in by_id]

    async def query(
        self,
        filter: CatalogFilter,
        order: OrderBy = (),
        limit: int = 50,
        offset: int = 0,
    ) -> List[Item]:
        """Catalog query that returns [] on failure."""
        try:
            return await self.catalog.query(filter, order=order, limit=limit, offset=offset)
        except Exception as e:
            self.logger.warning("Catalog query failed", error=str(e), limit=limit, offset=offset)
            return []
