"""
Per-viewer session state.

A ViewerSession is the single owner of one viewer's engine state for the
lifetime of an app session. It keeps what the UI is currently showing so
background refreshes only swap results when the item order actually
changed, and it turns app lifecycle events into sync and refresh work.

Refresh policy:
- open_feed serves the cache when possible; a cache hit schedules a silent
  forced refetch in the background
- returning to foreground after 5+ minutes in background schedules a
  silent refetch
- pull_to_refresh clears the cache and fetches uncached
- load_more (offset > 0) never touches the cache

Superseded results are not cancelled; a silent refresh simply loses if
the displayed ids already match.
"""

import inspect
from typing import Any, Callable, List, Optional

from config.constants import DEFAULT_FEED_CONFIG, FeedConfig
from core.logging import LoggerMixin, bind_viewer
from personalization.background import BackgroundTasks
from personalization.catalog import ItemRepository
from personalization.feed_selector import FeedSelector
from personalization.interaction_log import InteractionLog
from personalization.local_cache import LocalCache
from personalization.models import FeedOptions, FeedResult, InteractionType, Item
from personalization.similarity import SimilarityEngine
from personalization.style_counters import StyleCounterStore
from personalization.sync_manager import SyncManager


FeedListener = Callable[[FeedResult], Any]


class ViewerSession(LoggerMixin):
    """One viewer's feed, interactions and lifecycle."""

    def __init__(
        self,
        viewer_id: Optional[str],
        feed_selector: FeedSelector,
        interaction_log: InteractionLog,
        counters: StyleCounterStore,
        sync_manager: SyncManager,
        similarity: SimilarityEngine,
        items: ItemRepository,
        cache: LocalCache,
        background: BackgroundTasks,
        on_feed_updated: Optional[FeedListener] = None,
        config: FeedConfig = None,
    ):
        self.viewer_id = viewer_id or None
        self.feed_selector = feed_selector
        self.interaction_log = interaction_log
        self.counters = counters
        self.sync_manager = sync_manager
        self.similarity = similarity
        self.items = items
        self.cache = cache
        self.background = background
        self.on_feed_updated = on_feed_updated
        self.config = config or DEFAULT_FEED_CONFIG

        self.displayed: Optional[FeedResult] = None
        self.backgrounded_at: Optional[float] = None

    @property
    def is_anonymous(self) -> bool:
        return self.viewer_id is None

    @property
    def displayed_ids(self) -> List[str]:
        return self.displayed.item_ids if self.displayed is not None else []

    # =========================================================================
    # Feed
    # =========================================================================

    async def open_feed(self, options: Optional[FeedOptions] = None) -> FeedResult:
        """First page, from cache when fresh; cache hits refresh silently."""
        bind_viewer(self.viewer_id)
        options = (options or FeedOptions()).model_copy(update={"offset": 0})
        result = await self.feed_selector.load_feed(self.viewer_id, options)
        self.displayed = result
        if result.from_cache:
            self.background.dispatch(
                self.silent_refresh(options), label="silent_refresh", owner=self.viewer_id,
            )
        return result

    async def load_more(self, offset: int, limit: Optional[int] = None) -> List[Item]:
        """A later page; an empty list means end of results."""
        bind_viewer(self.viewer_id)
        options = FeedOptions(offset=offset, limit=limit or self.config.DEFAULT_LIMIT)
        result = await self.feed_selector.load_feed(self.viewer_id, options)
        return result.items

    async def pull_to_refresh(self, options: Optional[FeedOptions] = None) -> FeedResult:
        bind_viewer(self.viewer_id)
        result = await self.feed_selector.refresh(self.viewer_id, options)
        self.displayed = result
        return result

    async def silent_refresh(self, options: Optional[FeedOptions] = None) -> bool:
        """
        Refetch the first page uncached and swap it in if the ids changed.

        Returns:
            True if the displayed feed was replaced.
        """
        options = (options or FeedOptions()).model_copy(update={"offset": 0})
        result = await self.feed_selector.load_feed(self.viewer_id, options, force_refresh=True)
        if not result.items or result.item_ids == self.displayed_ids:
            return False

        self.displayed = result
        self.logger.debug("Silent refresh replaced feed", viewer_id=self.viewer_id, count=len(result.items))
        if self.on_feed_updated is not None:
            outcome = self.on_feed_updated(result)
            if inspect.isawaitable(outcome):
                await outcome
        return True

    # =========================================================================
    # Interactions
    # =========================================================================

    async def record_interaction(self, item: Item, interaction_type: InteractionType) -> bool:
        """
        Log an interaction; learning and sync run in the background.

        Returns:
            Whether the interaction was recorded (False if anonymous or a
            deduplicated view).
        """
        bind_viewer(self.viewer_id)
        recorded = await self.interaction_log.log(self.viewer_id, item.id, interaction_type)
        if recorded:
            self.background.dispatch(self._learn(item, interaction_type), label="learn", owner=self.viewer_id)
        return recorded

    async def _learn(self, item: Item, interaction_type: InteractionType) -> None:
        await self.counters.update(self.viewer_id, item, interaction_type)
        await self.sync_manager.on_interaction(self.viewer_id, interaction_type)

    # =========================================================================
    # Items
    # =========================================================================

    async def get_item(self, item_id: str) -> Optional[Item]:
        return await self.items.get_item(item_id)

    async def similar_items(
        self,
        item: Item,
        limit: Optional[int] = None,
        exclude_ids: Optional[List[str]] = None,
    ) -> List[Item]:
        """Similar items minus anything this viewer has already seen."""
        seen = await self.cache.get_seen_ids(self.viewer_id) if self.viewer_id else []
        return await self.similarity.similar(item, limit, list(exclude_ids or []) + seen)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def on_background(self) -> None:
        self.backgrounded_at = self.cache.now()
        self.sync_manager.on_app_background(self.viewer_id)

    def on_foreground(self) -> None:
        backgrounded_at, self.backgrounded_at = self.backgrounded_at, None
        if backgrounded_at is None:
            return
        if self.cache.now() - backgrounded_at >= self.config.SILENT_REFRESH_AFTER_SECONDS:
            self.background.dispatch(self.silent_refresh(), label="silent_refresh", owner=self.viewer_id)

    async def retake_style_quiz(self) -> None:
        if self.viewer_id:
            await self.counters.reset(self.viewer_id)

    async def logout(self) -> None:
        if self.viewer_id:
            await self.cache.clear_all(self.viewer_id)
        self.displayed = None

    async def close(self) -> None:
        """Wait for the background work dispatched for this viewer."""
        await self.background.drain(owner=self.viewer_id)
