"""
Interaction logging with view deduplication.

Views of the same item are suppressed for 24 hours; like, save, dismiss
and purchase are never deduplicated. Accepted events update local state
(dedup marker, seen ids, recently viewed) and are written to the remote
interaction log in the background.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from config.constants import DEFAULT_FEED_CONFIG, FeedConfig
from core.logging import LoggerMixin
from personalization.background import BackgroundTasks
from personalization.collaborators import InteractionClient
from personalization.kv_store import Namespace
from personalization.local_cache import LocalCache
from personalization.models import InteractionType


class InteractionLog(LoggerMixin):
    """Records viewer actions and answers history questions about them."""

    def __init__(
        self,
        cache: LocalCache,
        interactions: InteractionClient,
        background: BackgroundTasks,
        config: FeedConfig = None,
    ):
        self.cache = cache
        self.interactions = interactions
        self.background = background
        self.config = config or DEFAULT_FEED_CONFIG

    # =========================================================================
    # Logging
    # =========================================================================

    async def log(
        self,
        viewer_id: Optional[str],
        item_id: str,
        interaction_type: InteractionType,
    ) -> bool:
        """
        Record an interaction.

        Returns:
            True if recorded; False for anonymous viewers and for views
            inside the dedup window (nothing is written in that case).
        """
        if not viewer_id:
            return False

        interaction_type = InteractionType(interaction_type)

        if interaction_type is InteractionType.VIEW:
            # Check and mark under one lock so two concurrent views log once
            async with self.cache.lock(Namespace.LAST_VIEW, item_id):
                if not await self.cache.can_log_view(item_id):
                    self.logger.debug("View deduplicated", viewer_id=viewer_id, item_id=item_id)
                    return False
                await self.cache.mark_view_logged(item_id)
            await self.cache.add_seen_id(viewer_id, item_id)
            await self.cache.add_recently_viewed(viewer_id, item_id)
        elif interaction_type is InteractionType.DISMISS:
            # Dismissed items leave the candidate pools instead of touching counters
            await self.cache.add_seen_id(viewer_id, item_id)

        self.background.dispatch(
            self._insert_remote(viewer_id, item_id, interaction_type),
            label="insert_interaction",
            owner=viewer_id,
        )
        return True

    async def _insert_remote(
        self,
        viewer_id: str,
        item_id: str,
        interaction_type: InteractionType,
    ) -> None:
        try:
            await self.interactions.insert_interaction(
                viewer_id, item_id, interaction_type, interaction_type.weight,
            )
        except Exception as e:
            self.logger.warning(
                "Interaction insert failed",
                viewer_id=viewer_id,
                item_id=item_id,
                interaction_type=interaction_type.value,
                error=str(e),
            )

    # =========================================================================
    # History
    # =========================================================================

    def _history_cutoff(self) -> datetime:
        now = datetime.fromtimestamp(self.cache.now(), tz=timezone.utc)
        return now - timedelta(days=self.config.HISTORY_WINDOW_DAYS)

    async def has_history(self, viewer_id: str) -> bool:
        """
        Any interaction in the last 30 days.

        Falls back to "recently viewed is non-empty" if the remote log
        can't be read.
        """
        try:
            records = await self.interactions.query_recent_interactions(
                viewer_id, since=self._history_cutoff(), limit=1,
            )
            # A successful empty answer is final, even with local views whose
            # inserts have not landed yet
            return len(records) > 0
        except Exception as e:
            self.logger.warning("History check failed, using local fallback", viewer_id=viewer_id, error=str(e))

        recent = await self.cache.get_recently_viewed(viewer_id)
        return len(recent) > 0

    async def scores(self, viewer_id: str) -> Dict[str, float]:
        """
        Summed interaction weight per item over the newest 200 interactions.

        Falls back to a flat view weight for every recently viewed item.
        """
        scores: Dict[str, float] = {}
        try:
            records = await self.interactions.query_recent_interactions(
                viewer_id, limit=self.config.SCORE_HISTORY_LIMIT,
            )
        except Exception as e:
            self.logger.warning("Interaction scores failed, using local fallback", viewer_id=viewer_id, error=str(e))
        else:
            for record in records:
                scores[record.item_id] = scores.get(record.item_id, 0.0) + record.type.weight
            return scores

        for item_id in await self.cache.get_recently_viewed(viewer_id):
            scores[item_id] = scores.get(item_id, 0.0) + self.config.FALLBACK_INTERACTION_WEIGHT
        return scores
