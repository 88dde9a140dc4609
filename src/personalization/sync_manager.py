"""
Preference sync triggers.

Learned style counters are flushed to the remote preference record when:
- an interaction with |weight| >= 0.5 happens (like, save, purchase); the
  viewer's feed cache is invalidated right after so the next load reflects it
- every 10th logged view (persisted cadence counter)
- the app goes to background with a viewer session active

A flush always sends the current all-time top-N, never a delta, so
repeated or racing flushes are harmless. Failures are logged and the
counters stay local until the next trigger.
"""

from datetime import datetime, timezone
from typing import Optional

from config.constants import DEFAULT_SYNC_CONFIG, SyncConfig
from core.logging import LoggerMixin
from personalization.background import BackgroundTasks
from personalization.collaborators import PreferenceClient
from personalization.local_cache import LocalCache
from personalization.models import InteractionType
from personalization.style_counters import StyleCounterStore


class SyncManager(LoggerMixin):
    """Decides when to flush counters and performs the flush."""

    def __init__(
        self,
        counters: StyleCounterStore,
        cache: LocalCache,
        preferences: PreferenceClient,
        background: BackgroundTasks,
        config: SyncConfig = None,
    ):
        self.counters = counters
        self.cache = cache
        self.preferences = preferences
        self.background = background
        self.config = config or DEFAULT_SYNC_CONFIG

    async def flush(self, viewer_id: str) -> bool:
        """
        Upsert the viewer's derived preferences.

        Returns:
            True if a remote write succeeded; False if there was nothing to
            send or the write failed.
        """
        derived = await self.counters.derived_preferences(viewer_id)
        if derived.is_empty:
            return False

        now = self.cache.now()
        try:
            await self.preferences.upsert_preferences(
                viewer_id,
                derived.style_tags,
                derived.favorite_colors,
                derived.pattern_preferences,
                datetime.fromtimestamp(now, tz=timezone.utc),
            )
        except Exception as e:
            self.logger.warning("Preference sync failed", viewer_id=viewer_id, error=str(e))
            return False

        await self.counters.mark_synced(viewer_id, now)
        self.logger.debug(
            "Preferences synced",
            viewer_id=viewer_id,
            styles=derived.style_tags,
            colors=derived.favorite_colors,
            patterns=derived.pattern_preferences,
        )
        return True

    async def on_interaction(self, viewer_id: str, interaction_type: InteractionType) -> None:
        """Apply the weight-threshold and view-cadence triggers."""
        interaction_type = InteractionType(interaction_type)

        if abs(interaction_type.weight) >= self.config.SYNC_WEIGHT_THRESHOLD:
            await self.flush(viewer_id)
            await self.cache.clear_feed_cache(viewer_id)

        if interaction_type is InteractionType.VIEW:
            count = await self.cache.increment_view_count(viewer_id)
            if count > 0 and count % self.config.VIEW_CADENCE == 0:
                self.background.dispatch(self.flush(viewer_id), label="cadence_sync", owner=viewer_id)

    def on_app_background(self, viewer_id: Optional[str]) -> None:
        """Flush in the background when the app is backgrounded."""
        if not viewer_id:
            return
        self.background.dispatch(self.flush(viewer_id), label="background_sync", owner=viewer_id)
