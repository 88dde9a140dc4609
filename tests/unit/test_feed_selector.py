"""
Tests for feed tier selection, ranking, caching and paging.
"""

from unittest.mock import AsyncMock

import pytest

from conftest import make_item


@pytest.fixture
def interaction_log(local_cache, in_memory_interactions, background):
    from personalization.interaction_log import InteractionLog
    return InteractionLog(local_cache, in_memory_interactions, background)


@pytest.fixture
def selector(in_memory_catalog, local_cache, interaction_log, in_memory_preferences, rng):
    from personalization.catalog import ItemRepository
    from personalization.feed_selector import FeedSelector

    return FeedSelector(
        ItemRepository(in_memory_catalog, local_cache),
        local_cache,
        interaction_log,
        in_memory_preferences,
        rng=rng,
    )


# =============================================================================
# Tier Selection
# =============================================================================

class TestDetermineFeedType:
    """Tests for determine_feed_type precedence."""

    async def test_anonymous_is_cold_start(self, selector):
        from personalization.models import FeedType

        assert await selector.determine_feed_type(None) is FeedType.COLD_START

    async def test_new_viewer_is_cold_start(self, selector):
        from personalization.models import FeedType

        assert await selector.determine_feed_type("u1") is FeedType.COLD_START

    async def test_explicit_taste_is_preference(self, selector, in_memory_preferences):
        from personalization.models import FeedType, UserPreferences

        in_memory_preferences.preferences["u1"] = UserPreferences(favorite_colors=["black"])

        assert await selector.determine_feed_type("u1") is FeedType.PREFERENCE

    async def test_patterns_alone_are_not_explicit_taste(self, selector, in_memory_preferences):
        from personalization.models import FeedType, UserPreferences

        in_memory_preferences.preferences["u1"] = UserPreferences(pattern_preferences=["floral"])

        assert await selector.determine_feed_type("u1") is FeedType.COLD_START

    async def test_history_beats_preferences(self, selector, in_memory_preferences, interaction_log, background):
        from personalization.models import FeedType, InteractionType, UserPreferences

        in_memory_preferences.preferences["u1"] = UserPreferences(style_tags=["minimal"])
        await interaction_log.log("u1", "item-00", InteractionType.LIKE)
        await background.drain()

        assert await selector.determine_feed_type("u1") is FeedType.BEHAVIORAL


class TestViewerGender:
    """Tests for get_viewer_gender."""

    async def test_preference_gender_wins(self, selector, in_memory_preferences):
        from personalization.models import UserPreferences

        in_memory_preferences.preferences["u1"] = UserPreferences(gender="men")
        in_memory_preferences.profile_genders["u1"] = "woman"

        assert await selector.get_viewer_gender("u1") == "men"

    async def test_profile_gender_is_mapped(self, selector, in_memory_preferences):
        in_memory_preferences.profile_genders["u1"] = "woman"

        assert await selector.get_viewer_gender("u1") == "women"

    async def test_unknown_gender(self, selector):
        assert await selector.get_viewer_gender("u1") is None


# =============================================================================
# Ranking
# =============================================================================

class TestColdStart:
    """Tests for the cold start tier."""

    async def test_featured_then_newest_with_brand_cap(self, selector):
        from personalization.models import FeedOptions, FeedType

        result = await selector.load_feed(None, FeedOptions(limit=20))

        assert result.feed_type is FeedType.COLD_START
        assert result.from_cache is False
        # Featured newest first, then the rest newest first; brand-1 is
        # exhausted by the two featured items
        ids = result.item_ids
        assert ids[:2] == ["item-09", "item-05"]
        assert ids[2:5] == ["item-11", "item-10", "item-08"]
        assert len(ids) == 8

    async def test_gender_filter(self, in_memory_catalog, selector):
        from personalization.models import FeedOptions

        in_memory_catalog.add(make_item("mens-1", gender="men", brand_name="m", is_featured=True))
        in_memory_catalog.add(make_item("uni-1", gender="unisex", brand_name="u", is_featured=True))

        women = await selector.load_feed(None, FeedOptions(gender="women"))
        men = await selector.load_feed("u-men", FeedOptions(gender="men"))

        assert "mens-1" not in women.item_ids
        assert "uni-1" in women.item_ids
        assert men.item_ids == ["mens-1", "uni-1"]


class TestPreferenceTier:
    """Tests for the preference tier."""

    async def test_matching_items_rank_first(self, selector, in_memory_preferences):
        from personalization.models import FeedType, UserPreferences

        in_memory_preferences.preferences["u1"] = UserPreferences(style_tags=["minimal"], favorite_colors=["black"])

        result = await selector.load_feed("u1")

        assert result.feed_type is FeedType.PREFERENCE
        # item-00 and item-06 match style and color (score >= 5) and outrank
        # any jittered single-style match (score <= 3.5)
        assert set(result.item_ids[:2]) == {"item-00", "item-06"}

    async def test_ranking_is_reproducible_with_seeded_rng(
        self, in_memory_catalog, local_cache, interaction_log, in_memory_preferences
    ):
        import random

        from personalization.catalog import ItemRepository
        from personalization.feed_selector import FeedSelector
        from personalization.models import UserPreferences

        in_memory_preferences.preferences["u1"] = UserPreferences(style_tags=["minimal"])

        def build():
            return FeedSelector(
                ItemRepository(in_memory_catalog, local_cache),
                local_cache,
                interaction_log,
                in_memory_preferences,
                rng=random.Random(7),
            )

        first = await build().load_feed("u1", force_refresh=True)
        second = await build().load_feed("u1", force_refresh=True)

        assert first.item_ids == second.item_ids


class TestBehavioralTier:
    """Tests for the behavioral tier."""

    async def test_similar_to_anchors_rank_first(self, selector, interaction_log, background):
        from personalization.models import FeedType, InteractionType

        # item-00: minimal + black; liking it pulls other minimal/black items up
        await interaction_log.log("u1", "item-00", InteractionType.PURCHASE)
        await background.drain()

        result = await selector.load_feed("u1")

        assert result.feed_type is FeedType.BEHAVIORAL
        assert result.item_ids[0] == "item-06"

    async def test_seen_items_are_excluded(self, selector, interaction_log, background):
        from personalization.models import InteractionType

        await interaction_log.log("u1", "item-06", InteractionType.VIEW)
        await interaction_log.log("u1", "item-03", InteractionType.DISMISS)
        await background.drain()

        result = await selector.load_feed("u1")

        assert "item-06" not in result.item_ids
        assert "item-03" not in result.item_ids


# =============================================================================
# Caching and Paging
# =============================================================================

class TestFeedCaching:
    """Tests for first-page caching."""

    async def test_first_page_is_cached(self, selector):
        first = await selector.load_feed("u1")
        second = await selector.load_feed("u1")

        assert first.from_cache is False
        assert second.from_cache is True
        assert second.item_ids == first.item_ids

    async def test_guest_cache_key(self, selector, local_cache):
        await selector.load_feed(None)

        assert await local_cache.get_feed_cache("guest") is not None

    async def test_later_pages_bypass_cache(self, selector, local_cache):
        from personalization.models import FeedOptions

        await selector.load_feed("u1", FeedOptions(limit=2))
        page_two = await selector.load_feed("u1", FeedOptions(limit=2, offset=2))

        assert page_two.from_cache is False
        cached = await local_cache.get_feed_cache("u1")
        assert len(cached.items) == 2

    async def test_force_refresh_skips_cache_read(self, selector):
        await selector.load_feed("u1")

        result = await selector.load_feed("u1", force_refresh=True)

        assert result.from_cache is False

    async def test_refresh_clears_cache(self, selector, local_cache):
        from personalization.models import FeedOptions

        await selector.load_feed("u1")
        result = await selector.refresh("u1", FeedOptions(offset=4))

        assert result.from_cache is False
        assert (await local_cache.get_feed_cache("u1")).items[0].id == result.item_ids[0]

    async def test_cache_expires(self, selector, clock):
        await selector.load_feed("u1")
        clock.advance(15 * 60 + 1)

        assert (await selector.load_feed("u1")).from_cache is False

    async def test_empty_feed_is_not_cached(self, local_cache, interaction_log, in_memory_preferences):
        from personalization.catalog import ItemRepository
        from personalization.collaborators import InMemoryCatalog
        from personalization.feed_selector import FeedSelector

        selector = FeedSelector(
            ItemRepository(InMemoryCatalog([]), local_cache),
            local_cache,
            interaction_log,
            in_memory_preferences,
        )

        result = await selector.load_feed("u1")

        assert result.items == []
        assert await local_cache.get_feed_cache("u1") is None


class TestFeedDegradation:
    """Failures degrade instead of raising."""

    async def test_preference_read_failure_serves_cold_start(self, selector, in_memory_preferences):
        from personalization.models import FeedType

        in_memory_preferences.read_preferences = AsyncMock(side_effect=ConnectionError("offline"))
        in_memory_preferences.read_profile_gender = AsyncMock(side_effect=ConnectionError("offline"))

        result = await selector.load_feed("u1")

        assert result.feed_type is FeedType.COLD_START
        assert len(result.items) > 0

    async def test_catalog_failure_serves_empty_page(self, local_cache, interaction_log, in_memory_preferences):
        from personalization.catalog import ItemRepository
        from personalization.feed_selector import FeedSelector

        catalog = AsyncMock()
        catalog.query.side_effect = ConnectionError("offline")
        selector = FeedSelector(
            ItemRepository(catalog, local_cache),
            local_cache,
            interaction_log,
            in_memory_preferences,
        )

        result = await selector.load_feed(None)

        assert result.items == []

    async def test_ranking_error_falls_back_to_cold_start(self, selector, in_memory_preferences, interaction_log, background):
        from personalization.models import FeedType, InteractionType

        await interaction_log.log("u1", "item-00", InteractionType.LIKE)
        await background.drain()
        selector.behavioral_feed = AsyncMock(side_effect=RuntimeError("bad anchor"))

        result = await selector.load_feed("u1")

        assert result.feed_type is FeedType.COLD_START
        assert len(result.items) > 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
