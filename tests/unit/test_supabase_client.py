"""
Tests for the Supabase collaborators.

The async Supabase client is mocked: every postgrest builder method returns
the same builder, and ``execute`` is an AsyncMock carrying ``data``.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest


BUILDER_METHODS = ("select", "eq", "in_", "or_", "gte", "order", "range", "limit", "upsert", "insert")


@pytest.fixture
def mock_supabase_client():
    """Mock async Supabase client with a chainable query builder."""
    client = MagicMock()
    builder = MagicMock()
    for name in BUILDER_METHODS:
        getattr(builder, name).return_value = builder
    builder.execute = AsyncMock(return_value=MagicMock(data=[]))
    client.table.return_value = builder
    client.builder = builder
    return client


# =============================================================================
# Row Mapping
# =============================================================================

class TestItemFromRow:
    """Tests for item_from_row."""

    def test_full_row(self, sample_item_row):
        from personalization.supabase_client import item_from_row

        item = item_from_row(sample_item_row)

        assert item.id == "prod-001"
        assert item.brand_name == "Sunday Studio"
        assert item.brand_key == "Sunday Studio"
        assert item.pattern == "solid"
        assert item.attributes.materials == ["linen"]
        assert item.created_at == datetime(2024, 5, 1, 10, tzinfo=timezone.utc)

    def test_sparse_row_defaults(self):
        from personalization.supabase_client import item_from_row

        item = item_from_row({"id": 7, "price": None, "gender": None, "colors": None, "is_active": None})

        assert item.id == "7"
        assert item.price == 0.0
        assert item.gender == "unisex"
        assert item.colors == []
        assert item.is_active is True
        assert item.pattern is None
        assert item.brand_key == "unknown"

    def test_inactive_row(self):
        from personalization.supabase_client import item_from_row

        assert item_from_row({"id": "x", "is_active": False}).is_active is False


# =============================================================================
# Catalog
# =============================================================================

class TestSupabaseCatalog:
    """Tests for SupabaseCatalog."""

    async def test_query_builds_filters(self, mock_supabase_client, sample_item_row):
        from personalization.collaborators import CatalogFilter
        from personalization.supabase_client import SupabaseCatalog

        builder = mock_supabase_client.builder
        builder.execute.return_value = MagicMock(data=[sample_item_row])

        items = await SupabaseCatalog(mock_supabase_client).query(
            CatalogFilter(gender="woman", category="dresses"),
            order=(("is_featured", True), ("created_at", True)),
            limit=20,
            offset=40,
        )

        mock_supabase_client.table.assert_called_with("products")
        builder.or_.assert_called_once_with("is_active.eq.true,is_active.is.null")
        builder.eq.assert_called_once_with("category", "dresses")
        builder.in_.assert_called_once_with("gender", ["women", "unisex"])
        assert [c.args for c in builder.order.call_args_list] == [("is_featured",), ("created_at",)]
        builder.range.assert_called_once_with(40, 59)
        assert [i.id for i in items] == ["prod-001"]

    async def test_query_by_ids_ignores_gender(self, mock_supabase_client):
        from personalization.collaborators import CatalogFilter
        from personalization.supabase_client import SupabaseCatalog

        builder = mock_supabase_client.builder

        await SupabaseCatalog(mock_supabase_client).query(
            CatalogFilter(ids=["a", "b"], gender="men", active_only=False),
        )

        builder.in_.assert_called_once_with("id", ["a", "b"])
        builder.or_.assert_not_called()

    async def test_query_without_gender_filter(self, mock_supabase_client):
        from personalization.collaborators import CatalogFilter
        from personalization.supabase_client import SupabaseCatalog

        await SupabaseCatalog(mock_supabase_client).query(CatalogFilter(gender="both"))

        mock_supabase_client.builder.in_.assert_not_called()

    async def test_get_by_id_missing(self, mock_supabase_client):
        from personalization.supabase_client import SupabaseCatalog

        assert await SupabaseCatalog(mock_supabase_client).get_by_id("nope") is None

    async def test_failures_raise_collaborator_error(self, mock_supabase_client):
        from personalization.collaborators import CatalogFilter
        from personalization.errors import CollaboratorError
        from personalization.supabase_client import SupabaseCatalog

        mock_supabase_client.builder.execute.side_effect = RuntimeError("503")

        with pytest.raises(CollaboratorError):
            await SupabaseCatalog(mock_supabase_client).query(CatalogFilter())


# =============================================================================
# Preferences
# =============================================================================

class TestSupabasePreferences:
    """Tests for SupabasePreferences."""

    async def test_read_preferences_nulls_become_empty(self, mock_supabase_client):
        from personalization.supabase_client import SupabasePreferences

        mock_supabase_client.builder.execute.return_value = MagicMock(data=[{
            "style_tags": ["boho"],
            "favorite_colors": None,
            "pattern_preferences": None,
            "gender": "women",
        }])

        prefs = await SupabasePreferences(mock_supabase_client).read_preferences("u1")

        assert prefs.style_tags == ["boho"]
        assert prefs.favorite_colors == []
        assert prefs.gender == "women"

    async def test_read_preferences_missing(self, mock_supabase_client):
        from personalization.supabase_client import SupabasePreferences

        assert await SupabasePreferences(mock_supabase_client).read_preferences("u1") is None

    async def test_profile_gender_mapping(self, mock_supabase_client):
        from personalization.supabase_client import SupabasePreferences

        mock_supabase_client.builder.execute.return_value = MagicMock(data=[{"gender": "man"}])

        assert await SupabasePreferences(mock_supabase_client).read_profile_gender("u1") == "men"

    async def test_upsert_on_user_id(self, mock_supabase_client):
        from personalization.supabase_client import SupabasePreferences

        updated_at = datetime(2024, 6, 1, tzinfo=timezone.utc)

        await SupabasePreferences(mock_supabase_client).upsert_preferences(
            "u1", ["boho"], ["white"], ["floral"], updated_at,
        )

        mock_supabase_client.table.assert_called_with("user_preferences")
        mock_supabase_client.builder.upsert.assert_called_once_with(
            {
                "user_id": "u1",
                "style_tags": ["boho"],
                "favorite_colors": ["white"],
                "pattern_preferences": ["floral"],
                "updated_at": "2024-06-01T00:00:00+00:00",
            },
            on_conflict="user_id",
        )


# =============================================================================
# Interactions
# =============================================================================

class TestSupabaseInteractions:
    """Tests for SupabaseInteractions."""

    async def test_insert(self, mock_supabase_client):
        from personalization.models import InteractionType
        from personalization.supabase_client import SupabaseInteractions

        await SupabaseInteractions(mock_supabase_client).insert_interaction("u1", "p1", InteractionType.SAVE, 0.7)

        mock_supabase_client.table.assert_called_with("user_interactions")
        mock_supabase_client.builder.insert.assert_called_once_with({
            "user_id": "u1",
            "product_id": "p1",
            "interaction_type": "save",
            "interaction_value": 0.7,
        })

    async def test_query_recent(self, mock_supabase_client):
        from personalization.models import InteractionType
        from personalization.supabase_client import SupabaseInteractions

        builder = mock_supabase_client.builder
        builder.execute.return_value = MagicMock(data=[
            {"product_id": "p2", "interaction_type": "like", "created_at": "2024-05-31T00:00:00+00:00"},
            {"product_id": "p1", "interaction_type": "share", "created_at": "2024-05-30T00:00:00+00:00"},
            {"product_id": "p1", "interaction_type": "view", "created_at": "2024-05-29T00:00:00+00:00"},
        ])
        since = datetime(2024, 5, 1, tzinfo=timezone.utc)

        records = await SupabaseInteractions(mock_supabase_client).query_recent_interactions("u1", since=since, limit=200)

        builder.gte.assert_called_once_with("created_at", since.isoformat())
        builder.order.assert_called_once_with("created_at", desc=True)
        builder.limit.assert_called_once_with(200)
        assert [(r.item_id, r.type) for r in records] == [
            ("p2", InteractionType.LIKE),
            ("p1", InteractionType.VIEW),
        ]

    async def test_insert_failure_raises_collaborator_error(self, mock_supabase_client):
        from personalization.errors import CollaboratorError
        from personalization.models import InteractionType
        from personalization.supabase_client import SupabaseInteractions

        mock_supabase_client.builder.execute.side_effect = RuntimeError("timeout")

        with pytest.raises(CollaboratorError):
            await SupabaseInteractions(mock_supabase_client).insert_interaction("u1", "p1", InteractionType.VIEW, 0.2)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
