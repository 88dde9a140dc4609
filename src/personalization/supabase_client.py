"""
Supabase implementations of the remote collaborators.

Tables:
- products           catalog rows (read-only)
- user_preferences   one row per user, upserted on user_id
- users              profile, used only for the gender fallback
- user_interactions  append-only interaction log

Every method raises CollaboratorError on failure; callers in the engine
decide how to degrade.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from supabase import AsyncClient

from core.logging import get_logger
from core.utils import safe_get
from personalization.collaborators import (
    CatalogFilter,
    OrderBy,
    PROFILE_GENDER_MAP,
    gender_values,
)
from personalization.errors import CollaboratorError
from personalization.models import (
    InteractionRecord,
    InteractionType,
    Item,
    ItemAttributes,
    UserPreferences,
)


logger = get_logger(__name__)


# =============================================================================
# Row Mapping
# =============================================================================

def _list_or_empty(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def item_from_row(row: Dict[str, Any]) -> Item:
    """
    Map a ``products`` row onto an Item.

    Missing arrays become empty lists, a null gender becomes "unisex",
    a null is_active counts as active (legacy rows).
    """
    attrs = row.get("attributes") or {}
    return Item(
        id=str(row["id"]),
        title=row.get("title") or "",
        description=row.get("description") or "",
        price=float(row.get("price") or 0),
        sale_price=float(row["sale_price"]) if row.get("sale_price") is not None else None,
        category=row.get("category") or "",
        subcategory=row.get("subcategory"),
        gender=row.get("gender") or "unisex",
        colors=_list_or_empty(row.get("colors")),
        style=_list_or_empty(row.get("style")),
        occasion=_list_or_empty(row.get("occasion")),
        season=_list_or_empty(row.get("season")),
        attributes=ItemAttributes(
            pattern=safe_get(attrs, "pattern"),
            materials=_list_or_empty(safe_get(attrs, "materials")),
            fit=safe_get(attrs, "fit") or row.get("fit_type"),
        ),
        image_urls=_list_or_empty(row.get("image_urls")),
        embedding=row.get("embedding"),
        is_active=row.get("is_active") is not False,
        is_featured=bool(row.get("is_featured")),
        click_count=int(row.get("click_count") or 0),
        created_at=row.get("created_at"),
        brand_id=row.get("brand_id"),
        brand_name=row.get("source_brand_name"),
    )


# =============================================================================
# Catalog
# =============================================================================

class SupabaseCatalog:
    """Catalog queries against the ``products`` table."""

    def __init__(self, client: AsyncClient):
        self.supabase = client

    async def query(
        self,
        filter: CatalogFilter,
        order: OrderBy = (),
        limit: int = 50,
        offset: int = 0,
    ) -> List[Item]:
        try:
            query = self.supabase.table("products").select("*")
            if filter.active_only:
                query = query.or_("is_active.eq.true,is_active.is.null")
            if filter.ids is not None:
                query = query.in_("id", filter.ids)
            else:
                if filter.category:
                    query = query.eq("category", filter.category)
                genders = gender_values(filter.gender)
                if genders:
                    query = query.in_("gender", genders)
            for column, descending in order:
                query = query.order(column, desc=descending)
            result = await query.range(offset, offset + limit - 1).execute()
        except Exception as e:
            raise CollaboratorError(f"Catalog query failed: {e}") from e

        return [item_from_row(row) for row in (result.data or [])]

    async def get_by_id(self, item_id: str) -> Optional[Item]:
        try:
            result = await (
                self.supabase.table("products")
                .select("*")
                .eq("id", item_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise CollaboratorError(f"Catalog lookup failed for {item_id}: {e}") from e

        rows = result.data or []
        return item_from_row(rows[0]) if rows else None


# =============================================================================
# Preferences
# =============================================================================

class SupabasePreferences:
    """Reads and upserts ``user_preferences``; reads ``users.gender``."""

    def __init__(self, client: AsyncClient):
        self.supabase = client

    async def read_preferences(self, viewer_id: str) -> Optional[UserPreferences]:
        try:
            result = await (
                self.supabase.table("user_preferences")
                .select("style_tags, favorite_colors, pattern_preferences, gender")
                .eq("user_id", viewer_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise CollaboratorError(f"Preference read failed: {e}") from e

        rows = result.data or []
        if not rows:
            return None
        return UserPreferences(**rows[0])

    async def read_profile_gender(self, viewer_id: str) -> Optional[str]:
        try:
            result = await (
                self.supabase.table("users")
                .select("gender")
                .eq("id", viewer_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise CollaboratorError(f"Profile read failed: {e}") from e

        rows = result.data or []
        gender = rows[0].get("gender") if rows else None
        return PROFILE_GENDER_MAP.get(gender) if gender else None

    async def upsert_preferences(
        self,
        viewer_id: str,
        style_tags: List[str],
        favorite_colors: List[str],
        pattern_preferences: List[str],
        updated_at: datetime,
    ) -> None:
        try:
            await (
                self.supabase.table("user_preferences")
                .upsert(
                    {
                        "user_id": viewer_id,
                        "style_tags": style_tags,
                        "favorite_colors": favorite_colors,
                        "pattern_preferences": pattern_preferences,
                        "updated_at": updated_at.isoformat(),
                    },
                    on_conflict="user_id",
                )
                .execute()
            )
        except Exception as e:
            raise CollaboratorError(f"Preference upsert failed: {e}") from e


# =============================================================================
# Interactions
# =============================================================================

class SupabaseInteractions:
    """Append and read ``user_interactions``."""

    def __init__(self, client: AsyncClient):
        self.supabase = client

    async def insert_interaction(
        self,
        viewer_id: str,
        item_id: str,
        interaction_type: InteractionType,
        weight: float,
    ) -> None:
        try:
            await self.supabase.table("user_interactions").insert({
                "user_id": viewer_id,
                "product_id": item_id,
                "interaction_type": InteractionType(interaction_type).value,
                "interaction_value": weight,
            }).execute()
        except Exception as e:
            raise CollaboratorError(f"Interaction insert failed: {e}") from e

    async def query_recent_interactions(
        self,
        viewer_id: str,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[InteractionRecord]:
        try:
            query = (
                self.supabase.table("user_interactions")
                .select("product_id, interaction_type, created_at")
                .eq("user_id", viewer_id)
            )
            if since is not None:
                query = query.gte("created_at", since.isoformat())
            query = query.order("created_at", desc=True)
            if limit is not None:
                query = query.limit(limit)
            result = await query.execute()
        except Exception as e:
            raise CollaboratorError(f"Interaction query failed: {e}") from e

        records = []
        for row in result.data or []:
            try:
                interaction_type = InteractionType(row.get("interaction_type"))
            except ValueError:
                logger.debug("Skipping unknown interaction type", value=row.get("interaction_type"))
                continue
            records.append(InteractionRecord(
                item_id=str(row["product_id"]),
                type=interaction_type,
                created_at=row.get("created_at"),
            ))
        return records
