"""
Remote collaborator interfaces.

The engine talks to three remote services:
- Catalog (read-only): item queries and lookups
- Preferences: explicit preference record read/upsert
- Interactions: append-only interaction log and recent-history reads

Production implementations live in supabase_client.py. The in-memory
implementations below back offline runs and tests.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from personalization.models import InteractionRecord, InteractionType, Item, UserPreferences


# =============================================================================
# Query Types
# =============================================================================

# (column, descending) pairs, applied in order
OrderBy = Sequence[Tuple[str, bool]]


@dataclass
class CatalogFilter:
    """Filter for catalog queries. ``ids`` overrides gender/category."""
    gender: Optional[str] = None
    category: Optional[str] = None
    ids: Optional[List[str]] = None
    active_only: bool = True


def gender_values(gender: Optional[str]) -> Optional[List[str]]:
    """
    Item genders compatible with a viewer gender.

    "women"/"woman" -> women + unisex, "men"/"man" -> men + unisex,
    "both" or anything else -> None (no filter).
    """
    if not gender:
        return None
    g = gender.lower().strip()
    if g in ("women", "woman"):
        return ["women", "unisex"]
    if g in ("men", "man"):
        return ["men", "unisex"]
    return None


PROFILE_GENDER_MAP: Dict[str, str] = {
    "woman": "women",
    "man": "men",
}


# =============================================================================
# Interfaces
# =============================================================================

class CatalogClient(Protocol):
    async def query(
        self,
        filter: CatalogFilter,
        order: OrderBy = (),
        limit: int = 50,
        offset: int = 0,
    ) -> List[Item]:
        ...

    async def get_by_id(self, item_id: str) -> Optional[Item]:
        ...


class PreferenceClient(Protocol):
    async def read_preferences(self, viewer_id: str) -> Optional[UserPreferences]:
        ...

    async def read_profile_gender(self, viewer_id: str) -> Optional[str]:
        ...

    async def upsert_preferences(
        self,
        viewer_id: str,
        style_tags: List[str],
        favorite_colors: List[str],
        pattern_preferences: List[str],
        updated_at: datetime,
    ) -> None:
        ...


class InteractionClient(Protocol):
    async def insert_interaction(
        self,
        viewer_id: str,
        item_id: str,
        interaction_type: InteractionType,
        weight: float,
    ) -> None:
        ...

    async def query_recent_interactions(
        self,
        viewer_id: str,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[InteractionRecord]:
        """Newest first."""
        ...


# =============================================================================
# In-Memory Implementations
# =============================================================================

def _sort_value(item: Item, column: str):
    value = getattr(item, column, None)
    # None sorts below every real value
    return (value is not None, value if value is not None else 0)


class InMemoryCatalog:
    """Catalog backed by a list of items, in insertion order."""

    def __init__(self, items: Optional[List[Item]] = None):
        self._items: List[Item] = list(items or [])

    def add(self, item: Item) -> None:
        self._items.append(item)

    async def query(
        self,
        filter: CatalogFilter,
        order: OrderBy = (),
        limit: int = 50,
        offset: int = 0,
    ) -> List[Item]:
        items = list(self._items)
        if filter.active_only:
            items = [i for i in items if i.is_active]
        if filter.ids is not None:
            wanted = set(filter.ids)
            items = [i for i in items if i.id in wanted]
        else:
            if filter.category:
                items = [i for i in items if i.category == filter.category]
            genders = gender_values(filter.gender)
            if genders:
                items = [i for i in items if i.gender in genders]
        # Stable multi-key sort: apply the least significant key first
        for column, descending in reversed(list(order)):
            items.sort(key=lambda i: _sort_value(i, column), reverse=descending)
        return items[offset:offset + limit]

    async def get_by_id(self, item_id: str) -> Optional[Item]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None


class InMemoryPreferences:
    """Preference records and profile genders keyed by viewer id."""

    def __init__(
        self,
        preferences: Optional[Dict[str, UserPreferences]] = None,
        profile_genders: Optional[Dict[str, str]] = None,
    ):
        self.preferences: Dict[str, UserPreferences] = dict(preferences or {})
        self.profile_genders: Dict[str, str] = dict(profile_genders or {})
        self.upserts: List[Dict] = []

    async def read_preferences(self, viewer_id: str) -> Optional[UserPreferences]:
        return self.preferences.get(viewer_id)

    async def read_profile_gender(self, viewer_id: str) -> Optional[str]:
        gender = self.profile_genders.get(viewer_id)
        return PROFILE_GENDER_MAP.get(gender) if gender else None

    async def upsert_preferences(
        self,
        viewer_id: str,
        style_tags: List[str],
        favorite_colors: List[str],
        pattern_preferences: List[str],
        updated_at: datetime,
    ) -> None:
        existing = self.preferences.get(viewer_id)
        self.preferences[viewer_id] = UserPreferences(
            style_tags=style_tags,
            favorite_colors=favorite_colors,
            pattern_preferences=pattern_preferences,
            gender=existing.gender if existing else None,
        )
        self.upserts.append({
            "user_id": viewer_id,
            "style_tags": style_tags,
            "favorite_colors": favorite_colors,
            "pattern_preferences": pattern_preferences,
            "updated_at": updated_at,
        })


@dataclass
class _StoredInteraction:
    viewer_id: str
    item_id: str
    type: InteractionType
    weight: float
    created_at: datetime


@dataclass
class InMemoryInteractions:
    """Append-only interaction log."""
    clock: Callable[[], float] = time.time
    rows: List[_StoredInteraction] = field(default_factory=list)

    async def insert_interaction(
        self,
        viewer_id: str,
        item_id: str,
        interaction_type: InteractionType,
        weight: float,
    ) -> None:
        self.rows.append(_StoredInteraction(
            viewer_id=viewer_id,
            item_id=item_id,
            type=InteractionType(interaction_type),
            weight=weight,
            created_at=datetime.fromtimestamp(self.clock(), tz=timezone.utc),
        ))

    async def query_recent_interactions(
        self,
        viewer_id: str,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[InteractionRecord]:
        rows = [r for r in self.rows if r.viewer_id == viewer_id]
        if since is not None:
            rows = [r for r in rows if r.created_at >= since]
        rows = list(reversed(rows))
        if limit is not None:
            rows = rows[:limit]
        return [
            InteractionRecord(item_id=r.item_id, type=r.type, created_at=r.created_at)
            for r in rows
        ]
