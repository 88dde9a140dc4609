"""
Pydantic models for the personalization engine.

Models cover:
- Catalog items (read-only input)
- Interactions and their weights
- Learned style counters and explicit preferences
- Local cache records (feed, similar items, product)
- Feed request/response shapes
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config.constants import DEFAULT_FEED_CONFIG, INTERACTION_WEIGHTS


# =============================================================================
# Enums
# =============================================================================

class InteractionType(str, Enum):
    """User action recorded against an item."""
    VIEW = "view"
    LIKE = "like"
    SAVE = "save"
    DISMISS = "dismiss"
    PURCHASE = "purchase"

    @property
    def weight(self) -> float:
        return INTERACTION_WEIGHTS[self.value]


class FeedType(str, Enum):
    """Ranking strategy selected for a viewer."""
    COLD_START = "cold_start"    # Anonymous, or no history and no explicit taste
    PREFERENCE = "preference"    # Quiz style tags / colors on file, no history
    BEHAVIORAL = "behavioral"    # Interaction history in the last 30 days


# =============================================================================
# Catalog Item
# =============================================================================

class ItemAttributes(BaseModel):
    """Free-form attribute bag; only ``pattern`` takes part in scoring."""
    model_config = ConfigDict(extra="allow", frozen=True)

    pattern: Optional[str] = None
    materials: List[str] = Field(default_factory=list)
    fit: Optional[str] = None


class Item(BaseModel):
    """A catalog product. Immutable from the engine's point of view."""
    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    description: str = ""
    price: float = 0.0
    sale_price: Optional[float] = None
    category: str = ""
    subcategory: Optional[str] = None
    gender: str = "unisex"
    colors: List[str] = Field(default_factory=list)
    style: List[str] = Field(default_factory=list)
    occasion: List[str] = Field(default_factory=list)
    season: List[str] = Field(default_factory=list)
    attributes: ItemAttributes = Field(default_factory=ItemAttributes)
    image_urls: List[str] = Field(default_factory=list)
    embedding: Optional[List[float]] = None
    is_active: bool = True
    is_featured: bool = False
    click_count: int = 0
    created_at: Optional[datetime] = None
    brand_id: Optional[str] = None
    brand_name: Optional[str] = None

    @property
    def pattern(self) -> Optional[str]:
        return self.attributes.pattern

    @property
    def brand_key(self) -> str:
        """Brand name, then brand id, then the "unknown" sentinel."""
        return self.brand_name or self.brand_id or DEFAULT_FEED_CONFIG.UNKNOWN_BRAND


# =============================================================================
# Interactions
# =============================================================================

class InteractionRecord(BaseModel):
    """One remote interaction row, as used for behavioral scoring."""
    item_id: str
    type: InteractionType
    created_at: Optional[datetime] = None


# =============================================================================
# Preferences
# =============================================================================

class UserPreferences(BaseModel):
    """Explicit preference record (style quiz, or synced from counters)."""
    style_tags: List[str] = Field(default_factory=list)
    favorite_colors: List[str] = Field(default_factory=list)
    pattern_preferences: List[str] = Field(default_factory=list)
    gender: Optional[str] = None

    @field_validator("style_tags", "favorite_colors", "pattern_preferences", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or []

    @property
    def has_explicit_taste(self) -> bool:
        """Style tags or favorite colors on file (patterns alone don't count)."""
        return bool(self.style_tags or self.favorite_colors)


class DerivedPreferences(BaseModel):
    """Top-N tags derived from style counters, ready to upsert."""
    style_tags: List[str] = Field(default_factory=list)
    favorite_colors: List[str] = Field(default_factory=list)
    pattern_preferences: List[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.style_tags or self.favorite_colors or self.pattern_preferences)


class StyleCounter(BaseModel):
    """Cumulative tag weights learned from interactions."""
    style_scores: Dict[str, float] = Field(default_factory=dict)
    color_scores: Dict[str, float] = Field(default_factory=dict)
    pattern_scores: Dict[str, float] = Field(default_factory=dict)
    last_synced_at: Optional[float] = None


# =============================================================================
# Local Cache Records
# =============================================================================

class FeedCacheEntry(BaseModel):
    """First page of a viewer's feed."""
    items: List[Item] = Field(default_factory=list)
    feed_type: FeedType
    cached_at: float


class SimilarCacheEntry(BaseModel):
    """Ranked similar-item superset for one source item."""
    items: List[Item] = Field(default_factory=list)
    cached_at: float


class ProductCacheEntry(BaseModel):
    item: Item
    cached_at: float


# =============================================================================
# Feed Request / Response
# =============================================================================

class FeedOptions(BaseModel):
    """Paging and filtering for one feed request."""
    limit: int = Field(default=DEFAULT_FEED_CONFIG.DEFAULT_LIMIT, gt=0)
    offset: int = Field(default=0, ge=0)
    exclude_ids: List[str] = Field(default_factory=list)
    gender: Optional[str] = None


class FeedResult(BaseModel):
    """A page of ranked items plus where it came from."""
    items: List[Item] = Field(default_factory=list)
    feed_type: FeedType
    from_cache: bool = False

    @property
    def item_ids(self) -> List[str]:
        return [item.id for item in self.items]
