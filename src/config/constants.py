"""
Policy constants for the personalization engine.

These are values that don't change based on environment but may need
to be tuned by product. None of them has a derivation beyond "this is
what ships today"; treat them as defaults, not as optimal values.
"""

from dataclasses import dataclass, field
from typing import Dict, Tuple


# =============================================================================
# Interaction Weights
# =============================================================================

# Signed weight per interaction type, monotonic with intent strength.
INTERACTION_WEIGHTS: Dict[str, float] = {
    "purchase": 1.0,
    "save": 0.7,
    "like": 0.5,
    "view": 0.2,
    "dismiss": -0.3,
}


# =============================================================================
# Local Cache Configuration
# =============================================================================

@dataclass(frozen=True)
class CacheConfig:
    """TTLs (seconds) and bounds for the local key/value state."""

    FEED_TTL: int = 15 * 60
    PRODUCT_TTL: int = 60 * 60
    SIMILAR_TTL: int = 30 * 60
    VIEW_DEDUP_TTL: int = 24 * 60 * 60

    MAX_SEEN_IDS: int = 500
    MAX_RECENTLY_VIEWED: int = 30

    # Synthetic viewer id for anonymous feed caching
    GUEST_VIEWER_ID: str = "guest"


DEFAULT_CACHE_CONFIG = CacheConfig()


# =============================================================================
# Feed Configuration
# =============================================================================

@dataclass(frozen=True)
class FeedConfig:
    """Configuration for tier selection and feed ranking."""

    # Paging
    DEFAULT_LIMIT: int = 20
    POOL_SIZE: int = 200

    # Diversity
    MAX_PER_BRAND: int = 2
    UNKNOWN_BRAND: str = "unknown"

    # Cold start ordering: (column, descending)
    COLD_START_ORDER: Tuple[Tuple[str, bool], ...] = (
        ("is_featured", True),
        ("created_at", True),
    )

    # Preference scoring
    PREFERENCE_WEIGHTS: Dict[str, float] = field(default_factory=lambda: {
        "style": 3.0,
        "color": 2.0,
        "pattern": 1.5,
        "featured": 1.0,
    })
    PREFERENCE_JITTER: float = 0.5

    # Behavioral scoring
    ANCHOR_COUNT: int = 5
    DEFAULT_ANCHOR_WEIGHT: float = 0.2
    ANCHOR_WEIGHTS: Dict[str, float] = field(default_factory=lambda: {
        "category": 2.0,
        "style": 1.5,
        "color": 1.0,
        "pattern": 1.0,
    })
    BEHAVIORAL_BLEND: float = 0.7
    PREFERENCE_BLEND: float = 0.3
    BEHAVIORAL_JITTER: float = 0.3

    # Interaction history
    HISTORY_WINDOW_DAYS: int = 30
    SCORE_HISTORY_LIMIT: int = 200
    FALLBACK_INTERACTION_WEIGHT: float = 0.2

    # Silent refresh after the app returns from background
    SILENT_REFRESH_AFTER_SECONDS: int = 5 * 60


DEFAULT_FEED_CONFIG = FeedConfig()


# =============================================================================
# Similarity Configuration
# =============================================================================

@dataclass(frozen=True)
class SimilarityConfig:
    """Weights for attribute-based item similarity."""

    POOL_SIZE: int = 150
    CACHED_RESULTS: int = 20
    DEFAULT_LIMIT: int = 12

    CATEGORY_MATCH: float = 3.0
    SUBCATEGORY_MATCH: float = 2.0
    SHARED_STYLE: float = 2.0
    SHARED_COLOR: float = 1.5
    PATTERN_MATCH: float = 1.5
    GENDER_COMPATIBLE: float = 1.0
    SHARED_OCCASION: float = 0.5

    # Price ratio below this floor earns no proximity bonus
    PRICE_RATIO_FLOOR: float = 0.5


DEFAULT_SIMILARITY_CONFIG = SimilarityConfig()


# =============================================================================
# Preference Sync Configuration
# =============================================================================

@dataclass(frozen=True)
class SyncConfig:
    """Triggers and payload sizes for flushing learned preferences."""

    # |weight| at or above this flushes immediately and invalidates the feed
    SYNC_WEIGHT_THRESHOLD: float = 0.5

    # Flush on every Nth logged view
    VIEW_CADENCE: int = 10

    TOP_STYLES: int = 5
    TOP_COLORS: int = 5
    TOP_PATTERNS: int = 3


DEFAULT_SYNC_CONFIG = SyncConfig()
