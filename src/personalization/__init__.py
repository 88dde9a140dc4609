"""
Client-side personalization and caching engine.

Ranks a fashion catalog per viewer (cold start, preference, behavioral),
learns style counters from interactions, syncs them to the remote
preference record, and keeps a TTL-aware local cache of feeds, products
and similar items.
"""

from personalization.engine import PersonalizationEngine, build_engine
from personalization.models import (
    FeedOptions,
    FeedResult,
    FeedType,
    InteractionType,
    Item,
    UserPreferences,
)
from personalization.session import ViewerSession

__all__ = [
    "PersonalizationEngine",
    "build_engine",
    "ViewerSession",
    "FeedOptions",
    "FeedResult",
    "FeedType",
    "InteractionType",
    "Item",
    "UserPreferences",
]
