"""
Pure ranking functions for the three feed tiers.

Preference score:
    3 x style overlap + 2 x color overlap + 1.5 x pattern match + 1 x featured

Behavioral score, summed over anchors (top interacted items):
    (2 x same category + 1.5 x style overlap + 1 x color overlap
     + 1 x pattern match) x anchor interaction weight

Final behavioral ranking blends 0.7 x behavioral + 0.3 x preference.
Jitter is added by the caller from an injected random source so these
functions stay deterministic.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from config.constants import DEFAULT_FEED_CONFIG, FeedConfig
from core.utils import count_shared, normalize_string_set, same_tag
from personalization.models import Item, UserPreferences


# =============================================================================
# Scores
# =============================================================================

def preference_score(
    item: Item,
    prefs: Optional[UserPreferences],
    config: FeedConfig = DEFAULT_FEED_CONFIG,
) -> float:
    """Explicit-preference match for one item (0 when no preferences)."""
    if prefs is None:
        return 0.0
    weights = config.PREFERENCE_WEIGHTS
    score = 0.0

    score += count_shared(prefs.style_tags, item.style) * weights["style"]
    score += count_shared(prefs.favorite_colors, item.colors) * weights["color"]

    if item.pattern and item.pattern.lower().strip() in normalize_string_set(prefs.pattern_preferences):
        score += weights["pattern"]

    if item.is_featured:
        score += weights["featured"]

    return score


def anchor_similarity(
    anchor: Item,
    candidate: Item,
    config: FeedConfig = DEFAULT_FEED_CONFIG,
) -> float:
    """Unweighted similarity of a candidate to one anchor item."""
    weights = config.ANCHOR_WEIGHTS
    sim = 0.0
    if anchor.category == candidate.category:
        sim += weights["category"]
    sim += count_shared(anchor.style, candidate.style) * weights["style"]
    sim += count_shared(anchor.colors, candidate.colors) * weights["color"]
    if same_tag(anchor.pattern, candidate.pattern):
        sim += weights["pattern"]
    return sim


def behavioral_score(
    candidate: Item,
    anchors: Sequence[Item],
    anchor_weights: Dict[str, float],
    config: FeedConfig = DEFAULT_FEED_CONFIG,
) -> float:
    """Anchor similarity weighted by each anchor's own interaction score."""
    score = 0.0
    for anchor in anchors:
        if anchor.id == candidate.id:
            continue
        weight = anchor_weights.get(anchor.id) or config.DEFAULT_ANCHOR_WEIGHT
        score += anchor_similarity(anchor, candidate, config) * weight
    return score


def top_anchor_ids(scores: Dict[str, float], n: int) -> List[str]:
    """Ids with the highest interaction score; ties keep insertion order."""
    ranked = sorted(scores.items(), key=lambda kv: -kv[1])
    return [item_id for item_id, _ in ranked[:n]]


# =============================================================================
# List Operations
# =============================================================================

def sort_scored(scored: Iterable[Tuple[float, Item]]) -> List[Item]:
    """Items by descending score; stable for equal scores."""
    ranked = sorted(scored, key=lambda pair: -pair[0])
    return [item for _, item in ranked]


def exclude_ids(items: Iterable[Item], excluded: Iterable[str]) -> List[Item]:
    excluded_set = set(excluded)
    if not excluded_set:
        return list(items)
    return [item for item in items if item.id not in excluded_set]


def apply_brand_cap(items: Iterable[Item], max_per_brand: int = DEFAULT_FEED_CONFIG.MAX_PER_BRAND) -> List[Item]:
    """
    Keep at most ``max_per_brand`` items per brand key in one linear pass.

    Overflow items are dropped from the result, not pushed to a later page.
    """
    brand_counts: Dict[str, int] = {}
    kept = []
    for item in items:
        brand = item.brand_key
        brand_counts[brand] = brand_counts.get(brand, 0) + 1
        if brand_counts[brand] <= max_per_brand:
            kept.append(item)
    return kept


def paginate(items: Sequence[Item], limit: int, offset: int) -> List[Item]:
    return list(items[offset:offset + limit])
