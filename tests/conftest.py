"""
Pytest configuration and shared fixtures for the personalization engine tests.
"""
import os
import random
import sys
from datetime import datetime, timezone
from typing import Callable, List

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

# Load environment variables
from dotenv import load_dotenv
load_dotenv(os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env"))


# Fixed "now" for every clock-driven test: 2024-06-01T00:00:00Z
BASE_TIME = 1717200000.0


class FakeClock:
    """Manually advanced clock, injected wherever time.time would be."""

    def __init__(self, start: float = BASE_TIME):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ============================================================================
# Fixtures: Test Data Factories
# ============================================================================

def make_item(item_id: str, **overrides):
    """Build an Item with sensible defaults for scoring tests."""
    from personalization.models import Item

    pattern = overrides.pop("pattern", None)
    data = {
        "id": item_id,
        "title": f"Item {item_id}",
        "price": 50.0,
        "category": "tops",
        "gender": "women",
        "colors": [],
        "style": [],
        "brand_name": f"brand-{item_id}",
        "created_at": datetime(2024, 5, 1, tzinfo=timezone.utc),
    }
    data.update(overrides)
    if pattern is not None:
        data["attributes"] = {"pattern": pattern}
    return Item(**data)


@pytest.fixture
def item_factory() -> Callable:
    """Factory for Item instances (see make_item)."""
    return make_item


@pytest.fixture
def sample_item_row() -> dict:
    """Sample products row as returned by Supabase."""
    return {
        "id": "prod-001",
        "title": "Linen Wrap Dress",
        "description": "Breezy midi dress",
        "price": 89.0,
        "sale_price": None,
        "category": "dresses",
        "subcategory": "midi",
        "gender": "women",
        "colors": ["white", "beige"],
        "style": ["boho", "minimal"],
        "occasion": ["vacation"],
        "season": ["summer"],
        "attributes": {"pattern": "solid", "materials": ["linen"], "fit": "relaxed"},
        "image_urls": ["https://example.com/p/001.jpg"],
        "is_active": True,
        "is_featured": False,
        "click_count": 12,
        "created_at": "2024-05-01T10:00:00+00:00",
        "brand_id": "brand-uuid-1",
        "source_brand_name": "Sunday Studio",
    }


@pytest.fixture
def catalog_items() -> List:
    """Twelve active women's items across four brands; two featured."""
    items = []
    for i in range(12):
        items.append(make_item(
            f"item-{i:02d}",
            brand_name=f"brand-{i % 4}",
            style=["minimal"] if i % 2 == 0 else ["streetwear"],
            colors=["black"] if i % 3 == 0 else ["white"],
            is_featured=i in (5, 9),
            created_at=datetime(2024, 5, 1 + i, tzinfo=timezone.utc),
        ))
    return items


# ============================================================================
# Fixtures: Engine Plumbing
# ============================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(42)


@pytest.fixture
def kv_store(clock):
    """In-memory key/value store on the fake clock."""
    from personalization.kv_store import KeyValueStore
    return KeyValueStore(clock=clock)


@pytest.fixture
def local_cache(kv_store):
    from personalization.local_cache import LocalCache
    return LocalCache(kv_store)


@pytest.fixture
def background():
    from personalization.background import BackgroundTasks
    return BackgroundTasks()


@pytest.fixture
def in_memory_catalog(catalog_items):
    from personalization.collaborators import InMemoryCatalog
    return InMemoryCatalog(catalog_items)


@pytest.fixture
def in_memory_preferences():
    from personalization.collaborators import InMemoryPreferences
    return InMemoryPreferences()


@pytest.fixture
def in_memory_interactions(clock):
    from personalization.collaborators import InMemoryInteractions
    return InMemoryInteractions(clock=clock)


@pytest.fixture
def engine(catalog_items, clock, rng):
    """Offline engine over the sample catalog."""
    from personalization.engine import PersonalizationEngine
    return PersonalizationEngine.in_memory(items=catalog_items, clock=clock, rng=rng)


# ============================================================================
# Markers auto-use
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "supabase: marks tests that require Supabase")


# ============================================================================
# Skip conditions
# ============================================================================

def pytest_collection_modifyitems(config, items):
    """Auto-skip Supabase tests if no credentials are configured."""
    skip_supabase = pytest.mark.skip(reason="Supabase tests require credentials")

    supabase_url = os.getenv("SUPABASE_URL")

    for item in items:
        if "supabase" in item.keywords and not supabase_url:
            item.add_marker(skip_supabase)
