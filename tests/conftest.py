"""
Shared fixtures for the Retail Assistant tests.
"""

import asyncio
import os
import sys
from decimal import Decimal
from types import SimpleNamespace
from typing import List, Optional

import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from retail_assistant.config import Settings, set_settings
from retail_assistant.database import CatalogDatabase
from retail_assistant.models import CatalogItem


def _run(coro):
    return asyncio.run(coro)


def make_item(
    sku: str,
    name: str,
    price: str,
    category: str = "Electronics",
    description: Optional[str] = None,
    active: bool = True,
    item_id: int = 0
) -> CatalogItem:
    """Build a CatalogItem with sensible defaults."""
    return CatalogItem(
        id=item_id,
        sku=sku,
        name=name,
        price=Decimal(price),
        currency="GBP",
        category=category,
        description=description,
        active=active
    )


def completion(content: Optional[str], total_tokens: int = 42) -> SimpleNamespace:
    """Fake chat-completion response shaped like the OpenAI SDK object."""
    choices = [] if content is None else [SimpleNamespace(message=SimpleNamespace(content=content))]
    return SimpleNamespace(choices=choices, usage=SimpleNamespace(total_tokens=total_tokens))


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def test_settings(tmp_path):
    """Isolated settings so tests never depend on the developer's .env."""
    settings = Settings(
        openai_api_key="test-key",
        catalog_db_path=str(tmp_path / "catalog.db"),
        vector_store_path=str(tmp_path / "vector_store"),
        checkout_api_base_url="http://checkout.test",
        checkout_timeout=5.0
    )
    set_settings(settings)
    yield settings
    set_settings(None)


@pytest.fixture
def sample_items() -> List[CatalogItem]:
    """A small mixed catalog; the inactive item must never be returned."""
    return [
        make_item("APP-001", "Classic Cotton T-Shirt", "12.99", "Apparel", "Soft cotton tee in five colours"),
        make_item("FTW-001", "Trail Running Shoes", "79.99", "Footwear", "Grippy shoes for muddy trails"),
        make_item("ELE-001", "Wireless Headphones", "149.99", "Electronics", "Noise cancelling headphones"),
        make_item("ELE-002", "Bluetooth Speaker", "39.99", "Electronics", "Portable speaker with deep bass"),
        make_item("ACC-001", "Leather Wallet", "24.50", "Accessories", "Slim leather wallet"),
        make_item("HOM-001", "Scented Candle", "9.99", "Home & Living", "Vanilla scented candle"),
        make_item("SPO-001", "Yoga Mat", "29.99", "Sports & Outdoors", "Non-slip yoga mat"),
        make_item("ELE-003", "Retired Headphones", "5.00", "Electronics", "Discontinued headphones", active=False),
    ]


@pytest.fixture
def catalog_database(tmp_path, sample_items) -> CatalogDatabase:
    """Create a temporary catalog database with the sample items."""
    database = CatalogDatabase(str(tmp_path / "test_catalog.db"))
    database.add_items(sample_items)
    return database
