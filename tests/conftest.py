"""Shared pytest fixtures for listing assistant tests."""

import pytest

from config import get_settings
from models.schemas import FORM_FIELDS, Category
from services.context_store import SessionContextStore
from services.listing_assistant import ListingAssistant
from tests.mocks import MockLLMClient

# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Drop cached settings so monkeypatched environment variables apply."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ============================================================================
# Catalog & Form Fixtures
# ============================================================================


@pytest.fixture
def sample_categories():
    """Return a small category catalog covering the keyword map."""
    return [
        Category(id="cat-electronics", name="Electronics"),
        Category(id="cat-fashion", name="Fashion & Clothing"),
        Category(id="cat-collectibles", name="Collectibles"),
        Category(id="cat-books", name="Books"),
    ]


@pytest.fixture
def empty_form():
    """Return a form with every field present and blank."""
    return {field: "" for field in FORM_FIELDS}


@pytest.fixture
def filled_form(empty_form):
    """Return a form where the required fields already hold values."""
    return {
        **empty_form,
        "title": "Vintage Nike Air Jordan Sneakers",
        "description": "Original 1985 pair, kept in the box for decades.",
        "category_id": "cat-fashion",
        "condition": "good",
        "starting_price": "120.00",
    }


# ============================================================================
# Completion Client Fixtures
# ============================================================================


@pytest.fixture
def mock_llm():
    """Create a MockLLMClient with no responses registered."""
    return MockLLMClient()


@pytest.fixture
def assistant(mock_llm):
    """Listing assistant wired to the mock completion client."""
    return ListingAssistant(llm=mock_llm)


# ============================================================================
# Session Context Fixtures
# ============================================================================


@pytest.fixture
def session_store():
    """A fresh session for a vintage sneaker listing."""
    return SessionContextStore.create("Vintage Nike shoes from 1985")


@pytest.fixture
def store_with_item(session_store):
    """A session with one analyzed item registered."""
    session_store.add_item_context(
        "item-1",
        image_analysis="White leather Nike sneakers with red swoosh, vintage 1985",
    )
    return session_store
