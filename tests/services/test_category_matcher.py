"""Tests for mapping free-text categories onto the catalog."""

from models.schemas import Category
from services.category_matcher import (
    find_category_by_keywords,
    match_category_name,
    resolve_category_id,
)


class TestMatchCategoryName:
    def test_exact_name_case_insensitive(self, sample_categories):
        assert match_category_name("COLLECTIBLES", sample_categories) == "cat-collectibles"

    def test_fuzzy_match_above_threshold(self, sample_categories):
        """A one-letter typo still scores above 90."""
        assert match_category_name("Electronic", sample_categories) == "cat-electronics"

    def test_fuzzy_match_below_threshold(self, sample_categories):
        assert match_category_name("Elec", sample_categories) is None

    def test_threshold_is_configurable(self, sample_categories):
        assert match_category_name("Elec", sample_categories, threshold=30) == "cat-electronics"

    def test_blank_value(self, sample_categories):
        assert match_category_name("   ", sample_categories) is None

    def test_empty_catalog(self):
        assert match_category_name("Books", []) is None


class TestFindCategoryByKeywords:
    def test_first_matching_fragment_wins(self):
        categories = [
            Category(id="c1", name="Footwear"),
            Category(id="c2", name="Fashion"),
        ]
        # "fashion" precedes "footwear" in the shoe fragments
        assert find_category_by_keywords("old boots", categories) == "c2"

    def test_phone_maps_to_electronics(self, sample_categories):
        assert find_category_by_keywords("an iPhone 12", sample_categories) == "cat-electronics"

    def test_novel_maps_to_books(self, sample_categories):
        assert find_category_by_keywords("signed first-edition novel", sample_categories) == "cat-books"

    def test_no_keyword(self, sample_categories):
        assert find_category_by_keywords("garden hose", sample_categories) is None


class TestResolveCategoryId:
    def test_exact_id(self, sample_categories):
        assert resolve_category_id("cat-books", sample_categories) == "cat-books"

    def test_numeric_ids(self):
        categories = [Category(id=12, name="Toys"), Category(id=7, name="Books")]
        assert resolve_category_id("12", categories) == "12"
        assert resolve_category_id("books", categories) == "7"

    def test_name_then_keywords(self, sample_categories):
        assert resolve_category_id("Fashion & Clothing", sample_categories) == "cat-fashion"
        assert resolve_category_id("hoodie", sample_categories) == "cat-fashion"

    def test_result_always_from_catalog(self, sample_categories):
        ids = {c.id for c in sample_categories}
        for value in ["Books", "laptop", "cat-electronics", "Collectible", "jacket"]:
            assert resolve_category_id(value, sample_categories) in ids

    def test_nothing_fits(self, sample_categories):
        assert resolve_category_id("Garden Tools", sample_categories) is None
