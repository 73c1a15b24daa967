"""Tests for per-field value validation and normalization."""

import pytest

from models.errors import ValidationRejected
from models.schemas import FORM_FIELDS
from services.field_validators import (
    MAX_TITLE_WORDS,
    VALID_CONDITIONS,
    require_valid_field_value,
    validate_field_value,
)


class TestTitle:
    def test_strips_quotes_and_whitespace(self):
        assert validate_field_value("title", '  "Vintage Nike Sneakers"  ') == "Vintage Nike Sneakers"

    def test_truncates_to_max_words(self):
        value = "one two three four five six seven eight nine ten"
        result = validate_field_value("title", value)
        assert len(result.split()) == MAX_TITLE_WORDS
        assert result == "one two three four five six seven eight"

    def test_empty_after_quotes_rejected(self):
        assert validate_field_value("title", '""') is None


class TestDescription:
    def test_long_enough_accepted(self):
        text = "Original 1985 pair in the box"
        assert validate_field_value("description", text) == text

    def test_too_short_rejected(self):
        """Ten characters or fewer is not a description."""
        assert validate_field_value("description", "Nice item") is None
        assert validate_field_value("description", "0123456789") is None

    def test_eleven_characters_accepted(self):
        assert validate_field_value("description", "01234567890") == "01234567890"


class TestCondition:
    @pytest.mark.parametrize("value", VALID_CONDITIONS)
    def test_valid_conditions_pass_through(self, value):
        assert validate_field_value("condition", value) == value

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("Mint", "new"),
            ("excellent", "like-new"),
            ("Like New", "like-new"),
            ("like_new", "like-new"),
            ("worn", "fair"),
            ("broken", "poor"),
            ('"good".', "good"),
        ],
    )
    def test_synonyms_normalized(self, value, expected):
        assert validate_field_value("condition", value) == expected

    def test_unknown_condition_rejected(self):
        assert validate_field_value("condition", "sparkly") is None


class TestPrices:
    @pytest.mark.parametrize("field", ["starting_price", "reserve_price", "buy_now_price"])
    def test_currency_stripped_and_two_decimals(self, field):
        assert validate_field_value(field, "$25") == "25.00"

    def test_rounds_half_up(self):
        assert validate_field_value("starting_price", "19.995") == "20.00"
        assert validate_field_value("starting_price", "0.125") == "0.13"

    def test_thousands_separator(self):
        assert validate_field_value("buy_now_price", "$1,250") == "1250.00"

    def test_numbers_accepted(self):
        assert validate_field_value("starting_price", 25) == "25.00"
        assert validate_field_value("starting_price", 12.5) == "12.50"

    @pytest.mark.parametrize("value", ["0", "0.00", "free", "", "..", "1.2.3"])
    def test_non_positive_or_garbage_rejected(self, value):
        assert validate_field_value("starting_price", value) is None

    def test_negative_sign_dropped(self):
        """Only digits and the decimal point survive, so a sign is ignored."""
        assert validate_field_value("reserve_price", "-40") == "40.00"

    @pytest.mark.parametrize("value", ["1" * 27, "1" * 30, "9" * 40 + ".99"])
    def test_too_many_digits_rejected(self, value):
        assert validate_field_value("starting_price", value) is None

    def test_largest_representable_price(self):
        assert validate_field_value("starting_price", "9" * 26) == "9" * 26 + ".00"


class TestDuration:
    @pytest.mark.parametrize("value,expected", [("7", "7"), ("10 days", "10"), ("1 day", "1"), (" 14 ", "14")])
    def test_allowed_durations(self, value, expected):
        assert validate_field_value("duration_days", value) == expected

    @pytest.mark.parametrize("value", ["2", "30", "a week", "7.5"])
    def test_other_values_rejected(self, value):
        assert validate_field_value("duration_days", value) is None

    def test_integer_accepted(self):
        assert validate_field_value("duration_days", 5) == "5"


class TestVideoUrl:
    def test_scheme_added(self):
        assert validate_field_value("video_url", "youtube.com/watch?v=abc") == "https://youtube.com/watch?v=abc"

    def test_full_url_kept(self):
        url = "https://vimeo.com/123456"
        assert validate_field_value("video_url", url) == url

    @pytest.mark.parametrize("value", ["not a url", "hello", "https://localhost"])
    def test_invalid_rejected(self, value):
        assert validate_field_value("video_url", value) is None


class TestVideoTimestamp:
    @pytest.mark.parametrize("value,expected", [("90", "90"), ("135 seconds", "135"), ("45s", "45"), ("007", "7")])
    def test_seconds_accepted(self, value, expected):
        assert validate_field_value("video_timestamp", value) == expected

    @pytest.mark.parametrize("value", ["1:30", "two minutes", "-5"])
    def test_unconverted_rejected(self, value):
        assert validate_field_value("video_timestamp", value) is None


class TestCategory:
    def test_id_returned_unchanged(self, sample_categories):
        assert validate_field_value("category_id", "cat-books", sample_categories) == "cat-books"

    def test_name_mapped_to_id(self, sample_categories):
        assert validate_field_value("category_id", "electronics", sample_categories) == "cat-electronics"

    def test_item_keyword_mapped(self, sample_categories):
        assert validate_field_value("category_id", "sneakers", sample_categories) == "cat-fashion"

    def test_unknown_category_rejected(self, sample_categories):
        assert validate_field_value("category_id", "Garden Tools", sample_categories) is None

    def test_no_catalog_rejects_everything(self):
        assert validate_field_value("category_id", "cat-books", []) is None


class TestGeneralRules:
    def test_unknown_field_rejected(self):
        assert validate_field_value("shipping_cost", "5") is None

    @pytest.mark.parametrize("value", [None, True, False, "", "   ", ["7"], {"v": 1}])
    def test_unusable_values_rejected(self, value):
        assert validate_field_value("duration_days", value) is None

    @pytest.mark.parametrize(
        "field,value",
        [
            ("title", '"Retro Sony Walkman Cassette Player With Original Headphones"'),
            ("description", "  Barely used, all original parts.  "),
            ("condition", "Excellent"),
            ("starting_price", "$19.999"),
            ("duration_days", "10 days"),
            ("video_url", "youtu.be/xyz"),
            ("video_timestamp", "75 secs"),
        ],
    )
    def test_validation_is_idempotent(self, field, value):
        """Validating an accepted value again returns the same value."""
        once = validate_field_value(field, value)
        assert once is not None
        assert validate_field_value(field, once) == once

    def test_every_form_field_has_a_rule(self, sample_categories):
        samples = {
            "title": "Walkman",
            "description": "A working cassette player",
            "category_id": "cat-electronics",
            "condition": "good",
            "starting_price": "10",
            "reserve_price": "20",
            "buy_now_price": "30",
            "duration_days": "7",
            "video_url": "https://youtube.com/x",
            "video_timestamp": "30",
        }
        assert set(samples) == set(FORM_FIELDS)
        for field, value in samples.items():
            assert validate_field_value(field, value, sample_categories) is not None


class TestRequireValidFieldValue:
    def test_returns_normalized_value(self):
        assert require_valid_field_value("starting_price", "$5") == "5.00"

    def test_raises_validation_rejected(self):
        with pytest.raises(ValidationRejected) as exc_info:
            require_valid_field_value("duration_days", "30")
        assert exc_info.value.field == "duration_days"
        assert exc_info.value.value == "30"
