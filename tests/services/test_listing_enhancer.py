"""Tests for listing enhancement (voice drafting and listing polish)."""

import json

import pytest

from services.listing_enhancer import EXISTING_ENHANCE, VOICE_PARSE, ListingEnhancer
from tests.factories import CompletionResponseFactory

VOICE = "described an item they want to auction"
EXISTING = "help improve this auction listing"

SPOKEN = "It's my old brown leather bomber jacket from the eighties, barely worn, start it at 80"


@pytest.fixture
def enhancer(mock_llm):
    return ListingEnhancer(llm=mock_llm)


class TestVoiceParse:
    @pytest.mark.asyncio
    async def test_scenario_full_draft(self, enhancer, mock_llm, empty_form, sample_categories):
        mock_llm.set_response(VOICE, CompletionResponseFactory.voice_listing())

        result = await enhancer.enhance(VOICE_PARSE, empty_form, sample_categories, SPOKEN)

        assert result.success
        assert result.enhancement_type == "voice_parse"
        assert result.form_updates == {
            "title": "Vintage Brown Leather Bomber Jacket",
            "description": (
                "Classic 1980s brown leather bomber jacket with a quilted lining, "
                "worn in one season of videos."
            ),
            "category_id": "cat-fashion",
            "condition": "like-new",
            "starting_price": "80.00",
            "buy_now_price": "150.00",
        }
        assert result.rejected_fields == []
        assert result.confidence == 0.85
        assert result.authenticity_highlights == ["Worn on camera", "Original receipt included"]
        assert result.collector_appeal == ["Rare 1980s cut"]
        assert result.missing_fields == []

    @pytest.mark.asyncio
    async def test_call_settings(self, enhancer, mock_llm, empty_form, sample_categories):
        mock_llm.set_response(VOICE, CompletionResponseFactory.voice_listing())

        await enhancer.enhance(VOICE_PARSE, empty_form, sample_categories, SPOKEN)

        call = mock_llm.get_last_call()
        assert SPOKEN in call["prompt"]
        assert "- Fashion & Clothing" in call["system_prompt"]
        assert "valid JSON only" in call["system_prompt"]
        assert call["max_tokens"] == 1500
        assert call["temperature"] == 0.7
        assert call["operation"] == "enhance:voice_parse"

    @pytest.mark.asyncio
    async def test_invalid_suggestions_dropped(self, enhancer, mock_llm, empty_form, sample_categories):
        mock_llm.set_response(
            VOICE,
            CompletionResponseFactory.voice_listing(
                suggested_category="Garden Tools",
                suggested_condition="pristine",
                suggested_starting_price="9" * 30,
            ),
        )

        result = await enhancer.enhance(VOICE_PARSE, empty_form, sample_categories, SPOKEN)

        assert result.success
        assert set(result.form_updates) == {"title", "description", "buy_now_price"}
        assert result.rejected_fields == ["category_id", "condition", "starting_price"]
        assert result.missing_fields == ["category_id", "condition", "starting_price"]

    @pytest.mark.asyncio
    async def test_buy_now_must_exceed_starting(self, enhancer, mock_llm, empty_form):
        mock_llm.set_response(
            VOICE,
            CompletionResponseFactory.voice_listing(
                suggested_starting_price=80, suggested_buy_now_price=60
            ),
        )

        result = await enhancer.enhance(VOICE_PARSE, empty_form, [], SPOKEN)

        assert result.form_updates["starting_price"] == "80.00"
        assert "buy_now_price" not in result.form_updates
        assert "buy_now_price" in result.rejected_fields

    @pytest.mark.asyncio
    async def test_buy_now_checked_against_form_price(self, enhancer, mock_llm, filled_form):
        mock_llm.set_response(
            VOICE,
            CompletionResponseFactory.voice_listing(
                suggested_starting_price=None, suggested_buy_now_price=100
            ),
        )

        result = await enhancer.enhance(VOICE_PARSE, filled_form, [], SPOKEN)

        # The form already starts at 120.00
        assert "buy_now_price" not in result.form_updates
        assert result.rejected_fields == ["category_id", "buy_now_price"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "score,expected",
        [(85, 0.85), ("60", 0.6), (250, 1.0), ("high", None), (None, None), (True, None)],
    )
    async def test_confidence_score_scaled(self, enhancer, mock_llm, empty_form, score, expected):
        mock_llm.set_response(VOICE, CompletionResponseFactory.voice_listing(confidence_score=score))

        result = await enhancer.enhance(VOICE_PARSE, empty_form, [], SPOKEN)

        assert result.confidence == expected

    @pytest.mark.asyncio
    async def test_raw_input_required(self, enhancer, empty_form):
        with pytest.raises(ValueError):
            await enhancer.enhance(VOICE_PARSE, empty_form, [], "   ")


class TestExistingEnhance:
    @pytest.mark.asyncio
    async def test_polishes_title_and_description(self, enhancer, mock_llm, filled_form, sample_categories):
        mock_llm.set_response(
            EXISTING,
            json.dumps(
                {
                    "enhanced_title": "Original 1985 Nike Air Jordan 1 Sneakers",
                    "enhanced_description": "An original 1985 pair, stored boxed for decades and never worn outdoors.",
                    "suggested_improvements": ["Add photos of the sole", ""],
                    "marketing_keywords": ["air jordan", "1985", "og"],
                    "authenticity_highlights": "Original box included",
                    "pricing_advice": " Start low to draw bidders. ",
                    "collector_appeal": ["First-year release"],
                    "suggested_condition": "new",
                }
            ),
        )

        result = await enhancer.enhance(EXISTING_ENHANCE, filled_form, sample_categories)

        assert result.success
        # Only title and description are taken from this mode
        assert result.form_updates == {
            "title": "Original 1985 Nike Air Jordan 1 Sneakers",
            "description": "An original 1985 pair, stored boxed for decades and never worn outdoors.",
        }
        assert result.suggested_improvements == ["Add photos of the sole"]
        assert result.marketing_keywords == ["air jordan", "1985", "og"]
        assert result.authenticity_highlights == ["Original box included"]
        assert result.pricing_advice == "Start low to draw bidders."
        assert result.confidence is None

    @pytest.mark.asyncio
    async def test_prompt_shows_current_listing(self, enhancer, mock_llm, filled_form, sample_categories):
        mock_llm.set_default_response("{}")
        form = {**filled_form, "video_url": ""}

        await enhancer.enhance(EXISTING_ENHANCE, form, sample_categories)

        prompt = mock_llm.get_last_call()["prompt"]
        assert "Title: Vintage Nike Air Jordan Sneakers" in prompt
        assert "Category: Fashion & Clothing" in prompt
        assert "Video URL: Not provided" in prompt

    @pytest.mark.asyncio
    async def test_fenced_response(self, enhancer, mock_llm, empty_form):
        mock_llm.set_response(
            EXISTING,
            CompletionResponseFactory.fenced('{"enhanced_title": "Retro Sony Walkman"}'),
        )

        result = await enhancer.enhance(EXISTING_ENHANCE, empty_form, [])

        assert result.form_updates == {"title": "Retro Sony Walkman"}


class TestEnhancementFailures:
    @pytest.mark.asyncio
    async def test_upstream_failure(self, enhancer, mock_llm, empty_form):
        mock_llm.fail_all()

        result = await enhancer.enhance(VOICE_PARSE, empty_form, [], SPOKEN)

        assert not result.success
        assert result.form_updates == {}
        assert result.missing_fields == ["title", "description", "category_id", "condition", "starting_price"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["", "Sorry, I can't help with that.", '["title"]'])
    async def test_no_json_object(self, enhancer, mock_llm, empty_form, raw):
        mock_llm.set_default_response(raw)

        result = await enhancer.enhance(EXISTING_ENHANCE, empty_form, [])

        assert not result.success
        assert result.form_updates == {}

    @pytest.mark.asyncio
    async def test_unknown_enhancement_type(self, enhancer, empty_form):
        with pytest.raises(ValueError):
            await enhancer.enhance("rewrite", empty_form, [])


class TestAssistantEnhanceListing:
    @pytest.mark.asyncio
    async def test_delegates_to_enhancer(self, assistant, mock_llm, empty_form, sample_categories):
        mock_llm.set_response(VOICE, CompletionResponseFactory.voice_listing())

        result = await assistant.enhance_listing(VOICE_PARSE, empty_form, sample_categories, SPOKEN)

        assert result.success
        assert result.form_updates["category_id"] == "cat-fashion"
        assert mock_llm.get_operations() == ["enhance:voice_parse"]
