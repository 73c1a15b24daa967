"""Listing enhancement.

Two modes, one completion call each:

- voice_parse: draft a whole listing from a spoken description
- existing_enhance: polish the title and description already on the form

Suggested field values go through the same validators as every other
extraction path; anything that fails is dropped and reported by field name.
Marketing copy (highlights, keywords, advice) is passed through as text.
Like the parse modes, a failed completion call is not an error: it returns
success=False with nothing suggested.
"""

from dataclasses import dataclass, field as dc_field
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence

from config import get_settings
from models.errors import ListingAssistantError, ValidationRejected
from models.schemas import Category
from services.combined_parser import coerce_confidence
from services.field_prompts import (
    build_enhance_existing_prompt,
    build_enhance_system_prompt,
    build_voice_listing_prompt,
)
from services.field_validators import require_valid_field_value, validate_field_value
from services.form_analysis import find_missing_fields
from services.llm import LLMClient, get_llm_client
from utils.json_extraction import extract_json_from_response
from utils.logging import get_logger

logger = get_logger(__name__)

VOICE_PARSE = "voice_parse"
EXISTING_ENHANCE = "existing_enhance"

# Response key -> form field
VOICE_FIELD_KEYS: dict[str, str] = {
    "title": "title",
    "description": "description",
    "suggested_category": "category_id",
    "suggested_condition": "condition",
    "suggested_starting_price": "starting_price",
    "suggested_buy_now_price": "buy_now_price",
}
EXISTING_FIELD_KEYS: dict[str, str] = {
    "enhanced_title": "title",
    "enhanced_description": "description",
}


@dataclass
class EnhancementResult:
    """Suggestions for one listing. Nothing here has been applied to the form."""
    success: bool
    enhancement_type: str
    form_updates: dict[str, str] = dc_field(default_factory=dict)
    rejected_fields: list[str] = dc_field(default_factory=list)
    confidence: Optional[float] = None
    authenticity_highlights: list[str] = dc_field(default_factory=list)
    collector_appeal: list[str] = dc_field(default_factory=list)
    marketing_keywords: list[str] = dc_field(default_factory=list)
    suggested_improvements: list[str] = dc_field(default_factory=list)
    pricing_advice: str = ""
    missing_fields: list[str] = dc_field(default_factory=list)


def _text_list(value: Any) -> list[str]:
    """Non-empty strings from a list; a lone string counts as one item."""
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [
        str(item).strip()
        for item in value
        if isinstance(item, (str, int, float)) and not isinstance(item, bool) and str(item).strip()
    ]


def _confidence(score: Any) -> Optional[float]:
    """0-100 score as reported by the model, as a 0-1 confidence."""
    if score is None or isinstance(score, bool):
        return None
    try:
        return coerce_confidence(float(score) / 100)
    except (TypeError, ValueError):
        return None


class ListingEnhancer:
    def __init__(self, llm: LLMClient | None = None):
        self.llm = llm or get_llm_client()
        self.settings = get_settings()

    def _validated_updates(
        self,
        data: Mapping[str, Any],
        keys: Mapping[str, str],
        form: Mapping[str, str],
        categories: Sequence[Category],
    ) -> tuple[dict[str, str], list[str]]:
        form_updates: dict[str, str] = {}
        rejected: list[str] = []
        for key, field in keys.items():
            value = data.get(key)
            if value is None or value == "":
                continue
            try:
                form_updates[field] = require_valid_field_value(
                    field, value, categories, self.settings.category_match_threshold
                )
            except ValidationRejected as e:
                logger.debug(f"Dropped enhancement suggestion for {e.field}")
                rejected.append(e.field)

        # Buy now has to beat the starting bid, suggested or already on the form
        buy_now = form_updates.get("buy_now_price")
        starting = form_updates.get("starting_price") or validate_field_value(
            "starting_price", form.get("starting_price")
        )
        if buy_now and starting and Decimal(buy_now) <= Decimal(starting):
            del form_updates["buy_now_price"]
            rejected.append("buy_now_price")

        return form_updates, rejected

    async def enhance(
        self,
        enhancement_type: str,
        form: Mapping[str, str],
        categories: Sequence[Category],
        raw_input: Optional[str] = None,
    ) -> EnhancementResult:
        """Ask for listing suggestions.

        Args:
            enhancement_type: VOICE_PARSE or EXISTING_ENHANCE
            form: Current form values
            categories: Category allow-list
            raw_input: Spoken description; required for VOICE_PARSE

        Raises:
            ValueError: Unknown enhancement type, or VOICE_PARSE without raw_input
        """
        if enhancement_type == VOICE_PARSE:
            if not raw_input or not raw_input.strip():
                raise ValueError("voice_parse enhancement needs raw input")
            prompt = build_voice_listing_prompt(raw_input.strip())
            keys = VOICE_FIELD_KEYS
        elif enhancement_type == EXISTING_ENHANCE:
            prompt = build_enhance_existing_prompt(form, categories)
            keys = EXISTING_FIELD_KEYS
        else:
            raise ValueError(f"Unknown enhancement type: {enhancement_type}")

        failed = EnhancementResult(
            success=False,
            enhancement_type=enhancement_type,
            missing_fields=find_missing_fields(form),
        )
        try:
            raw = await self.llm.generate(
                prompt,
                system_prompt=build_enhance_system_prompt(categories),
                temperature=self.settings.enhance_temperature,
                max_tokens=self.settings.enhance_max_tokens,
                operation=f"enhance:{enhancement_type}",
            )
        except ListingAssistantError as e:
            logger.warning(f"Listing enhancement failed: {e}")
            return failed

        data = extract_json_from_response(raw, context="enhance_listing")
        if not isinstance(data, dict):
            logger.warning(
                "Enhancement response held no JSON object",
                extra={"response_length": len(raw or ""), "preview": (raw or "")[:200]},
            )
            return failed

        form_updates, rejected = self._validated_updates(data, keys, form, categories)
        result = EnhancementResult(
            success=True,
            enhancement_type=enhancement_type,
            form_updates=form_updates,
            rejected_fields=rejected,
            confidence=_confidence(data.get("confidence_score")),
            authenticity_highlights=_text_list(data.get("authenticity_highlights")),
            collector_appeal=_text_list(data.get("collector_appeal")),
            marketing_keywords=_text_list(data.get("marketing_keywords")),
            suggested_improvements=_text_list(data.get("suggested_improvements")),
            pricing_advice=str(data.get("pricing_advice") or "").strip(),
            missing_fields=find_missing_fields(form, form_updates),
        )
        logger.info(
            "Listing enhancement completed",
            extra={
                "enhancement_type": enhancement_type,
                "fields_accepted": list(form_updates),
                "fields_rejected": rejected,
            },
        )
        return result
