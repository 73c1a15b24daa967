"""Prompt templates for the per-field, combined and enhancement modes."""

import json
from typing import Iterable, Mapping

from models.schemas import FORM_FIELDS, Category

# Per-field instructions. {utterance} and {current} are filled in by build_field_prompt.
FIELD_INSTRUCTIONS: dict[str, str] = {
    "title": """Extract or generate a clear auction title from: "{utterance}"

Rules:
- Maximum 8 words
- Clear and marketable
- Include main item type
- Don't include condition unless it's key (like "Vintage")

Current title: "{current}"

Return ONLY the title:""",
    "description": """Extract or enhance the item description from: "{utterance}"

Rules:
- Clear and detailed
- Include condition, features, benefits
- Professional auction language
- 20-100 words

Current description: "{current}"

Return ONLY the description:""",
    "category_id": """Select the best category ID for this item: "{utterance}"

Available categories:
{categories}

Rules:
- Return ONLY the category ID (not the name)
- Choose the most specific match
- If unclear, choose the broader category

Return ONLY the category ID:""",
    "condition": """Determine the item condition from: "{utterance}"

Valid conditions: new, like-new, good, fair, poor

Rules:
- "mint", "excellent", "perfect" -> like-new
- "vintage", "used but good" -> good
- "worn", "some wear" -> fair
- "damaged", "broken" -> poor
- Default to "good" if unclear

Return ONLY the condition:""",
    "starting_price": """Extract the starting price from: "{utterance}"

Rules:
- Return ONLY the numeric value (no $ sign)
- Convert words to numbers ("twenty-five" -> "25")
- Look for "starting", "start at", "beginning bid"
- Format as decimal (25.00)

Return ONLY the price number:""",
    "reserve_price": """Extract the reserve price from: "{utterance}"

Rules:
- Return ONLY the numeric value (no $ sign)
- Look for "reserve", "minimum", "won't sell below"
- Convert words to numbers
- Format as decimal (50.00)

Return ONLY the price number:""",
    "buy_now_price": """Extract the buy now price from: "{utterance}"

Rules:
- Return ONLY the numeric value (no $ sign)
- Look for "buy now", "buy it now", "instant purchase"
- Convert words to numbers
- Format as decimal (150.00)

Return ONLY the price number:""",
    "duration_days": """Extract the auction duration from: "{utterance}"

Rules:
- Return ONLY the number of days
- Convert "week" -> 7, "two weeks" -> 14
- Valid values: 1, 3, 5, 7, 10, 14
- Default to 7 if unclear

Return ONLY the number:""",
    "video_url": """Extract and clean the video URL from: "{utterance}"

Rules:
- Add https:// if missing
- Clean up the URL format
- Support YouTube, Vimeo, etc.
- Return full URL

Return ONLY the URL:""",
    "video_timestamp": """Convert the time reference to seconds from: "{utterance}"

Rules:
- "2 minutes" -> 120
- "1 minute 30 seconds" -> 90
- "1:30" -> 90
- "2:15" -> 135
- Return ONLY the number of seconds

Return ONLY the seconds number:""",
}

# Reason attached to itemized updates produced by the per-field pipeline
FIELD_REASONS: dict[str, str] = {
    "title": "Generated title from your description",
    "description": "Built description from your input",
    "category_id": "Matched the item to a category",
    "condition": "Used the condition you described",
    "starting_price": "Used starting price from your input",
    "reserve_price": "Used reserve price from your input",
    "buy_now_price": "Used buy now price from your input",
    "duration_days": "Used auction duration from your input",
    "video_url": "Used video link from your input",
    "video_timestamp": "Converted the time you mentioned to seconds",
}


def format_categories(categories: Iterable[Category]) -> str:
    return "\n".join(f"{c.id}: {c.name}" for c in categories) or "(none)"


def build_field_prompt(
    field: str,
    utterance: str,
    form: Mapping[str, str],
    categories: Iterable[Category] = (),
    field_context: str = "",
) -> str:
    """Build the single-field extraction prompt.

    Raises:
        KeyError: If the field has no instruction template
    """
    prompt = FIELD_INSTRUCTIONS[field].format(
        utterance=utterance,
        current=form.get(field, ""),
        categories=format_categories(categories),
    )
    if field_context.strip():
        prompt = f"{field_context.strip()}\n\n{prompt}"
    return prompt


COMBINED_PROMPT = """You are an AI assistant helping users create auction listings. You have access to rich context about this listing session.

CONTEXT INFORMATION:
{context}

CURRENT FORM DATA:
{form}

USER INPUT: "{utterance}"

AVAILABLE CATEGORIES:
{categories}

Based on the context and user input, provide intelligent field updates. Consider:
1. Previous interactions and patterns
2. Item-specific attributes that have been inferred
3. Consistency with earlier decisions
4. User's apparent preferences and style

Valid conditions: new, like-new, good, fair, poor
Valid durations (days): 1, 3, 5, 7, 10, 14
Prices are plain decimal numbers without currency symbols.

Return a JSON response with:
{{
  "formUpdates": {{
    "field_name": "new_value"
  }},
  "fieldUpdates": [
    {{
      "field": "field_name",
      "value": "new_value",
      "reason": "explanation of why this change was made",
      "confidence": 0.9
    }}
  ]
}}

Only include fields that should be updated. Valid field names: {fields}

Return only the JSON object, no other text."""

SIMPLE_PROMPT = """Extract auction listing field values from this request: "{utterance}"

Current form:
{form}

Categories (use the id for category_id):
{categories}

Respond with JSON only, in this shape:
{{"formUpdates": {{"field_name": "value"}}, "fieldUpdates": []}}

Valid field names: {fields}"""


def _render_form(form: Mapping[str, str]) -> str:
    return json.dumps({field: form.get(field, "") for field in FORM_FIELDS}, indent=2)


def build_combined_prompt(
    utterance: str,
    form: Mapping[str, str],
    categories: Iterable[Category],
    context_text: str,
) -> str:
    """Contextual whole-response prompt: one JSON object covering many fields."""
    return COMBINED_PROMPT.format(
        context=context_text.strip() or "(no prior context)",
        form=_render_form(form),
        utterance=utterance,
        categories=format_categories(categories),
        fields=", ".join(FORM_FIELDS),
    )


def build_simple_prompt(
    utterance: str,
    form: Mapping[str, str],
    categories: Iterable[Category],
) -> str:
    """Non-contextual prompt used when the contextual call fails."""
    return SIMPLE_PROMPT.format(
        utterance=utterance,
        form=_render_form(form),
        categories=format_categories(categories),
        fields=", ".join(FORM_FIELDS),
    )


ENHANCE_SYSTEM_PROMPT = """You are an AI assistant helping sellers list items for auction. Your goal is to make listings appealing, professional and trustworthy while emphasizing the item's authenticity and what makes it special.

Available categories:
{categories}

Always respond with valid JSON only, no additional text or markdown formatting."""

VOICE_LISTING_PROMPT = """A seller has described an item they want to auction using voice. Here's what they said:

"{utterance}"

Extract and structure this information into a proper auction listing. Return a JSON object with:
{{
  "title": "Compelling, concise title (max 8 words)",
  "description": "Detailed, engaging description (2-3 paragraphs) that highlights authenticity and collector value",
  "suggested_category": "Most appropriate category name from the available list",
  "suggested_condition": "One of: new, like-new, good, fair, poor",
  "suggested_starting_price": "Reasonable starting price as a number",
  "suggested_buy_now_price": "Buy-now price as a number (50-100% higher than starting)",
  "confidence_score": "Your confidence in these suggestions (0-100)",
  "authenticity_highlights": ["Array of points emphasizing provenance and authenticity"],
  "collector_appeal": ["Array of points about why collectors would want this item"]
}}

Focus on the item's story, its condition, and what makes it special to collectors."""

ENHANCE_EXISTING_PROMPT = """Help improve this auction listing. Current information:

Title: {title}
Description: {description}
Category: {category}
Condition: {condition}
Video URL: {video_url}

Return a JSON object with:
{{
  "enhanced_title": "Improved, compelling title (max 8 words)",
  "enhanced_description": "More engaging description that highlights authenticity and collector value",
  "suggested_improvements": ["Array of specific suggestions for the seller"],
  "marketing_keywords": ["Array of relevant keywords for searchability"],
  "authenticity_highlights": ["Array of points emphasizing provenance and authenticity"],
  "pricing_advice": "Brief advice about pricing strategy",
  "collector_appeal": ["Array of points about why collectors would want this item"]
}}

Make the listing more professional and appealing while maintaining honesty about the item."""

_NOT_PROVIDED = "Not provided"


def build_enhance_system_prompt(categories: Iterable[Category]) -> str:
    return ENHANCE_SYSTEM_PROMPT.format(
        categories="\n".join(f"- {c.name}" for c in categories) or "(none)"
    )


def build_voice_listing_prompt(utterance: str) -> str:
    return VOICE_LISTING_PROMPT.format(utterance=utterance)


def build_enhance_existing_prompt(
    form: Mapping[str, str],
    categories: Iterable[Category] = (),
) -> str:
    """Existing-listing prompt; the category id is shown by its catalog name."""
    names = {c.id: c.name for c in categories}
    category_id = form.get("category_id", "")
    return ENHANCE_EXISTING_PROMPT.format(
        title=form.get("title") or _NOT_PROVIDED,
        description=form.get("description") or _NOT_PROVIDED,
        category=names.get(category_id, category_id) or _NOT_PROVIDED,
        condition=form.get("condition") or _NOT_PROVIDED,
        video_url=form.get("video_url") or _NOT_PROVIDED,
    )
