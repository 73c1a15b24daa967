"""Completeness check and follow-up suggestions for a listing form."""

from typing import Mapping

from models.schemas import REQUIRED_FIELDS

FIELD_QUESTIONS: dict[str, str] = {
    "title": "What should I call this item in the title?",
    "description": "Can you describe the item in a sentence or two?",
    "category_id": "What category best fits this item?",
    "condition": "What condition is the item in?",
    "starting_price": "What should the starting bid price be?",
}

APPLY_HINT = "Review the suggested values and apply them to the form"


def find_missing_fields(
    form: Mapping[str, str], updates: Mapping[str, str] | None = None
) -> list[str]:
    """Required fields still empty once `updates` are applied to `form`."""
    merged = {**form, **(updates or {})}
    return [field for field in REQUIRED_FIELDS if not (merged.get(field) or "").strip()]


def generate_suggestions(missing_fields: list[str], form_updates: Mapping[str, str]) -> list[str]:
    suggestions = []
    if form_updates:
        suggestions.append(APPLY_HINT)
    suggestions.extend(FIELD_QUESTIONS[field] for field in missing_fields if field in FIELD_QUESTIONS)
    return suggestions
