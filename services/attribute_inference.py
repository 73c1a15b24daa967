"""Rule tables for inferring item attributes from free text.

Detection and confidence scoring are both expressed as data:

- DETECTION_RULES: (attribute, value, pattern) tuples. Rules are listed in
  priority order; for single-valued attributes the first matching rule wins,
  for special_features every matching rule contributes.
- CONFIDENCE_RULES: (source, weight) pairs evaluated for each inferred value.

New rules are new rows, not new branches.
"""

import re
from dataclasses import dataclass
from typing import Callable

from models.context import ItemContext

BASE_CONFIDENCE = 0.5
MAX_CONFIDENCE = 0.95

MULTI_VALUED_ATTRIBUTES = frozenset({"special_features"})


@dataclass(frozen=True)
class DetectionRule:
    """Assign `value` to `attribute` when `pattern` occurs in the corpus."""
    attribute: str
    value: str
    pattern: re.Pattern

    def matches(self, corpus: str) -> bool:
        return self.pattern.search(corpus) is not None


def _rule(attribute: str, value: str, pattern: str | None = None) -> DetectionRule:
    return DetectionRule(attribute, value, re.compile(pattern or re.escape(value)))


DETECTION_RULES: tuple[DetectionRule, ...] = (
    # Brands (closed list)
    *(_rule("brand", brand) for brand in (
        "nike", "adidas", "apple", "sony", "pokemon", "disney", "lego", "rolex",
    )),
    # Item types (closed list)
    *(_rule("item_type", item_type) for item_type in (
        "shoes", "sneakers", "shirt", "phone", "watch", "card", "book", "hat",
    )),
    # Era: recent cues beat retro, retro beats vintage
    _rule("era", "modern", r"modern|202\d"),
    _rule("era", "retro", r"retro"),
    _rule("era", "vintage", r"vintage|19\d{2}"),
    # Condition: signs of wear beat praise
    _rule("condition", "fair", r"worn|used"),
    _rule("condition", "good", r"good|decent"),
    _rule("condition", "like-new", r"excellent"),
    _rule("condition", "new", r"mint|new"),
    # Special features (multi-valued)
    _rule("special_features", "signed"),
    _rule("special_features", "rare"),
    _rule("special_features", "limited edition", r"limited"),
    _rule("special_features", "collectible", r"collector"),
)


def build_corpus(item: ItemContext) -> str:
    """Image analysis, user description and every interaction input, lowercased."""
    parts = [item.image_analysis, item.user_description]
    parts.extend(interaction.user_input for interaction in item.interactions)
    return " ".join(part for part in parts if part).lower()


def detect_attributes(corpus: str) -> dict[str, str | list[str]]:
    """Run every detection rule against a lowercase corpus.

    Only attributes that matched are returned.
    """
    detected: dict[str, str | list[str]] = {}
    for rule in DETECTION_RULES:
        if not rule.matches(corpus):
            continue
        if rule.attribute in MULTI_VALUED_ATTRIBUTES:
            values = detected.setdefault(rule.attribute, [])
            if rule.value not in values:
                values.append(rule.value)
        else:
            detected.setdefault(rule.attribute, rule.value)
    return detected


def _in_image_analysis(item: ItemContext, needle: str) -> int:
    return int(needle in (item.image_analysis or "").lower())


def _in_user_description(item: ItemContext, needle: str) -> int:
    return int(needle in (item.user_description or "").lower())


def _confirming_interactions(item: ItemContext, needle: str) -> int:
    return sum(1 for i in item.interactions if needle in i.user_input.lower())


# (count of supporting occurrences, weight per occurrence)
CONFIDENCE_RULES: tuple[tuple[Callable[[ItemContext, str], int], float], ...] = (
    (_in_image_analysis, 0.2),
    (_in_user_description, 0.2),
    (_confirming_interactions, 0.1),
)


def _as_needle(value: str | list[str]) -> str:
    if isinstance(value, list):
        return ",".join(value).lower()
    return value.lower()


def score_attribute(item: ItemContext, value: str | list[str]) -> float:
    """Confidence in one inferred value, capped at MAX_CONFIDENCE."""
    needle = _as_needle(value)
    confidence = BASE_CONFIDENCE
    for source, weight in CONFIDENCE_RULES:
        confidence += source(item, needle) * weight
    return round(min(confidence, MAX_CONFIDENCE), 4)


def calculate_confidence_scores(item: ItemContext) -> dict[str, float]:
    return {
        attribute: score_attribute(item, value)
        for attribute, value in item.inferred_attributes.present().items()
    }


def update_inferred_attributes(item: ItemContext) -> ItemContext:
    """Re-derive an item's attributes and confidence scores in place.

    New detections overwrite earlier values; attributes with no match this
    time keep what they had.
    """
    detected = detect_attributes(build_corpus(item))
    item.inferred_attributes = item.inferred_attributes.model_copy(update=detected)
    item.confidence_scores = calculate_confidence_scores(item)
    return item
