"""Keyword-based field relevance detection.

Maps an utterance to the listing fields it is likely about. Pure and
synchronous; no completion-service calls.
"""

import re

from utils.logging import get_logger

logger = get_logger(__name__)

# Field -> trigger phrases (matched as case-insensitive substrings)
FIELD_TRIGGERS: dict[str, tuple[str, ...]] = {
    "title": ("title", "name", "call it", "named", "item title", "auction title"),
    "description": ("description", "describe", "details", "about", "explain", "condition details"),
    "category_id": ("category", "type", "kind of", "genre", "section", "classified as"),
    "condition": (
        "condition", "quality", "state", "new", "used", "mint",
        "excellent", "good", "fair", "poor", "vintage", "worn",
    ),
    "starting_price": (
        "starting", "start at", "starting price", "starting bid",
        "minimum bid", "begin at", "opening bid",
    ),
    "reserve_price": (
        "reserve", "reserve price", "minimum", "minimum price", "won't sell below", "reserve at",
    ),
    "buy_now_price": (
        "buy now", "buy it now", "instant", "immediate purchase", "fixed price", "outright",
    ),
    "duration_days": ("duration", "days", "length", "how long", "auction length", "week", "day auction"),
    "video_url": ("video", "youtube", "vimeo", "link", "url", "watch at"),
    "video_timestamp": (
        "timestamp", "starts at", "begin at", "time", "minutes", "seconds", "video starts",
    ),
}

# Used when nothing matched: treat the utterance as a general item description
DEFAULT_FIELDS: tuple[str, ...] = ("title", "description", "category_id", "condition")

_DIGIT_RE = re.compile(r"\d")
_CURRENCY_RE = re.compile(r"\$|€|£|dollar|\bbucks?\b|\busd\b|euro|\bpounds?\b")
_PRICE_WORD_RE = re.compile(r"price|cost")
_TIME_RE = re.compile(r"\d{1,2}:\d{2}|minute|second|\d+\s*(?:min|sec)")


def _mentions_price(message: str) -> bool:
    return bool(_DIGIT_RE.search(message)) and bool(
        _CURRENCY_RE.search(message) or _PRICE_WORD_RE.search(message)
    )


def _mentions_time(message: str) -> bool:
    return bool(_TIME_RE.search(message))


def detect_relevant_fields(utterance: str) -> list[str]:
    """Return the fields an utterance mentions, in table order, without duplicates.

    An empty list means no field matched; callers fall back to DEFAULT_FIELDS.
    """
    message = utterance.lower()
    relevant = [
        field
        for field, triggers in FIELD_TRIGGERS.items()
        if any(trigger in message for trigger in triggers)
    ]

    if _mentions_price(message) and "starting_price" not in relevant:
        relevant.append("starting_price")

    if _mentions_time(message) and "video_timestamp" not in relevant:
        relevant.append("video_timestamp")

    logger.debug(
        "Detected relevant fields",
        extra={"fields": relevant, "utterance_length": len(utterance)},
    )
    return relevant


def fields_for_utterance(utterance: str) -> list[str]:
    """Detected fields, or the general-description default set."""
    return detect_relevant_fields(utterance) or list(DEFAULT_FIELDS)


def is_explicit_mention(field: str, utterance: str) -> bool:
    """True if the utterance names the field or one of its trigger phrases."""
    message = utterance.lower()
    names = {field, field.replace("_", " ")}
    if field == "category_id":
        names.add("category")
    if any(name in message for name in names):
        return True
    return any(trigger in message for trigger in FIELD_TRIGGERS.get(field, ()))
