"""Per-field domain rules for listing values.

Every value that reaches the form passes through validate_field_value,
whichever extraction path produced it. Validators are pure: they take the raw
text and return the normalized value, or None when the text is unusable.
Applying a validator to its own output returns the same value.
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Iterable, Optional

from pydantic import HttpUrl, TypeAdapter, ValidationError

from models.errors import ValidationRejected
from models.schemas import FORM_FIELDS, Category
from services.category_matcher import DEFAULT_MATCH_THRESHOLD, resolve_category_id

MAX_TITLE_WORDS = 8
MIN_DESCRIPTION_LENGTH = 10

VALID_CONDITIONS: tuple[str, ...] = ("new", "like-new", "good", "fair", "poor")
VALID_DURATIONS: tuple[int, ...] = (1, 3, 5, 7, 10, 14)

CONDITION_SYNONYMS: dict[str, str] = {
    "mint": "new",
    "brand new": "new",
    "excellent": "like-new",
    "like new": "like-new",
    "like_new": "like-new",
    "likenew": "like-new",
    "decent": "good",
    "worn": "fair",
    "damaged": "poor",
    "broken": "poor",
}

PRICE_FIELDS: tuple[str, ...] = ("starting_price", "reserve_price", "buy_now_price")

_QUOTES = "\"'`“”‘’"
_NON_PRICE_CHARS = re.compile(r"[^\d.]")
_DURATION_RE = re.compile(r"^(\d+)(?:\s*days?)?$", re.IGNORECASE)
_TIMESTAMP_RE = re.compile(r"^(\d+)(?:\s*(?:s|secs?|seconds?))?$", re.IGNORECASE)
_CENTS = Decimal("0.01")

_url_adapter = TypeAdapter(HttpUrl)


def _validate_title(value: str) -> Optional[str]:
    words = value.strip().strip(_QUOTES).split()
    if not words:
        return None
    return " ".join(words[:MAX_TITLE_WORDS])


def _validate_description(value: str) -> Optional[str]:
    value = value.strip()
    return value if len(value) > MIN_DESCRIPTION_LENGTH else None


def _validate_condition(value: str) -> Optional[str]:
    normalized = value.strip().strip(_QUOTES + ".").lower()
    normalized = CONDITION_SYNONYMS.get(normalized, normalized)
    return normalized if normalized in VALID_CONDITIONS else None


def _validate_price(value: str) -> Optional[str]:
    digits = _NON_PRICE_CHARS.sub("", value)
    try:
        price = Decimal(digits)
        if not price.is_finite() or price <= 0:
            return None
        # Raises past the context precision (28 digits)
        return str(price.quantize(_CENTS, rounding=ROUND_HALF_UP))
    except InvalidOperation:
        return None


def _validate_duration(value: str) -> Optional[str]:
    match = _DURATION_RE.match(value.strip())
    if not match:
        return None
    days = int(match.group(1))
    return str(days) if days in VALID_DURATIONS else None


def _validate_video_url(value: str) -> Optional[str]:
    url = value.strip().strip(_QUOTES)
    if not url or any(ch.isspace() for ch in url):
        return None
    if "://" not in url:
        url = f"https://{url}"
    try:
        parsed = _url_adapter.validate_python(url)
    except ValidationError:
        return None
    # Hosts without a dot ("https://hello") are not listing-worthy URLs
    if not parsed.host or "." not in parsed.host:
        return None
    return url


def _validate_timestamp(value: str) -> Optional[str]:
    match = _TIMESTAMP_RE.match(value.strip())
    if not match:
        return None
    return str(int(match.group(1)))


_VALIDATORS: dict[str, Callable[[str], Optional[str]]] = {
    "title": _validate_title,
    "description": _validate_description,
    "condition": _validate_condition,
    "starting_price": _validate_price,
    "reserve_price": _validate_price,
    "buy_now_price": _validate_price,
    "duration_days": _validate_duration,
    "video_url": _validate_video_url,
    "video_timestamp": _validate_timestamp,
}


def validate_field_value(
    field: str,
    value: Any,
    categories: Iterable[Category] = (),
    category_threshold: int = DEFAULT_MATCH_THRESHOLD,
) -> Optional[str]:
    """Validate and normalize one extracted value.

    Args:
        field: Form field name (one of FORM_FIELDS)
        value: Raw extracted value; numbers are accepted and stringified
        categories: Category allow-list for category_id
        category_threshold: rapidfuzz cutoff for category name matching

    Returns:
        The normalized value, or None if the value is rejected
    """
    if field not in FORM_FIELDS or value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        value = str(value)
    if not isinstance(value, str) or not value.strip():
        return None

    if field == "category_id":
        return resolve_category_id(value.strip().strip(_QUOTES), categories, category_threshold)

    return _VALIDATORS[field](value)


def require_valid_field_value(
    field: str,
    value: Any,
    categories: Iterable[Category] = (),
    category_threshold: int = DEFAULT_MATCH_THRESHOLD,
) -> str:
    """Like validate_field_value, but raise ValidationRejected on failure."""
    result = validate_field_value(field, value, categories, category_threshold)
    if result is None:
        raise ValidationRejected(field, value)
    return result
